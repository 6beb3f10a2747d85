"""
Library file services - upload, look up, delete and send library files.
"""
from typing import Optional

from django.db import transaction

from apps.core.models import phone_number_validator
from apps.core.observability import get_sanitized_logger, log_domain_event
from apps.documents import storage
from apps.documents.exceptions import ObjectStoreUnavailableError
from apps.documents.migration import register_orphan
from apps.documents.models import StorageClassChoices
from apps.documents.services import create_document, discard_upload

from .models import ClinicFile

logger = get_sanitized_logger(__name__)

FILES_PREFIX = 'files'


def upload_file(
    clinic,
    document_title: str,
    payload: bytes,
    content_type: str = 'application/octet-stream',
    filename: Optional[str] = None,
    is_public: bool = False,
    created_by=None,
    store=None,
) -> ClinicFile:
    """
    Store a library file in the STANDARD bucket and record it.

    Raises:
        ObjectStoreUnavailableError: upload failed; nothing was created
    """
    store = store or storage.get_object_store()
    bucket = storage.bucket_for_tier(StorageClassChoices.STANDARD)
    object_key = storage.generate_object_key(FILES_PREFIX, filename or '')

    store.put(bucket, object_key, payload, content_type=content_type)
    try:
        clinic_file = ClinicFile.objects.create(
            clinic=clinic,
            document_title=document_title,
            original_name=filename or '',
            bucket=bucket,
            object_key=object_key,
            content_type=content_type,
            size_bytes=len(payload),
            is_public=is_public,
            created_by_user=created_by,
        )
    except Exception:
        discard_upload(bucket, object_key, store)
        raise

    log_domain_event(
        'library_file_uploaded',
        entity_type='ClinicFile',
        entity_id=str(clinic_file.id),
        result='success',
        clinic_id=str(clinic.id),
        size_bytes=clinic_file.size_bytes,
        is_public=is_public,
    )
    return clinic_file


def find_file(clinic, file_id=None, document_title=None) -> ClinicFile:
    """
    Look up a library file the clinic may send, by id or by title.

    Title lookups prefer the clinic's own files, then the newest.

    Raises:
        ClinicFile.DoesNotExist
    """
    files = ClinicFile.objects.visible_to(clinic)
    if file_id is not None:
        return files.get(pk=file_id)
    matches = files.filter(document_title=document_title)
    own = matches.filter(clinic=clinic).first()
    if own is not None:
        return own
    found = matches.first()
    if found is None:
        raise ClinicFile.DoesNotExist(f"Library file '{document_title}' not found")
    return found


def send_file(
    clinic,
    clinic_file: ClinicFile,
    recipient_name: str,
    recipient_phone_number: str,
    title: Optional[str] = None,
    created_by=None,
    store=None,
):
    """
    Create a prepared document from a library file.

    The file's bytes are copied under a new key in the clinic's document
    folder; the library entry is left as is.

    Raises:
        ValidationError: invalid phone number or contractor name mismatch
        ObjectNotFoundError: the library object is gone
        ObjectStoreUnavailableError
    """
    phone_number_validator(recipient_phone_number)
    store = store or storage.get_object_store()
    payload = store.get(clinic_file.bucket, clinic_file.object_key)

    return create_document(
        clinic=clinic,
        title=title or clinic_file.document_title,
        recipient_name=recipient_name,
        recipient_phone_number=recipient_phone_number,
        payload=payload,
        content_type=clinic_file.content_type,
        filename=clinic_file.original_name,
        created_by=created_by,
        store=store,
    )


def delete_file(clinic_file: ClinicFile, store=None) -> None:
    """
    Delete a library file.

    The record goes first; an object delete that fails afterwards is
    registered as orphaned and purged by the lifecycle run.
    """
    store = store or storage.get_object_store()
    bucket, object_key, file_id = clinic_file.bucket, clinic_file.object_key, clinic_file.id

    with transaction.atomic():
        clinic_file.delete()

    try:
        store.delete(bucket, object_key)
    except ObjectStoreUnavailableError as e:
        register_orphan(bucket, object_key, error=e)

    log_domain_event(
        'library_file_deleted',
        entity_type='ClinicFile',
        entity_id=str(file_id),
        result='success',
    )
