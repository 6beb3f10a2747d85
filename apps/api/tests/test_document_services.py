"""
Tests for the documents service layer.

Business Rules:
- create_document uploads to STANDARD, starts in prepared with one event
- A failed upload creates nothing; a failed insert removes the upload
- delete_document only for prepared/rejected, record first then object
- Contractor references block deletion unless detached
"""
import uuid
from unittest.mock import patch

import pytest
from django.core.exceptions import ValidationError

from apps.contractors.models import Contractor
from apps.contractors.services import ContractorNameMismatchError
from apps.documents.exceptions import (
    DeletionConflictError,
    DocumentNotFoundError,
    ObjectStoreUnavailableError,
)
from apps.documents.migration import purge_orphaned_objects
from apps.documents.models import Document, DocumentStatusChoices, OrphanedObject, StorageClassChoices
from apps.documents.services import create_document, delete_document


@pytest.mark.django_db
class TestCreateDocument:

    def test_creates_prepared_document_in_standard(self, clinic, clinic_user, object_store, buckets):
        doc = create_document(
            clinic=clinic,
            title='Informed consent',
            recipient_name='Sidorov Petr Ivanovich',
            recipient_phone_number='79995550001',
            payload=b'%PDF-1.4 consent',
            content_type='application/pdf',
            filename='consent.pdf',
            created_by=clinic_user,
        )

        assert doc.status == DocumentStatusChoices.PREPARED
        assert doc.storage_class == StorageClassChoices.STANDARD
        assert doc.bucket == buckets[StorageClassChoices.STANDARD]
        assert doc.object_key.startswith('Clinic_Alpha_documents/')
        assert doc.object_key.endswith('_consent.pdf')
        assert doc.sender_clinic_name == 'Clinic Alpha'
        assert doc.sender_name == 'Petrov Ivan Sergeevich'
        assert doc.sender_phone_number == clinic.phone_number
        assert doc.size_bytes == len(b'%PDF-1.4 consent')
        assert len(doc.sha256) == 64
        assert object_store.get(doc.bucket, doc.object_key) == b'%PDF-1.4 consent'

        events = list(doc.events.all())
        assert len(events) == 1
        assert events[0].event_type == DocumentStatusChoices.PREPARED
        assert events[0].sequence == 1

    def test_links_document_to_new_contractor(self, clinic, object_store):
        doc = create_document(
            clinic=clinic,
            title='Contract',
            recipient_name='Sidorov Petr Ivanovich',
            recipient_phone_number='79995550001',
            payload=b'data',
        )

        contractor = Contractor.objects.get(clinic=clinic, phone_number='79995550001')
        assert contractor.last_name == 'Sidorov'
        assert contractor.first_name == 'Petr'
        assert contractor.fathers_name == 'Ivanovich'
        assert list(contractor.documents.all()) == [doc]

    def test_reuses_existing_contractor(self, clinic, object_store):
        for title in ('First', 'Second'):
            create_document(
                clinic=clinic,
                title=title,
                recipient_name='Sidorov Petr',
                recipient_phone_number='79995550001',
                payload=b'data',
            )

        contractor = Contractor.objects.get()
        assert contractor.documents.count() == 2

    def test_rejects_phone_registered_under_other_name(self, clinic, object_store):
        Contractor.objects.create(clinic=clinic, last_name='Sidorov', first_name='Petr', phone_number='79995550001')

        with pytest.raises(ContractorNameMismatchError):
            create_document(
                clinic=clinic,
                title='Contract',
                recipient_name='Sidorov Pavel',
                recipient_phone_number='79995550001',
                payload=b'data',
            )

        assert Document.objects.count() == 0
        assert object_store.count('put') == 0

    def test_invalid_phone_number(self, clinic, object_store):
        with pytest.raises(ValidationError):
            create_document(
                clinic=clinic,
                title='Contract',
                recipient_name='Sidorov Petr',
                recipient_phone_number='89995550001',
                payload=b'data',
            )

    def test_upload_failure_creates_nothing(self, clinic, object_store):
        object_store.fail_put = True

        with pytest.raises(ObjectStoreUnavailableError):
            create_document(
                clinic=clinic,
                title='Contract',
                recipient_name='Sidorov Petr',
                recipient_phone_number='79995550001',
                payload=b'data',
            )

        assert Document.objects.count() == 0
        assert Contractor.objects.count() == 0

    def test_database_failure_removes_upload(self, clinic, object_store, buckets):
        with patch('apps.documents.services.add_document_to_contractor', side_effect=RuntimeError('db down')):
            with pytest.raises(RuntimeError):
                create_document(
                    clinic=clinic,
                    title='Contract',
                    recipient_name='Sidorov Petr',
                    recipient_phone_number='79995550001',
                    payload=b'data',
                )

        assert Document.objects.count() == 0
        assert object_store.buckets[buckets[StorageClassChoices.STANDARD]] == {}

    def test_failed_cleanup_keeps_original_error(self, clinic, object_store, buckets):
        bucket = buckets[StorageClassChoices.STANDARD]
        object_store.fail_delete_in.add(bucket)

        with patch('apps.documents.services.add_document_to_contractor', side_effect=RuntimeError('db down')):
            with pytest.raises(RuntimeError, match='db down'):
                create_document(
                    clinic=clinic,
                    title='Contract',
                    recipient_name='Sidorov Petr',
                    recipient_phone_number='79995550001',
                    payload=b'data',
                )

        orphan = OrphanedObject.objects.get()
        assert orphan.bucket == bucket
        assert orphan.document_id is None
        assert orphan.object_key in object_store.buckets[bucket]


@pytest.mark.django_db
class TestDeleteDocument:

    @pytest.mark.parametrize('tier', [StorageClassChoices.STANDARD, StorageClassChoices.COLD, StorageClassChoices.ICE])
    def test_deletes_object_from_current_bucket(self, make_document, object_store, tier):
        doc = make_document(tier=tier)

        delete_document(doc.id)

        assert not Document.objects.filter(pk=doc.pk).exists()
        assert object_store.holders(doc.object_key) == []

    def test_rejected_document_can_be_deleted(self, make_document, object_store):
        doc = make_document(status=DocumentStatusChoices.REJECTED)

        delete_document(doc.id)

        assert not Document.objects.filter(pk=doc.pk).exists()

    @pytest.mark.parametrize('doc_status', [DocumentStatusChoices.SENT, DocumentStatusChoices.SIGNED])
    def test_non_deletable_status(self, make_document, object_store, doc_status):
        doc = make_document(status=doc_status)

        with pytest.raises(DeletionConflictError):
            delete_document(doc.id)

        assert Document.objects.filter(pk=doc.pk).exists()
        assert object_store.count('delete') == 0

    def test_contractor_reference_blocks_deletion(self, clinic, make_document, object_store):
        doc = make_document()
        contractor = Contractor.objects.create(clinic=clinic, first_name='Petr', phone_number='79995550001')
        contractor.documents.add(doc)

        with pytest.raises(DeletionConflictError):
            delete_document(doc.id)

        assert Document.objects.filter(pk=doc.pk).exists()

    def test_detach_contractors_allows_deletion(self, clinic, make_document, object_store):
        doc = make_document()
        contractor = Contractor.objects.create(clinic=clinic, first_name='Petr', phone_number='79995550001')
        contractor.documents.add(doc)

        delete_document(doc.id, detach_contractors=True)

        assert not Document.objects.filter(pk=doc.pk).exists()
        assert Contractor.objects.filter(pk=contractor.pk).exists()
        assert contractor.documents.count() == 0

    def test_object_delete_failure_registers_orphan(self, make_document, object_store, buckets):
        doc = make_document()
        object_store.fail_delete_in.add(buckets[StorageClassChoices.STANDARD])

        delete_document(doc.id)

        assert not Document.objects.filter(pk=doc.pk).exists()
        orphan = OrphanedObject.objects.get()
        assert orphan.bucket == doc.bucket
        assert orphan.object_key == doc.object_key

        object_store.fail_delete_in.clear()
        assert purge_orphaned_objects(store=object_store) == 1
        assert object_store.holders(doc.object_key) == []

    def test_record_delete_failure_keeps_object(self, make_document, object_store):
        doc = make_document()

        with patch('apps.documents.services.detach_document', side_effect=RuntimeError('db down')):
            with pytest.raises(RuntimeError):
                delete_document(doc.id)

        doc.refresh_from_db()
        assert object_store.exists(doc.bucket, doc.object_key)
        assert object_store.count('delete') == 0

    def test_unknown_document(self, db, object_store):
        with pytest.raises(DocumentNotFoundError):
            delete_document(uuid.uuid4())
