"""
Contractor service layer - keeps the registry in sync with documents.
"""
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.observability import get_sanitized_logger

from .models import Contractor

logger = get_sanitized_logger(__name__)


class ContractorNameMismatchError(ValidationError):
    """Raised when a phone number is already registered under another name."""


def split_full_name(full_name):
    """
    Split "Last First Fathers" into its parts.

    Missing parts come back as empty strings.
    """
    parts = (full_name or '').split()
    last_name = parts[0] if len(parts) > 0 else ''
    first_name = parts[1] if len(parts) > 1 else ''
    fathers_name = ' '.join(parts[2:]) if len(parts) > 2 else ''
    return last_name, first_name, fathers_name


def check_recipient_name(clinic, recipient_name, recipient_phone_number):
    """
    Reject a recipient whose phone number is registered with a different first name.

    Raises:
        ContractorNameMismatchError
    """
    existing = Contractor.objects.filter(clinic=clinic, phone_number=recipient_phone_number).first()
    if existing is None:
        return
    _, first_name, _ = split_full_name(recipient_name)
    if existing.first_name != first_name:
        raise ContractorNameMismatchError(
            'Phone number is already registered with a different name'
        )


@transaction.atomic
def add_document_to_contractor(clinic, recipient_name, recipient_phone_number, document):
    """
    Link ``document`` to the clinic's contractor for ``recipient_phone_number``.

    Creates the contractor from ``recipient_name`` on first use.

    Returns:
        Contractor instance
    """
    last_name, first_name, fathers_name = split_full_name(recipient_name)
    contractor, created = Contractor.objects.get_or_create(
        clinic=clinic,
        phone_number=recipient_phone_number,
        defaults={
            'first_name': first_name,
            'last_name': last_name,
            'fathers_name': fathers_name,
        }
    )
    contractor.documents.add(document)

    if created:
        logger.info(
            'Contractor created from document',
            extra={
                'event': 'contractor_created',
                'contractor_id': str(contractor.id),
                'document_id': str(document.id),
            }
        )
    return contractor


def detach_document(document):
    """
    Remove ``document`` from every contractor that references it.

    Returns:
        Number of contractors detached
    """
    contractors = list(document.contractors.all())
    for contractor in contractors:
        contractor.documents.remove(document)
    return len(contractors)
