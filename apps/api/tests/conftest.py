"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Authenticated API clients by role
- Clinic and document instances
- In-memory object store standing in for MinIO
"""
from datetime import timedelta

import pytest
from django.conf import settings
from django.utils import timezone
from rest_framework.test import APIClient

from apps.authz.models import RoleChoices, User
from apps.core.models import Clinic
from apps.documents.exceptions import ObjectNotFoundError, ObjectStoreUnavailableError
from apps.documents.models import (
    Document,
    DocumentEvent,
    DocumentStatusChoices,
    StorageClassChoices,
)


# ============================================================================
# Object store
# ============================================================================

class InMemoryObjectStore:
    """
    Object store double with the same capability surface as ObjectStore.

    Failure injection:
    - fail_put / fail_get: raise ObjectStoreUnavailableError
    - fail_copy_to: destination buckets whose copy fails
    - fail_delete_in: buckets whose delete fails
    """

    def __init__(self):
        self.buckets = {bucket: {} for bucket in settings.STORAGE_TIER_BUCKETS.values()}
        self.calls = []
        self.fail_put = False
        self.fail_get = False
        self.fail_copy_to = set()
        self.fail_delete_in = set()

    def put(self, bucket, key, data, content_type='application/octet-stream'):
        self.calls.append(('put', bucket, key))
        if self.fail_put:
            raise ObjectStoreUnavailableError(f'put {bucket}/{key} timed out')
        self.buckets.setdefault(bucket, {})[key] = bytes(data)

    def get(self, bucket, key):
        self.calls.append(('get', bucket, key))
        if self.fail_get:
            raise ObjectStoreUnavailableError(f'get {bucket}/{key} timed out')
        try:
            return self.buckets[bucket][key]
        except KeyError:
            raise ObjectNotFoundError(bucket, key)

    def copy(self, src_bucket, key, dst_bucket):
        self.calls.append(('copy', src_bucket, key, dst_bucket))
        if dst_bucket in self.fail_copy_to:
            raise ObjectStoreUnavailableError(f'copy to {dst_bucket} failed')
        if key not in self.buckets.get(src_bucket, {}):
            raise ObjectNotFoundError(src_bucket, key)
        self.buckets.setdefault(dst_bucket, {})[key] = self.buckets[src_bucket][key]

    def delete(self, bucket, key):
        self.calls.append(('delete', bucket, key))
        if bucket in self.fail_delete_in:
            raise ObjectStoreUnavailableError(f'delete in {bucket} failed')
        self.buckets.get(bucket, {}).pop(key, None)

    def exists(self, bucket, key):
        return key in self.buckets.get(bucket, {})

    def ensure_bucket(self, bucket):
        if bucket in self.buckets:
            return False
        self.buckets[bucket] = {}
        return True

    def missing_tier_buckets(self):
        return [b for b in settings.STORAGE_TIER_BUCKETS.values() if b not in self.buckets]

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)

    def holders(self, key):
        """Buckets currently holding ``key``."""
        return sorted(bucket for bucket, objects in self.buckets.items() if key in objects)


@pytest.fixture
def object_store(monkeypatch):
    """In-memory object store installed as the process-wide client."""
    store = InMemoryObjectStore()
    monkeypatch.setattr('apps.documents.storage.get_object_store', lambda: store)
    return store


def tier_bucket(tier):
    return settings.STORAGE_TIER_BUCKETS[tier]


# ============================================================================
# Tenants and users
# ============================================================================

@pytest.fixture
def clinic(db):
    return Clinic.objects.create(
        clinic_name='Clinic Alpha',
        first_name='Ivan',
        last_name='Petrov',
        fathers_name='Sergeevich',
        phone_number='79990000001',
        email='alpha@example.com',
    )


@pytest.fixture
def other_clinic(db):
    return Clinic.objects.create(
        clinic_name='Clinic Beta',
        first_name='Olga',
        last_name='Smirnova',
        phone_number='79990000002',
    )


@pytest.fixture
def clinic_user(clinic):
    return User.objects.create_user(
        phone_number='79991110001',
        password='testpass123',
        role=RoleChoices.CLINIC,
        clinic=clinic,
    )


@pytest.fixture
def patient_user(db):
    return User.objects.create_user(
        phone_number='79995550001',
        password='testpass123',
        role=RoleChoices.PATIENT,
    )


# ============================================================================
# API Clients
# ============================================================================

@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    return APIClient()


@pytest.fixture
def clinic_client(clinic_user):
    """Authenticated API client acting for ``clinic``."""
    client = APIClient()
    client.force_authenticate(user=clinic_user)
    return client


@pytest.fixture
def other_clinic_client(other_clinic):
    user = User.objects.create_user(
        phone_number='79991110002',
        password='testpass123',
        role=RoleChoices.CLINIC,
        clinic=other_clinic,
    )
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def patient_client(patient_user):
    """Authenticated API client for the recipient patient."""
    client = APIClient()
    client.force_authenticate(user=patient_user)
    return client


@pytest.fixture
def admin_client(db):
    """Authenticated API client with Admin role."""
    user = User.objects.create_superuser(phone_number='70000000000', password='testpass123')
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# ============================================================================
# Documents
# ============================================================================

@pytest.fixture
def make_document(clinic, patient_user, object_store):
    """
    Factory for a document whose payload already sits in ``tier``.

    Usage:
        doc = make_document(tier='COLD', idle_days=10)
    """
    counter = {'n': 0}

    def _make(tier=StorageClassChoices.STANDARD, idle_days=0, status=DocumentStatusChoices.PREPARED,
              payload=b'%PDF-1.4 test', now=None, **fields):
        counter['n'] += 1
        now = now or timezone.now()
        key = f"{clinic.storage_folder}/doc-{counter['n']}.pdf"
        object_store.buckets[tier_bucket(tier)][key] = payload

        document = Document.objects.create(
            title=fields.pop('title', f"Contract {counter['n']}"),
            recipient_name=fields.pop('recipient_name', 'Sidorov Petr Ivanovich'),
            recipient_phone_number=fields.pop('recipient_phone_number', patient_user.phone_number),
            sender_clinic_name=clinic.clinic_name,
            sender_name=clinic.director_full_name,
            sender_phone_number=clinic.phone_number,
            clinic=fields.pop('clinic', clinic),
            bucket=tier_bucket(tier),
            object_key=key,
            content_type='application/pdf',
            size_bytes=len(payload),
            storage_class=tier,
            last_accessed=now - timedelta(days=idle_days),
            status=status,
            **fields
        )
        DocumentEvent.objects.create(
            document=document,
            event_type=DocumentStatusChoices.PREPARED,
            timestamp=document.created_at,
            sequence=1,
        )
        if status != DocumentStatusChoices.PREPARED:
            DocumentEvent.objects.create(
                document=document,
                event_type=DocumentStatusChoices.SENT,
                timestamp=document.created_at,
                sequence=2,
            )
        if status in (DocumentStatusChoices.SIGNED, DocumentStatusChoices.REJECTED):
            DocumentEvent.objects.create(
                document=document,
                event_type=status,
                timestamp=document.created_at,
                sequence=3,
            )
        return document

    return _make


@pytest.fixture
def buckets():
    """Tier -> bucket name mapping."""
    return settings.STORAGE_TIER_BUCKETS
