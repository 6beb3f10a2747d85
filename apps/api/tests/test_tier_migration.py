"""
Tests for the tier migration engine.

Business Rules:
- Copy, then delete source, then persist the record
- Allowed: demotions and promotion to STANDARD; ICE -> COLD is rejected
- Idempotent: re-running a crashed move converges
- Copy failure leaves the record untouched
- Delete failure after a confirmed copy registers an orphaned object
"""
import pytest
from unittest.mock import patch

from apps.documents import locking
from apps.documents.exceptions import (
    InvalidTierMigrationError,
    MigrationInProgressError,
    ObjectNotFoundError,
    ObjectStoreUnavailableError,
)
from apps.documents.migration import migrate_document, purge_orphaned_objects, repair_locked
from apps.documents.models import Document, OrphanedObject, StorageClassChoices
from apps.documents.services import get_document_payload

STANDARD = StorageClassChoices.STANDARD
COLD = StorageClassChoices.COLD
ICE = StorageClassChoices.ICE


@pytest.mark.django_db
class TestMigrateDocument:

    @pytest.mark.parametrize('source,target', [
        (STANDARD, COLD),
        (COLD, ICE),
        (STANDARD, ICE),
        (COLD, STANDARD),
        (ICE, STANDARD),
    ])
    def test_allowed_moves(self, make_document, object_store, buckets, source, target):
        doc = make_document(tier=source)

        result = migrate_document(doc, target)

        doc.refresh_from_db()
        assert result.storage_class == target
        assert doc.storage_class == target
        assert doc.bucket == buckets[target]
        assert object_store.holders(doc.object_key) == [buckets[target]]
        assert doc.migration_in_progress is False
        assert doc.migration_token is None

    def test_ice_to_cold_is_invalid(self, make_document, object_store, buckets):
        doc = make_document(tier=ICE)

        with pytest.raises(InvalidTierMigrationError):
            migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == ICE
        assert object_store.count('copy') == 0
        assert doc.migration_in_progress is False

    def test_same_tier_is_noop(self, make_document, object_store, buckets):
        doc = make_document(tier=COLD)

        migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert object_store.count('copy') == 0
        assert object_store.count('delete') == 0

    def test_matching_bucket_repairs_storage_class(self, make_document, object_store, buckets):
        doc = make_document(tier=COLD)
        Document.objects.filter(pk=doc.pk).update(storage_class=STANDARD)
        doc.refresh_from_db()

        migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert object_store.count('copy') == 0

    def test_resumes_after_crash_between_delete_and_persist(self, make_document, object_store, buckets):
        """Source already deleted, destination holds the copy, record still says STANDARD."""
        doc = make_document(tier=STANDARD)
        payload = object_store.buckets[buckets[STANDARD]].pop(doc.object_key)
        object_store.buckets[buckets[COLD]][doc.object_key] = payload

        migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert doc.bucket == buckets[COLD]
        assert object_store.holders(doc.object_key) == [buckets[COLD]]

    def test_rerun_after_crash_between_copy_and_delete(self, make_document, object_store, buckets):
        """Both copies exist; the rerun converges to one copy in the destination."""
        doc = make_document(tier=STANDARD)
        object_store.buckets[buckets[COLD]][doc.object_key] = b'%PDF-1.4 test'

        migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert object_store.holders(doc.object_key) == [buckets[COLD]]

    def test_missing_everywhere_raises_not_found(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.buckets[buckets[STANDARD]].clear()

        with pytest.raises(ObjectNotFoundError):
            migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == STANDARD
        assert doc.migration_in_progress is False

    def test_copy_failure_leaves_record_untouched(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.fail_copy_to.add(buckets[COLD])

        with pytest.raises(ObjectStoreUnavailableError):
            migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == STANDARD
        assert doc.bucket == buckets[STANDARD]
        assert doc.migration_in_progress is False
        assert object_store.holders(doc.object_key) == [buckets[STANDARD]]

    def test_copy_failure_then_retry_succeeds(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.fail_copy_to.add(buckets[COLD])
        with pytest.raises(ObjectStoreUnavailableError):
            migrate_document(doc, COLD)

        object_store.fail_copy_to.clear()
        migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert object_store.holders(doc.object_key) == [buckets[COLD]]

    def test_delete_failure_registers_orphan_and_persists(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.fail_delete_in.add(buckets[STANDARD])

        migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert doc.bucket == buckets[COLD]
        orphan = OrphanedObject.objects.get()
        assert orphan.bucket == buckets[STANDARD]
        assert orphan.object_key == doc.object_key
        assert orphan.document_id == doc.id

    def test_held_lock_raises_without_touching_store(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        token = locking.try_acquire(doc.id)

        with pytest.raises(MigrationInProgressError):
            migrate_document(doc, COLD)

        assert object_store.count('copy') == 0
        locking.release(doc.id, token)

    def test_lost_lock_leaves_record_for_next_holder_to_repair(self, make_document, object_store, buckets):
        """A worker whose lock was taken over must not overwrite the record."""
        doc = make_document(tier=STANDARD, payload=b'moved-bytes')

        with patch('apps.documents.migration.locking.update_locked', return_value=False):
            with pytest.raises(ObjectStoreUnavailableError):
                migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert doc.storage_class == STANDARD
        assert object_store.holders(doc.object_key) == [buckets[COLD]]

        document, payload = get_document_payload(doc.id)

        assert payload == b'moved-bytes'
        assert document.storage_class == STANDARD
        assert document.bucket == buckets[STANDARD]
        assert object_store.holders(doc.object_key) == [buckets[STANDARD]]

    def test_missing_source_found_in_third_tier(self, make_document, object_store, buckets):
        """Record says STANDARD, object already sits in ICE, scheduler asks for COLD."""
        doc = make_document(tier=STANDARD)
        object_store.buckets[buckets[ICE]][doc.object_key] = object_store.buckets[buckets[STANDARD]].pop(doc.object_key)

        result = migrate_document(doc, COLD)

        doc.refresh_from_db()
        assert result.storage_class == ICE
        assert doc.storage_class == ICE
        assert doc.bucket == buckets[ICE]
        assert object_store.holders(doc.object_key) == [buckets[ICE]]


@pytest.mark.django_db
class TestRepairLocked:

    def test_points_record_at_holding_bucket(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.buckets[buckets[COLD]][doc.object_key] = object_store.buckets[buckets[STANDARD]].pop(doc.object_key)
        OrphanedObject.objects.create(bucket=buckets[COLD], object_key=doc.object_key, document_id=doc.id)

        with locking.document_lock(doc.id) as token:
            repair_locked(doc, token, store=object_store)

        assert doc.storage_class == COLD
        doc.refresh_from_db()
        assert doc.storage_class == COLD
        assert doc.bucket == buckets[COLD]
        assert not OrphanedObject.objects.exists()

    def test_live_record_is_untouched(self, make_document, object_store, buckets):
        doc = make_document(tier=COLD)
        before = doc.updated_at

        with locking.document_lock(doc.id) as token:
            repair_locked(doc, token, store=object_store)

        doc.refresh_from_db()
        assert doc.bucket == buckets[COLD]
        assert doc.updated_at == before

    def test_missing_everywhere(self, make_document, object_store, buckets):
        doc = make_document(tier=COLD)
        object_store.buckets[buckets[COLD]].clear()

        with locking.document_lock(doc.id) as token:
            with pytest.raises(ObjectNotFoundError):
                repair_locked(doc, token, store=object_store)

        doc.refresh_from_db()
        assert doc.storage_class == COLD


@pytest.mark.django_db
class TestDocumentLock:

    def test_acquire_is_exclusive(self, make_document):
        doc = make_document()

        token = locking.try_acquire(doc.id)

        assert token is not None
        assert locking.try_acquire(doc.id) is None
        locking.release(doc.id, token)
        assert locking.try_acquire(doc.id) is not None

    def test_stale_lock_can_be_taken_over(self, make_document, settings):
        from datetime import timedelta
        from django.utils import timezone

        doc = make_document()
        stale_token = locking.try_acquire(doc.id)
        Document.objects.filter(pk=doc.pk).update(
            migration_started_at=timezone.now() - timedelta(seconds=settings.DOCUMENT_LOCK_TTL_SECONDS + 1)
        )

        new_token = locking.try_acquire(doc.id)

        assert new_token is not None
        assert new_token != stale_token
        assert locking.update_locked(doc.id, stale_token, title='stale write') is False
        doc.refresh_from_db()
        assert doc.title != 'stale write'

    def test_release_with_foreign_token_keeps_lock(self, make_document):
        import uuid

        doc = make_document()
        token = locking.try_acquire(doc.id)

        locking.release(doc.id, uuid.uuid4())

        doc.refresh_from_db()
        assert doc.migration_in_progress is True
        assert doc.migration_token == token


@pytest.mark.django_db
class TestOrphanPurge:

    def test_purges_orphan_of_migrated_document(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.fail_delete_in.add(buckets[STANDARD])
        migrate_document(doc, COLD)
        object_store.fail_delete_in.clear()

        purged = purge_orphaned_objects(store=object_store)

        assert purged == 1
        assert OrphanedObject.objects.count() == 0
        assert object_store.holders(doc.object_key) == [buckets[COLD]]

    def test_never_purges_the_live_copy(self, make_document, object_store, buckets):
        """Document moved back into the orphan's bucket before the purge ran."""
        doc = make_document(tier=STANDARD)
        object_store.fail_delete_in.add(buckets[STANDARD])
        migrate_document(doc, COLD)
        object_store.fail_delete_in.clear()
        OrphanedObject.objects.create(
            bucket=buckets[COLD], object_key=doc.object_key, document_id=doc.id
        )

        purge_orphaned_objects(store=object_store)

        doc.refresh_from_db()
        assert object_store.exists(doc.bucket, doc.object_key)

    def test_rehydration_into_orphan_bucket_clears_registration(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.fail_delete_in.add(buckets[STANDARD])
        migrate_document(doc, COLD)
        object_store.fail_delete_in.clear()

        migrate_document(doc, STANDARD)

        assert not OrphanedObject.objects.filter(bucket=buckets[STANDARD]).exists()
        assert object_store.exists(buckets[STANDARD], doc.object_key)

    def test_failed_purge_is_retried_later(self, make_document, object_store, buckets):
        doc = make_document(tier=STANDARD)
        object_store.fail_delete_in.add(buckets[STANDARD])
        migrate_document(doc, COLD)

        purged = purge_orphaned_objects(store=object_store)

        orphan = OrphanedObject.objects.get()
        assert purged == 0
        assert orphan.attempts == 1
        assert 'delete' in orphan.last_error

    def test_document_deleted_before_lock_is_taken(self, make_document, object_store, buckets):
        doc = make_document(tier=COLD)
        object_store.buckets[buckets[STANDARD]][doc.object_key] = b'left behind'
        OrphanedObject.objects.create(bucket=buckets[STANDARD], object_key=doc.object_key, document_id=doc.id)
        real_try_acquire = locking.try_acquire

        def delete_then_acquire(document_id):
            Document.objects.filter(pk=document_id).delete()
            return real_try_acquire(document_id)

        with patch('apps.documents.locking.try_acquire', side_effect=delete_then_acquire):
            purged = purge_orphaned_objects(store=object_store)

        assert purged == 1
        assert not OrphanedObject.objects.exists()
        assert not object_store.exists(buckets[STANDARD], doc.object_key)
