"""
Management command to create the storage tier buckets (for Docker startup).
"""
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.documents import storage
from apps.documents.exceptions import ObjectStoreUnavailableError


class Command(BaseCommand):
    help = 'Create the STANDARD/COLD/ICE document buckets if they do not exist'

    def handle(self, *args, **options):
        store = storage.get_object_store()

        for tier, bucket in settings.STORAGE_TIER_BUCKETS.items():
            try:
                created = store.ensure_bucket(bucket)
            except ObjectStoreUnavailableError as e:
                raise CommandError(f'Could not create bucket "{bucket}": {e}')

            if created:
                self.stdout.write(self.style.SUCCESS(f'{tier}: bucket "{bucket}" created'))
            else:
                self.stdout.write(self.style.WARNING(f'{tier}: bucket "{bucket}" already exists'))
