"""
Management command to run the storage lifecycle scan now.
"""
from django.core.management.base import BaseCommand

from apps.documents.lifecycle import run_storage_lifecycle


class Command(BaseCommand):
    help = 'Demote idle documents to COLD/ICE storage (same scan as the nightly task)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help="Run even if today's scheduled run already happened",
        )

    def handle(self, *args, **options):
        run = run_storage_lifecycle(force=options['force'])

        if run is None:
            self.stdout.write(self.style.WARNING(
                'Lifecycle run for today already claimed by another instance (use --force)'
            ))
            return

        self.stdout.write(self.style.SUCCESS(
            f'Lifecycle run {run.run_key}: '
            f'{run.cold_migrated} to COLD, {run.ice_migrated} to ICE, '
            f'{run.skipped} skipped, {run.failed} failed, '
            f'{run.orphans_purged} orphaned objects purged'
        ))
