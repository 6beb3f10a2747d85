"""
Management command to ensure the admin account exists (for Docker startup).
"""
import os

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = 'Create the admin user if it does not exist (for Docker initialization)'

    def handle(self, *args, **options):
        User = get_user_model()

        # Phone number is the login field
        phone_number = os.environ.get('DJANGO_SUPERUSER_PHONE', '70000000000')
        password = os.environ.get('DJANGO_SUPERUSER_PASSWORD', 'admin123dev')

        if User.objects.filter(phone_number=phone_number).exists():
            self.stdout.write(
                self.style.WARNING(f'Admin user "{phone_number}" already exists')
            )
            return

        User.objects.create_superuser(phone_number=phone_number, password=password)
        self.stdout.write(
            self.style.SUCCESS(f'Admin user "{phone_number}" created successfully')
        )
