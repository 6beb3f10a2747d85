"""Contractors app configuration."""
from django.apps import AppConfig


class ContractorsConfig(AppConfig):
    """Configuration for contractors app."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.contractors'
    verbose_name = 'Contractors'
