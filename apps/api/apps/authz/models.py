"""
Authz models: auth_user

Clinic staff and patients both authenticate by phone number. Clinic
users are bound to the clinic (tenant) they act for; patients see the
documents addressed to their phone number.
"""
import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models

from apps.core.models import phone_number_validator


class RoleChoices(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    CLINIC = 'clinic', 'Clinic'
    PATIENT = 'patient', 'Patient'


class UserManager(BaseUserManager):
    """Custom user manager for phone-number authentication."""

    def create_user(self, phone_number, password=None, **extra_fields):
        if not phone_number:
            raise ValueError('Phone number is required')
        user = self.model(phone_number=phone_number, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, phone_number, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', RoleChoices.ADMIN)
        return self.create_user(phone_number, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom user model for authentication.

    Fields:
    - id: UUID PK
    - phone_number: unique login
    - role: admin|clinic|patient
    - clinic: FK -> clinic, required for role=clinic
    - first_name, last_name
    - is_active, is_staff
    - created_at, updated_at
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    phone_number = models.CharField(
        max_length=11,
        unique=True,
        validators=[phone_number_validator]
    )
    role = models.CharField(
        max_length=20,
        choices=RoleChoices.choices,
        default=RoleChoices.PATIENT
    )
    clinic = models.ForeignKey(
        'core.Clinic',
        on_delete=models.CASCADE,
        blank=True,
        null=True,
        related_name='users'
    )
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'phone_number'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'auth_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        indexes = [
            models.Index(fields=['role'], name='idx_user_role'),
        ]

    def __str__(self):
        return self.phone_number

    @property
    def is_clinic_user(self):
        return self.role == RoleChoices.CLINIC and self.clinic_id is not None

    @property
    def is_patient(self):
        return self.role == RoleChoices.PATIENT
