# Generated migration for documents app

import uuid
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('recipient_name', models.CharField(max_length=255)),
                ('recipient_phone_number', models.CharField(max_length=11)),
                ('sender_clinic_name', models.CharField(max_length=255)),
                ('sender_name', models.CharField(max_length=255)),
                ('sender_phone_number', models.CharField(max_length=11)),
                ('bucket', models.CharField(max_length=63)),
                ('object_key', models.CharField(max_length=512)),
                ('content_type', models.CharField(default='application/octet-stream', max_length=128)),
                ('size_bytes', models.BigIntegerField(default=0)),
                ('sha256', models.CharField(blank=True, max_length=64, null=True)),
                ('storage_class', models.CharField(
                    choices=[('STANDARD', 'Standard'), ('COLD', 'Cold'), ('ICE', 'Ice')],
                    default='STANDARD',
                    max_length=16
                )),
                ('last_accessed', models.DateTimeField(default=django.utils.timezone.now)),
                ('migration_in_progress', models.BooleanField(default=False)),
                ('migration_token', models.UUIDField(blank=True, null=True)),
                ('migration_started_at', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(
                    choices=[('prepared', 'Подготовлен'), ('sent', 'Отправлен'), ('signed', 'Подписан'), ('rejected', 'Отклонён')],
                    default='prepared',
                    max_length=16
                )),
                ('date_signed', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('clinic', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='documents', to='core.clinic')),
                ('created_by_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_documents', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Document',
                'verbose_name_plural': 'Documents',
                'db_table': 'document',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['sender_phone_number', '-created_at'], name='idx_document_sender'),
                    models.Index(fields=['recipient_phone_number', '-created_at'], name='idx_document_recipient'),
                    models.Index(fields=['status'], name='idx_document_status'),
                    models.Index(fields=['storage_class', 'last_accessed'], name='idx_document_tier_access'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(('migration_in_progress', False), ('migration_token__isnull', False), _connector='OR'),
                        name='document_lock_has_token'
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='DocumentEvent',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('event_type', models.CharField(
                    choices=[('prepared', 'Подготовлен'), ('sent', 'Отправлен'), ('signed', 'Подписан'), ('rejected', 'Отклонён')],
                    max_length=16
                )),
                ('timestamp', models.DateTimeField(default=django.utils.timezone.now)),
                ('sequence', models.PositiveIntegerField()),
                ('document', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='documents.document')),
            ],
            options={
                'db_table': 'document_event',
                'ordering': ['document', 'sequence'],
                'constraints': [
                    models.UniqueConstraint(fields=('document', 'sequence'), name='uniq_document_event_sequence'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LifecycleRun',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('run_key', models.CharField(max_length=64, unique=True)),
                ('hostname', models.CharField(blank=True, default='', max_length=255)),
                ('status', models.CharField(
                    choices=[('running', 'Running'), ('completed', 'Completed'), ('failed', 'Failed')],
                    default='running',
                    max_length=16
                )),
                ('started_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('finished_at', models.DateTimeField(blank=True, null=True)),
                ('cold_migrated', models.PositiveIntegerField(default=0)),
                ('ice_migrated', models.PositiveIntegerField(default=0)),
                ('skipped', models.PositiveIntegerField(default=0)),
                ('failed', models.PositiveIntegerField(default=0)),
                ('orphans_purged', models.PositiveIntegerField(default=0)),
                ('error', models.TextField(blank=True, default='')),
            ],
            options={
                'db_table': 'document_lifecycle_run',
                'ordering': ['-started_at'],
            },
        ),
        migrations.CreateModel(
            name='OrphanedObject',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('bucket', models.CharField(max_length=63)),
                ('object_key', models.CharField(max_length=512)),
                ('document_id', models.UUIDField(blank=True, null=True)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('last_error', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'document_orphaned_object',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('bucket', 'object_key'), name='uniq_orphaned_object_location'),
                ],
            },
        ),
    ]
