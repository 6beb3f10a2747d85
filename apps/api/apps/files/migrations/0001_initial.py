# Generated migration for files app

import uuid
import django.db.models.deletion
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
            name='ClinicFile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('document_title', models.CharField(max_length=255)),
                ('original_name', models.CharField(blank=True, default='', max_length=255)),
                ('bucket', models.CharField(max_length=63)),
                ('object_key', models.CharField(max_length=512, unique=True)),
                ('content_type', models.CharField(default='application/octet-stream', max_length=100)),
                ('size_bytes', models.BigIntegerField(default=0)),
                ('is_public', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('clinic', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to='core.clinic')),
                ('created_by_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='library_files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Library file',
                'verbose_name_plural': 'Library files',
                'db_table': 'clinic_file',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['clinic', 'document_title'], name='idx_clinic_file_title'),
                    models.Index(fields=['is_public'], name='idx_clinic_file_public'),
                ],
            },
        ),
    ]
