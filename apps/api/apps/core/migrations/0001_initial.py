# Generated migration for core app

import uuid
import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Clinic',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('clinic_name', models.CharField(max_length=255)),
                ('first_name', models.CharField(max_length=150)),
                ('last_name', models.CharField(max_length=150)),
                ('fathers_name', models.CharField(blank=True, default='', max_length=150)),
                ('phone_number', models.CharField(
                    max_length=11,
                    unique=True,
                    validators=[django.core.validators.RegexValidator(
                        message='Phone number must start with 7 and contain 11 digits.',
                        regex='^7\\d{10}$'
                    )]
                )),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Clinic',
                'verbose_name_plural': 'Clinics',
                'db_table': 'clinic',
                'ordering': ['clinic_name'],
                'indexes': [
                    models.Index(fields=['phone_number'], name='idx_clinic_phone'),
                    models.Index(fields=['is_active'], name='idx_clinic_active'),
                ],
            },
        ),
    ]
