# Generated migration for contractors app

import uuid
import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('documents', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Contractor',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('first_name', models.CharField(blank=True, default='', max_length=100)),
                ('last_name', models.CharField(blank=True, default='', max_length=100)),
                ('fathers_name', models.CharField(blank=True, default='', max_length=100)),
                ('phone_number', models.CharField(
                    max_length=11,
                    validators=[django.core.validators.RegexValidator(
                        message='Phone number must start with 7 and contain 11 digits.',
                        regex='^7\\d{10}$'
                    )]
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('clinic', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contractors', to='core.clinic')),
                ('documents', models.ManyToManyField(blank=True, related_name='contractors', to='documents.document')),
            ],
            options={
                'verbose_name': 'Contractor',
                'verbose_name_plural': 'Contractors',
                'db_table': 'contractor',
                'ordering': ['last_name', 'first_name'],
                'indexes': [models.Index(fields=['clinic', 'phone_number'], name='idx_contractor_phone')],
                'constraints': [
                    models.UniqueConstraint(fields=('clinic', 'phone_number'), name='uniq_contractor_clinic_phone'),
                ],
            },
        ),
    ]
