from decimal import Decimal
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        ('rbac', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('middle_name', models.CharField(blank=True, default='', max_length=100)),
                ('preferred_name', models.CharField(blank=True, default='', max_length=100)),
                ('date_of_birth', models.DateField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, choices=[('male', 'Male'), ('female', 'Female'), ('other', 'Other'), ('prefer_not_to_say', 'Prefer not to say')], default='', max_length=20)),
                ('phone', models.CharField(blank=True, default='', max_length=50)),
                ('phone_secondary', models.CharField(blank=True, default='', max_length=50)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('preferred_contact_method', models.CharField(choices=[('phone', 'Phone Call'), ('email', 'Email'), ('sms', 'SMS/Text Message')], default='phone', max_length=10)),
                ('contact_consent', models.BooleanField(default=False)),
                ('marketing_consent', models.BooleanField(default=False)),
                ('address', models.JSONField(blank=True, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('deceased', 'Deceased')], db_index=True, default='active', max_length=20)),
                ('outstanding_balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('outstanding_balance_currency', models.CharField(default='USD', max_length=3)),
                ('medical_alerts', models.JSONField(blank=True, default=list)),
                ('insurance_info', models.JSONField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('preferred_dentist', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='preferred_by_patients', to='rbac.user')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='patients', to='tenants.tenant')),
            ],
            options={
                'db_table': 'patients',
                'ordering': ['last_name', 'first_name'],
                'abstract': False,
                'default_manager_name': 'objects',
                'indexes': [
                    models.Index(fields=['tenant', 'status'], name='patients_tenant_status_idx'),
                    models.Index(fields=['tenant', 'last_name', 'first_name'], name='patients_tenant_name_idx'),
                ],
            },
        ),
    ]
