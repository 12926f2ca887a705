from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('name', models.CharField(db_index=True, help_text="Permission name, e.g. 'view_patients'", max_length=150)),
                ('guard', models.CharField(default='web', help_text='Namespace the permission belongs to', max_length=50)),
            ],
            options={
                'db_table': 'permissions',
                'ordering': ['guard', 'name'],
                'unique_together': {('name', 'guard')},
            },
        ),
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('email', models.EmailField(help_text='Login email (unique globally)', max_length=254, unique=True)),
                ('password_hash', models.CharField(db_column='password_hash', max_length=255)),
                ('first_name', models.CharField(blank=True, default='', max_length=100)),
                ('last_name', models.CharField(blank=True, default='', max_length=100)),
                ('title', models.CharField(blank=True, default='', max_length=20)),
                ('primary_role', models.CharField(choices=[('admin', 'Administrator'), ('dentist', 'Dentist'), ('hygienist', 'Dental Hygienist'), ('receptionist', 'Receptionist'), ('assistant', 'Dental Assistant')], db_index=True, default='assistant', max_length=20)),
                ('phone', models.CharField(blank=True, default='', max_length=50)),
                ('license_number', models.CharField(blank=True, default='', max_length=100)),
                ('specialization', models.CharField(blank=True, default='', max_length=100)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('last_login_at', models.DateTimeField(blank=True, null=True)),
                ('last_login_ip', models.GenericIPAddressField(blank=True, null=True)),
                ('preferences', models.JSONField(blank=True, default=dict)),
                ('tenant', models.ForeignKey(blank=True, help_text='Owning tenant; null for platform operators', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='users', to='tenants.tenant')),
            ],
            options={
                'db_table': 'users',
                'ordering': ['-created_at'],
                'abstract': False,
                'default_manager_name': 'objects',
                'indexes': [
                    models.Index(fields=['tenant', 'primary_role'], name='users_tenant_role_idx'),
                    models.Index(fields=['tenant', 'is_active'], name='users_tenant_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RolePermission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('admin', 'Administrator'), ('dentist', 'Dentist'), ('hygienist', 'Dental Hygienist'), ('receptionist', 'Receptionist'), ('assistant', 'Dental Assistant')], db_index=True, max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('permission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='rbac.permission')),
            ],
            options={
                'db_table': 'role_permissions',
                'ordering': ['role', 'permission'],
                'unique_together': {('role', 'permission')},
            },
        ),
        migrations.CreateModel(
            name='UserPermission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('granted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='granted_permissions', to='rbac.user')),
                ('permission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='user_grants', to='rbac.permission')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='permission_grants', to='rbac.user')),
            ],
            options={
                'db_table': 'user_permissions',
                'unique_together': {('user', 'permission')},
            },
        ),
        migrations.AddField(
            model_name='user',
            name='direct_permissions',
            field=models.ManyToManyField(blank=True, related_name='direct_users', through='rbac.UserPermission', to='rbac.permission'),
        ),
    ]
