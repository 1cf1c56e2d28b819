import uuid

import django.core.serializers.json
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('name', models.CharField(blank=True, help_text='Display name', max_length=255)),
                ('email', models.EmailField(db_index=True, help_text='User email address (unique globally)', max_length=254, unique=True)),
                ('is_master_admin', models.BooleanField(db_index=True, default=False, help_text='Global administrator across every tenant')),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether user account is active')),
            ],
            options={
                'db_table': 'users',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['is_master_admin', 'is_active'], name='users_is_mast_6c1f4e_idx')],
            },
        ),
        migrations.CreateModel(
            name='AuditLogEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('CREATE_TENANT', 'Create tenant'), ('UPDATE_TENANT', 'Update tenant'), ('DELETE_TENANT', 'Delete tenant'), ('ADD_TENANT_MEMBER', 'Add tenant member'), ('REMOVE_TENANT_MEMBER', 'Remove tenant member'), ('UPDATE_TENANT_MEMBER_ROLE', 'Update tenant member role'), ('GRANT_MASTER_ADMIN', 'Grant master admin'), ('REVOKE_MASTER_ADMIN', 'Revoke master admin')], db_index=True, max_length=50)),
                ('target_type', models.CharField(choices=[('TENANT', 'Tenant'), ('TENANT_MEMBER', 'Tenant member'), ('USER', 'User')], db_index=True, max_length=20)),
                ('target_id', models.CharField(db_index=True, help_text='ID of target entity (type given by target_type)', max_length=255)),
                ('details', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('user', models.ForeignKey(blank=True, db_constraint=False, help_text='User who performed the action', null=True, on_delete=django.db.models.deletion.DO_NOTHING, related_name='audit_log_entries', to='rbac.user')),
            ],
            options={
                'db_table': 'admin_audit_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='admin_audit_user_id_3b9e1a_idx'),
                    models.Index(fields=['action', 'created_at'], name='admin_audit_action_8d2c47_idx'),
                    models.Index(fields=['target_type', 'target_id'], name='admin_audit_target__f05a9b_idx'),
                ],
            },
        ),
    ]
