import django.contrib.auth.models
import django.contrib.auth.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

from offline_sync.config import logging_table


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='Facility',
            fields=[
                ('id', models.CharField(help_text="Unique identifier for the facility (e.g. 'F1')", max_length=36, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('district', models.CharField(blank=True, max_length=255)),
                ('active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name_plural': 'facilities',
            },
        ),
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('email', models.EmailField(blank=True, max_length=254, verbose_name='email address')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('role', models.CharField(choices=[('administrator', 'Administrator'), ('supervisor', 'Supervisor'), ('doctor', 'Doctor'), ('user', 'User')], default='user', max_length=16)),
                ('facility', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='users', to='offline_sync.facility')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'abstract': False,
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='SyncDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('collection', models.CharField(max_length=64)),
                ('document_id', models.CharField(max_length=64)),
                ('facility_id', models.CharField(blank=True, db_index=True, default='', max_length=36)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['collection', 'updated_at'], name='syncdoc_coll_updated_idx'),
                    models.Index(fields=['collection', 'facility_id', 'document_id'], name='syncdoc_coll_fac_doc_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('collection', 'document_id'), name='uniq_sync_document'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DeletionLogEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('collection', models.CharField(max_length=64)),
                ('document_id', models.CharField(max_length=64)),
                ('facility_id', models.CharField(blank=True, db_index=True, default='', max_length=36)),
                ('original_data', models.JSONField(blank=True, default=dict)),
                ('device_id', models.CharField(blank=True, default='', max_length=128)),
                ('deleted_at', models.DateTimeField(auto_now_add=True)),
                ('deleted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': logging_table('deletionLog'),
                'indexes': [
                    models.Index(fields=['collection', 'deleted_at'], name='deletion_coll_deleted_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ConflictLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('collection', models.CharField(max_length=64)),
                ('document_id', models.CharField(max_length=64)),
                ('facility_id', models.CharField(blank=True, db_index=True, default='', max_length=36)),
                ('server_data', models.JSONField(default=dict)),
                ('client_data', models.JSONField(default=dict)),
                ('resolved_data', models.JSONField(default=dict)),
                ('strategy', models.CharField(max_length=40)),
                ('device_id', models.CharField(blank=True, default='', max_length=128)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': logging_table('conflictLog'),
                'indexes': [
                    models.Index(fields=['timestamp'], name='conflict_timestamp_idx'),
                    models.Index(fields=['collection', 'document_id', 'timestamp'], name='conflict_coll_doc_ts_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SyncOperationLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_id', models.CharField(max_length=128)),
                ('facility_id', models.CharField(blank=True, db_index=True, default='', max_length=36)),
                ('role', models.CharField(blank=True, max_length=16)),
                ('sync_timestamp', models.DateTimeField()),
                ('last_sync_timestamp', models.DateTimeField()),
                ('collections', models.JSONField(default=list)),
                ('status', models.CharField(default='completed', max_length=16)),
                ('results', models.JSONField(blank=True, default=dict)),
                ('execution_time_ms', models.PositiveIntegerField(default=0)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': logging_table('syncOperations'),
                'indexes': [
                    models.Index(fields=['sync_timestamp'], name='syncop_timestamp_idx'),
                    models.Index(fields=['device_id', 'sync_timestamp'], name='syncop_device_ts_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='QueueProcessingLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_id', models.CharField(max_length=128)),
                ('facility_id', models.CharField(blank=True, db_index=True, default='', max_length=36)),
                ('total_operations', models.PositiveIntegerField(default=0)),
                ('success_count', models.PositiveIntegerField(default=0)),
                ('failure_count', models.PositiveIntegerField(default=0)),
                ('results', models.JSONField(blank=True, default=list)),
                ('processed_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': logging_table('queueProcessingLog'),
                'indexes': [
                    models.Index(fields=['processed_at'], name='queuelog_processed_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ActiveSyncSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_id', models.CharField(max_length=128, unique=True)),
                ('facility_id', models.CharField(blank=True, default='', max_length=36)),
                ('collections', models.JSONField(default=list)),
                ('status', models.CharField(choices=[('active', 'active'), ('inactive', 'inactive')], db_index=True, default='active', max_length=16)),
                ('last_heartbeat', models.DateTimeField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': logging_table('activeSyncSessions'),
                'indexes': [
                    models.Index(fields=['status', 'last_heartbeat'], name='session_status_hb_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SyncNotification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_id', models.CharField(max_length=128)),
                ('collection', models.CharField(max_length=64)),
                ('document_id', models.CharField(max_length=64)),
                ('operation', models.CharField(max_length=16)),
                ('status', models.CharField(db_index=True, default='pending', max_length=16)),
                ('timestamp', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': logging_table('syncNotifications'),
                'indexes': [
                    models.Index(fields=['device_id', 'timestamp'], name='syncnotif_device_ts_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RealtimeNotification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('device_id', models.CharField(max_length=128)),
                ('data', models.JSONField(default=dict)),
                ('delivered', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': logging_table('realtimeNotifications'),
                'indexes': [
                    models.Index(fields=['device_id', 'created_at'], name='rtnotif_device_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SecurityEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=64)),
                ('device_id', models.CharField(blank=True, default='', max_length=128)),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['action', 'created_at'], name='secevent_action_created_idx'),
                ],
            },
        ),
    ]
