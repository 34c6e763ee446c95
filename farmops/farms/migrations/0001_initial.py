import django.db.models.deletion
import farmops.farms.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Farm',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('livestock_type', models.CharField(choices=[('cattle', 'Cattle'), ('goat', 'Goat'), ('sheep', 'Sheep'), ('carabao', 'Carabao'), ('mixed', 'Mixed')], default='cattle', max_length=20)),
                ('region', models.CharField(blank=True, max_length=255, null=True)),
                ('gps_lat', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('gps_lng', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('is_deleted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='owned_farms', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'farms',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='FarmMembership',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role_in_farm', models.CharField(choices=[('farmer_owner', 'Farmer Owner'), ('farm_manager', 'Farm Manager'), ('farmhand', 'Farmhand')], default='farmhand', max_length=20)),
                ('invited_email', models.EmailField(blank=True, max_length=254, null=True)),
                ('invitation_token', models.CharField(default=farmops.farms.models.generate_invitation_token, max_length=64, unique=True)),
                ('invitation_status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('declined', 'Declined')], default='pending', max_length=20)),
                ('expires_at', models.DateTimeField(default=farmops.farms.models.default_invitation_expiry)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('farm', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='farms.farm')),
                ('invited_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_invitations', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='farm_memberships', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'farm_memberships',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['farm', 'invitation_status'], name='farm_member_farm_id_7a3c1e_idx'),
                    models.Index(fields=['user', 'invitation_status'], name='farm_member_user_id_2b9d4f_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='FarmApprovalSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('auto_approve_enabled', models.BooleanField(default=True)),
                ('auto_approve_hours', models.PositiveIntegerField(default=48)),
                ('require_approval_for', models.JSONField(blank=True, default=list, help_text='Activity types that need owner approval; empty means all')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('farm', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='approval_settings', to='farms.farm')),
            ],
            options={
                'db_table': 'farm_approval_settings',
            },
        ),
    ]
