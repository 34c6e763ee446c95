import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('farms', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PendingActivity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('activity_type', models.CharField(choices=[('milking', 'Milking'), ('feeding', 'Feeding'), ('weight_measurement', 'Weight Measurement'), ('health_observation', 'Health Observation'), ('injection', 'Injection')], max_length=30)),
                ('activity_data', models.JSONField(blank=True, default=dict)),
                ('animal_ids', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('auto_approved', 'Auto-Approved')], default='pending', max_length=20)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True, null=True)),
                ('auto_approve_at', models.DateTimeField(blank=True, null=True)),
                ('submitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('farm', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pending_activities', to='farms.farm')),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_activities', to=settings.AUTH_USER_MODEL)),
                ('submitted_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submitted_activities', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'pending_activities',
                'ordering': ['-submitted_at'],
                'verbose_name_plural': 'pending activities',
                'indexes': [
                    models.Index(fields=['farm', 'status'], name='pending_act_farm_id_2d8e5b_idx'),
                    models.Index(fields=['status', 'auto_approve_at'], name='pending_act_status_f41a7c_idx'),
                ],
            },
        ),
    ]
