import django.db.models.deletion
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
            name='QueueItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('client_id', models.CharField(db_index=True, help_text='Device the item was recorded on', max_length=100)),
                ('item_type', models.CharField(choices=[('voice_activity', 'Voice Activity'), ('animal_form', 'Animal Form'), ('bulk_milk', 'Bulk Milk'), ('single_milk', 'Single Milk'), ('bulk_feed', 'Bulk Feed'), ('bulk_health', 'Bulk Health'), ('single_health', 'Single Health')], max_length=30)),
                ('payload', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('awaiting_confirmation', 'Awaiting Confirmation'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=30)),
                ('retries', models.PositiveIntegerField(default=0)),
                ('error', models.TextField(blank=True, null=True)),
                ('optimistic_id', models.CharField(max_length=64, unique=True)),
                ('server_response', models.JSONField(blank=True, null=True)),
                ('next_attempt_at', models.DateTimeField(blank=True, null=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('farm', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='queue_items', to='farms.farm')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='queue_items', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'offline_queue',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['client_id', 'status'], name='offline_que_client__5b1e2a_idx'),
                    models.Index(fields=['client_id', 'created_at'], name='offline_que_client__c83d40_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TranscriptionCorrection',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('original_text', models.TextField()),
                ('corrected_text', models.TextField()),
                ('context', models.JSONField(blank=True, null=True)),
                ('audio_duration', models.FloatField(blank=True, help_text='Seconds', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('farm', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='transcription_corrections', to='farms.farm')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transcription_corrections', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'transcription_corrections',
                'ordering': ['-created_at'],
            },
        ),
    ]
