import django.db.models.deletion
from decimal import Decimal
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
            name='FeedInventory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('feed_type', models.CharField(max_length=255)),
                ('category', models.CharField(blank=True, choices=[('concentrates', 'Concentrates'), ('roughage', 'Roughage'), ('minerals', 'Minerals'), ('supplements', 'Supplements')], help_text='Empty counts as roughage', max_length=20, null=True)),
                ('quantity_kg', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('unit', models.CharField(default='kg', max_length=30)),
                ('weight_per_unit', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('cost_per_unit', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('reorder_threshold', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('supplier', models.CharField(blank=True, max_length=255, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('last_updated', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('farm', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='feed_inventory', to='farms.farm')),
            ],
            options={
                'db_table': 'feed_inventory',
                'ordering': ['created_at', 'id'],
                'verbose_name_plural': 'feed inventory',
                'indexes': [models.Index(fields=['farm', 'created_at'], name='feed_invent_farm_id_0b7d3c_idx')],
            },
        ),
        migrations.CreateModel(
            name='FeedStockTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('addition', 'Addition'), ('consumption', 'Consumption'), ('adjustment', 'Adjustment')], max_length=20)),
                ('quantity_change_kg', models.DecimalField(decimal_places=2, help_text='Negative for consumption', max_digits=12)),
                ('balance_after', models.DecimalField(decimal_places=2, max_digits=12)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('feed_inventory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transactions', to='feed.feedinventory')),
            ],
            options={
                'db_table': 'feed_stock_transactions',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
