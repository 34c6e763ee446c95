"""
Cache invalidation for feed summaries
A farm's summary depends on its lots and on its herd size
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from farmops.animals.models import Animal
from farmops.core.cache_utils import invalidate_feed_summary_cache
from .models import FeedInventory


@receiver(post_save, sender=FeedInventory)
@receiver(post_delete, sender=FeedInventory)
def feed_inventory_changed(sender, instance, **kwargs):
    invalidate_feed_summary_cache(instance.farm_id)


@receiver(post_save, sender=Animal)
@receiver(post_delete, sender=Animal)
def herd_changed(sender, instance, **kwargs):
    invalidate_feed_summary_cache(instance.farm_id)
