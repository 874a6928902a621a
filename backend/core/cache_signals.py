"""
Cache invalidation signals
Automatically invalidate cached stats when returns or orders change
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import invalidate_return_stats_cache, invalidate_order_stats_cache

logger = logging.getLogger(__name__)


@receiver(post_save, sender='returns.Return')
@receiver(post_delete, sender='returns.Return')
def invalidate_return_stats(sender, instance, **kwargs):
    """Invalidate return stats when a return changes"""
    logger.debug(f"Return {instance.pk} changed, invalidating return stats")
    invalidate_return_stats_cache()


@receiver(post_save, sender='orders.Order')
@receiver(post_delete, sender='orders.Order')
def invalidate_order_stats(sender, instance, **kwargs):
    """Invalidate order stats when an order changes"""
    logger.debug(f"Order {instance.pk} changed, invalidating order stats")
    invalidate_order_stats_cache()
