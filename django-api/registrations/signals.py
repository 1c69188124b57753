"""Django signals for cache invalidation and notification logging."""

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from registrations.handlers.cache import invalidate_session
from registrations.models import CharacterRole, Session
from registrations.services.notifications import (
    order_status_changed,
    waitlist_entry_expired,
    waitlist_offer_made,
)

logger = logging.getLogger(__name__)


@receiver([post_save, post_delete], sender=Session)
def invalidate_session_cache(sender, instance, **kwargs):
    """Invalidate availability caches when a session is saved or deleted."""
    invalidate_session(instance.pk)


@receiver([post_save, post_delete], sender=CharacterRole)
def invalidate_role_cache(sender, instance, **kwargs):
    """Invalidate availability caches when a role is saved or deleted."""
    invalidate_session(instance.session_id)


@receiver(order_status_changed)
def log_order_status_change(sender, order, previous_status, **kwargs):
    logger.info(
        "Order %s: %s -> %s",
        order.order_number,
        previous_status.value if previous_status else "new",
        order.status.value,
    )


@receiver(waitlist_offer_made)
def log_waitlist_offer(sender, entry, **kwargs):
    logger.info("Waitlist offer ready for parent %s (entry %s)", entry.parent_id, entry.id)


@receiver(waitlist_entry_expired)
def log_waitlist_expiry(sender, entry, **kwargs):
    logger.info("Waitlist entry %s closed for parent %s", entry.id, entry.parent_id)
