"""Outbound notification hooks.

Email delivery and other side channels subscribe to these signals. They are
sent only after the state transition that caused them has committed.
"""

import logging

from django.dispatch import Signal

from registrations.stores.interfaces import RegistrationStore

logger = logging.getLogger(__name__)

# kwargs: order, previous_status (None on creation)
order_status_changed = Signal()
# kwargs: entry
waitlist_offer_made = Signal()
# kwargs: entry
waitlist_entry_expired = Signal()


def notify_after_commit(store: RegistrationStore, signal: Signal, sender, **kwargs) -> None:
    def _send() -> None:
        for receiver, response in signal.send_robust(sender=sender, **kwargs):
            if isinstance(response, Exception):
                logger.error(
                    "Notification receiver %r failed: %s",
                    receiver,
                    response,
                    exc_info=response,
                )

    store.on_commit(_send)
