import logging

from django.core.management.base import BaseCommand

from registrations.services import build_engine

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Cancel unpaid orders past their deadline and expire lapsed waitlist offers"

    def handle(self, *args, **options) -> None:
        """Run one sweep. Intended to be scheduled every few minutes."""
        engine = build_engine()
        orders = engine.orders.expire_overdue()
        offers = engine.waitlist.expire_lapsed_offers()
        logger.info("Sweep finished: %d order(s) cancelled, %d offer(s) expired", orders, offers)
        self.stdout.write(f"Cancelled {orders} overdue order(s), expired {offers} waitlist offer(s)")
