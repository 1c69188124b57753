"""Engine configuration read from Django settings."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Self

DEFAULT_PROOF_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")


@dataclass(frozen=True)
class RegistrationConfig:
    """Tunables for the reservation engine."""

    payment_window: timedelta = timedelta(hours=120)
    offer_window: timedelta = timedelta(hours=24)
    proof_max_bytes: int = 5 * 1024 * 1024
    proof_content_types: tuple[str, ...] = DEFAULT_PROOF_CONTENT_TYPES
    availability_cache_seconds: int = 30
    order_number_prefix: str = "SW"

    @classmethod
    def from_settings(cls) -> Self:
        from django.conf import settings

        return cls(
            payment_window=timedelta(
                hours=getattr(settings, "REGISTRATION_PAYMENT_WINDOW_HOURS", 120)
            ),
            offer_window=timedelta(
                hours=getattr(settings, "REGISTRATION_WAITLIST_OFFER_HOURS", 24)
            ),
            proof_max_bytes=getattr(settings, "REGISTRATION_PROOF_MAX_BYTES", 5 * 1024 * 1024),
            proof_content_types=tuple(
                getattr(settings, "REGISTRATION_PROOF_CONTENT_TYPES", DEFAULT_PROOF_CONTENT_TYPES)
            ),
            availability_cache_seconds=getattr(
                settings, "REGISTRATION_AVAILABILITY_CACHE_SECONDS", 30
            ),
            order_number_prefix=getattr(settings, "REGISTRATION_ORDER_NUMBER_PREFIX", "SW"),
        )
