"""Services package initialization."""

from . import (
    analytics,
    connectivity,
    email,
    fingerprint,
    geolocation,
    leads,
    payments,
    quiz,
    webhook,
)

__all__ = [
    "analytics",
    "connectivity",
    "email",
    "fingerprint",
    "geolocation",
    "leads",
    "payments",
    "quiz",
    "webhook",
]
