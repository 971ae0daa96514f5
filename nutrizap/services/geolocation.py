"""IP geolocation through the public ipapi.co service."""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional

import requests
from pydantic import BaseModel

logger = logging.getLogger(__name__)

IPAPI_URL = "https://ipapi.co"
REQUEST_TIMEOUT = 10


class GeolocationError(RuntimeError):
    """Raised when a location cannot be resolved."""


class Location(BaseModel):
    city: Optional[str] = None
    region: Optional[str] = None
    country_name: Optional[str] = None
    timezone: Optional[str] = None


DEFAULT_LOCATION = Location(
    city="São Paulo",
    region="São Paulo",
    country_name="Brazil",
    timezone="America/Sao_Paulo",
)


class Geolocator:
    """Resolve an IP address to a city."""

    def __init__(self, base_url: str = IPAPI_URL) -> None:
        self.base_url = base_url.rstrip("/")

    def lookup(self, ip_address: Optional[str] = None) -> Location:
        """Return the location of ``ip_address`` (the caller's own IP if ``None``).

        Raises:
            GeolocationError: on network failure, HTTP error or an error
                payload from the service.
        """
        url = f"{self.base_url}/{ip_address}/json/" if ip_address else f"{self.base_url}/json/"
        try:
            response = requests.get(url, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GeolocationError(str(exc)) from exc
        if data.get("error"):
            raise GeolocationError(data.get("reason") or "lookup failed")
        return Location(
            city=data.get("city"),
            region=data.get("region"),
            country_name=data.get("country_name"),
            timezone=data.get("timezone"),
        )


def ip_from_start_payload(payload: Optional[str]) -> Optional[str]:
    """Decode a visitor IP passed as a ``/start`` deep-link payload.

    Deep-link payloads only allow ``A-Z a-z 0-9 _ -``, so the landing page
    writes ``.`` as ``_`` and ``:`` as ``-``.  Returns ``None`` for anything
    that is not an IP address.
    """
    if not payload:
        return None
    candidate = payload.replace("_", ".").replace("-", ":")
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None
