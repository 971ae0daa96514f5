"""Lead persistence keyed by visitor fingerprint.

Two stores implement the same small interface: ``SupabaseLeadStore`` talks
to the hosted ``leads`` table through the PostgREST API, ``JsonLeadStore``
keeps one JSON file per fingerprint on disk and is used when no datastore
is configured.  Quiz screens call :meth:`LeadStore.upsert_by_fingerprint`
after every answer, so a returning visitor keeps updating the same row.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

import requests
from filelock import Timeout
from pydantic import BaseModel, ConfigDict, ValidationError

from ..core import storage
from ..core.config import load_config, supabase_credentials
from .geolocation import GeolocationError, Geolocator
from .quiz import calculate_score

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class LeadStoreError(RuntimeError):
    """Raised when the lead datastore rejects or fails a request."""


class Lead(BaseModel):
    """One row of the ``leads`` table."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    fingerprint: str
    ip_address: Optional[str] = None
    lead_name: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    weight_loss_goal: Optional[str] = None
    age: Optional[int] = None
    height_cm: Optional[int] = None
    current_weight_kg: Optional[float] = None
    target_weight_kg: Optional[float] = None
    gender: Optional[str] = None
    activity_level: Optional[str] = None
    daily_time_commitment: Optional[str] = None
    diet_quality: Optional[str] = None
    previous_attempts: Optional[str] = None
    metabolism_type: Optional[str] = None
    diet_attempts_count: Optional[str] = None
    diet_results: Optional[str] = None
    yoyo_effect: Optional[str] = None
    habits: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None
    score: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LeadStore(Protocol):
    def get_by_fingerprint(self, fingerprint: str) -> Optional[Lead]: ...

    def upsert_by_fingerprint(self, fingerprint: str, data: Dict[str, Any]) -> Lead: ...

    def update_contact(self, fingerprint: str, email: str, whatsapp: str) -> Optional[Lead]: ...


def enrich_lead(
    data: Dict[str, Any], geolocator: Optional[Geolocator] = None
) -> Dict[str, Any]:
    """Return ``data`` with city, timezone and score added where possible.

    Geolocation only runs when an IP address is known; a failed lookup is
    logged and the lead is kept without geo data.  The score is computed
    once more than three fields are present.
    """
    enriched = dict(data)
    ip_address = data.get("ip_address")
    if ip_address and geolocator is not None:
        try:
            location = geolocator.lookup(ip_address)
        except GeolocationError as exc:
            logger.warning("enrich_lead: geolocation failed for %s: %s", ip_address, exc)
        else:
            enriched["city"] = location.city
            enriched["timezone"] = location.timezone
    if len(data) > 3:
        enriched["score"] = calculate_score(data)
    return enriched


def _to_lead(row: Dict[str, Any]) -> Lead:
    try:
        return Lead.model_validate(row)
    except ValidationError as exc:
        raise LeadStoreError(f"Lead datastore returned an invalid row: {exc}") from exc


@contextmanager
def _local_storage(fingerprint: str):
    """Report file and lock failures as :class:`LeadStoreError`."""
    try:
        yield
    except (OSError, Timeout, ValueError) as exc:
        raise LeadStoreError(f"Local lead storage failed for {fingerprint}: {exc}") from exc


class SupabaseLeadStore:
    """Lead store backed by a Supabase ``leads`` table."""

    def __init__(self, url: str, key: str, table: str = "leads") -> None:
        if not url or not key:
            raise ValueError("Supabase url and key are required")
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _request(
        self,
        method: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> list:
        try:
            response = requests.request(
                method,
                self.endpoint,
                params=params,
                json=payload,
                headers=self.headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise LeadStoreError(f"Lead datastore unreachable: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise LeadStoreError(
                f"Lead datastore returned HTTP {response.status_code}: {response.text[:500]}"
            )
        if not response.text.strip():
            return []
        try:
            rows = response.json()
        except ValueError as exc:
            raise LeadStoreError(f"Lead datastore returned invalid JSON: {exc}") from exc
        return rows if isinstance(rows, list) else [rows]

    def get_by_fingerprint(self, fingerprint: str) -> Optional[Lead]:
        rows = self._request(
            "GET",
            params={"fingerprint": f"eq.{fingerprint}", "select": "*", "limit": "1"},
        )
        return _to_lead(rows[0]) if rows else None

    def upsert_by_fingerprint(self, fingerprint: str, data: Dict[str, Any]) -> Lead:
        payload = {**data, "fingerprint": fingerprint}
        existing = self._request(
            "GET", params={"fingerprint": f"eq.{fingerprint}", "select": "id"}
        )
        if existing:
            lead_id = existing[0]["id"]
            logger.info("Process: upsert_lead | Updating existing lead %s", lead_id)
            rows = self._request("PATCH", params={"id": f"eq.{lead_id}"}, payload=payload)
        else:
            logger.info("Process: upsert_lead | Inserting new lead for %s", fingerprint)
            rows = self._request("POST", payload=payload)
        if not rows:
            raise LeadStoreError("Lead datastore returned no row")
        return _to_lead(rows[0])

    def update_contact(self, fingerprint: str, email: str, whatsapp: str) -> Optional[Lead]:
        rows = self._request(
            "PATCH",
            params={"fingerprint": f"eq.{fingerprint}"},
            payload={"email": email, "whatsapp": whatsapp},
        )
        return _to_lead(rows[0]) if rows else None


class JsonLeadStore:
    """Lead store writing one locked JSON file per fingerprint."""

    def get_by_fingerprint(self, fingerprint: str) -> Optional[Lead]:
        with _local_storage(fingerprint):
            return storage.load_lead(fingerprint, Lead)

    def upsert_by_fingerprint(self, fingerprint: str, data: Dict[str, Any]) -> Lead:
        now = datetime.now(timezone.utc)
        with _local_storage(fingerprint):
            existing = storage.load_lead(fingerprint, Lead)
            if existing is None:
                logger.info("Process: upsert_lead | Inserting new lead for %s", fingerprint)
                lead = Lead(
                    **{
                        **data,
                        "fingerprint": fingerprint,
                        "id": uuid.uuid4().hex,
                        "created_at": now,
                        "updated_at": now,
                    }
                )
            else:
                logger.info("Process: upsert_lead | Updating existing lead %s", existing.id)
                update = {k: v for k, v in data.items() if k in Lead.model_fields}
                lead = existing.model_copy(update={**update, "updated_at": now})
            storage.save_lead(fingerprint, lead)
        return lead

    def update_contact(self, fingerprint: str, email: str, whatsapp: str) -> Optional[Lead]:
        with _local_storage(fingerprint):
            existing = storage.load_lead(fingerprint, Lead)
            if existing is None:
                return None
            lead = existing.model_copy(
                update={
                    "email": email,
                    "whatsapp": whatsapp,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            storage.save_lead(fingerprint, lead)
        return lead


def get_lead_store(cfg: Optional[dict] = None) -> LeadStore:
    """Return the Supabase store when credentials are configured, else JSON."""
    cfg = cfg if cfg is not None else load_config()
    url, key = supabase_credentials(cfg)
    if url and key:
        return SupabaseLeadStore(url, key)
    logger.info("Supabase is not configured; storing leads locally")
    return JsonLeadStore()
