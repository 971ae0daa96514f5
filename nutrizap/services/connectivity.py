"""Startup check of the external services the funnel depends on."""

from __future__ import annotations

import logging
from typing import Optional

import requests
import stripe

from ..core.config import (
    load_config,
    resend_api_key,
    stripe_secret_key,
    supabase_credentials,
    webhook_url,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


def check_connectivity(cfg: Optional[dict] = None) -> dict[str, bool]:
    """Check which integrations are configured and reachable.

    Returns a mapping ``{"supabase": bool, "stripe": bool, "resend": bool,
    "webhook": bool}``.  The webhook is only checked for a configured URL,
    since posting to it would trigger the automation.
    """

    cfg = cfg if cfg is not None else load_config()
    statuses = {"supabase": False, "stripe": False, "resend": False, "webhook": False}

    url, key = supabase_credentials(cfg)
    if url and key:
        try:
            resp = requests.get(
                f"{url}/rest/v1/",
                headers={"apikey": key, "Authorization": f"Bearer {key}"},
                timeout=REQUEST_TIMEOUT,
            )
            statuses["supabase"] = resp.ok
        except requests.RequestException as exc:
            logger.debug("Supabase check failed: %s", exc)

    stripe_key = stripe_secret_key(cfg)
    if stripe_key:
        try:
            stripe.Balance.retrieve(api_key=stripe_key)
            statuses["stripe"] = True
        except stripe.StripeError as exc:
            logger.debug("Stripe check failed: %s", exc)

    resend_key = resend_api_key(cfg)
    if resend_key:
        try:
            resp = requests.get(
                "https://api.resend.com/domains",
                headers={"Authorization": f"Bearer {resend_key}"},
                timeout=REQUEST_TIMEOUT,
            )
            statuses["resend"] = resp.ok
        except requests.RequestException as exc:
            logger.debug("Resend check failed: %s", exc)

    statuses["webhook"] = bool(webhook_url(cfg))
    return statuses
