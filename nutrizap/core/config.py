from __future__ import annotations

"""Configuration utilities for the project."""

import json
import os
from pathlib import Path

__all__ = [
    "load_config",
    "telegram_bot_token",
    "supabase_credentials",
    "stripe_secret_key",
    "stripe_price_id",
    "resend_api_key",
    "webhook_url",
    "checkout_urls",
    "email_sender",
]


def load_config() -> dict:
    """Load configuration from ``config.json`` or environment variables."""
    cfg_path = Path(__file__).resolve().parent.parent.parent / "config.json"
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            data = []
            for line in f:
                stripped = line.strip()
                if stripped.startswith("#") or stripped.startswith("//"):
                    continue
                if " #" in line:
                    line = line.split(" #", 1)[0]
                if " //" in line:
                    line = line.split(" //", 1)[0]
                data.append(line)
            return json.loads("".join(data))
    return {
        "telegram_bot_token": os.getenv("TELEGRAM_BOT_TOKEN", ""),
        "supabase_url": os.getenv("SUPABASE_URL", ""),
        "supabase_key": os.getenv("SUPABASE_KEY", ""),
        "stripe_secret_key": os.getenv("STRIPE_SECRET_KEY", ""),
        "stripe_prices": {
            "monthly": os.getenv("STRIPE_PRICE_MONTHLY", ""),
            "annual": os.getenv("STRIPE_PRICE_ANNUAL", ""),
        },
        "resend_api_key": os.getenv("RESEND_API_KEY", ""),
        "email_from": os.getenv(
            "EMAIL_FROM", "Seu Plano Alimentar <contato@seuplanoalimentar.com.br>"
        ),
        "email_reply_to": os.getenv("EMAIL_REPLY_TO", "suporte@seuplanoalimentar.com.br"),
        "webhook_url": os.getenv("N8N_WEBHOOK_URL", ""),
        "checkout_success_url": os.getenv("CHECKOUT_SUCCESS_URL", ""),
        "checkout_cancel_url": os.getenv("CHECKOUT_CANCEL_URL", ""),
        "gtm_id": os.getenv("GTM_ID", ""),
    }


def telegram_bot_token(cfg: dict | None = None) -> str:
    """Return the bot token.

    An empty value in ``config.json`` does not override a valid
    ``TELEGRAM_BOT_TOKEN`` environment variable.
    """
    cfg = cfg if cfg is not None else load_config()
    return cfg.get("telegram_bot_token") or os.getenv("TELEGRAM_BOT_TOKEN", "")


def supabase_credentials(cfg: dict | None = None) -> tuple[str, str]:
    """Return ``(url, key)`` for the lead datastore; either may be empty."""
    cfg = cfg if cfg is not None else load_config()
    url = cfg.get("supabase_url") or os.getenv("SUPABASE_URL", "")
    key = cfg.get("supabase_key") or os.getenv("SUPABASE_KEY", "")
    return url.rstrip("/"), key


def stripe_secret_key(cfg: dict | None = None) -> str:
    cfg = cfg if cfg is not None else load_config()
    return cfg.get("stripe_secret_key") or os.getenv("STRIPE_SECRET_KEY", "")


def stripe_price_id(plan: str, cfg: dict | None = None) -> str:
    """Return the Stripe price configured for ``plan`` (monthly/annual)."""
    cfg = cfg if cfg is not None else load_config()
    prices = cfg.get("stripe_prices") or {}
    return prices.get(plan) or os.getenv(f"STRIPE_PRICE_{plan.upper()}", "")


def resend_api_key(cfg: dict | None = None) -> str:
    cfg = cfg if cfg is not None else load_config()
    return cfg.get("resend_api_key") or os.getenv("RESEND_API_KEY", "")


def webhook_url(cfg: dict | None = None) -> str:
    cfg = cfg if cfg is not None else load_config()
    return cfg.get("webhook_url") or os.getenv("N8N_WEBHOOK_URL", "")


def checkout_urls(cfg: dict | None = None) -> tuple[str, str]:
    """Return ``(success_url, cancel_url)`` for checkout sessions."""
    cfg = cfg if cfg is not None else load_config()
    success = cfg.get("checkout_success_url") or os.getenv(
        "CHECKOUT_SUCCESS_URL", "https://t.me/"
    )
    cancel = cfg.get("checkout_cancel_url") or os.getenv(
        "CHECKOUT_CANCEL_URL", "https://t.me/"
    )
    return success, cancel


def email_sender(cfg: dict | None = None) -> tuple[str, str]:
    """Return ``(from, reply_to)`` addresses for outgoing email."""
    cfg = cfg if cfg is not None else load_config()
    sender = cfg.get("email_from") or os.getenv(
        "EMAIL_FROM", "Seu Plano Alimentar <contato@seuplanoalimentar.com.br>"
    )
    reply_to = cfg.get("email_reply_to") or os.getenv(
        "EMAIL_REPLY_TO", "suporte@seuplanoalimentar.com.br"
    )
    return sender, reply_to
