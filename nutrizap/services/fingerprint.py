"""Stable visitor fingerprints."""

from __future__ import annotations

import hashlib


def fingerprint(platform: str, user_id: int | str) -> str:
    """Return a hex SHA-256 digest identifying ``user_id`` on ``platform``.

    The same visitor always maps to the same value, so quiz answers given
    across several sessions update a single lead.
    """
    if user_id is None or str(user_id) == "":
        raise ValueError("user_id is required")
    raw = f"{platform}:{user_id}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def telegram_fingerprint(user_id: int) -> str:
    return fingerprint("telegram", user_id)
