"""Welcome email sent through the Resend REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from ..core import texts
from .leads import Lead

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT = 30


class EmailError(RuntimeError):
    """Raised when the email provider rejects or fails a send."""


def group_responses(
    responses: Mapping[str, Any],
) -> List[Tuple[str, List[Tuple[str, Any]]]]:
    """Group answered lead columns under their email section headings.

    Sections without any answer are left out.
    """
    sections = []
    for category, columns in texts.RESPONSE_CATEGORIES.items():
        items = [
            (texts.RESPONSE_LABELS.get(column, column), responses[column])
            for column in columns
            if responses.get(column) not in (None, "")
        ]
        if items:
            sections.append((category, items))
    return sections


def render_welcome_email(
    lead: Lead, responses: Optional[Mapping[str, Any]] = None
) -> Tuple[str, str]:
    """Return ``(subject, html)`` of the welcome email for ``lead``."""
    if responses is None:
        responses = lead.model_dump()
    name = lead.lead_name or ""
    subject = texts.render("welcome_email_subject", name=name).strip()
    html = texts.render(
        "welcome_email",
        name=name,
        current_weight=lead.current_weight_kg,
        target_weight=lead.target_weight_kg,
        sections=group_responses(responses),
        email=lead.email,
    )
    return subject, html


def send_welcome_email(
    lead: Lead,
    *,
    api_key: str,
    sender: str,
    reply_to: str,
    responses: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Send the welcome email and return the provider response.

    Raises:
        EmailError: if the lead has no email, the key is missing or the
            provider answers with an error.
    """
    if not lead.email:
        raise EmailError("Lead has no email address")
    if not api_key:
        raise EmailError("Resend API key is not configured")
    subject, html = render_welcome_email(lead, responses)
    body = {
        "from": sender,
        "to": [lead.email],
        "reply_to": reply_to,
        "subject": subject,
        "html": html,
    }
    logger.info("Process: welcome_email | Sending to %s", lead.email)
    try:
        response = requests.post(
            RESEND_URL,
            json=body,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise EmailError(f"Failed to send email: {exc}") from exc
    if not 200 <= response.status_code < 300:
        raise EmailError(
            f"Failed to send email: HTTP {response.status_code} {response.text[:300]}"
        )
    return response.json() if response.text.strip() else {}
