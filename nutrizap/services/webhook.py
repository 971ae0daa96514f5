"""Relay completed quizzes to the automation webhook."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from ..core.utils import clean_whatsapp_number
from .leads import Lead

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30


class WebhookError(RuntimeError):
    """Raised when the webhook endpoint cannot be reached or rejects a post."""


def build_quiz_payload(lead: Lead, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Return the webhook body for ``lead`` using the automation's field names."""
    now = now or datetime.now(timezone.utc)
    return {
        "Nome": lead.lead_name,
        "Email": lead.email,
        "WhatsApp": clean_whatsapp_number(lead.whatsapp) if lead.whatsapp else None,
        "Idade": lead.age,
        "Gênero": lead.gender,
        "Altura": lead.height_cm,
        "Peso_Atual": lead.current_weight_kg,
        "Peso_Ideal": lead.target_weight_kg,
        "Meta_de_Perda_de_Peso": lead.weight_loss_goal,
        "Nível_de_Atividade": lead.activity_level,
        "Tempo_Disponível": lead.daily_time_commitment,
        "Qualidade_da_Dieta": lead.diet_quality,
        "Hábitos": lead.habits,
        "Tentativas_Anteriores": lead.previous_attempts,
        "Tipo_de_Metabolismo": lead.metabolism_type,
        "Número_de_Tentativas": lead.diet_attempts_count,
        "Resultados_Anteriores": lead.diet_results,
        "Efeito_Sanfona": lead.yoyo_effect,
        "IP": lead.ip_address,
        "Fingerprint": lead.fingerprint,
        "Data_e_Hora": now.isoformat(),
    }


def send_quiz(lead: Lead, url: str) -> None:
    """POST the quiz payload for ``lead`` to ``url``.

    Raises:
        WebhookError: on network failure or a non-2xx response.
    """
    if not url:
        raise WebhookError("Webhook url is not configured")
    payload = build_quiz_payload(lead)
    try:
        response = requests.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as exc:
        raise WebhookError(f"Webhook request failed: {exc}") from exc
    if not 200 <= response.status_code < 300:
        raise WebhookError(f"HTTP Error: {response.status_code}")
    logger.info("Process: send_quiz | Lead %s relayed to webhook", lead.fingerprint)
