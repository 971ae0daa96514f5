"""Quiz answer handling.

This module validates raw answers typed or tapped by the visitor and turns
the collected answers into a lead payload and a ``ProfileInput``.  It does
not include any Telegram-specific logic.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from ..core import logic, texts
from ..core.schema import ProfileInput, Sex
from ..core.utils import clean_whatsapp_number, parse_float, parse_int

CM_PER_FOOT = 30.48
MIN_WEIGHT_KG = 30
MAX_WEIGHT_KG = 300

# Screen shown after answering a question, before the quiz moves on
INTERLUDES = {
    "weight": "bmi_profile",
    "targetWeight": "congratulations",
    "time": "personal_profile",
}

# Quiz question id -> lead column
LEAD_COLUMNS = {
    "name": "lead_name",
    "weightLossGoal": "weight_loss_goal",
    "age": "age",
    "height": "height_cm",
    "weight": "current_weight_kg",
    "targetWeight": "target_weight_kg",
    "gender": "gender",
    "activity": "activity_level",
    "time": "daily_time_commitment",
    "diet": "diet_quality",
    "previousAttempts": "previous_attempts",
    "metabolism": "metabolism_type",
    "dietAttempts": "diet_attempts_count",
    "dietResults": "diet_results",
    "yoyoEffect": "yoyo_effect",
    "habits": "habits",
}

SEX_BY_GENDER = {"Feminino": Sex.FEMALE, "Masculino": Sex.MALE}


class AnswerError(ValueError):
    """Raised with a visitor-facing message when an answer is rejected."""


def option_label(question_id: str, option: str) -> str:
    """Return the keyboard label for ``option``, prefixed with its emoji."""
    emoji = texts.option_emoji(question_id, option)
    return f"{emoji} {option}" if emoji else option


def _match_option(question_id: str, text: str, options) -> str:
    wanted = text.strip().casefold()
    for option in options:
        if wanted in (option.casefold(), option_label(question_id, option).casefold()):
            return option
    raise AnswerError(texts.ERRORS["option"])


def parse_height_cm(text: str) -> int:
    """Return the height in centimetres; values marked ``ft`` are converted."""
    value = parse_float(text)
    if value is None or value <= 0:
        raise AnswerError(texts.ERRORS["height"])
    lowered = text.lower()
    if "ft" in lowered or "pé" in lowered or "pe" in lowered.split():
        value = value * CM_PER_FOOT
    return int(round(value))


def validate_answer(question_id: str, text: str) -> Any:
    """Return the normalised answer for ``question_id``.

    Raises:
        AnswerError: if the answer is missing or out of range.
        KeyError: if ``question_id`` is unknown.
    """
    question = texts.get_question(question_id)
    if text is None or not text.strip():
        raise AnswerError(texts.ERRORS["required"])
    options = question.get("options")
    if options:
        return _match_option(question_id, text, options)
    if question_id == "age":
        age = parse_int(text)
        if age is None or not 1 <= age <= 120:
            raise AnswerError(texts.ERRORS["age"])
        return age
    if question_id == "height":
        return parse_height_cm(text)
    if question_id in ("weight", "targetWeight"):
        weight = parse_float(text)
        if weight is None or not MIN_WEIGHT_KG <= weight <= MAX_WEIGHT_KG:
            raise AnswerError(texts.ERRORS["weight"])
        return weight
    return text.strip()[:80]


def calculate_score(data: Mapping[str, Any]) -> int:
    """Return the lead score for a payload keyed by lead columns."""
    score = 0
    for column, points in texts.SCORE_MAPS.items():
        answer = data.get(column)
        if answer:
            score += points.get(answer, 0)
    return score


def answers_to_lead_payload(
    answers: Mapping[str, Any],
    *,
    fingerprint: str | None = None,
    ip_address: str | None = None,
) -> Dict[str, Any]:
    """Map quiz answers onto lead columns, skipping unanswered questions."""
    payload: Dict[str, Any] = {}
    if fingerprint:
        payload["fingerprint"] = fingerprint
    if ip_address:
        payload["ip_address"] = ip_address
    for question_id, column in LEAD_COLUMNS.items():
        if answers.get(question_id) is not None:
            payload[column] = answers[question_id]
    if answers.get("email"):
        payload["email"] = answers["email"]
    if answers.get("whatsapp"):
        payload["whatsapp"] = clean_whatsapp_number(answers["whatsapp"])
    return payload


def sex_from_answers(answers: Mapping[str, Any]) -> Sex:
    return SEX_BY_GENDER.get(answers.get("gender"), Sex.FEMALE)


def profile_from_answers(answers: Mapping[str, Any]) -> ProfileInput:
    """Build a validated ``ProfileInput`` from collected answers.

    Raises:
        logic.InvalidInputError: if a biometric answer is missing or invalid.
    """
    return logic.make_profile(
        current_weight_kg=answers.get("weight"),
        height_cm=answers.get("height"),
        age_years=answers.get("age"),
        target_weight_kg=answers.get("targetWeight"),
        sex=sex_from_answers(answers),
    )
