from __future__ import annotations

"""Load copy, quiz questions and lookup tables from ``texts.yaml``."""

from importlib import resources
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml
from jinja2 import Template


def _load_texts() -> dict:
    """Return the raw contents of ``texts.yaml``."""
    with resources.files(__package__).joinpath("texts.yaml").open(
        "r", encoding="utf-8"
    ) as fh:
        return yaml.safe_load(fh)


def _freeze(value: Any) -> Any:
    """Return a read-only view of nested dicts and lists."""
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


_data = _load_texts()

QUESTIONS = _freeze(_data["questions"])
QUESTION_IDS = tuple(q["id"] for q in QUESTIONS)
QUESTION_EMOJIS: Mapping[str, str] = _freeze(_data["question_emojis"])
OPTION_EMOJIS: Mapping[str, Mapping[str, str]] = _freeze(_data["option_emojis"])
SCORE_MAPS: Mapping[str, Mapping[str, int]] = _freeze(_data["score_maps"])
BMI_CATEGORIES: Mapping[str, Mapping[str, str]] = _freeze(_data["bmi_categories"])
CHART_MARKERS: Mapping[str, str] = _freeze(_data["chart_markers"])
RESPONSE_CATEGORIES: Mapping[str, tuple] = _freeze(_data["response_categories"])
RESPONSE_LABELS: Mapping[str, str] = _freeze(_data["response_labels"])
ERRORS: Mapping[str, str] = _freeze(_data["errors"])

# Compiled templates; the YAML descriptions are documentation only
TEMPLATES: Dict[str, Template] = {}

for _name, _info in _data["templates"].items():
    TEMPLATES[_name] = Template(
        _info["template"], autoescape=bool(_info.get("autoescape", False))
    )


def get_question(question_id: str) -> Mapping[str, Any]:
    """Return the question definition for ``question_id``.

    Raises:
        KeyError: if no such question exists.
    """
    for question in QUESTIONS:
        if question["id"] == question_id:
            return question
    raise KeyError(question_id)


def question_emoji(question_id: str) -> str:
    return QUESTION_EMOJIS.get(question_id, "✨")


def option_emoji(question_id: str, option: str) -> str:
    return OPTION_EMOJIS.get(question_id, {}).get(option, "")


def render(template_name: str, /, **context: Any) -> str:
    """Render the template ``template_name`` with ``context``.

    The template name is positional-only so ``name`` stays free for the
    visitor's name.
    """
    return TEMPLATES[template_name].render(**context)


def category_label(category: str, default: Optional[str] = None) -> str:
    info = BMI_CATEGORIES.get(category)
    return info["label"] if info else (default or category)


def category_message(category: str) -> str:
    info = BMI_CATEGORIES.get(category)
    return info["message"] if info else ""
