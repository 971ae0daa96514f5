import re
from typing import Any, Optional

__all__ = [
    "parse_int",
    "parse_float",
    "clean_whatsapp_number",
    "format_whatsapp",
    "is_valid_email",
    "is_valid_whatsapp",
]

_NUMBER_RE = re.compile(r"[-+]?[0-9]+(?:[,.][0-9]+)?")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_WHATSAPP_RE = re.compile(r"^\(\d{2}\)\s\d{5}-\d{4}$")


def parse_float(value: Any) -> Optional[float]:
    """Return ``value`` as ``float`` if possible.

    Strings may contain units like ``"72,5 kg"`` or ``"170 cm"``; a comma is
    accepted as the decimal separator.  If conversion fails, ``None`` is
    returned.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        m = _NUMBER_RE.search(value)
        if m:
            try:
                return float(m.group(0).replace(",", "."))
            except ValueError:
                return None
    return None


def parse_int(value: Any) -> Optional[int]:
    """Return ``value`` as ``int`` if possible, rounding fractional input."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = parse_float(value)
    if number is None:
        return None
    return int(round(number))


def clean_whatsapp_number(number: str) -> str:
    """Keep digits only and prefix the Brazilian country code when missing."""
    cleaned = re.sub(r"\D", "", number or "")
    if not cleaned.startswith("55"):
        return f"55{cleaned}"
    return cleaned


def format_whatsapp(value: str) -> str:
    """Format digits as ``(DD) DDDDD-DDDD`` while they are being typed."""
    numbers = re.sub(r"\D", "", value or "")
    if len(numbers) <= 2:
        return f"({numbers}"
    if len(numbers) <= 7:
        return f"({numbers[:2]}) {numbers[2:]}"
    return f"({numbers[:2]}) {numbers[2:7]}-{numbers[7:11]}"


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


def is_valid_whatsapp(number: str) -> bool:
    """Return ``True`` for a number formatted as ``(DD) DDDDD-DDDD``."""
    return bool(_WHATSAPP_RE.match(number or ""))
