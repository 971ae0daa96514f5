"""GTM-style funnel events.

Events use the same shape as a Tag Manager ``dataLayer`` entry so they can
be forwarded unchanged.  The tracker logs each one and keeps only the most
recent ``max_events`` in memory.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict, Optional

from ..core.utils import parse_float

logger = logging.getLogger(__name__)

MAX_EVENTS = 1000


class Tracker:
    """Collect funnel events for one bot process."""

    def __init__(self, container_id: str = "", max_events: int = MAX_EVENTS) -> None:
        self.container_id = container_id
        self.data_layer: Deque[Dict[str, Any]] = deque(maxlen=max_events)

    def push(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        self.data_layer.append(entry)
        logger.info("Analytics event: %s", entry)
        return entry

    def track_event(
        self,
        event: str,
        category: Optional[str] = None,
        action: Optional[str] = None,
        label: Optional[str] = None,
        value: Optional[float] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        return self.push(
            {
                "event": event,
                "event_category": category,
                "event_action": action,
                "event_label": label,
                "event_value": value,
                **extra,
            }
        )

    def pageview(self, page: str) -> Dict[str, Any]:
        return self.push({"event": "pageview", "page": page})

    def quiz_start(self) -> Dict[str, Any]:
        return self.track_event("quiz_start", "Quiz", "Start")

    def quiz_answer(self, question_id: str, answer: Any) -> Dict[str, Any]:
        # Answers starting with a number are reported as the event value
        if isinstance(answer, (int, float)):
            value = answer
        elif str(answer)[:1].isdigit():
            value = parse_float(answer) or None
        else:
            value = None
        return self.track_event("quiz_answer", "Quiz", "Answer", question_id, value)

    def quiz_complete(self, score: int) -> Dict[str, Any]:
        return self.track_event("quiz_complete", "Quiz", "Complete", value=score)

    def lead_capture(self, kind: str) -> Dict[str, Any]:
        if kind not in ("email", "whatsapp"):
            raise ValueError(f"Unknown lead capture type: {kind}")
        return self.track_event("lead_capture", "Lead", "Capture", kind)

    def conversion(self, kind: str, value: Optional[float] = None) -> Dict[str, Any]:
        return self.track_event("conversion", "Conversion", kind, value=value)
