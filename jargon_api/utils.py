# --- Analytics event tracking ---
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventSink = Callable[[str, Dict[str, Any]], None]


def log_sink(event_name: str, properties: Dict[str, Any]) -> None:
    """Default sink: write the event to the log."""
    logger.debug(f"Analytics event: {event_name} {properties}")


class EventTracker:
    """
    Best-effort analytics notifications.

    track_event and track_error never raise: a failing sink is logged and
    skipped so the request that emitted the event is unaffected.
    """

    def __init__(self, sinks: Optional[List[EventSink]] = None):
        self.sinks: List[EventSink] = list(sinks) if sinks is not None else [log_sink]

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def track_event(self, event_name: str, properties: Optional[Dict[str, Any]] = None) -> bool:
        properties = properties or {}
        delivered = True
        for sink in self.sinks:
            try:
                sink(event_name, properties)
            except Exception as e:
                delivered = False
                logger.warning(f"Analytics sink failed for event '{event_name}': {e}")
        return delivered

    def track_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> bool:
        logger.error(f"Error tracked: {error!r} {context or {}}")
        return True


def normalize_term_text(text: str) -> str:
    """Canonical form of a missing term: trimmed, single-spaced, lower-case."""
    return " ".join(text.split()).lower()


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
