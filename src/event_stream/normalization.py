# ABOUTME: Coerces loosely typed raw event records into canonical interaction events.
# ABOUTME: Resolves every field default in one place and drops records without timestamps.

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from .schemas import ACTIVITY, ENGAGEMENT, SUBSCRIPTION, InteractionEvent
from .settings import UNKNOWN_CONTENT_ID

logger = logging.getLogger(__name__)

STUDENT_ID_FIELDS = ("entity_id", "student_id", "user_id")
TIMESTAMP_FIELDS = ("created_at", "timestamp")
KIND_FIELDS = ("event_type", "kind")
CONTENT_ID_FIELDS = ("experience_id", "content_id")
UNKNOWN_STUDENT_ID = "unknown"

KIND_ALIASES = {
    ACTIVITY: ACTIVITY,
    ENGAGEMENT: ENGAGEMENT,
    SUBSCRIPTION: SUBSCRIPTION,
    "course_enrollment": ACTIVITY,
}

FRAME_COLUMNS = ["student_id", "content_id", "kind", "timestamp"]


class UnparseableEvent(ValueError):
    """Raised when a raw record carries no usable timestamp."""


def normalize_event(record: Mapping[str, Any]) -> InteractionEvent:
    """Build an ``InteractionEvent`` from one raw record."""

    if not isinstance(record, Mapping):
        raise UnparseableEvent(f"Expected a mapping, got {type(record).__name__}")

    timestamp = _parse_timestamp(_first_present(record, TIMESTAMP_FIELDS))
    if timestamp is None:
        raise UnparseableEvent(f"Record has no usable timestamp: {_preview(record)}")

    payload = _payload(record.get("event_data"))
    student_id = _first_present(record, STUDENT_ID_FIELDS)
    kind = _first_present(record, KIND_FIELDS)

    return InteractionEvent(
        student_id=str(student_id) if student_id is not None else UNKNOWN_STUDENT_ID,
        content_id=_content_id(record, payload),
        kind=KIND_ALIASES.get(str(kind).strip().lower(), ACTIVITY) if kind is not None else ACTIVITY,
        timestamp=timestamp,
    )


def normalize_events(records: Iterable[Mapping[str, Any]]) -> List[InteractionEvent]:
    """Normalize a batch, skipping (and logging) unparseable records."""

    events: List[InteractionEvent] = []
    for index, record in enumerate(records):
        try:
            events.append(normalize_event(record))
        except UnparseableEvent as exc:
            logger.warning("Dropping raw event #%d: %s", index, exc)
    return events


def events_to_frame(events: Iterable[InteractionEvent]) -> pd.DataFrame:
    rows = [
        {
            "student_id": event.student_id,
            "content_id": event.content_id,
            "kind": event.kind,
            "timestamp": event.timestamp,
        }
        for event in events
    ]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)

    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _first_present(record: Mapping[str, Any], keys: Iterable[str]) -> Optional[Any]:
    for key in keys:
        value = record.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _payload(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            decoded = json.loads(raw)
        except ValueError:
            return {}
        return decoded if isinstance(decoded, Mapping) else {}
    return {}


def _content_id(record: Mapping[str, Any], payload: Mapping[str, Any]) -> str:
    # Explicit identifiers win over the generic action label.
    value = _first_present(payload, CONTENT_ID_FIELDS)
    if value is None:
        value = _first_present(record, CONTENT_ID_FIELDS)
    if value is None:
        value = _first_present(payload, ("action",))
    return str(value) if value is not None else UNKNOWN_CONTENT_ID


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = pd.to_datetime(value, unit="s", utc=True)
        else:
            parsed = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed.to_pydatetime().astimezone(timezone.utc)


def _preview(record: Mapping[str, Any]) -> str:
    keys = ", ".join(sorted(str(k) for k in record.keys()))
    return f"fields=[{keys}]"
