"""Normalize Procare payloads into canonical Child / Activity models.

Both entry points are pure functions: no I/O, no side effects, and they
handle missing or null fields without raising.  ``map_activity`` dispatches
on the Procare ``activity_type`` tag through ``ACTIVITY_HANDLERS``; types with
no handler become NOTE activities carrying the original tag and payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from src.childcare.base import (
    UNKNOWN_CHILD_ID,
    Activity,
    ActivityDetails,
    ActivityType,
    BottleDetails,
    Child,
    DiaperDetails,
    IncidentDetails,
    LearningDetails,
    MealDetails,
    MedicationDetails,
    MoodDetails,
    NapDetails,
    NoteDetails,
    PhotoDetails,
    SignDetails,
    UnrecognizedDetails,
)
from src.childcare.sync.dedup import activity_key, fallback_source_id
from src.childcare.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger("procare_sync.mapper")


@dataclass
class _Mapped:
    """Child-independent part of a mapped activity, before fan-out."""

    type: ActivityType
    timestamp: str
    details: ActivityDetails
    end_time: str | None = None
    notes: str | None = None
    reported_by: str | None = None


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _safe_float(value: object) -> float | None:
    """Parse a number leniently; None for missing, blank or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return None
    return parsed


def compose_timestamp(activity_date: str | None, time_of_day: object) -> str | None:
    """Combine a YYYY-MM-DD date with an HH:MM[:SS] time.

    ``"09:30"`` becomes ``"<date>T09:30:00"``; longer forms are kept as-is.
    Returns None when either part is missing or blank.
    """
    if not activity_date or not isinstance(time_of_day, str):
        return None
    time_str = time_of_day.strip()
    if not time_str:
        return None
    if len(time_str) == 5:
        time_str = f"{time_str}:00"
    return f"{activity_date}T{time_str}"


def _duration_minutes(start: str | None, end: str | None) -> int | None:
    if not start or not end:
        return None
    try:
        delta = datetime.fromisoformat(end) - datetime.fromisoformat(start)
    except (TypeError, ValueError):
        return None
    minutes = int(delta.total_seconds() // 60)
    return minutes if minutes >= 0 else None


def _text(value: object) -> str | None:
    """Return a non-empty string or None."""
    if isinstance(value, str) and value:
        return value
    return None


def _dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


def map_kid(raw: dict, vocabulary: Vocabulary | None = None) -> Child:
    """Project a Procare kid record onto Child."""
    vocab = vocabulary or get_vocabulary()
    return Child(
        id=str(raw.get("id", "")),
        first_name=raw.get("first_name") or "",
        last_name=raw.get("last_name") or "",
        classroom=raw.get("current_section_name") or vocab.default_classroom,
        date_of_birth=raw.get("dob") or "",
    )


# ---------------------------------------------------------------------------
# Per-type handlers
# ---------------------------------------------------------------------------


def _map_bathroom(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.DIAPER,
        timestamp=raw.get("activity_time") or "",
        details=DiaperDetails(condition=vocab.diaper_condition(data.get("sub_type"))),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_meal(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    desc = _text(data.get("desc"))
    return _Mapped(
        type=ActivityType.MEAL,
        timestamp=raw.get("activity_time") or "",
        details=MealDetails(
            meal_type=vocab.meal_type(data.get("type")),
            items=[desc] if desc else [],
            amount=vocab.meal_amount(data.get("quantity")),
        ),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_bottle(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.MEAL,
        timestamp=raw.get("activity_time") or "",
        details=BottleDetails(
            amount=_safe_float(data.get("amount")),
            bottle_consumed=_safe_float(data.get("bottle_consumed")),
        ),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_nap(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    activity_date = raw.get("activity_date")
    start = compose_timestamp(activity_date, data.get("start_time"))
    end = compose_timestamp(activity_date, data.get("end_time"))
    return _Mapped(
        type=ActivityType.NAP,
        timestamp=start or raw.get("activity_time") or "",
        end_time=end,
        details=NapDetails(duration_minutes=_duration_minutes(start, end)),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_sign_in(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    activiable = _dict(raw.get("activiable"))
    return _Mapped(
        type=ActivityType.CHECK_IN,
        timestamp=activiable.get("sign_in_time") or raw.get("activity_time") or "",
        details=SignDetails(section=_dict(activiable.get("section")).get("name")),
        notes=_text(raw.get("comment")),
        reported_by=_text(activiable.get("signed_in_by"))
        or _text(raw.get("staff_present_name")),
    )


def _map_sign_out(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    activiable = _dict(raw.get("activiable"))
    return _Mapped(
        type=ActivityType.CHECK_OUT,
        timestamp=activiable.get("sign_out_time") or raw.get("activity_time") or "",
        details=SignDetails(section=_dict(activiable.get("section")).get("name")),
        notes=_text(raw.get("comment")),
        reported_by=_text(activiable.get("signed_out_by"))
        or _text(raw.get("staff_present_name")),
    )


def _map_learning(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    activiable = _dict(raw.get("activiable"))
    categories = activiable.get("learning_activity_categories") or []
    return _Mapped(
        type=ActivityType.LEARNING,
        timestamp=raw.get("activity_time") or "",
        details=LearningDetails(
            activity_name=_dict(activiable.get("learning_activity_name")).get("value")
            or vocab.default_learning_activity_name,
            categories=[
                c["value"] for c in categories if isinstance(c, dict) and c.get("value")
            ],
            photo_url=_text(raw.get("photo_url")),
        ),
        notes=_text(raw.get("comment")) or _text(data.get("desc")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_note(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.NOTE,
        timestamp=raw.get("activity_time") or "",
        details=NoteDetails(),
        notes=_text(data.get("desc")) or _text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_mood(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.NOTE,
        timestamp=raw.get("activity_time") or "",
        details=MoodDetails(mood=_text(data.get("type"))),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_incident(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.INCIDENT,
        timestamp=raw.get("activity_time") or "",
        details=IncidentDetails(
            description=data.get("desc") or "",
            action=data.get("action") or "",
        ),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_medication(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.MEDICATION,
        timestamp=raw.get("activity_time") or "",
        details=MedicationDetails(
            name=data.get("name") or data.get("desc") or "",
            dosage=data.get("dosage") or data.get("amount") or "",
            time=compose_timestamp(raw.get("activity_date"), data.get("start_time"))
            or raw.get("activity_time")
            or "",
        ),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_photo(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.PHOTO,
        timestamp=raw.get("activity_time") or "",
        details=PhotoDetails(photo_url=_text(raw.get("photo_url"))),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


def _map_unrecognized(raw: dict, data: dict, vocab: Vocabulary) -> _Mapped:
    return _Mapped(
        type=ActivityType.NOTE,
        timestamp=raw.get("activity_time") or "",
        details=UnrecognizedDetails(
            upstream_type=str(raw.get("activity_type") or ""),
            data=dict(data),
        ),
        notes=_text(raw.get("comment")),
        reported_by=_text(raw.get("staff_present_name")),
    )


Handler = Callable[[dict, dict, Vocabulary], _Mapped]

# Registry: Procare activity_type → handler
ACTIVITY_HANDLERS: dict[str, Handler] = {
    "bathroom_activity": _map_bathroom,
    "meal_activity": _map_meal,
    "bottle_activity": _map_bottle,
    "nap_activity": _map_nap,
    "sign_in_activity": _map_sign_in,
    "sign_out_activity": _map_sign_out,
    "learning_activity": _map_learning,
    "note_activity": _map_note,
    "mood_activity": _map_mood,
    "incident_activity": _map_incident,
    "medication_activity": _map_medication,
    "photo_activity": _map_photo,
}


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


def map_activity(raw: dict, vocabulary: Vocabulary | None = None) -> list[Activity]:
    """Convert one Procare daily activity into one Activity per named child.

    A record with no ``kid_ids`` is attributed to ``UNKNOWN_CHILD_ID``; one
    with no ``id`` gets a content-derived id from ``fallback_source_id``.
    Each fanned-out copy gets its own details object so later mutation of
    one never leaks into another.

    Args:
        raw:        A record from /parent/daily_activities/.
        vocabulary: Vocabulary override; the bundled tables by default.

    Returns:
        Activities, one per child, in ``kid_ids`` order.
    """
    source_id = raw.get("id")
    if source_id in (None, ""):
        source_id = fallback_source_id(raw)
        logger.warning(
            "Procare activity without id (type=%r), stored as %s",
            raw.get("activity_type"), source_id,
        )
    source_id = str(source_id)

    vocab = vocabulary or get_vocabulary()
    activity_type = raw.get("activity_type") or ""
    handler = ACTIVITY_HANDLERS.get(activity_type)
    if handler is None:
        logger.debug(
            "Unrecognized Procare activity type %r on %s, storing as note",
            activity_type, source_id,
        )
        handler = _map_unrecognized

    data = _dict(raw.get("data"))
    child_ids = [str(k) for k in (raw.get("kid_ids") or [])] or [UNKNOWN_CHILD_ID]
    fanned_out = len(child_ids) > 1

    activities = []
    for child_id in child_ids:
        mapped = handler(raw, data, vocab)
        activities.append(
            Activity(
                id=activity_key(source_id, child_id, fanned_out),
                child_id=child_id,
                type=mapped.type,
                timestamp=mapped.timestamp,
                details=mapped.details,
                source_id=source_id,
                end_time=mapped.end_time,
                notes=mapped.notes,
                reported_by=mapped.reported_by,
            )
        )
    return activities
