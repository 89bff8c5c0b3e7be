"""Canonical data models for the childcare activity sync.

The mapper turns Procare payloads into these types, the storage backends
persist them, and read-side consumers get them back.  Activity details are a
closed set of tagged variants; ``details_to_json`` / ``details_from_json``
convert them to and from the JSON stored alongside each activity.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Union

logger = logging.getLogger("procare_sync.models")

#: Child id used when an upstream record names no children at all.
UNKNOWN_CHILD_ID = "unknown-child"


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


@dataclass
class Child:
    """A child profile synchronized from Procare.

    Attributes:
        id:            Procare kid id, stable across syncs.
        first_name:    Given name.
        last_name:     Family name.
        classroom:     Current section name ("Unknown" if Procare omits it).
        date_of_birth: ISO date string (YYYY-MM-DD).
    """

    id: str
    first_name: str
    last_name: str
    classroom: str
    date_of_birth: str


# ---------------------------------------------------------------------------
# Activity kinds and details variants
# ---------------------------------------------------------------------------


class ActivityType(str, Enum):
    DIAPER = "DIAPER"
    MEAL = "MEAL"
    NAP = "NAP"
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    INCIDENT = "INCIDENT"
    MEDICATION = "MEDICATION"
    PHOTO = "PHOTO"
    NOTE = "NOTE"
    LEARNING = "LEARNING"


@dataclass
class DiaperDetails:
    VARIANT: ClassVar[str] = "diaper"

    condition: str = "wet"  # wet | dry | bm | wet+bm


@dataclass
class MealDetails:
    VARIANT: ClassVar[str] = "meal"

    meal_type: str = "snack"  # breakfast | lunch | snack | dinner
    items: list[str] = field(default_factory=list)
    amount: str | None = None  # all | most | some | none


@dataclass
class BottleDetails:
    """Bottle feeding, stored under the MEAL kind.

    Amounts are whatever unit the classroom logged (usually ounces).
    """

    VARIANT: ClassVar[str] = "bottle"

    amount: float | None = None
    bottle_consumed: float | None = None


@dataclass
class NapDetails:
    VARIANT: ClassVar[str] = "nap"

    duration_minutes: int | None = None


@dataclass
class SignDetails:
    """Check-in / check-out details."""

    VARIANT: ClassVar[str] = "sign"

    section: str | None = None


@dataclass
class IncidentDetails:
    VARIANT: ClassVar[str] = "incident"

    description: str = ""
    action: str = ""


@dataclass
class MedicationDetails:
    VARIANT: ClassVar[str] = "medication"

    name: str = ""
    dosage: str = ""
    time: str = ""


@dataclass
class PhotoDetails:
    VARIANT: ClassVar[str] = "photo"

    photo_url: str | None = None


@dataclass
class LearningDetails:
    VARIANT: ClassVar[str] = "learning"

    activity_name: str = "Unknown"
    categories: list[str] = field(default_factory=list)
    photo_url: str | None = None


@dataclass
class MoodDetails:
    VARIANT: ClassVar[str] = "mood"

    mood: str | None = None


@dataclass
class NoteDetails:
    VARIANT: ClassVar[str] = "note"


@dataclass
class UnrecognizedDetails:
    """Fallback for activity types the mapper does not know.

    Keeps the upstream type tag and the raw ``data`` payload so nothing is
    lost; these activities are stored under the NOTE kind.
    """

    VARIANT: ClassVar[str] = "unrecognized"

    upstream_type: str = ""
    data: dict = field(default_factory=dict)


ActivityDetails = Union[
    DiaperDetails,
    MealDetails,
    BottleDetails,
    NapDetails,
    SignDetails,
    IncidentDetails,
    MedicationDetails,
    PhotoDetails,
    LearningDetails,
    MoodDetails,
    NoteDetails,
    UnrecognizedDetails,
]

DETAILS_REGISTRY: dict[str, type] = {
    cls.VARIANT: cls
    for cls in (
        DiaperDetails,
        MealDetails,
        BottleDetails,
        NapDetails,
        SignDetails,
        IncidentDetails,
        MedicationDetails,
        PhotoDetails,
        LearningDetails,
        MoodDetails,
        NoteDetails,
        UnrecognizedDetails,
    )
}


def details_to_json(details: ActivityDetails) -> dict[str, Any]:
    """Serialize a details variant to a JSON-ready dict tagged with its variant."""
    payload = asdict(details)
    payload["variant"] = details.VARIANT
    return payload


def details_from_json(payload: dict[str, Any]) -> ActivityDetails:
    """Rebuild a details variant from its stored JSON form.

    Unknown variant tags (e.g. rows written by a newer version) come back as
    ``UnrecognizedDetails`` rather than raising.  Unexpected keys are dropped.
    """
    data = dict(payload)
    variant = data.pop("variant", None)
    cls = DETAILS_REGISTRY.get(variant or "")
    if cls is None:
        logger.warning("Unknown details variant %r, keeping raw payload", variant)
        return UnrecognizedDetails(upstream_type=str(variant), data=data)
    allowed = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in allowed})


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------


@dataclass
class Activity:
    """Normalized childcare activity.

    Attributes:
        id:          Idempotency key.  Equal to ``source_id`` unless the
                     upstream record was fanned out to several children.
        child_id:    Owning child.
        type:        Activity kind.
        timestamp:   ISO datetime string as reported upstream.
        details:     Kind-specific details variant.
        source_id:   Upstream Procare activity id.
        end_time:    ISO datetime string, naps only.
        notes:       Free-text comment.
        reported_by: Staff member or guardian attribution.
    """

    id: str
    child_id: str
    type: ActivityType
    timestamp: str
    details: ActivityDetails = field(default_factory=NoteDetails)
    source_id: str | None = None
    end_time: str | None = None
    notes: str | None = None
    reported_by: str | None = None

    @property
    def activity_date(self) -> str:
        """Calendar date of the activity in the upstream's local time."""
        return self.timestamp[:10]


# ---------------------------------------------------------------------------
# Daily summary (read side)
# ---------------------------------------------------------------------------


@dataclass
class DailySummary:
    """Everything that happened to one child on one day.

    Attributes:
        child_id:     Child id.
        date:         ISO date (YYYY-MM-DD).
        check_in:     Timestamp of the first check-in, if any.
        check_out:    Timestamp of the first check-out, if any.
        activities:   All activities of the day, oldest first.
        diaper_count: Number of DIAPER activities.
        naps:         NAP activities, oldest first.
        meals:        MEAL activities (meals and bottles), oldest first.
        notes:        Non-empty notes of all activities, oldest first.
    """

    child_id: str
    date: str
    check_in: str | None = None
    check_out: str | None = None
    activities: list[Activity] = field(default_factory=list)
    diaper_count: int = 0
    naps: list[Activity] = field(default_factory=list)
    meals: list[Activity] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
