"""Tests for Procare → canonical model normalization."""

from __future__ import annotations

import pytest

from src.childcare.base import (
    UNKNOWN_CHILD_ID,
    ActivityType,
    BottleDetails,
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
from src.childcare.mapper import (
    ACTIVITY_HANDLERS,
    compose_timestamp,
    map_activity,
    map_kid,
)
from src.childcare.tests.conftest import raw_activity
from src.childcare.vocabulary import Vocabulary


def _by_id(daily_activities_raw: dict, activity_id: str) -> dict:
    return next(a for a in daily_activities_raw["daily_activities"] if a["id"] == activity_id)


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


class TestMapKid:
    def test_projects_fields(self, kids_raw: dict, vocabulary: Vocabulary) -> None:
        child = map_kid(kids_raw["kids"][0], vocabulary)
        assert child.id == "kid-1"
        assert child.first_name == "Orla"
        assert child.last_name == "Stewart"
        assert child.classroom == "Infants"
        assert child.date_of_birth == "2025-05-21"

    def test_missing_classroom_defaults_to_unknown(
        self, kids_raw: dict, vocabulary: Vocabulary
    ) -> None:
        child = map_kid(kids_raw["kids"][1], vocabulary)
        assert child.classroom == "Unknown"


# ---------------------------------------------------------------------------
# Per-type mapping
# ---------------------------------------------------------------------------


class TestActivityKinds:
    def test_diaper_condition_mapped(
        self, daily_activities_raw: dict, vocabulary: Vocabulary
    ) -> None:
        [activity] = map_activity(_by_id(daily_activities_raw, "act-diaper"), vocabulary)
        assert activity.type == ActivityType.DIAPER
        assert activity.details == DiaperDetails(condition="wet+bm")
        # empty comment is not a note
        assert activity.notes is None
        assert activity.reported_by == "Ms. Rivera"

    @pytest.mark.parametrize(
        "sub_type,expected",
        [("Wet", "wet"), ("BM", "bm"), ("Dry", "dry"), ("Mystery", "wet"), (None, "wet")],
    )
    def test_diaper_vocabulary_fallback(
        self, sub_type: str | None, expected: str, vocabulary: Vocabulary
    ) -> None:
        raw = raw_activity(
            "d1", ["kid-1"], "2026-02-06", "bathroom_activity", data={"sub_type": sub_type}
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.details.condition == expected

    def test_meal_details(self, daily_activities_raw: dict, vocabulary: Vocabulary) -> None:
        [activity] = map_activity(_by_id(daily_activities_raw, "act-lunch"), vocabulary)
        assert activity.type == ActivityType.MEAL
        assert activity.details == MealDetails(
            meal_type="lunch", items=["Pasta and peas"], amount="most"
        )
        assert activity.notes == "Loved the peas"

    def test_meal_unknown_labels_fall_back(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity(
            "m1", ["kid-1"], "2026-02-06", data={"type": "Brunch", "quantity": "Half"}
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.details.meal_type == "snack"
        assert activity.details.amount is None
        assert activity.details.items == []

    def test_am_snack_is_snack(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("m2", ["kid-1"], "2026-02-06", data={"type": "AM Snack"})
        [activity] = map_activity(raw, vocabulary)
        assert activity.details.meal_type == "snack"

    def test_bottle_parses_numbers_leniently(
        self, daily_activities_raw: dict, vocabulary: Vocabulary
    ) -> None:
        [activity] = map_activity(_by_id(daily_activities_raw, "act-bottle"), vocabulary)
        assert activity.type == ActivityType.MEAL
        assert activity.details == BottleDetails(amount=4.5, bottle_consumed=None)

    def test_bottle_missing_amount_is_none(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("b1", ["kid-1"], "2026-02-06", "bottle_activity", data={})
        [activity] = map_activity(raw, vocabulary)
        assert activity.details.amount is None

    def test_nap_composes_timestamps(
        self, daily_activities_raw: dict, vocabulary: Vocabulary
    ) -> None:
        [activity] = map_activity(_by_id(daily_activities_raw, "act-nap"), vocabulary)
        assert activity.type == ActivityType.NAP
        assert activity.timestamp == "2026-02-06T12:40:00"
        assert activity.end_time == "2026-02-06T14:10:00"
        assert activity.details == NapDetails(duration_minutes=90)

    def test_nap_without_times_uses_activity_time(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("n1", ["kid-1"], "2026-02-06", "nap_activity", data={})
        [activity] = map_activity(raw, vocabulary)
        assert activity.timestamp == "2026-02-06T12:00:00.000-08:00"
        assert activity.end_time is None
        assert activity.details.duration_minutes is None

    def test_sign_in_prefers_activiable(
        self, daily_activities_raw: dict, vocabulary: Vocabulary
    ) -> None:
        [activity] = map_activity(_by_id(daily_activities_raw, "act-signin"), vocabulary)
        assert activity.type == ActivityType.CHECK_IN
        assert activity.timestamp == "2026-02-06T08:01:30.000-08:00"
        assert activity.reported_by == "Sam Stewart"
        assert activity.details == SignDetails(section="Infants")

    def test_sign_out_prefers_activiable(
        self, daily_activities_raw: dict, vocabulary: Vocabulary
    ) -> None:
        [activity] = map_activity(_by_id(daily_activities_raw, "act-signout"), vocabulary)
        assert activity.type == ActivityType.CHECK_OUT
        assert activity.timestamp == "2026-02-06T17:04:12.000-08:00"
        assert activity.reported_by == "Dana Stewart"

    def test_sign_in_without_activiable(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity(
            "s1", ["kid-1"], "2026-02-06", "sign_in_activity", staff_present_name="Ms. Lee"
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.timestamp == raw["activity_time"]
        assert activity.reported_by == "Ms. Lee"
        assert activity.details.section is None

    def test_learning_details(self, daily_activities_raw: dict, vocabulary: Vocabulary) -> None:
        activities = map_activity(_by_id(daily_activities_raw, "act-learning"), vocabulary)
        assert activities[0].type == ActivityType.LEARNING
        assert activities[0].details == LearningDetails(
            activity_name="Sensory Play",
            categories=["Fine Motor", "Science"],
            photo_url="https://photos.example/learning.jpg",
        )
        # no comment, so the description becomes the note
        assert activities[0].notes == "Sensory bin with rice"

    def test_note_prefers_description(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity(
            "n2", ["kid-1"], "2026-02-06", "note_activity",
            data={"desc": "Bring extra socks"}, comment="ignored",
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.type == ActivityType.NOTE
        assert activity.details == NoteDetails()
        assert activity.notes == "Bring extra socks"

    def test_mood_is_note(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("mo1", ["kid-1"], "2026-02-06", "mood_activity", data={"type": "Happy"})
        [activity] = map_activity(raw, vocabulary)
        assert activity.type == ActivityType.NOTE
        assert activity.details == MoodDetails(mood="Happy")

    def test_incident(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity(
            "i1", ["kid-1"], "2026-02-06", "incident_activity",
            data={"desc": "Bumped knee on slide"},
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.type == ActivityType.INCIDENT
        assert activity.details == IncidentDetails(description="Bumped knee on slide", action="")

    def test_medication(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity(
            "med1", ["kid-1"], "2026-02-06", "medication_activity",
            data={"name": "Ibuprofen", "dosage": "2.5 ml", "start_time": "13:15"},
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.type == ActivityType.MEDICATION
        assert activity.details == MedicationDetails(
            name="Ibuprofen", dosage="2.5 ml", time="2026-02-06T13:15:00"
        )

    def test_photo(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity(
            "p1", ["kid-1"], "2026-02-06", "photo_activity",
            photo_url="https://photos.example/p1.jpg",
        )
        [activity] = map_activity(raw, vocabulary)
        assert activity.type == ActivityType.PHOTO
        assert activity.details == PhotoDetails(photo_url="https://photos.example/p1.jpg")

    def test_every_handler_tag_is_an_activity_suffix(self) -> None:
        assert all(tag.endswith("_activity") for tag in ACTIVITY_HANDLERS)


# ---------------------------------------------------------------------------
# Fallback, fan-out, ids
# ---------------------------------------------------------------------------


class TestUnrecognizedActivity:
    def test_unknown_type_preserved_as_note(self, vocabulary: Vocabulary) -> None:
        data = {"temperature": "98.6", "unit": "F"}
        raw = raw_activity("u1", ["kid-1"], "2026-02-06", "temperature_activity", data=data)
        activities = map_activity(raw, vocabulary)
        assert len(activities) == 1
        assert activities[0].type == ActivityType.NOTE
        assert activities[0].details == UnrecognizedDetails(
            upstream_type="temperature_activity", data=data
        )

    def test_missing_type_and_data(self, vocabulary: Vocabulary) -> None:
        raw = {"id": "u2", "activity_time": "2026-02-06T09:00:00", "kid_ids": ["kid-1"]}
        [activity] = map_activity(raw, vocabulary)
        assert activity.details == UnrecognizedDetails(upstream_type="", data={})

    def test_missing_id_gets_content_derived_id(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("placeholder", ["kid-1"], "2026-02-06")
        del raw["id"]
        [first] = map_activity(raw, vocabulary)
        [again] = map_activity(dict(reversed(list(raw.items()))), vocabulary)

        assert first.id.startswith("noid-")
        assert len(first.id) == len("noid-") + 16
        assert first.source_id == first.id
        assert again.id == first.id
        assert first.type == ActivityType.MEAL

    def test_missing_ids_differ_by_content(self, vocabulary: Vocabulary) -> None:
        lunch = raw_activity("", ["kid-1"], "2026-02-06")
        snack = raw_activity("", ["kid-1"], "2026-02-06", data={"type": "Snack"})
        [a] = map_activity(lunch, vocabulary)
        [b] = map_activity(snack, vocabulary)
        assert a.id != b.id


class TestFanOut:
    def test_one_activity_per_child(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("shared", ["kid-a", "kid-b"], "2026-02-06")
        activities = map_activity(raw, vocabulary)
        assert [a.child_id for a in activities] == ["kid-a", "kid-b"]
        assert activities[0].details == activities[1].details
        assert activities[0].details is not activities[1].details
        assert {a.source_id for a in activities} == {"shared"}

    def test_fanned_out_ids_are_distinct(self, vocabulary: Vocabulary) -> None:
        raw = raw_activity("shared", ["kid-a", "kid-b"], "2026-02-06")
        ids = [a.id for a in map_activity(raw, vocabulary)]
        assert ids == ["shared:kid-a", "shared:kid-b"]

    def test_single_child_keeps_upstream_id(self, vocabulary: Vocabulary) -> None:
        [activity] = map_activity(raw_activity("solo", ["kid-a"], "2026-02-06"), vocabulary)
        assert activity.id == "solo"
        assert activity.source_id == "solo"

    @pytest.mark.parametrize("kid_ids", [[], None])
    def test_no_children_uses_sentinel(self, kid_ids, vocabulary: Vocabulary) -> None:
        raw = raw_activity("orphan", [], "2026-02-06")
        raw["kid_ids"] = kid_ids
        [activity] = map_activity(raw, vocabulary)
        assert activity.child_id == UNKNOWN_CHILD_ID
        assert activity.id == "orphan"


class TestComposeTimestamp:
    def test_short_form_gets_seconds(self) -> None:
        assert compose_timestamp("2026-02-06", "09:30") == "2026-02-06T09:30:00"

    def test_long_form_kept(self) -> None:
        assert compose_timestamp("2026-02-06", "09:30:15") == "2026-02-06T09:30:15"

    @pytest.mark.parametrize("value", [None, "", "   ", 930])
    def test_blank_or_missing(self, value) -> None:
        assert compose_timestamp("2026-02-06", value) is None

    def test_missing_date(self) -> None:
        assert compose_timestamp(None, "09:30") is None
