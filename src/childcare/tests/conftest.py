"""Shared fixtures and fake Procare responses for childcare sync tests."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.childcare.storage.memory import InMemoryActivityStore
from src.childcare.vocabulary import Vocabulary, load_vocabulary

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

TEST_CHILD_ID = "kid-1"
TEST_NOW = datetime(2026, 2, 7, 10, 0, 0, tzinfo=timezone.utc)


def raw_activity(
    activity_id: str,
    kid_ids: list[str],
    activity_date: str,
    activity_type: str = "meal_activity",
    data: dict | None = None,
    **extra,
) -> dict:
    """Build a Procare daily activity record."""
    record = {
        "id": activity_id,
        "activity_type": activity_type,
        "activity_time": f"{activity_date}T12:00:00.000-08:00",
        "activity_date": activity_date,
        "data": data if data is not None else {"type": "Lunch", "quantity": "Most", "desc": "Pasta"},
        "kid_ids": kid_ids,
    }
    record.update(extra)
    return record


def make_response(body: object, status_code: int = 200, text: str | None = None) -> MagicMock:
    """Mock httpx.Response with the bits the adapter reads."""
    response = MagicMock()
    response.status_code = status_code
    response.json = MagicMock(return_value=body)
    response.text = text if text is not None else json.dumps(body)
    return response


class FakeProcareClient:
    """In-memory stand-in for ProcareClient used by engine tests."""

    def __init__(
        self,
        kids: list[dict] | None = None,
        activities_by_kid: dict[str, list[dict]] | None = None,
        auth_mode: str = "bearer",
    ) -> None:
        self.kids = kids or []
        self.activities_by_kid = activities_by_kid or {}
        self.auth_mode = auth_mode
        self.calls: list[tuple] = []

    async def get_kids(self) -> list[dict]:
        self.calls.append(("get_kids",))
        return list(self.kids)

    async def get_all_daily_activities(self, kid_id: str, date_to: str) -> list[dict]:
        self.calls.append(("get_all_daily_activities", kid_id, date_to))
        return [dict(a) for a in self.activities_by_kid.get(kid_id, [])]


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def vocabulary() -> Vocabulary:
    """Load the bundled vocabulary tables."""
    return load_vocabulary()


# ---------------------------------------------------------------------------
# JSON fixture loaders
# ---------------------------------------------------------------------------


@pytest.fixture
def kids_raw() -> dict:
    return json.loads((FIXTURES_DIR / "kids.json").read_text())


@pytest.fixture
def daily_activities_raw() -> dict:
    return json.loads((FIXTURES_DIR / "daily_activities.json").read_text())


# ---------------------------------------------------------------------------
# Stores and clients
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemoryActivityStore:
    return InMemoryActivityStore()


@pytest.fixture
def kid_one() -> dict:
    return {
        "id": TEST_CHILD_ID,
        "first_name": "Orla",
        "last_name": "Stewart",
        "dob": "2025-05-21",
        "current_section_name": "Infants",
    }


@pytest.fixture
def mock_httpx_client() -> MagicMock:
    """Mock httpx.AsyncClient for testing the adapter without real API calls."""
    client = MagicMock()
    client.get = AsyncMock(return_value=make_response({}))
    client.post = AsyncMock(return_value=make_response({}))
    return client
