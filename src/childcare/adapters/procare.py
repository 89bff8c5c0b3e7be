"""Procare Connect parent API adapter.

Supports two ways of presenting the session token, selected per client:

    bearer — ``Authorization: Bearer <token>`` header (default)
    query  — ``?auth_token=<token>`` query parameter

Some Procare deployments reject one mode and accept the other.  The client
never retries on its own; a call site that gets a 401/403 in bearer mode can
build a sibling with ``with_auth_mode("query")`` and try again.

API bases:
    https://online-auth.procareconnect.com       — session / token exchange
    https://api-school.procareconnect.com/api/web — parent API

Endpoints used:
    POST /sessions/                  — email + password → auth_token
    GET  /user/                      — current parent account
    GET  /parent/kids/               — children visible to the parent
    GET  /list_options/              — labels for meal/diaper/activity types
    GET  /parent/daily_activities/   — paginated activity feed per kid
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

import httpx

from src.childcare.errors import AuthenticationError, UpstreamRequestError

logger = logging.getLogger("procare_sync.client")

AuthMode = Literal["bearer", "query"]

DEFAULT_API_BASE_URL = "https://api-school.procareconnect.com/api/web"
DEFAULT_AUTH_BASE_URL = "https://online-auth.procareconnect.com"
DEFAULT_MIN_REQUEST_INTERVAL_MS = 1200

_ACCEPT = "application/json, text/plain, */*"


@dataclass
class ActivityPage:
    """One page of the daily activity feed.

    Attributes:
        page:     Page number reported by the API.
        per_page: Page size reported by the API.
        items:    Raw daily activity records.
    """

    page: int
    per_page: int
    items: list[dict] = field(default_factory=list)


@dataclass
class AuthResult:
    auth_token: str
    raw: Any = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def extract_auth_token(payload: Any) -> str | None:
    """Find the session token in a /sessions/ response.

    Procare has returned it at the top level, under ``user``, under ``data``
    and under ``data.user``; the first one present wins.
    """
    if not isinstance(payload, dict):
        return None
    data = _as_dict(payload.get("data"))
    candidates = (
        payload.get("auth_token"),
        _as_dict(payload.get("user")).get("auth_token"),
        data.get("auth_token"),
        _as_dict(data.get("user")).get("auth_token"),
    )
    for token in candidates:
        if token:
            return str(token)
    return None


def _as_dict(value: object) -> dict:
    return value if isinstance(value, dict) else {}


async def authenticate(
    email: str,
    password: str,
    base_url: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AuthResult:
    """Exchange parent credentials for a Procare session token.

    Args:
        email:       Parent account email.
        password:    Parent account password.
        base_url:    Auth service base URL override.
        http_client: Optional pre-configured httpx client (for testing).

    Returns:
        AuthResult with the token and the raw response body.

    Raises:
        AuthenticationError: Credentials rejected, or no token in the response.
    """
    url = f"{(base_url or DEFAULT_AUTH_BASE_URL).rstrip('/')}/sessions/"
    body = {"email": email, "password": password, "role": "carer", "platform": "web"}
    headers = {
        "Accept": _ACCEPT,
        "Content-Type": "application/json",
        "Referer": "https://schools.procareconnect.com/",
    }

    logger.info("Procare: authenticating %s", email)

    if http_client:
        response = await http_client.post(url, json=body, headers=headers)
    else:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=body, headers=headers)

    if not 200 <= response.status_code < 300:
        raise AuthenticationError(
            f"Procare authentication failed ({response.status_code}): "
            f"{response.text or 'no response body'}",
            status_code=response.status_code,
        )

    payload = response.json()
    token = extract_auth_token(payload)
    if not token:
        raise AuthenticationError(
            "Procare authentication succeeded but no auth token was returned.",
            status_code=response.status_code,
        )
    return AuthResult(auth_token=token, raw=payload)


# ---------------------------------------------------------------------------
# Parent API client
# ---------------------------------------------------------------------------


class ProcareClient:
    """Rate-limited client for the Procare parent API.

    Every request waits until at least ``min_request_interval_ms`` has passed
    since the previous request made by this instance.  The wait and the
    timestamp update happen under one ``asyncio.Lock``, so tasks sharing a
    client are serialized rather than racing on the last-request time.
    """

    def __init__(
        self,
        auth_token: str,
        base_url: str | None = None,
        auth_mode: AuthMode = "bearer",
        min_request_interval_ms: int = DEFAULT_MIN_REQUEST_INTERVAL_MS,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            auth_token:              Procare session token.
            base_url:                Parent API base URL override.
            auth_mode:               "bearer" or "query".
            min_request_interval_ms: Minimum spacing between requests; <= 0 disables.
            http_client:             Optional pre-configured httpx client (for testing).
            clock:                   Monotonic clock in seconds.
            sleep:                   Async sleep used for throttling.
        """
        if auth_mode not in ("bearer", "query"):
            raise ValueError(f"Unsupported auth mode: {auth_mode!r}")
        self._auth_token = auth_token
        self._base_url = (base_url or DEFAULT_API_BASE_URL).rstrip("/")
        self._auth_mode = auth_mode
        self._min_interval_s = max(min_request_interval_ms, 0) / 1000.0
        self._http_client = http_client
        self._clock = clock
        self._sleep = sleep
        self._last_request_at: float | None = None
        self._throttle_lock = asyncio.Lock()

    @property
    def auth_mode(self) -> AuthMode:
        return self._auth_mode

    def with_auth_mode(self, auth_mode: AuthMode) -> "ProcareClient":
        """Return a client identical to this one but using ``auth_mode``."""
        return ProcareClient(
            auth_token=self._auth_token,
            base_url=self._base_url,
            auth_mode=auth_mode,
            min_request_interval_ms=int(self._min_interval_s * 1000),
            http_client=self._http_client,
            clock=self._clock,
            sleep=self._sleep,
        )

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_user(self) -> dict:
        return await self._get("/user/")

    async def get_list_options(self) -> dict:
        return await self._get("/list_options/")

    async def get_kids(self) -> list[dict]:
        """Fetch every child visible to the parent account."""
        data = await self._get("/parent/kids/")
        return list(data.get("kids") or [])

    async def get_daily_activities(
        self, kid_id: str, date_to: str, page: int = 1
    ) -> ActivityPage:
        """Fetch one page of a child's activity feed, newest first, up to ``date_to``.

        Args:
            kid_id:  Procare kid id.
            date_to: Inclusive upper bound (YYYY-MM-DD).
            page:    1-based page number.
        """
        data = await self._get(
            "/parent/daily_activities/",
            params={
                "kid_id": kid_id,
                "filters[daily_activity][date_to]": date_to,
                "page": str(page),
            },
        )
        return ActivityPage(
            page=_as_int(data.get("page"), page),
            per_page=_as_int(data.get("per_page"), 0),
            items=list(data.get("daily_activities") or []),
        )

    async def get_all_daily_activities(self, kid_id: str, date_to: str) -> list[dict]:
        """Walk the activity feed from page 1 until a short page.

        Stops when a page holds fewer items than ``per_page``, or when
        ``per_page`` is zero or negative.  No total count is needed.
        """
        page = 1
        activities: list[dict] = []

        while True:
            response = await self.get_daily_activities(kid_id, date_to, page=page)
            activities.extend(response.items)

            if response.per_page <= 0 or len(response.items) < response.per_page:
                break
            page += 1

        logger.debug(
            "Procare: fetched %d activities for kid %s over %d page(s)",
            len(activities), kid_id, page,
        )
        return activities

    # ------------------------------------------------------------------
    # Private HTTP helpers
    # ------------------------------------------------------------------

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": _ACCEPT}
        if self._auth_mode == "bearer":
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    def _build_params(self, params: dict[str, str] | None) -> dict[str, str]:
        merged = dict(params or {})
        if self._auth_mode == "query":
            merged["auth_token"] = self._auth_token
        return merged

    async def _wait_for_throttle(self) -> None:
        """Sleep out the rest of the minimum interval. Caller holds the lock."""
        if self._min_interval_s <= 0 or self._last_request_at is None:
            return
        remaining = self._min_interval_s - (self._clock() - self._last_request_at)
        if remaining > 0:
            await self._sleep(remaining)

    async def _get(self, path: str, params: dict[str, str] | None = None) -> dict:
        """Make a throttled, authenticated GET request.

        Raises:
            UpstreamRequestError: On non-2xx responses.
        """
        url = f"{self._base_url}{path if path.startswith('/') else '/' + path}"
        headers = self._build_headers()
        query = self._build_params(params)

        async with self._throttle_lock:
            await self._wait_for_throttle()
            try:
                if self._http_client:
                    response = await self._http_client.get(url, params=query, headers=headers)
                else:
                    async with httpx.AsyncClient() as client:
                        response = await client.get(url, params=query, headers=headers)
            finally:
                self._last_request_at = self._clock()

        if not 200 <= response.status_code < 300:
            raise UpstreamRequestError(response.status_code, response.text, path)
        return response.json()


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
