"""procare-sync command line entry point.

Run locally:
    python -m src.main                      # sync every child
    python -m src.main --child kid-1 --since 2026-02-01
    python -m src.main --init-schema        # create tables first
    python -m src.main --dry-run            # sync into memory, print summary
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from src.childcare.adapters.procare import ProcareClient, authenticate
from src.childcare.errors import ChildcareSyncError, UpstreamRequestError
from src.childcare.storage import ActivityStore, InMemoryActivityStore, PostgresActivityStore
from src.childcare.sync.engine import SyncEngine
from src.config import Settings, get_settings
from src.services.database import bootstrap_schema, close_pool, init_pool

logger = logging.getLogger("procare_sync")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procare-sync",
        description="Sync Procare children and daily activities into the local store.",
    )
    parser.add_argument("--child", help="Sync only this child id (skips the children refresh).")
    parser.add_argument(
        "--since",
        type=date.fromisoformat,
        help="Lower bound date (YYYY-MM-DD); overrides the stored watermark.",
    )
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create or migrate the database schema before syncing.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write into an in-memory store instead of Postgres.",
    )
    return parser


async def resolve_auth_token(settings: Settings, http_client: httpx.AsyncClient) -> str:
    """Use the configured token, or log in with email and password."""
    if settings.procare_auth_token:
        return settings.procare_auth_token

    if not settings.procare_authentication_email or not settings.procare_authentication_password:
        raise ChildcareSyncError(
            "Missing auth credentials. Set PROCARE_AUTH_TOKEN or "
            "PROCARE_AUTHENTICATION_EMAIL/PROCARE_AUTHENTICATION_PASSWORD."
        )

    result = await authenticate(
        settings.procare_authentication_email,
        settings.procare_authentication_password,
        base_url=settings.procare_auth_base_url,
        http_client=http_client,
    )
    return result.auth_token


async def _run_once(engine: SyncEngine, args: argparse.Namespace) -> dict:
    since = args.since.isoformat() if args.since else None
    if args.child:
        result = await engine.sync_child(args.child, since_date=since)
        return result.to_json()
    summary = await engine.sync_all(since_date=since)
    return summary.to_json()


def resolve_timezone(settings: Settings) -> tzinfo:
    """Zone used for "today": PROCARE_TIMEZONE, else the host's local zone."""
    if settings.procare_timezone:
        try:
            return ZoneInfo(settings.procare_timezone)
        except ZoneInfoNotFoundError as exc:
            raise ChildcareSyncError(
                f"Unknown PROCARE_TIMEZONE {settings.procare_timezone!r}"
            ) from exc
    return datetime.now().astimezone().tzinfo


async def run_sync(
    client: ProcareClient,
    store: ActivityStore,
    settings: Settings,
    args: argparse.Namespace,
) -> dict:
    """Run the sync, retrying once in query auth mode if bearer auth is refused."""
    tz = resolve_timezone(settings)
    engine = SyncEngine(
        client, store, sync_days_back=settings.procare_sync_days_back, tz=tz
    )
    try:
        return await _run_once(engine, args)
    except UpstreamRequestError as exc:
        if not exc.is_auth_error or client.auth_mode != "bearer":
            raise
        logger.warning(
            "Bearer auth rejected (%d) for %s, retrying with query-string token",
            exc.status_code, exc.path,
        )
        fallback = SyncEngine(
            client.with_auth_mode("query"),
            store,
            sync_days_back=settings.procare_sync_days_back,
            tz=tz,
        )
        return await _run_once(fallback, args)


async def _main(args: argparse.Namespace, settings: Settings) -> dict:
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        token = await resolve_auth_token(settings, http_client)
        client = ProcareClient(
            token,
            base_url=settings.procare_api_base_url,
            auth_mode=settings.procare_api_auth_mode,
            min_request_interval_ms=settings.procare_min_request_interval_ms,
            http_client=http_client,
        )

        if args.dry_run:
            return await run_sync(client, InMemoryActivityStore(), settings, args)

        pool = await init_pool(settings)
        try:
            if args.init_schema:
                await bootstrap_schema()
            return await run_sync(client, PostgresActivityStore(pool), settings, args)
        finally:
            await close_pool()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        "Starting %s v%s [%s]",
        settings.app_name,
        settings.app_version,
        settings.environment,
    )

    try:
        result = asyncio.run(_main(args, settings))
    except ChildcareSyncError as exc:
        logger.error("Sync failed: %s", exc)
        return 1
    except httpx.HTTPError as exc:
        logger.error("Sync failed, Procare unreachable: %s", exc)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
