#!/usr/bin/env python3
"""
Setup Verification Script

Checks configuration and backing services for the crisis core before a
deployment takes traffic. The crisis event log is required; Redis,
the email provider and the reverse geocoder degrade gracefully.

Usage:
    python scripts/verify_setup.py
"""

import asyncio
import importlib.util
import sys
from dataclasses import dataclass
from pathlib import Path

import httpx

from crisis_core.config import get_settings

PROJECT_ROOT = Path(__file__).resolve().parent.parent

REQUIRED_MODULES = (
    "fastapi",
    "uvicorn",
    "pydantic_settings",
    "sqlalchemy",
    "aiosqlite",
    "redis",
    "httpx",
)

GREEN, YELLOW, RED, RESET = "\033[92m", "\033[93m", "\033[91m", "\033[0m"


@dataclass
class CheckResult:
    name: str
    passed: bool
    message: str = ""
    critical: bool = False

    def show(self) -> None:
        if self.passed:
            label = f"{GREEN}[PASS]{RESET}"
        elif self.critical:
            label = f"{RED}[FAIL]{RESET}"
        else:
            label = f"{YELLOW}[WARN]{RESET}"
        suffix = f" - {self.message}" if self.message else ""
        print(f"  {label} {self.name}{suffix}")


def section(title: str) -> None:
    print(f"\n{'=' * 60}\n {title}\n{'=' * 60}")


def check_environment() -> list[CheckResult]:
    results = []

    env_file = PROJECT_ROOT / ".env"
    results.append(CheckResult(
        ".env file",
        env_file.exists(),
        "Found" if env_file.exists() else "Not found, using defaults and process environment",
    ))

    missing = [name for name in REQUIRED_MODULES if importlib.util.find_spec(name) is None]
    results.append(CheckResult(
        "Python packages",
        not missing,
        f"Missing: {', '.join(missing)}" if missing else "All required packages importable",
        critical=True,
    ))
    return results


def check_configuration() -> list[CheckResult]:
    settings = get_settings()

    if settings.notifications_configured:
        provider = CheckResult("Email provider", True, f"Configured ({settings.notification_user_id[:4]}...)")
    else:
        provider = CheckResult(
            "Email provider",
            False,
            "NOTIFICATION_SERVICE_ID / TEMPLATE_ID / USER_ID not set, alerts become mail drafts",
        )

    real_recipient = not settings.clinician_email.endswith("@example.org")
    recipient = CheckResult(
        "CLINICIAN_EMAIL",
        real_recipient,
        settings.clinician_email if real_recipient else "Still the example address",
    )

    # Strip credentials before echoing connection URLs
    info = [
        CheckResult("AUDIT_DATABASE_URL", True, settings.audit_database_url.rsplit("@", 1)[-1]),
        CheckResult("REDIS_URL", True, settings.redis_url.rsplit("@", 1)[-1]),
        CheckResult("Session TTL", True, f"{settings.redis_session_ttl}s"),
        CheckResult("APP_ENV", True, settings.app_env),
    ]
    return [provider, recipient, *info]


async def check_event_log() -> CheckResult:
    from crisis_core.infra.database import check_db_health, close_db, init_db

    try:
        await init_db()
        healthy = await check_db_health()
    except Exception as e:
        return CheckResult("Crisis event log", False, f"{type(e).__name__}: {str(e)[:60]}", critical=True)
    finally:
        await close_db()

    return CheckResult(
        "Crisis event log",
        healthy,
        "Writable" if healthy else "Not reachable",
        critical=True,
    )


async def check_session_store() -> CheckResult:
    from crisis_core.infra.redis import RedisClient, check_redis_health

    try:
        healthy = await check_redis_health()
    finally:
        await RedisClient.close()

    return CheckResult(
        "Redis",
        healthy,
        "Connected" if healthy else "Unavailable, session state stays in process memory",
    )


async def check_geocoder() -> CheckResult:
    settings = get_settings()
    try:
        async with httpx.AsyncClient(timeout=settings.geolocation_timeout) as client:
            response = await client.get(
                settings.reverse_geocode_url,
                params={"latitude": 41.4993, "longitude": -81.6944, "localityLanguage": "en"},
            )
    except httpx.HTTPError as e:
        return CheckResult("Reverse geocoder", False, f"Not reachable ({type(e).__name__}), text locations still work")

    if response.status_code != 200:
        return CheckResult("Reverse geocoder", False, f"Responded with {response.status_code}")
    return CheckResult("Reverse geocoder", True, f"Resolved Cleveland test point to {response.json().get('city') or 'no city'}")


async def main() -> int:
    print(f"\n{'=' * 60}\n Roger Crisis Core - Setup Verification\n{'=' * 60}")
    results: list[CheckResult] = []

    section("Environment")
    for result in check_environment():
        result.show()
        results.append(result)

    section("Configuration")
    for result in check_configuration():
        result.show()
        results.append(result)

    section("Service Connections")
    for check in (check_event_log, check_session_store, check_geocoder):
        result = await check()
        result.show()
        results.append(result)

    section("Summary")
    failed = [r for r in results if not r.passed]
    if any(r.critical for r in failed):
        print(f"\n  {RED}CRITICAL: turns cannot be recorded until the failures above are fixed.{RESET}\n")
        return 1
    if failed:
        print(f"\n  {YELLOW}Running degraded: {', '.join(r.name for r in failed)}.{RESET}\n")
        return 0

    print(f"\n  {GREEN}All checks passed.{RESET} Start with:\n    uvicorn crisis_core.main:app --reload\n")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
