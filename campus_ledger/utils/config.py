"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Tests derive variants with ``dataclasses.replace`` instead of mutating
    environment variables.
    """

    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    store_timeout_seconds: float
    fine_rate_per_day: float
    default_loan_days: int
    max_loan_days: int
    admin_token: str | None
    session_ttl_seconds: int
    seed_demo_data: bool
    demo_tenant_id: str


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_path = os.getenv("DATABASE_PATH")
    return Settings(
        app_name=os.getenv("APP_NAME", "Campus Ledger"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=(
            Path(database_path)
            if database_path
            else PROJECT_ROOT / "data" / "campus_ledger.db"
        ),
        store_timeout_seconds=_env_float("STORE_TIMEOUT_SECONDS", 5.0),
        fine_rate_per_day=_env_float("FINE_RATE_PER_DAY", 5.0),
        default_loan_days=_env_int("DEFAULT_LOAN_DAYS", 14),
        max_loan_days=_env_int("MAX_LOAN_DAYS", 180),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        session_ttl_seconds=_env_int("SESSION_TTL_SECONDS", 24 * 60 * 60),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", False),
        demo_tenant_id=os.getenv("DEMO_TENANT_ID", "CAMPUS_A"),
    )
