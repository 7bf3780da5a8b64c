from __future__ import annotations

import os

from syncledger.api.routers.sync_config import sync_postgres_dsn, sync_store_backend_name

_PRODUCTION_PROFILE = "PRODUCTION"
_LOCAL_PROFILE = "LOCAL"


def app_persistence_profile_name() -> str:
    profile = os.getenv("APP_PERSISTENCE_PROFILE", _LOCAL_PROFILE).strip().upper()
    return _PRODUCTION_PROFILE if profile == _PRODUCTION_PROFILE else _LOCAL_PROFILE


def validate_persistence_profile_guardrails() -> None:
    """Refuse to start a production profile on a non-durable or unconfigured store."""
    if app_persistence_profile_name() != _PRODUCTION_PROFILE:
        return
    if sync_store_backend_name() != "POSTGRES":
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_SYNC_POSTGRES")
    if not sync_postgres_dsn():
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_SYNC_POSTGRES_DSN")
