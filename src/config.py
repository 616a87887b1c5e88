from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote_plus


SUPPORTED_APP_ENVS = {"SIT", "UAT"}
SUPPORTED_PROVIDERS = {"mock", "fcm"}
SUPPORTED_TOKEN_STORES = {"memory", "sql", "firestore"}


def _current_app_env() -> str:
    default_env = "UAT" if os.getenv("RAILWAY_ENVIRONMENT", "").strip() else "SIT"
    raw = os.getenv("APP_ENV", default_env).strip().upper()
    if not raw:
        return default_env
    if raw not in SUPPORTED_APP_ENVS:
        raise ValueError(f"Invalid APP_ENV: {raw}. Supported values: {sorted(SUPPORTED_APP_ENVS)}")
    return raw


def _get_first_set(*env_names: str) -> str:
    for env_name in env_names:
        value = os.getenv(env_name, "").strip()
        if value:
            return value
    return ""


def _normalize_database_url(raw_url: str) -> str:
    if not raw_url:
        return raw_url
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+psycopg2://", 1)
    if raw_url.startswith("postgresql://") and "+" not in raw_url.split("://", 1)[0]:
        return raw_url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return raw_url


def _build_database_url() -> str:
    prefix = _current_app_env()
    explicit = _get_first_set(f"{prefix}_DATABASE_URL", "DATABASE_URL")
    if explicit:
        return _normalize_database_url(explicit)

    host = _get_first_set(f"{prefix}_PGHOST", "PGHOST")
    port = _get_first_set(f"{prefix}_PGPORT", "PGPORT") or "5432"
    user = _get_first_set(f"{prefix}_PGUSER", "PGUSER")
    password = _get_first_set(f"{prefix}_PGPASSWORD", "PGPASSWORD")
    database = _get_first_set(f"{prefix}_PGDATABASE", "PGDATABASE")
    if host and user and database:
        return f"postgresql+psycopg2://{user}:{quote_plus(password)}@{host}:{port}/{database}"

    # Local dev fallback when DATABASE_URL is not set.
    sqlite_file = Path(os.getenv("SQLITE_DB_PATH", "./study_hall.db")).as_posix()
    if sqlite_file.startswith("/"):
        return f"sqlite:///{sqlite_file}"
    return f"sqlite:///./{sqlite_file.lstrip('./')}"


def _choice(env_name: str, default: str, allowed: set[str]) -> str:
    raw = os.getenv(env_name, default).strip().lower() or default
    if raw not in allowed:
        raise ValueError(f"Invalid {env_name}: {raw}. Supported values: {sorted(allowed)}")
    return raw


def _private_key() -> str:
    # Hosting dashboards store the PEM on one line with escaped newlines.
    return os.getenv("FIREBASE_PRIVATE_KEY", "").replace("\\n", "\n")


@dataclass(frozen=True)
class Settings:
    app_env: str = _current_app_env()
    app_name: str = os.getenv("APP_NAME", "study_hall_push")
    app_debug: bool = os.getenv("APP_DEBUG", "false").lower() == "true"
    app_host: str = os.getenv("APP_HOST", "0.0.0.0")
    app_port: int = int(os.getenv("APP_PORT", "8004"))

    database_url: str = _build_database_url()
    db_schema: str = _get_first_set("DB_SCHEMA") or "study_hall"

    notification_provider: str = _choice("NOTIFICATION_PROVIDER", "mock", SUPPORTED_PROVIDERS)
    token_store: str = _choice("TOKEN_STORE", "sql", SUPPORTED_TOKEN_STORES)

    push_batch_limit: int = int(os.getenv("PUSH_BATCH_LIMIT", "500"))
    push_dispatch_workers: int = int(os.getenv("PUSH_DISPATCH_WORKERS", "4"))
    push_max_retries: int = int(os.getenv("PUSH_MAX_RETRIES", "0"))
    push_retry_backoff_seconds: float = float(os.getenv("PUSH_RETRY_BACKOFF_SECONDS", "1.0"))
    notification_icon_url: str = os.getenv("NOTIFICATION_ICON_URL", "https://studyhall.app/logo.png")

    firebase_project_id: str = _get_first_set("FIREBASE_PROJECT_ID", "NEXT_PUBLIC_FIREBASE_PROJECT_ID")
    firebase_client_email: str = os.getenv("FIREBASE_CLIENT_EMAIL", "").strip()
    firebase_private_key: str = _private_key()
    firebase_credentials_path: str = os.getenv("FIREBASE_CREDENTIALS_PATH", "").strip()


settings = Settings()


def get_settings() -> Settings:
    return settings
