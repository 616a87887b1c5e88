from __future__ import annotations

import logging
import threading

import firebase_admin
from firebase_admin import credentials

from src.config import Settings, get_settings
from src.notifications.errors import ConfigurationError

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


def _build_credential(cfg: Settings) -> credentials.Certificate:
    if cfg.firebase_credentials_path:
        return credentials.Certificate(cfg.firebase_credentials_path)

    missing = [
        name
        for name, value in (
            ("FIREBASE_PROJECT_ID", cfg.firebase_project_id),
            ("FIREBASE_CLIENT_EMAIL", cfg.firebase_client_email),
            ("FIREBASE_PRIVATE_KEY", cfg.firebase_private_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Firebase credentials missing: {', '.join(missing)}")

    return credentials.Certificate(
        {
            "type": "service_account",
            "project_id": cfg.firebase_project_id,
            "client_email": cfg.firebase_client_email,
            "private_key": cfg.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }
    )


def get_firebase_app(cfg: Settings | None = None) -> firebase_admin.App:
    """Return the process-wide Firebase app, initialising it on first use."""
    cfg = cfg or get_settings()
    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            pass

        try:
            credential = _build_credential(cfg)
        except (ValueError, OSError) as exc:
            raise ConfigurationError(f"Firebase credentials are invalid: {exc}") from exc

        options = {"projectId": cfg.firebase_project_id} if cfg.firebase_project_id else None
        app = firebase_admin.initialize_app(credential, options)
        logger.info("Firebase Admin SDK initialised", extra={"project_id": app.project_id})
        return app
