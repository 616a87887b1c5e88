from __future__ import annotations

import logging

from src.config import Settings, get_settings
from src.notifications.dispatcher import Dispatcher
from src.notifications.firebase import get_firebase_app
from src.notifications.providers import BaseNotificationProvider, FCMNotificationProvider, MockNotificationProvider
from src.notifications.service import NotificationService
from src.storage.repository import InMemoryTokenStore, TokenStore
from src.storage.sql_store import SqlTokenStore

logger = logging.getLogger(__name__)


def build_token_store(cfg: Settings) -> TokenStore:
    if cfg.token_store == "firestore":
        from src.storage.firestore_store import FirestoreTokenStore

        return FirestoreTokenStore.from_app(get_firebase_app(cfg))
    if cfg.token_store == "memory":
        return InMemoryTokenStore()
    return SqlTokenStore()


def build_provider(cfg: Settings) -> BaseNotificationProvider:
    if cfg.notification_provider == "fcm":
        return FCMNotificationProvider(app=get_firebase_app(cfg))
    return MockNotificationProvider()


def build_notification_service(cfg: Settings | None = None) -> NotificationService:
    """Wire store, provider and dispatcher once; raises ConfigurationError on bad credentials."""
    cfg = cfg or get_settings()
    store = build_token_store(cfg)
    provider = build_provider(cfg)
    dispatcher = Dispatcher(
        provider,
        max_workers=cfg.push_dispatch_workers,
        max_retries=cfg.push_max_retries,
        retry_backoff_seconds=cfg.push_retry_backoff_seconds,
    )
    logger.info(
        "Notification service ready",
        extra={"provider": provider.name, "token_store": cfg.token_store, "batch_limit": cfg.push_batch_limit},
    )
    return NotificationService(
        store=store,
        provider=provider,
        batch_limit=cfg.push_batch_limit,
        dispatcher=dispatcher,
        icon_url=cfg.notification_icon_url,
    )
