from __future__ import annotations

import logging

from src.models.notification import NotificationIntent, PipelineSummary, UserRole
from src.notifications.audience import AudienceResolver
from src.notifications.batching import FCM_MULTICAST_LIMIT, chunk_tokens
from src.notifications.classifier import classify
from src.notifications.composer import compose
from src.notifications.dispatcher import Dispatcher
from src.notifications.errors import NoAudience, StoreWriteFailure
from src.notifications.providers import BaseNotificationProvider
from src.notifications.pruner import TokenPruner
from src.storage.repository import TokenStore
from src.utils.validation import validate_token

logger = logging.getLogger(__name__)


class NotificationService:
    """Fan-out pipeline for one notification intent.

    compose -> resolve audience -> batch -> dispatch -> classify -> prune.
    Holds no state between calls beyond the injected store and provider.
    """

    def __init__(
        self,
        store: TokenStore,
        provider: BaseNotificationProvider,
        batch_limit: int = FCM_MULTICAST_LIMIT,
        dispatcher: Dispatcher | None = None,
        icon_url: str | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.batch_limit = batch_limit
        self.dispatcher = dispatcher or Dispatcher(provider)
        self.icon_url = icon_url
        self.resolver = AudienceResolver(store)
        self.pruner = TokenPruner(store)

    def send(self, intent: NotificationIntent) -> PipelineSummary:
        payload = compose(intent, self.icon_url)

        try:
            audience = self.resolver.resolve(intent)
        except NoAudience as exc:
            logger.info("No audience for notification", extra={"kind": intent.kind, "reason": str(exc)})
            return PipelineSummary(status="no_audience", message="No registration tokens found; nothing was sent.")

        batches = chunk_tokens(audience.tokens, self.batch_limit)
        results = self.dispatcher.dispatch_all(batches, payload)

        success_count = sum(r.success_count for r in results)
        failure_count = sum(r.failure_count for r in results)
        failed_batches = [r.batch_index for r in results if r.transport_error]

        invalid: set[str] = set()
        for result in results:
            invalid |= classify(result)

        pruned_count = 0
        prune_error = None
        if invalid:
            try:
                pruned_count = self.pruner.prune(invalid, audience.owner_records(invalid))
            except StoreWriteFailure as exc:
                logger.exception("Token prune failed", extra={"kind": intent.kind, "invalid_tokens": len(invalid)})
                prune_error = str(exc)

        if failure_count == 0:
            status = "delivered"
            message = f"Notifications delivered. Success: {success_count}, Failures: 0."
        elif success_count == 0:
            status = "partial"
            message = f"No notifications were delivered. Success: 0, Failures: {failure_count}."
        else:
            status = "partial"
            message = f"Notifications partially delivered. Success: {success_count}, Failures: {failure_count}."

        logger.info(
            "Notification fan-out finished",
            extra={
                "kind": intent.kind,
                "batches": len(batches),
                "success_count": success_count,
                "failure_count": failure_count,
                "pruned": pruned_count,
            },
        )
        return PipelineSummary(
            status=status,
            success_count=success_count,
            failure_count=failure_count,
            pruned_count=pruned_count,
            batch_count=len(batches),
            failed_batches=failed_batches,
            prune_error=prune_error,
            message=message,
        )

    def register_token(self, record_id: str, role: UserRole, token: str) -> dict:
        clean = validate_token(token)
        found = self.store.add_token(record_id, role, clean)
        return {"status": "registered" if found else "not_found", "record_id": record_id, "role": role.value}

    def remove_token(self, record_id: str, role: UserRole, token: str) -> dict:
        clean = validate_token(token)
        found = self.store.remove_token(record_id, role, clean)
        return {"status": "removed" if found else "not_found", "record_id": record_id, "role": role.value}
