from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from src.models.notification import DispatchResult, NotificationPayload, TokenOutcome
from src.notifications.errors import BatchDispatchFailure
from src.notifications.providers import BaseNotificationProvider, MulticastResponse
from src.utils.time import utc_now

logger = logging.getLogger(__name__)

TRANSPORT_ERROR = "transport-error"


class Dispatcher:
    """Sends one multicast per batch.

    Whole-batch failures are retried only when `max_retries` is set; the
    default is a single attempt. Per-token failures are never retried.
    """

    def __init__(
        self,
        provider: BaseNotificationProvider,
        max_workers: int = 4,
        max_retries: int = 0,
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self.provider = provider
        self.max_workers = max(1, int(max_workers))
        self.max_retries = max(0, int(max_retries))
        self.retry_backoff_seconds = max(0.0, retry_backoff_seconds)

    def _send(self, batch: list[str], payload: NotificationPayload, batch_index: int) -> MulticastResponse:
        attempt = 0
        while True:
            try:
                response = self.provider.send_multicast(batch, payload)
            except Exception as exc:
                failure = BatchDispatchFailure(batch_index, len(batch), exc)
            else:
                if len(response.responses) == len(batch):
                    return response
                failure = BatchDispatchFailure(
                    batch_index,
                    len(batch),
                    ValueError(f"provider returned {len(response.responses)} responses for {len(batch)} tokens"),
                )

            if attempt >= self.max_retries:
                raise failure
            attempt += 1
            logger.warning(
                "Retrying push batch",
                extra={"batch_index": batch_index, "attempt": attempt, "error": str(failure.cause)},
            )
            time.sleep(self.retry_backoff_seconds * attempt)

    def dispatch(self, batch: Sequence[str], payload: NotificationPayload, batch_index: int = 0) -> DispatchResult:
        tokens = list(batch)
        try:
            response = self._send(tokens, payload, batch_index)
        except BatchDispatchFailure as exc:
            logger.error(
                "Push batch failed",
                extra={"batch_index": batch_index, "tokens": len(tokens), "error": str(exc.cause)},
            )
            return DispatchResult(
                batch_index=batch_index,
                tokens=tokens,
                outcomes=[TokenOutcome(token=t, delivered=False, error_code=TRANSPORT_ERROR) for t in tokens],
                transport_error=str(exc.cause),
                timestamp=utc_now(),
            )

        outcomes = [
            TokenOutcome(token=token, delivered=r.success, error_code=None if r.success else r.error_code)
            for token, r in zip(tokens, response.responses)
        ]
        result = DispatchResult(batch_index=batch_index, tokens=tokens, outcomes=outcomes, timestamp=utc_now())
        logger.info(
            "Push batch sent",
            extra={
                "provider": self.provider.name,
                "batch_index": batch_index,
                "success_count": result.success_count,
                "failure_count": result.failure_count,
            },
        )
        return result

    def dispatch_all(self, batches: Sequence[Sequence[str]], payload: NotificationPayload) -> list[DispatchResult]:
        if not batches:
            return []
        if self.max_workers == 1 or len(batches) == 1:
            return [self.dispatch(batch, payload, idx) for idx, batch in enumerate(batches)]

        workers = min(self.max_workers, len(batches))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push-dispatch") as pool:
            futures = [pool.submit(self.dispatch, batch, payload, idx) for idx, batch in enumerate(batches)]
            return [future.result() for future in futures]
