from __future__ import annotations

from collections.abc import Sequence

from src.models.notification import NotificationPayload, UserRecord, UserRole
from src.notifications.providers import BaseNotificationProvider, MockNotificationProvider, MulticastResponse


def admin(record_id: str, *tokens: str) -> UserRecord:
    return UserRecord(id=record_id, role=UserRole.ADMIN, display_name=record_id, registration_tokens=tokens)


def member(record_id: str, student_id: str, *tokens: str, status: str = "Active") -> UserRecord:
    return UserRecord(
        id=record_id,
        role=UserRole.MEMBER,
        external_id=student_id,
        activity_status=status,
        registration_tokens=tokens,
    )


class FailingBatchProvider(BaseNotificationProvider):
    """Raises for any batch containing one of `poison` tokens, otherwise delegates."""

    name = "failing"

    def __init__(self, poison: set[str], inner: BaseNotificationProvider | None = None) -> None:
        self.poison = poison
        self.inner = inner or MockNotificationProvider()
        self.calls = 0

    def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        self.calls += 1
        if self.poison & set(tokens):
            raise ConnectionError("provider unreachable")
        return self.inner.send_multicast(tokens, payload)
