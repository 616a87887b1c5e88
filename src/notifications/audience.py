from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.models.notification import (
    AdminFeedbackAlert,
    MemberBroadcastAlert,
    NotificationIntent,
    StudentTargetedAlert,
    UserRecord,
    UserRole,
)
from src.notifications.errors import InvalidIntentError, NoAudience
from src.storage.repository import TokenStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Audience:
    tokens: list[str]
    owners: dict[str, frozenset[str]]
    records: list[UserRecord] = field(default_factory=list)

    def owner_records(self, tokens: set[str]) -> list[UserRecord]:
        owner_ids: set[str] = set()
        for token in tokens:
            owner_ids.update(self.owners.get(token, frozenset()))
        return [record for record in self.records if record.id in owner_ids]


def flatten_tokens(records: list[UserRecord]) -> Audience:
    """Flatten record tokens in order, keeping the first occurrence of each value.

    A token present on several records keeps every one of them as an owner.
    """
    tokens: list[str] = []
    owners: dict[str, set[str]] = {}
    for record in records:
        for token in record.registration_tokens:
            if token not in owners:
                owners[token] = set()
                tokens.append(token)
            owners[token].add(record.id)
    return Audience(
        tokens=tokens,
        owners={token: frozenset(ids) for token, ids in owners.items()},
        records=list(records),
    )


class AudienceResolver:
    def __init__(self, store: TokenStore) -> None:
        self.store = store

    def _records_for(self, intent) -> list[UserRecord]:
        if isinstance(intent, AdminFeedbackAlert):
            return self.store.list_by_role(UserRole.ADMIN)
        if isinstance(intent, StudentTargetedAlert):
            record = self.store.get_member_by_external_id(intent.student_id)
            if record is None:
                logger.warning("Student not found for targeted alert", extra={"student_id": intent.student_id})
                return []
            return [record]
        if isinstance(intent, MemberBroadcastAlert):
            return self.store.list_active_members()
        raise InvalidIntentError(f"Cannot resolve audience for {type(intent).__name__}")

    def resolve(self, intent: NotificationIntent) -> Audience:
        records = self._records_for(intent)
        audience = flatten_tokens(records)
        if not audience.tokens:
            raise NoAudience(f"No registration tokens found for {intent.kind} notification")
        logger.info(
            "Audience resolved",
            extra={"kind": intent.kind, "records": len(records), "unique_tokens": len(audience.tokens)},
        )
        return audience
