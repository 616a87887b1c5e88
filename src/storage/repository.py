from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from src.models.notification import UserRecord, UserRole

ACTIVE_STATUS = "Active"


class TokenStore(ABC):
    """Per-user registration token storage.

    `remove_tokens` must apply every removal or none of them.
    """

    @abstractmethod
    def list_by_role(self, role: UserRole) -> list[UserRecord]:
        raise NotImplementedError

    @abstractmethod
    def get_member_by_external_id(self, student_id: str) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    def list_active_members(self) -> list[UserRecord]:
        raise NotImplementedError

    @abstractmethod
    def add_token(self, record_id: str, role: UserRole, token: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def remove_token(self, record_id: str, role: UserRole, token: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def remove_tokens(self, removals: Mapping[UserRecord, frozenset[str]]) -> None:
        raise NotImplementedError


class InMemoryTokenStore(TokenStore):
    def __init__(self, records: list[UserRecord] | None = None) -> None:
        self._records: dict[str, UserRecord] = {}
        self.commit_count = 0
        for record in records or []:
            self.put(record)

    def put(self, record: UserRecord) -> None:
        self._records[record.id] = record

    def get(self, record_id: str) -> UserRecord | None:
        return self._records.get(record_id)

    def list_by_role(self, role: UserRole) -> list[UserRecord]:
        return [r for r in self._records.values() if r.role == role]

    def get_member_by_external_id(self, student_id: str) -> UserRecord | None:
        for record in self._records.values():
            if record.role == UserRole.MEMBER and record.external_id == student_id:
                return record
        return None

    def list_active_members(self) -> list[UserRecord]:
        return [r for r in self.list_by_role(UserRole.MEMBER) if r.activity_status == ACTIVE_STATUS]

    def add_token(self, record_id: str, role: UserRole, token: str) -> bool:
        record = self._records.get(record_id)
        if record is None or record.role != role:
            return False
        if token not in record.registration_tokens:
            tokens = record.registration_tokens + (token,)
            self._records[record_id] = record.model_copy(update={"registration_tokens": tokens})
        return True

    def remove_token(self, record_id: str, role: UserRole, token: str) -> bool:
        record = self._records.get(record_id)
        if record is None or record.role != role:
            return False
        self._drop(record_id, frozenset({token}))
        return True

    def remove_tokens(self, removals: Mapping[UserRecord, frozenset[str]]) -> None:
        for record, tokens in removals.items():
            self._drop(record.id, tokens)
        self.commit_count += 1

    def _drop(self, record_id: str, tokens: frozenset[str]) -> None:
        current = self._records.get(record_id)
        if current is None:
            return
        remaining = tuple(t for t in current.registration_tokens if t not in tokens)
        self._records[record_id] = current.model_copy(update={"registration_tokens": remaining})
