from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from src.models.notification import UserRecord, UserRole
from src.notifications.errors import MalformedRecordError, StoreWriteFailure
from src.storage.repository import ACTIVE_STATUS, TokenStore

logger = logging.getLogger(__name__)

TOKENS_FIELD = "fcmTokens"
COLLECTIONS = {
    UserRole.ADMIN: "admins",
    UserRole.MEMBER: "students",
}


class FirestoreTokenStore(TokenStore):
    def __init__(self, client) -> None:
        self.client = client

    @classmethod
    def from_app(cls, app) -> "FirestoreTokenStore":
        return cls(firestore.client(app))

    def _ref(self, role: UserRole, record_id: str):
        return self.client.collection(COLLECTIONS[role]).document(record_id)

    @staticmethod
    def _parse(snapshots: Iterable, role: UserRole) -> list[UserRecord]:
        records: list[UserRecord] = []
        for snap in snapshots:
            try:
                records.append(UserRecord.from_document(snap.id, role, snap.to_dict()))
            except MalformedRecordError as exc:
                logger.warning("Skipping malformed user document", extra={"doc_id": snap.id, "error": str(exc)})
        return records

    def list_by_role(self, role: UserRole) -> list[UserRecord]:
        return self._parse(self.client.collection(COLLECTIONS[role]).stream(), role)

    def get_member_by_external_id(self, student_id: str) -> UserRecord | None:
        query = (
            self.client.collection(COLLECTIONS[UserRole.MEMBER])
            .where(filter=FieldFilter("studentId", "==", student_id))
            .limit(1)
        )
        records = self._parse(query.stream(), UserRole.MEMBER)
        return records[0] if records else None

    def list_active_members(self) -> list[UserRecord]:
        query = self.client.collection(COLLECTIONS[UserRole.MEMBER]).where(
            filter=FieldFilter("activityStatus", "==", ACTIVE_STATUS)
        )
        return self._parse(query.stream(), UserRole.MEMBER)

    def add_token(self, record_id: str, role: UserRole, token: str) -> bool:
        try:
            self._ref(role, record_id).update({TOKENS_FIELD: firestore.ArrayUnion([token])})
        except google_exceptions.NotFound:
            return False
        return True

    def remove_token(self, record_id: str, role: UserRole, token: str) -> bool:
        try:
            self._ref(role, record_id).update({TOKENS_FIELD: firestore.ArrayRemove([token])})
        except google_exceptions.NotFound:
            return False
        return True

    def remove_tokens(self, removals: Mapping[UserRecord, frozenset[str]]) -> None:
        if not removals:
            return
        batch = self.client.batch()
        for record, tokens in removals.items():
            batch.update(self._ref(record.role, record.id), {TOKENS_FIELD: firestore.ArrayRemove(sorted(tokens))})
        try:
            batch.commit()
        except google_exceptions.GoogleAPICallError as exc:
            raise StoreWriteFailure(f"Token prune batch commit failed: {exc}") from exc
