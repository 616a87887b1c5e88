from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import db as db_module
from src.models.notification import UserRecord, UserRole
from src.models.tables import UserRecordRow
from src.notifications.errors import MalformedRecordError, StoreWriteFailure
from src.storage.repository import ACTIVE_STATUS, TokenStore

logger = logging.getLogger(__name__)


class SqlTokenStore(TokenStore):
    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        self._session_factory = session_factory

    def _session(self) -> Session:
        factory = self._session_factory or db_module.SessionLocal
        return factory()

    @staticmethod
    def _to_record(row: UserRecordRow) -> UserRecord | None:
        document = {
            "fcmTokens": row.registration_tokens,
            "studentId": row.external_id,
            "activityStatus": row.activity_status,
            "name": row.display_name,
        }
        try:
            return UserRecord.from_document(row.id, UserRole(row.role), document)
        except (MalformedRecordError, ValueError) as exc:
            logger.warning("Skipping malformed user record", extra={"record_id": row.id, "error": str(exc)})
            return None

    def _records(self, stmt) -> list[UserRecord]:
        with self._session() as db:
            rows = db.execute(stmt).scalars().all()
            records = [self._to_record(row) for row in rows]
        return [record for record in records if record is not None]

    def list_by_role(self, role: UserRole) -> list[UserRecord]:
        stmt = select(UserRecordRow).where(UserRecordRow.role == role.value).order_by(UserRecordRow.id.asc())
        return self._records(stmt)

    def get_member_by_external_id(self, student_id: str) -> UserRecord | None:
        stmt = (
            select(UserRecordRow)
            .where(UserRecordRow.role == UserRole.MEMBER.value, UserRecordRow.external_id == student_id)
            .limit(1)
        )
        records = self._records(stmt)
        return records[0] if records else None

    def list_active_members(self) -> list[UserRecord]:
        stmt = (
            select(UserRecordRow)
            .where(UserRecordRow.role == UserRole.MEMBER.value, UserRecordRow.activity_status == ACTIVE_STATUS)
            .order_by(UserRecordRow.id.asc())
        )
        return self._records(stmt)

    def upsert_record(self, record: UserRecord) -> None:
        with self._session() as db:
            row = db.get(UserRecordRow, record.id)
            if row is None:
                row = UserRecordRow(id=record.id)
            row.role = record.role.value
            row.external_id = record.external_id
            row.activity_status = record.activity_status
            row.display_name = record.display_name
            row.registration_tokens = list(record.registration_tokens)
            db.add(row)
            db.commit()

    def add_token(self, record_id: str, role: UserRole, token: str) -> bool:
        with self._session() as db:
            row = db.get(UserRecordRow, record_id)
            if row is None or row.role != role.value:
                return False
            current = list(row.registration_tokens or [])
            if token not in current:
                row.registration_tokens = current + [token]
                row.updated_at = datetime.utcnow()
                db.commit()
        return True

    def remove_token(self, record_id: str, role: UserRole, token: str) -> bool:
        with self._session() as db:
            row = db.get(UserRecordRow, record_id)
            if row is None or row.role != role.value:
                return False
            current = list(row.registration_tokens or [])
            if token in current:
                row.registration_tokens = [t for t in current if t != token]
                row.updated_at = datetime.utcnow()
                db.commit()
        return True

    def remove_tokens(self, removals: Mapping[UserRecord, frozenset[str]]) -> None:
        if not removals:
            return
        with self._session() as db:
            try:
                for record, tokens in removals.items():
                    row = db.get(UserRecordRow, record.id, with_for_update=True)
                    if row is None:
                        continue
                    current = list(row.registration_tokens or [])
                    remaining = [t for t in current if t not in tokens]
                    if len(remaining) != len(current):
                        row.registration_tokens = remaining
                        row.updated_at = datetime.utcnow()
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise StoreWriteFailure(f"Token prune commit failed: {exc}") from exc
