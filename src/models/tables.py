from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.models.db import Base


class UserRecordRow(Base):
    __tablename__ = "user_records"
    __table_args__ = (UniqueConstraint("role", "external_id", name="uq_user_records_role_external_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    activity_status: Mapped[str | None] = mapped_column(String(16), nullable=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    registration_tokens: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
