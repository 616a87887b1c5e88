from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.notifications.errors import MalformedRecordError


AlertType = Literal["info", "warning", "closure", "feedback_response"]
SummaryStatus = Literal["no_audience", "delivered", "partial"]


class UserRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class UserRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: UserRole
    external_id: str | None = None
    activity_status: str | None = None
    display_name: str | None = None
    registration_tokens: tuple[str, ...] = ()

    @property
    def token_set(self) -> frozenset[str]:
        return frozenset(self.registration_tokens)

    @classmethod
    def from_document(cls, doc_id: str, role: UserRole, data: Mapping[str, Any] | None) -> "UserRecord":
        """Build a record from a raw store document (camelCase field names).

        Raises MalformedRecordError when the document cannot be trusted.
        """
        if not doc_id:
            raise MalformedRecordError("document has no id")
        if not isinstance(data, Mapping):
            raise MalformedRecordError(f"document {doc_id} is not a mapping")

        raw_tokens = data.get("fcmTokens")
        if raw_tokens is None:
            raw_tokens = []
        if not isinstance(raw_tokens, (list, tuple)):
            raise MalformedRecordError(f"document {doc_id} has non-list fcmTokens")
        if any(not isinstance(token, str) or not token.strip() for token in raw_tokens):
            raise MalformedRecordError(f"document {doc_id} has a blank or non-string token")

        external_id = data.get("studentId")
        if external_id is not None and not isinstance(external_id, str):
            external_id = str(external_id)

        try:
            return cls(
                id=doc_id,
                role=role,
                external_id=external_id,
                activity_status=data.get("activityStatus"),
                display_name=data.get("name") or data.get("email"),
                registration_tokens=tuple(dict.fromkeys(raw_tokens)),
            )
        except ValidationError as exc:
            raise MalformedRecordError(f"document {doc_id}: {exc}") from exc


class AdminFeedbackAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["admin_feedback"] = "admin_feedback"
    student_name: str = ""
    message_snippet: str = Field(min_length=1)
    feedback_id: str = ""
    feedback_type: str | None = None


class StudentTargetedAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["student_alert"] = "student_alert"
    student_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    alert_type: AlertType = "info"


class MemberBroadcastAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["member_broadcast"] = "member_broadcast"
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    alert_type: AlertType = "info"


NotificationIntent = Annotated[
    Union[AdminFeedbackAlert, StudentTargetedAlert, MemberBroadcastAlert],
    Field(discriminator="kind"),
]


class NotificationPayload(BaseModel):
    title: str
    body: str
    icon: str
    click_target: str = "/"
    data: dict[str, str] = Field(default_factory=dict)

    def as_data(self) -> dict[str, str]:
        message = {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "url": self.click_target,
        }
        message.update(self.data)
        return message


class TokenOutcome(BaseModel):
    token: str
    delivered: bool
    error_code: str | None = None


class DispatchResult(BaseModel):
    batch_index: int
    tokens: list[str]
    outcomes: list[TokenOutcome]
    transport_error: str | None = None
    timestamp: datetime

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.delivered)

    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count


class PipelineSummary(BaseModel):
    status: SummaryStatus
    success_count: int = 0
    failure_count: int = 0
    pruned_count: int = 0
    batch_count: int = 0
    failed_batches: list[int] = Field(default_factory=list)
    prune_error: str | None = None
    message: str
