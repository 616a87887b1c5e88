from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.notification import AlertType, PipelineSummary, SummaryStatus, UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendNotificationRequest(BaseModel):
    type: Literal["alert", "feedback"]
    payload: dict[str, Any]


class AlertNotificationRequest(CamelModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: AlertType = "info"
    student_id: str | None = None


class FeedbackNotificationRequest(CamelModel):
    student_name: str = ""
    message_snippet: str = Field(
        min_length=1,
        validation_alias=AliasChoices("messageSnippet", "message", "message_snippet"),
    )
    feedback_id: str = Field(default="", validation_alias=AliasChoices("feedbackId", "id", "feedback_id"))
    feedback_type: str | None = None


class AdminFeedbackNotificationRequest(CamelModel):
    student_name: str = Field(min_length=1)
    message_snippet: str = Field(min_length=1)
    feedback_id: str = Field(min_length=1)


class TokenRegistrationRequest(CamelModel):
    record_id: str = Field(min_length=1)
    role: UserRole
    token: str = Field(min_length=1)


class TokenRegistrationResponse(CamelModel):
    status: str
    record_id: str
    role: UserRole


class NotificationResponse(CamelModel):
    success: bool = True
    message: str
    status: SummaryStatus
    success_count: int = 0
    failure_count: int = 0
    pruned_count: int = 0
    failed_batches: list[int] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: PipelineSummary) -> "NotificationResponse":
        return cls(
            message=summary.message,
            status=summary.status,
            success_count=summary.success_count,
            failure_count=summary.failure_count,
            pruned_count=summary.pruned_count,
            failed_batches=summary.failed_batches,
        )
