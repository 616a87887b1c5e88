from __future__ import annotations

from functools import singledispatch

from src.config import get_settings
from src.models.notification import (
    AdminFeedbackAlert,
    MemberBroadcastAlert,
    NotificationPayload,
    StudentTargetedAlert,
)
from src.notifications.errors import InvalidIntentError

SNIPPET_LIMIT = 100
ADMIN_FEEDBACK_TARGET = "/admin/feedback"
MEMBER_ALERTS_TARGET = "/member/alerts"


def _snippet(text: str) -> str:
    clean = " ".join(text.split())
    if len(clean) <= SNIPPET_LIMIT:
        return clean
    return f"{clean[:SNIPPET_LIMIT]}..."


def _alert_title(title: str, alert_type: str) -> str:
    if alert_type == "closure":
        return f"Closure Notice: {title}"
    return title


def compose(intent, icon_url: str | None = None) -> NotificationPayload:
    """Build the title/body/icon/click-target payload for an intent. No I/O."""
    icon = icon_url or get_settings().notification_icon_url
    return _compose(intent, icon)


@singledispatch
def _compose(intent, icon: str) -> NotificationPayload:
    raise InvalidIntentError(f"No notification template for {type(intent).__name__}")


@_compose.register
def _(intent: AdminFeedbackAlert, icon: str) -> NotificationPayload:
    title = f"New Feedback: {intent.feedback_type}" if intent.feedback_type else "New Feedback Submitted"
    name = intent.student_name.strip()
    snippet = _snippet(intent.message_snippet)
    if name:
        body = f'From: {name} - "{snippet}"'
    else:
        body = f'An anonymous user submitted feedback: "{snippet}"'
    return NotificationPayload(
        title=title,
        body=body,
        icon=icon,
        click_target=ADMIN_FEEDBACK_TARGET,
        data={"feedbackId": intent.feedback_id} if intent.feedback_id else {},
    )


@_compose.register
def _(intent: StudentTargetedAlert, icon: str) -> NotificationPayload:
    return NotificationPayload(
        title=_alert_title(intent.title, intent.alert_type),
        body=intent.message,
        icon=icon,
        click_target=MEMBER_ALERTS_TARGET,
        data={"alertType": intent.alert_type},
    )


@_compose.register
def _(intent: MemberBroadcastAlert, icon: str) -> NotificationPayload:
    return NotificationPayload(
        title=_alert_title(intent.title, intent.alert_type),
        body=intent.message,
        icon=icon,
        click_target=MEMBER_ALERTS_TARGET,
        data={"alertType": intent.alert_type},
    )
