from __future__ import annotations

import logging
import threading
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.models.notification import (
    AdminFeedbackAlert,
    MemberBroadcastAlert,
    StudentTargetedAlert,
)
from src.models.schemas import (
    AdminFeedbackNotificationRequest,
    AlertNotificationRequest,
    FeedbackNotificationRequest,
    NotificationResponse,
    SendNotificationRequest,
    TokenRegistrationRequest,
    TokenRegistrationResponse,
)
from src.notifications.errors import InvalidIntentError
from src.notifications.factory import build_notification_service
from src.notifications.service import NotificationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["notifications"])

_service_lock = threading.Lock()


def get_notification_service(request: Request) -> NotificationService:
    service = getattr(request.app.state, "notification_service", None)
    if service is not None:
        return service
    with _service_lock:
        service = getattr(request.app.state, "notification_service", None)
        if service is None:
            service = build_notification_service()
            request.app.state.notification_service = service
    return service


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: ValidationError) -> str:
    fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
    return f"Invalid or missing fields: {', '.join(fields)}" if fields else "Invalid request body"


def alert_intent(payload: dict[str, Any]) -> StudentTargetedAlert | MemberBroadcastAlert:
    alert = AlertNotificationRequest.model_validate(payload)
    if alert.student_id:
        return StudentTargetedAlert(
            student_id=alert.student_id,
            title=alert.title,
            message=alert.message,
            alert_type=alert.type,
        )
    return MemberBroadcastAlert(title=alert.title, message=alert.message, alert_type=alert.type)


def feedback_intent(payload: dict[str, Any]) -> AdminFeedbackAlert:
    feedback = FeedbackNotificationRequest.model_validate(payload)
    return AdminFeedbackAlert(
        student_name=feedback.student_name,
        message_snippet=feedback.message_snippet,
        feedback_id=feedback.feedback_id,
        feedback_type=feedback.feedback_type,
    )


_INTENT_BUILDERS = {
    "alert": alert_intent,
    "feedback": feedback_intent,
}


def _run(service: NotificationService, intent, route: str):
    try:
        summary = service.send(intent)
    except InvalidIntentError as exc:
        return _error(400, str(exc))
    except Exception:
        logger.exception("Notification pipeline failed", extra={"route": route, "kind": intent.kind})
        return _error(500, "An unexpected server error occurred.")
    return NotificationResponse.from_summary(summary)


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post("/send-notification", response_model=NotificationResponse)
def send_notification(
    body: dict[str, Any] | None = Body(default=None),
    service: NotificationService = Depends(get_notification_service),
):
    if not body or not body.get("type") or not body.get("payload"):
        return _error(400, "Missing type or payload")
    if not isinstance(body["type"], str) or body["type"] not in _INTENT_BUILDERS:
        return _error(400, "Invalid notification type")
    try:
        request = SendNotificationRequest.model_validate(body)
    except ValidationError as exc:
        return _error(400, _validation_message(exc))

    logger.info("Notification requested", extra={"type": request.type})
    try:
        intent = _INTENT_BUILDERS[request.type](request.payload)
    except ValidationError as exc:
        return _error(400, _validation_message(exc))
    return _run(service, intent, "send-notification")


@router.post("/send-admin-feedback-notification", response_model=NotificationResponse)
def send_admin_feedback_notification(
    body: dict[str, Any] | None = Body(default=None),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        request = AdminFeedbackNotificationRequest.model_validate(body or {})
    except ValidationError as exc:
        return _error(400, _validation_message(exc))

    intent = AdminFeedbackAlert(
        student_name=request.student_name,
        message_snippet=request.message_snippet,
        feedback_id=request.feedback_id,
    )
    return _run(service, intent, "send-admin-feedback-notification")


@router.post("/send-alert-notification", response_model=NotificationResponse)
def send_alert_notification(
    body: dict[str, Any] | None = Body(default=None),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        intent = alert_intent(body or {})
    except ValidationError as exc:
        return _error(400, _validation_message(exc))
    return _run(service, intent, "send-alert-notification")


@router.post("/tokens", response_model=TokenRegistrationResponse)
def register_token(
    payload: TokenRegistrationRequest,
    service: NotificationService = Depends(get_notification_service),
):
    try:
        result = service.register_token(payload.record_id, payload.role, payload.token)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result["status"] == "not_found":
        raise HTTPException(status_code=404, detail=f"No {payload.role.value} record {payload.record_id}")
    return TokenRegistrationResponse(**result)


@router.delete("/tokens", response_model=TokenRegistrationResponse)
def remove_token(
    payload: TokenRegistrationRequest,
    service: NotificationService = Depends(get_notification_service),
):
    try:
        result = service.remove_token(payload.record_id, payload.role, payload.token)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result["status"] == "not_found":
        raise HTTPException(status_code=404, detail=f"No {payload.role.value} record {payload.record_id}")
    return TokenRegistrationResponse(**result)
