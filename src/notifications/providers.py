from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging
from pydantic import BaseModel, Field

from src.models.notification import NotificationPayload
from src.notifications.batching import FCM_MULTICAST_LIMIT

TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"
INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
UNKNOWN_ERROR = "messaging/unknown-error"


class ProviderResponse(BaseModel):
    success: bool
    error_code: str | None = None


class MulticastResponse(BaseModel):
    success_count: int
    failure_count: int
    responses: list[ProviderResponse] = Field(default_factory=list)

    @classmethod
    def from_responses(cls, responses: list[ProviderResponse]) -> "MulticastResponse":
        delivered = sum(1 for r in responses if r.success)
        return cls(success_count=delivered, failure_count=len(responses) - delivered, responses=responses)


class BaseNotificationProvider(ABC):
    name: str = "base"

    @abstractmethod
    def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        """Send one payload to every token; responses follow token order."""
        raise NotImplementedError


class MockNotificationProvider(BaseNotificationProvider):
    name = "mock"

    def __init__(self, error_codes: Mapping[str, str] | None = None) -> None:
        self.error_codes = dict(error_codes or {})
        self.calls: list[list[str]] = []

    def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        _ = payload
        self.calls.append(list(tokens))
        return MulticastResponse.from_responses(
            [
                ProviderResponse(success=False, error_code=self.error_codes[token])
                if token in self.error_codes
                else ProviderResponse(success=True)
                for token in tokens
            ]
        )


def error_code_for(exc: Exception | None) -> str:
    if exc is None:
        return UNKNOWN_ERROR
    if isinstance(exc, messaging.UnregisteredError):
        return TOKEN_NOT_REGISTERED
    if isinstance(exc, messaging.QuotaExceededError):
        return "messaging/quota-exceeded"
    if isinstance(exc, messaging.SenderIdMismatchError):
        return "messaging/mismatched-credential"
    if isinstance(exc, messaging.ThirdPartyAuthError):
        return "messaging/third-party-auth-error"
    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        if "registration token" in str(exc).lower():
            return INVALID_REGISTRATION_TOKEN
        return "messaging/invalid-argument"
    if isinstance(exc, firebase_exceptions.UnavailableError):
        return "messaging/server-unavailable"
    if isinstance(exc, firebase_exceptions.InternalError):
        return "messaging/internal-error"
    return UNKNOWN_ERROR


class FCMNotificationProvider(BaseNotificationProvider):
    name = "fcm"

    def __init__(self, app=None, client=messaging) -> None:
        self.app = app
        self.client = client

    def send_multicast(self, tokens: Sequence[str], payload: NotificationPayload) -> MulticastResponse:
        if len(tokens) > FCM_MULTICAST_LIMIT:
            raise ValueError(f"FCM multicast accepts at most {FCM_MULTICAST_LIMIT} tokens, got {len(tokens)}")
        message = messaging.MulticastMessage(tokens=list(tokens), data=payload.as_data())
        batch = self.client.send_each_for_multicast(message, app=self.app)
        return MulticastResponse.from_responses(
            [
                ProviderResponse(success=True)
                if response.success
                else ProviderResponse(success=False, error_code=error_code_for(response.exception))
                for response in batch.responses
            ]
        )
