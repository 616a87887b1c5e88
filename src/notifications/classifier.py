from __future__ import annotations

from src.models.notification import DispatchResult
from src.notifications.providers import INVALID_REGISTRATION_TOKEN, TOKEN_NOT_REGISTERED

PRUNABLE_ERROR_CODES = frozenset({TOKEN_NOT_REGISTERED, INVALID_REGISTRATION_TOKEN})


def is_prunable(error_code: str | None) -> bool:
    return error_code in PRUNABLE_ERROR_CODES


def classify(result: DispatchResult) -> set[str]:
    """Tokens the provider reported as permanently invalid.

    Outcomes are matched to tokens by position, never by the outcome's own
    token field.
    """
    prunable: set[str] = set()
    for token, outcome in zip(result.tokens, result.outcomes):
        if not outcome.delivered and is_prunable(outcome.error_code):
            prunable.add(token)
    return prunable
