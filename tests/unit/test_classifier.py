from src.models.notification import DispatchResult, TokenOutcome
from src.notifications.classifier import PRUNABLE_ERROR_CODES, classify
from src.notifications.dispatcher import TRANSPORT_ERROR
from src.utils.time import utc_now


def _result(outcomes: list[tuple[str, str | None]]) -> DispatchResult:
    return DispatchResult(
        batch_index=0,
        tokens=[token for token, _ in outcomes],
        outcomes=[
            TokenOutcome(token=token, delivered=code is None, error_code=code)
            for token, code in outcomes
        ],
        timestamp=utc_now(),
    )


def test_only_permanent_codes_are_prunable() -> None:
    result = _result(
        [
            ("ok-1", None),
            ("gone", "messaging/registration-token-not-registered"),
            ("busy", "messaging/quota-exceeded"),
            ("bad", "messaging/invalid-registration-token"),
            ("oops", "messaging/internal-error"),
        ]
    )

    assert classify(result) == {"gone", "bad"}


def test_prunable_tokens_are_a_subset_of_the_batch() -> None:
    result = _result([(f"t{i}", "messaging/invalid-registration-token" if i % 3 == 0 else None) for i in range(30)])

    pruned = classify(result)

    assert pruned <= set(result.tokens)
    assert pruned == {f"t{i}" for i in range(0, 30, 3)}


def test_transport_failures_are_transient() -> None:
    result = _result([("a", TRANSPORT_ERROR), ("b", TRANSPORT_ERROR)])

    assert TRANSPORT_ERROR not in PRUNABLE_ERROR_CODES
    assert classify(result) == set()


def test_positions_not_outcome_labels_decide_the_token() -> None:
    result = DispatchResult(
        batch_index=0,
        tokens=["first", "second"],
        outcomes=[
            TokenOutcome(token="mislabelled", delivered=False, error_code="messaging/invalid-registration-token"),
            TokenOutcome(token="second", delivered=True),
        ],
        timestamp=utc_now(),
    )

    assert classify(result) == {"first"}
