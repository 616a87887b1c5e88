from __future__ import annotations

from collections.abc import Mapping

import pytest

from src.models.notification import AdminFeedbackAlert, StudentTargetedAlert, UserRecord, UserRole
from src.notifications.dispatcher import Dispatcher
from src.notifications.errors import StoreWriteFailure
from src.notifications.providers import MockNotificationProvider
from src.notifications.service import NotificationService
from src.storage.repository import InMemoryTokenStore
from tests.helpers import FailingBatchProvider, admin, member

FEEDBACK = AdminFeedbackAlert(student_name="Meera", message_snippet="Too noisy", feedback_id="fb-1")


class RejectingStore(InMemoryTokenStore):
    def remove_tokens(self, removals: Mapping[UserRecord, frozenset[str]]) -> None:
        raise StoreWriteFailure("quota exhausted")


def _service(store, provider, workers: int = 4) -> NotificationService:
    return NotificationService(store=store, provider=provider, batch_limit=500, dispatcher=Dispatcher(provider, max_workers=workers))


def test_broadcast_to_1200_tokens_prunes_invalid_ones_in_one_commit() -> None:
    admins = [admin(f"a{i}", *[f"a{i}-t{j}" for j in range(100)]) for i in range(12)]
    store = InMemoryTokenStore(admins)
    bad = {f"a6-t{j}": "messaging/invalid-registration-token" for j in range(10)}
    provider = MockNotificationProvider(bad)

    summary = _service(store, provider).send(FEEDBACK)

    assert sorted(len(call) for call in provider.calls) == [200, 500, 500]
    assert summary.batch_count == 3
    assert summary.success_count == 1190
    assert summary.failure_count == 10
    assert summary.pruned_count == 10
    assert summary.status == "partial"
    assert store.commit_count == 1
    assert set(store.get("a6").registration_tokens).isdisjoint(bad)
    assert len(store.get("a6").registration_tokens) == 90
    assert len(store.get("a5").registration_tokens) == 100


def test_no_admins_means_no_dispatch_and_no_writes() -> None:
    store = InMemoryTokenStore([member("m1", "S1", "member-tok")])
    provider = MockNotificationProvider()

    summary = _service(store, provider).send(FEEDBACK)

    assert summary.status == "no_audience"
    assert "No registration tokens" in summary.message
    assert provider.calls == []
    assert store.commit_count == 0


def test_student_without_tokens_makes_no_network_calls() -> None:
    store = InMemoryTokenStore([member("m1", "S1")])
    provider = MockNotificationProvider()

    summary = _service(store, provider).send(StudentTargetedAlert(student_id="S1", title="Hi", message="Seat ready"))

    assert summary.status == "no_audience"
    assert provider.calls == []


def test_full_delivery_reports_delivered() -> None:
    store = InMemoryTokenStore([admin("a1", "t1", "t2")])

    summary = _service(store, MockNotificationProvider()).send(FEEDBACK)

    assert summary.status == "delivered"
    assert (summary.success_count, summary.failure_count, summary.pruned_count) == (2, 0, 0)
    assert store.commit_count == 0


def test_nothing_delivered_is_worded_as_such() -> None:
    store = InMemoryTokenStore([admin("a1", "t1", "t2")])
    provider = MockNotificationProvider({"t1": "messaging/quota-exceeded", "t2": "messaging/internal-error"})

    summary = _service(store, provider).send(FEEDBACK)

    assert summary.status == "partial"
    assert (summary.success_count, summary.failure_count) == (0, 2)
    assert summary.message == "No notifications were delivered. Success: 0, Failures: 2."


def test_transient_failures_leave_tokens_alone() -> None:
    store = InMemoryTokenStore([admin("a1", "t1", "t2")])
    provider = MockNotificationProvider({"t2": "messaging/quota-exceeded"})

    summary = _service(store, provider).send(FEEDBACK)

    assert summary.failure_count == 1
    assert summary.pruned_count == 0
    assert store.get("a1").registration_tokens == ("t1", "t2")


def test_failed_batch_is_counted_and_other_batches_still_prune() -> None:
    tokens = [f"t{i}" for i in range(700)]
    store = InMemoryTokenStore([admin("a1", *tokens)])
    inner = MockNotificationProvider({"t600": "messaging/registration-token-not-registered"})
    provider = FailingBatchProvider(poison={"t0"}, inner=inner)

    summary = _service(store, provider, workers=1).send(FEEDBACK)

    assert summary.failed_batches == [0]
    assert summary.success_count == 199
    assert summary.failure_count == 501
    assert summary.pruned_count == 1
    assert "t600" not in store.get("a1").registration_tokens
    assert "t0" in store.get("a1").registration_tokens


def test_shared_invalid_token_is_pruned_from_every_owner() -> None:
    store = InMemoryTokenStore([admin("a1", "dup", "x"), admin("a2", "dup")])
    provider = MockNotificationProvider({"dup": "messaging/registration-token-not-registered"})

    summary = _service(store, provider).send(FEEDBACK)

    assert provider.calls == [["dup", "x"]]
    assert summary.pruned_count == 2
    assert store.get("a1").registration_tokens == ("x",)
    assert store.get("a2").registration_tokens == ()


def test_prune_failure_is_reported_not_raised() -> None:
    store = RejectingStore([admin("a1", "bad")])
    provider = MockNotificationProvider({"bad": "messaging/invalid-registration-token"})

    summary = _service(store, provider).send(FEEDBACK)

    assert summary.prune_error == "quota exhausted"
    assert summary.pruned_count == 0
    assert summary.failure_count == 1


def test_register_and_remove_token() -> None:
    store = InMemoryTokenStore([member("m1", "S1")])
    service = _service(store, MockNotificationProvider())

    assert service.register_token("m1", UserRole.MEMBER, "  new-token ")["status"] == "registered"
    assert service.register_token("m1", UserRole.MEMBER, "new-token")["status"] == "registered"
    assert store.get("m1").registration_tokens == ("new-token",)
    assert service.register_token("m1", UserRole.ADMIN, "other")["status"] == "not_found"

    assert service.remove_token("m1", UserRole.MEMBER, "new-token")["status"] == "removed"
    assert store.get("m1").registration_tokens == ()


def test_blank_token_rejected() -> None:
    service = _service(InMemoryTokenStore([member("m1", "S1")]), MockNotificationProvider())

    with pytest.raises(ValueError):
        service.register_token("m1", UserRole.MEMBER, "   ")
