from __future__ import annotations

from src.notifications.pruner import TokenPruner, group_removals
from src.storage.repository import InMemoryTokenStore
from tests.helpers import admin


def test_removes_only_intersecting_tokens_in_one_commit() -> None:
    records = [admin("a1", "keep-1", "bad-1"), admin("a2", "bad-1", "bad-2", "keep-2"), admin("a3", "keep-3")]
    store = InMemoryTokenStore(records)

    removed = TokenPruner(store).prune({"bad-1", "bad-2"}, records)

    assert removed == 3
    assert store.commit_count == 1
    assert store.get("a1").registration_tokens == ("keep-1",)
    assert store.get("a2").registration_tokens == ("keep-2",)
    assert store.get("a3").registration_tokens == ("keep-3",)


def test_prune_is_idempotent() -> None:
    records = [admin("a1", "keep", "bad")]
    store = InMemoryTokenStore(records)
    pruner = TokenPruner(store)

    pruner.prune({"bad"}, records)
    after_once = store.get("a1")
    pruner.prune({"bad"}, records)

    assert store.get("a1") == after_once
    assert after_once.registration_tokens == ("keep",)


def test_empty_removal_issues_no_write() -> None:
    records = [admin("a1", "tok")]
    store = InMemoryTokenStore(records)

    assert TokenPruner(store).prune(set(), records) == 0
    assert TokenPruner(store).prune({"unowned"}, records) == 0
    assert store.commit_count == 0


def test_group_removals_skips_untouched_records() -> None:
    records = [admin("a1", "x"), admin("a2", "y")]

    removals = group_removals({"y"}, records)

    assert {record.id: tokens for record, tokens in removals.items()} == {"a2": frozenset({"y"})}
