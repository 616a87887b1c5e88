from __future__ import annotations

import logging
from collections.abc import Iterable

from src.models.notification import UserRecord
from src.storage.repository import TokenStore

logger = logging.getLogger(__name__)


def group_removals(tokens_to_remove: set[str], owners: Iterable[UserRecord]) -> dict[UserRecord, frozenset[str]]:
    removals: dict[UserRecord, frozenset[str]] = {}
    for record in owners:
        hit = record.token_set & tokens_to_remove
        if hit:
            removals[record] = frozenset(hit)
    return removals


class TokenPruner:
    def __init__(self, store: TokenStore) -> None:
        self.store = store

    def prune(self, tokens_to_remove: set[str], owners: Iterable[UserRecord]) -> int:
        """Remove invalid tokens from their owning records in one store commit.

        Returns the number of record/token removals submitted. Raises
        StoreWriteFailure when the commit is rejected.
        """
        if not tokens_to_remove:
            return 0
        removals = group_removals(set(tokens_to_remove), owners)
        if not removals:
            return 0

        self.store.remove_tokens(removals)
        removed = sum(len(tokens) for tokens in removals.values())
        for record, tokens in removals.items():
            logger.info(
                "Pruned invalid registration tokens",
                extra={
                    "record_id": record.id,
                    "role": record.role.value,
                    "tokens": [token[:10] for token in sorted(tokens)],
                },
            )
        return removed
