from __future__ import annotations

from collections.abc import Sequence

FCM_MULTICAST_LIMIT = 500


def chunk_tokens(tokens: Sequence[str], limit: int = FCM_MULTICAST_LIMIT) -> list[list[str]]:
    if limit < 1:
        raise ValueError(f"Batch limit must be positive, got {limit}")
    items = list(tokens)
    return [items[idx : idx + limit] for idx in range(0, len(items), limit)]
