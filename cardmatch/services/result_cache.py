"""
Result cache for categorization, keyed by normalized description.

Bounded LRU with an optional TTL. No locking: concurrent writers for the same
key are last-write-wins, which is harmless because classification of a given
description is idempotent.
"""

import copy
import dataclasses
import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

from cardmatch.engine.models import ClassificationResult, normalize_description

logger = logging.getLogger(__name__)


def _detached(result: ClassificationResult) -> ClassificationResult:
    return dataclasses.replace(result, raw_details=copy.deepcopy(result.raw_details))


class ResultCache:
    def __init__(
        self,
        max_entries: int = 10000,
        ttl_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            max_entries: LRU bound; 0 or less means unbounded
            ttl_seconds: entry lifetime; 0 or less means entries never expire
            clock: monotonic time source (injectable for tests)
        """
        self.max_entries = max_entries if max_entries and max_entries > 0 else None
        self.ttl_seconds = ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._clock = clock
        self._entries: "OrderedDict[str, tuple[ClassificationResult, float]]" = OrderedDict()

    @staticmethod
    def key_for(description: str) -> str:
        return normalize_description(description)

    def get(self, description: str) -> Optional[ClassificationResult]:
        key = self.key_for(description)
        entry = self._entries.get(key)
        if entry is None:
            return None

        result, stored_at = entry
        if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
            self._entries.pop(key, None)
            logger.debug("Cache entry expired for %r", key)
            return None

        self._entries.move_to_end(key)
        return _detached(result)

    def put(self, description: str, result: ClassificationResult) -> None:
        """Store (or overwrite) the result for description."""
        key = self.key_for(description)
        self._entries[key] = (_detached(result), self._clock())
        self._entries.move_to_end(key)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted %r", evicted)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info("Category cache cleared (%d entries)", count)
        return count

    def stats(self, sample_size: int = 10) -> dict:
        return {
            "size": len(self._entries),
            "max_size": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "entries": list(self._entries.keys())[:sample_size],
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, description: str) -> bool:
        return self.get(description) is not None
