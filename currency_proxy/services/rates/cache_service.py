from __future__ import annotations

"""In-memory conversion cache.

Purpose:
    Remember every conversion fetched from the provider for the lifetime of
    the process so identical requests are answered without another outbound
    call.

Design:
    - Keys are ConversionKey tuples compared by value, so ("EUR", "USD", d) and
      ("EU", "RUSD", d) are distinct entries.
    - No TTL, no eviction, no size bound; a restart is the only reset.
    - Stores are idempotent: the first record written for a key stays
      authoritative and later puts return it unchanged.
    - Accessed only from the event loop thread; no locking.
"""
import logging
from typing import Dict, Iterator, Optional

from .base import ConversionKey, ConversionRecord

logger = logging.getLogger("app.rates.cache")


class ConversionCache:
    def __init__(self) -> None:
        self._entries: Dict[ConversionKey, ConversionRecord] = {}

    def get(self, key: ConversionKey) -> Optional[ConversionRecord]:
        return self._entries.get(key)

    def put(self, key: ConversionKey, record: ConversionRecord) -> ConversionRecord:
        """Store record unless key is present; return the stored record."""
        existing = self._entries.get(key)
        if existing is not None:
            if existing != record:
                logger.warning(
                    "ignoring differing record for %s; keeping first stored value", key
                )
            return existing
        self._entries[key] = record
        return record

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ConversionKey]:
        return iter(self._entries)
