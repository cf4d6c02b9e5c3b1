from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .base import ConversionKey, ConversionRecord, ExchangeRateClient
from .cache_service import ConversionCache

"""Conversion coordinator.

Responsibilities:
    - Answer from the cache when the (source, target, date) key is known.
    - Otherwise ask the exchange rate client once, store the record, answer.
    - Never retry and never cache a failure; errors are logged with the key
      and re-raised for the HTTP layer to map.

Concurrent misses for the same key:
    With coalescing on (default) the first caller starts the outbound call and
    later callers await that same call, so one request reaches the provider
    and one record is stored. Every caller of a shared call gets
    from_cache=False. With coalescing off each caller races the provider on its
    own; the cache keeps whichever record was stored first.
"""

logger = logging.getLogger("app.rates.conversion")


@dataclass(frozen=True)
class ConversionResult:
    source: str
    target: str
    date: Optional[str]
    exchange_rate: float
    converted_amount: Optional[float]
    from_cache: bool

    @classmethod
    def from_record(
        cls, key: ConversionKey, record: ConversionRecord, from_cache: bool
    ) -> "ConversionResult":
        return cls(
            source=key.source,
            target=key.target,
            date=record.date,
            exchange_rate=record.exchange_rate,
            converted_amount=record.converted_amount,
            from_cache=from_cache,
        )


class ConversionCoordinator:
    def __init__(
        self,
        cache: ConversionCache,
        client: ExchangeRateClient,
        *,
        coalesce: bool = True,
    ):
        self.cache = cache
        self.client = client
        self.coalesce = coalesce
        self._inflight: Dict[ConversionKey, asyncio.Future[ConversionRecord]] = {}

    async def convert(
        self, source: str, target: str, date: Optional[str] = None
    ) -> ConversionResult:
        key = ConversionKey.build(source, target, date)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("retrieved exchange rate from cache for %s", key)
            return ConversionResult.from_record(key, cached, from_cache=True)

        if self.coalesce:
            record = await self._fetch_shared(key)
        else:
            record = await self._fetch_and_store(key)
        return ConversionResult.from_record(key, record, from_cache=False)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    # Internal --------------------------------------------------
    async def _fetch_and_store(self, key: ConversionKey) -> ConversionRecord:
        try:
            record = await self.client.fetch(key.source, key.target, key.date or None)
        except Exception as e:
            logger.error("error fetching exchange rate for %s: %s", key, e)
            raise
        return self.cache.put(key, record)

    async def _fetch_shared(self, key: ConversionKey) -> ConversionRecord:
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_and_store(key))
            self._inflight[key] = pending
            pending.add_done_callback(lambda fut: self._release(key, fut))
        else:
            logger.info("joining in-flight provider request for %s", key)
        # shield: a cancelled waiter must not cancel the call others share
        return await asyncio.shield(pending)

    def _release(self, key: ConversionKey, fut: asyncio.Future[ConversionRecord]) -> None:
        if self._inflight.get(key) is fut:
            del self._inflight[key]
        # mark the outcome retrieved even when every waiter was cancelled
        if not fut.cancelled():
            fut.exception()
