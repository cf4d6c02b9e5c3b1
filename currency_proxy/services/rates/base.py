from __future__ import annotations

"""Exchange rate client abstraction and the values it produces.

Providers implement ``fetch``; caching and request coalescing live one layer
up in the conversion coordinator, so a client call is always exactly one
outbound request.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import NamedTuple, Optional


class ConversionKey(NamedTuple):
    """Cache identity of a conversion request. Missing date is ''."""

    source: str
    target: str
    date: str = ""

    @classmethod
    def build(cls, source: str, target: str, date: Optional[str]) -> "ConversionKey":
        return cls(source, target, date or "")

    def __str__(self) -> str:
        return f"{self.source}_{self.target}_{self.date}"


@dataclass(frozen=True)
class ConversionRecord:
    exchange_rate: float
    date: Optional[str] = None
    converted_amount: Optional[float] = None


class ExchangeRateClient(ABC):
    name: str = "base"

    @abstractmethod
    async def fetch(
        self, source: str, target: str, date: Optional[str] = None
    ) -> ConversionRecord:
        """Return the provider's rate for source -> target (optionally on date)."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
