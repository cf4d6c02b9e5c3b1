from __future__ import annotations

"""Concrete exchange rate clients and factory.

'apyhub' posts to the APYHub currency conversion endpoint; 'freecurrencyapi'
reads the latest (or historical) quote table and picks out the target.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from currency_proxy.core.errors import CONVERSION_FAILED_MESSAGE, ProviderError
from .base import ConversionKey, ConversionRecord, ExchangeRateClient

logger = logging.getLogger("app.rates.providers")

APYHUB_CONVERT_URL = "https://api.apyhub.com/data/convert/currency"
FREECURRENCYAPI_BASE_URL = "https://api.freecurrencyapi.com/v1/"


def _upstream_message(payload: Any) -> Optional[str]:
    """Pull the provider's own error text out of an error payload, if any."""
    if not isinstance(payload, dict):
        return None
    err = payload.get("error") or payload.get("message")
    if isinstance(err, dict):
        err = err.get("message")
    if isinstance(err, str) and err:
        return err
    return None


def _as_date(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ProviderError(f"malformed date in provider response: {value!r}")
    return value or None


def _as_rate(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProviderError(f"malformed exchange rate in provider response: {value!r}")
    return float(value)


class _HttpExchangeRateClient(ExchangeRateClient):
    """Shared plumbing: one AsyncClient, JSON decoding, error mapping."""

    def __init__(
        self,
        token: str,
        *,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _send(self, method: str, url: str, key: ConversionKey, **kwargs: Any) -> Any:
        logger.info("sending %s request to %s for %s", method, self.name, key)
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("error fetching exchange rate from %s: %s", self.name, e)
            raise ProviderError(f"{self.name} request failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = None
        logger.info(
            "received response from %s for %s: status=%s body=%s",
            self.name,
            key,
            resp.status_code,
            payload if payload is not None else resp.text[:200],
        )

        if not resp.is_success:
            message = _upstream_message(payload) or CONVERSION_FAILED_MESSAGE
            logger.error("error fetching exchange rate from %s: %s", self.name, message)
            raise ProviderError(message, status_code=resp.status_code)
        if not isinstance(payload, dict):
            raise ProviderError(
                f"{self.name} returned a non-JSON-object body", status_code=resp.status_code
            )
        return payload

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class ApyHubClient(_HttpExchangeRateClient):
    name = "apyhub"
    default_url = APYHUB_CONVERT_URL

    def __init__(
        self,
        token: str,
        *,
        url: str = APYHUB_CONVERT_URL,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(token, timeout=timeout, client=client)
        self._url = url

    async def fetch(
        self, source: str, target: str, date: Optional[str] = None
    ) -> ConversionRecord:
        key = ConversionKey.build(source, target, date)
        body: Dict[str, str] = {"source": source, "target": target}
        if date:
            body["date"] = date
        payload = await self._send(
            "POST",
            self._url,
            key,
            json=body,
            headers={"Content-Type": "application/json", "apy-token": self._token},
        )
        if "exchange_rate" not in payload:
            raise ProviderError("apyhub response has no exchange_rate")
        rate = _as_rate(payload["exchange_rate"])
        resolved_date = _as_date(payload.get("date"))
        converted = payload.get("converted_amount")
        return ConversionRecord(
            exchange_rate=rate,
            date=resolved_date,
            converted_amount=_as_rate(converted) if converted is not None else None,
        )


class FreecurrencyapiClient(_HttpExchangeRateClient):
    name = "freecurrencyapi"
    default_url = FREECURRENCYAPI_BASE_URL

    def __init__(
        self,
        token: str,
        *,
        url: str = FREECURRENCYAPI_BASE_URL,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(token, timeout=timeout, client=client)
        self._base_url = url if url.endswith("/") else url + "/"

    async def latest(self, base_currency: str, currencies: str) -> Dict[str, Any]:
        key = ConversionKey.build(base_currency, currencies, None)
        params = {
            "apikey": self._token,
            "base_currency": base_currency,
            "currencies": currencies,
        }
        payload = await self._send("GET", self._base_url + "latest", key, params=params)
        return payload.get("data") or {}

    async def historical(
        self, base_currency: str, currencies: str, date: str
    ) -> Tuple[str, Dict[str, Any]]:
        """Return (resolved date, quotes) for date."""
        key = ConversionKey.build(base_currency, currencies, date)
        params = {
            "apikey": self._token,
            "base_currency": base_currency,
            "currencies": currencies,
            "date": date,
        }
        payload = await self._send(
            "GET", self._base_url + "historical", key, params=params
        )
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ProviderError("freecurrencyapi historical response is malformed")
        # keyed by the resolved date: {"2024-01-01": {"EUR": 0.92}}
        if date in data:
            return date, data[date]
        if not data:
            raise ProviderError(f"freecurrencyapi has no historical rates for {date}")
        resolved_date, quotes = next(iter(data.items()))
        return _as_date(resolved_date) or date, quotes

    async def fetch(
        self, source: str, target: str, date: Optional[str] = None
    ) -> ConversionRecord:
        resolved_date: Optional[str] = None
        if date:
            resolved_date, quotes = await self.historical(source, target, date)
        else:
            quotes = await self.latest(source, target)
        if not isinstance(quotes, dict) or target not in quotes:
            raise ProviderError(f"freecurrencyapi response has no rate for {target}")
        return ConversionRecord(exchange_rate=_as_rate(quotes[target]), date=resolved_date)


_CLIENT_REGISTRY = {
    "apyhub": ApyHubClient,
    "freecurrencyapi": FreecurrencyapiClient,
}


def make_exchange_client(
    kind: str,
    token: str,
    *,
    url: Optional[str] = None,
    timeout: float = 5.0,
    client: Optional[httpx.AsyncClient] = None,
) -> ExchangeRateClient:
    cls = _CLIENT_REGISTRY.get(kind)
    if not cls:
        raise ValueError(f"Unknown exchange rate provider '{kind}'")
    return cls(token, url=url or cls.default_url, timeout=timeout, client=client)
