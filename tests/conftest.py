import asyncio
import inspect
import pathlib
import sys
from typing import Optional

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from currency_proxy.core.config import Settings  # noqa: E402
from currency_proxy.core.credentials import Credentials  # noqa: E402
from currency_proxy.core.errors import ProviderError  # noqa: E402
from currency_proxy.services.rates.base import (  # noqa: E402
    ConversionRecord,
    ExchangeRateClient,
)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            funcargs = {
                name: pyfuncitem.funcargs[name]
                for name in pyfuncitem._fixtureinfo.argnames
            }
            loop.run_until_complete(test_function(**funcargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


class FakeExchangeClient(ExchangeRateClient):
    """Counts calls; returns a fixed record or raises the configured error."""

    name = "fake"

    def __init__(
        self,
        rate: float = 0.92,
        *,
        date: Optional[str] = None,
        converted_amount: Optional[float] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.rate = rate
        self.date = date
        self.converted_amount = converted_amount
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str, Optional[str]]] = []
        self.closed = False

    async def fetch(self, source, target, date=None):
        self.calls.append((source, target, date))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ConversionRecord(
            exchange_rate=self.rate,
            date=self.date,
            converted_amount=self.converted_amount,
        )

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(
        credentials_path=tmp_path / "apyhub_credentials.json",
        log_file=None,
        rate_limit_enabled=False,
    )
    s.init_post_load()
    return s


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(token="test-token")


@pytest.fixture
def fake_client() -> FakeExchangeClient:
    return FakeExchangeClient()


@pytest.fixture
def failing_client() -> FakeExchangeClient:
    return FakeExchangeClient(error=ProviderError("invalid currency code", status_code=400))
