from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., PORT, CREDENTIALS_PATH,
    EXCHANGE_RATE_PROVIDER, RATE_LIMIT_MAX_REQUESTS, LOG_FILE).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Currency Conversion Proxy"
    debug: bool = False
    version: str = "0.1.0"

    # Listener
    host: str = "0.0.0.0"
    port: int = 3000

    # Credentials (JSON file with a "token" field)
    credentials_path: Path = Path("apyhub_credentials.json")

    # Exchange rate provider
    # Allowed: 'apyhub' (convert endpoint, default), 'freecurrencyapi' (latest/historical)
    exchange_rate_provider: str = "apyhub"
    apyhub_convert_url: AnyHttpUrl = "https://api.apyhub.com/data/convert/currency"
    freecurrencyapi_base_url: AnyHttpUrl = "https://api.freecurrencyapi.com/v1/"
    http_timeout_seconds: float = 5.0

    # Share one outbound call between concurrent identical misses
    coalesce_requests: bool = True

    # Request admission (per client address, sliding window)
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: float = 900

    # Interactive API docs path
    docs_url: str = "/api-docs"

    # Logging; None keeps stdout only
    log_file: Optional[Path] = Path("logs/app.log")

    def init_post_load(self) -> None:
        """Validate derived / cross-field values."""
        allowed = {"apyhub", "freecurrencyapi"}
        if self.exchange_rate_provider not in allowed:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{self.exchange_rate_provider}'. Allowed: {allowed}"
            )
        if self.rate_limit_max_requests <= 0:
            raise ValueError("rate_limit_max_requests must be positive")
        if self.rate_limit_window_seconds <= 0:
            raise ValueError("rate_limit_window_seconds must be positive")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
