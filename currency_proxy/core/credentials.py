"""Provider credential loading.

The token lives in a small JSON file next to the service (``{"token": "..."}``).
It is read once during startup; any problem is reported as ``ConfigError`` so
the entry point can refuse to start instead of serving requests without a
token.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

logger = logging.getLogger("app.credentials")


@dataclass(frozen=True)
class Credentials:
    token: str

    def __repr__(self) -> str:
        return "Credentials(token='***')"


def load_credentials(path: Path) -> Credentials:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.error("error reading credentials: %s", e)
        raise ConfigError(f"cannot read credentials file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.error("error reading credentials: %s", e)
        raise ConfigError(f"credentials file {path} is not valid JSON") from e

    token = data.get("token") if isinstance(data, dict) else None
    if not isinstance(token, str) or not token:
        logger.error("error reading credentials: no token in %s", path)
        raise ConfigError(f"credentials file {path} has no 'token' field")

    logger.info("successfully read credentials")
    return Credentials(token=token)
