"""JSON line logging with per-request context.

Every record carries the id of the HTTP request it was emitted under (or "-"
outside a request), plus the request's method and path, so provider calls
and cache decisions can be traced back to the inbound /convert call.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
request_route_ctx: ContextVar[Optional[str]] = ContextVar("request_route", default=None)

# LogRecord attributes that are not caller-supplied `extra` fields
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "request_id", "route"}


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get() or "-"
        record.route = request_route_ctx.get()
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; `extra=` fields are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        route = getattr(record, "route", None)
        if route:
            line["route"] = route
        for name, value in vars(record).items():
            if name not in _RESERVED and not name.startswith("_"):
                line[name] = value
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def init_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    """Route every logger through JSON handlers on stdout (and log_file if given)."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    level = logging.DEBUG if debug else logging.INFO
    root.setLevel(level)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(RequestContextFilter())
        handler.setFormatter(JsonLineFormatter())
        root.addHandler(handler)

    # httpx logs every request at INFO; our client logs its own lines
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def request_context_middleware(request, call_next):  # type: ignore
    rid = request.headers.get("x-request-id") or uuid.uuid4().hex
    rid_token = request_id_ctx.set(rid)
    route_token = request_route_ctx.set(f"{request.method} {request.url.path}")
    logger = logging.getLogger("app.request")
    logger.debug("request start")
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = rid
        logger.debug("request end", extra={"status": response.status_code})
        return response
    finally:
        request_route_ctx.reset(route_token)
        request_id_ctx.reset(rid_token)
