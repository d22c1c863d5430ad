"""Bridge and webhook access logging setup.

Everything below the ``bridge`` logger ends up in ``bridge.log``; requests
hitting the webhook service are written to ``access.log`` by a small HTTP
middleware. Both files rotate at midnight. Output is human readable unless
``LOG_JSON`` is enabled, and a console handler mirrors the bridge log for
container deployments.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_CONSOLE,
LOG_REQUEST_BODIES, LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import sys
import time
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request

BRIDGE_LOGGER = "bridge"
ACCESS_LOGGER = "uvicorn.access"


@dataclasses.dataclass(frozen=True)
class LogSettings:
    log_dir: str = "logs"
    level: int = logging.INFO
    json: bool = False
    console: bool = True
    request_bodies: bool = False
    retention_days: int = 7
    rotate_utc: bool = False

    @classmethod
    def from_env(cls) -> "LogSettings":
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        return cls(
            log_dir=os.getenv("LOG_DIR", "logs"),
            level=getattr(logging, level_name, logging.INFO),
            json=os.getenv("LOG_JSON", "false").lower() == "true",
            console=os.getenv("LOG_CONSOLE", "true").lower() == "true",
            request_bodies=os.getenv("LOG_REQUEST_BODIES", "false").lower() == "true",
            retention_days=int(os.getenv("LOG_RETENTION_DAYS", "7")),
            rotate_utc=os.getenv("LOG_ROTATE_UTC", "false").lower() == "true",
        )

    def describe(self) -> dict[str, Any]:
        """Return the effective configuration in a printable form."""

        return {
            "log_dir": os.path.abspath(self.log_dir),
            "log_level": logging.getLevelName(self.level),
            "log_json": self.json,
            "log_console": self.console,
            "retention_days": self.retention_days,
            "rotate_utc": self.rotate_utc,
        }


class JsonFormatter(logging.Formatter):
    """One JSON object per record, used when LOG_JSON=true."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def _get_formatter(log_json: bool) -> logging.Formatter:
    if log_json:
        return JsonFormatter()
    return logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")


SENSITIVE_FIELDS = {
    "authorization",
    "cookie",
    "password",
    "token",
    "access_token",
    "x-hub-signature-256",
}


def _scrub(data: object) -> object:
    """Recursively mask sensitive keys in dictionaries and lists."""

    if isinstance(data, dict):
        return {
            k: ("***" if str(k).lower() in SENSITIVE_FIELDS else _scrub(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_scrub(v) for v in data]
    return data


def _rotating_handler(settings: LogSettings, filename: str) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        os.path.join(settings.log_dir, filename),
        when="midnight",
        backupCount=settings.retention_days,
        utc=settings.rotate_utc,
    )
    handler.setFormatter(_get_formatter(settings.json))
    return handler


def _install_access_logging(app: FastAPI, settings: LogSettings | None = None) -> None:
    """Log one JSON line per webhook request.

    Health checks are skipped. Every other request gets an ``X-Request-Id``
    that is echoed back in the response headers.
    """

    settings = settings or LogSettings.from_env()
    skip_paths = {"/api/health"}
    access_logger = logging.getLogger(ACCESS_LOGGER)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in skip_paths:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id
        start = time.time()

        body_content = None
        if settings.request_bodies:
            body_bytes = await request.body()
            if body_bytes:
                try:
                    body_content = _scrub(json.loads(body_bytes))
                except ValueError:
                    body_content = body_bytes.decode("utf-8", errors="replace")

        response = await call_next(request)

        client_ip = request.headers.get("X-Forwarded-For")
        if not client_ip and request.client is not None:
            client_ip = request.client.host
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round((time.time() - start) * 1000, 2),
            "client_ip": client_ip,
            "headers": _scrub(dict(request.headers)),
        }
        if body_content is not None:
            log_data["body"] = body_content

        response.headers["X-Request-Id"] = request_id
        access_logger.info(json.dumps(log_data, default=str))
        return response


def init_logging(app: FastAPI | None = None, settings: LogSettings | None = None) -> None:
    """Initialise bridge and access loggers."""

    settings = settings or LogSettings.from_env()
    os.makedirs(settings.log_dir, exist_ok=True)

    bridge_logger = logging.getLogger(BRIDGE_LOGGER)
    if not bridge_logger.handlers:
        bridge_logger.addHandler(_rotating_handler(settings, "bridge.log"))
        if settings.console:
            console = logging.StreamHandler(sys.stderr)
            console.setFormatter(_get_formatter(settings.json))
            bridge_logger.addHandler(console)
    bridge_logger.setLevel(settings.level)

    access_logger = logging.getLogger(ACCESS_LOGGER)
    access_logger.handlers.clear()
    access_logger.addHandler(_rotating_handler(settings, "access.log"))
    access_logger.setLevel(settings.level)

    if app is not None:
        cast(Any, app).logger = bridge_logger
        _install_access_logging(app, settings)
