from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def configure_otel(service_name: str) -> None:
    global _configured
    if _configured:
        return
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    _configured = True


def configure_logging(level: int | str = logging.INFO) -> None:
    logging.basicConfig(level=level, format=_LOG_FORMAT)


class OnceLogger:
    """Emits a given message at most once per key for the lifetime of the instance."""

    def __init__(self, logger: logging.Logger, level: int = logging.INFO) -> None:
        self._logger = logger
        self._level = level
        self._seen: set[Hashable] = set()

    def log(self, key: Hashable, message: str, **extra: Any) -> bool:
        if key in self._seen:
            return False
        self._seen.add(key)
        self._logger.log(self._level, message, extra=extra)
        return True
