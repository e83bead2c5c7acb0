"""Structured logging with key/value fields and context-carried values."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping

_LOG_VALUES_KEY = object()


def ctx_with_values(parent: Mapping[Any, Any] | None, kv: Mapping[str, Any]) -> dict:
    """Return a copy of ``parent`` whose log values are merged with ``kv``."""
    ctx = dict(parent or {})
    ctx[_LOG_VALUES_KEY] = {**values_from_ctx(parent), **kv}
    return ctx


def values_from_ctx(ctx: Mapping[Any, Any] | None) -> dict:
    """Return the log values stored on ``ctx`` (empty when there are none)."""
    if not ctx:
        return {}
    values = ctx.get(_LOG_VALUES_KEY)
    return dict(values) if isinstance(values, dict) else {}


class Logger(ABC):
    """Interface of the loggers used across the package."""

    @abstractmethod
    def info(self, msg: str, *args: Any) -> None: ...

    @abstractmethod
    def warning(self, msg: str, *args: Any) -> None: ...

    @abstractmethod
    def error(self, msg: str, *args: Any) -> None: ...

    @abstractmethod
    def debug(self, msg: str, *args: Any) -> None: ...

    @abstractmethod
    def with_values(self, values: Mapping[str, Any]) -> "Logger": ...

    def with_ctx_values(self, ctx: Mapping[Any, Any] | None) -> "Logger":
        """Return a logger carrying the values stored on ``ctx``."""
        return self.with_values(values_from_ctx(ctx))

    def set_values_on_ctx(self, parent: Mapping[Any, Any] | None, values: Mapping[str, Any]) -> dict:
        """Return a context holding ``values`` on top of the ones in ``parent``."""
        return ctx_with_values(parent, values)


class NoopLogger(Logger):
    """Logger that discards everything."""

    def info(self, msg: str, *args: Any) -> None:
        pass

    def warning(self, msg: str, *args: Any) -> None:
        pass

    def error(self, msg: str, *args: Any) -> None:
        pass

    def debug(self, msg: str, *args: Any) -> None:
        pass

    def with_values(self, values: Mapping[str, Any]) -> "NoopLogger":
        return self

    def with_ctx_values(self, ctx: Mapping[Any, Any] | None) -> "NoopLogger":
        return self

    def set_values_on_ctx(self, parent, values):
        return parent


NOOP = NoopLogger()


class StdLogger(Logger):
    """Logger backed by the standard :mod:`logging` module."""

    def __init__(self, logger: logging.Logger | None = None, values: Mapping[str, Any] | None = None):
        self._logger = logger if logger is not None else logging.getLogger("sloth")
        self._values = dict(values or {})

    def values(self) -> dict:
        """Return a copy of the fields attached to this logger."""
        return dict(self._values)

    def _log(self, level: int, msg: str, args: tuple) -> None:
        if not self._logger.isEnabledFor(level):
            return
        text = msg % args if args else msg
        if self._values:
            fields = " ".join(f"{k}={v}" for k, v in sorted(self._values.items()))
            text = f"{text} {fields}"
        self._logger.log(level, "%s", text, extra={"sloth_values": dict(self._values)})

    def info(self, msg: str, *args: Any) -> None:
        self._log(logging.INFO, msg, args)

    def warning(self, msg: str, *args: Any) -> None:
        self._log(logging.WARNING, msg, args)

    def error(self, msg: str, *args: Any) -> None:
        self._log(logging.ERROR, msg, args)

    def debug(self, msg: str, *args: Any) -> None:
        self._log(logging.DEBUG, msg, args)

    def with_values(self, values: Mapping[str, Any]) -> "StdLogger":
        return StdLogger(self._logger, {**self._values, **values})