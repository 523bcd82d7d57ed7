"""Structured JSON-lines logging with a process-wide default logger."""

from __future__ import annotations

import dataclasses
import enum
import json
import sys
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Any, Optional, TextIO

from pbench.marshal import Marshaller

_WRITE_LOCK = threading.Lock()


class Level(enum.IntEnum):
    """Severity of a log line; higher values are more severe."""

    TRACE = -1
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4
    PANIC = 5
    NO_LEVEL = 6
    DISABLED = 7

    @property
    def label(self) -> str:
        return self.name.lower()


class FatalError(SystemExit):
    """Raised after a fatal message is written; exits the program with status 1."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(1)
        self.message = message

    def __str__(self) -> str:
        return self.message or "fatal error"


def _encode(value: Any) -> Any:
    if isinstance(value, Marshaller):
        if isinstance(value.value, (list, tuple)):
            return value.to_array()
        return value.to_object()
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, timedelta):
        return int(value / timedelta(milliseconds=1))
    if isinstance(value, (date, time)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class Logger:
    """Writes one JSON object per line: level, bound fields, event fields, message."""

    stream: Optional[TextIO] = None
    level: Level = Level.TRACE
    fields: Mapping[str, Any] = field(default_factory=dict)
    override_fatal: bool = False

    def bind(self, **kwargs: Any) -> Logger:
        """Return a child logger that adds these fields to every line."""
        return dataclasses.replace(self, fields={**self.fields, **kwargs})

    def with_level(self, level: Level) -> Logger:
        """Return a copy that drops lines below the given level."""
        return dataclasses.replace(self, level=Level(level))

    def with_output(self, stream: TextIO) -> Logger:
        """Return a copy that writes to another stream."""
        return dataclasses.replace(self, stream=stream)

    def _enabled(self, level: Level) -> bool:
        return self.level <= level < Level.DISABLED

    def log(self, level: Level, message: Optional[str] = None, **kwargs: Any) -> None:
        """Write a line at the given level; fatal and panic levels do not exit here."""
        level = Level(level)
        if not self._enabled(level):
            return
        record: dict[str, Any] = {}
        if level is not Level.NO_LEVEL:
            record["level"] = level.label
        for source in (self.fields, kwargs):
            for key, value in source.items():
                record[key] = _encode(value)
        if message:
            record["message"] = message
        line = json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str)
        stream = self.stream if self.stream is not None else sys.stderr
        with _WRITE_LOCK:
            stream.write(line + "\n")
            stream.flush()

    def debug(self, message: Optional[str] = None, **kwargs: Any) -> None:
        self.log(Level.DEBUG, message, **kwargs)

    def info(self, message: Optional[str] = None, **kwargs: Any) -> None:
        self.log(Level.INFO, message, **kwargs)

    def warn(self, message: Optional[str] = None, **kwargs: Any) -> None:
        self.log(Level.WARN, message, **kwargs)

    def error(self, message: Optional[str] = None, **kwargs: Any) -> None:
        self.log(Level.ERROR, message, **kwargs)

    def fatal(self, message: Optional[str] = None, **kwargs: Any) -> None:
        """Write a fatal line, then raise FatalError unless fatal exits are overridden."""
        self.log(Level.FATAL, message, **kwargs)
        if not self.override_fatal:
            raise FatalError(message)


_global_logger = Logger()


def get_logger() -> Logger:
    """Return the process-wide logger."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Replace the process-wide logger."""
    global _global_logger
    _global_logger = logger