"""Convert arbitrary Python objects into JSON-ready structures for structured logs.

Nested containers are expanded up to a depth limit, and every object, mapping
and sequence is cut off after a maximum number of fields or elements.
"""

from __future__ import annotations

import dataclasses
import enum
import types
from collections.abc import Mapping
from datetime import date, time, timedelta
from typing import Any

DEFAULT_NESTED_LEVEL_LIMIT = 3
DEFAULT_FIELD_OR_ELEMENT_LIMIT = 15

FIELD_TRUNCATED = "<field truncated>"
MAP_TRUNCATED = "<map truncated>"
ELLIPSIS = "..."

_SKIP = object()
_NOT_STRUCTS = (
    type,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.ModuleType,
    BaseException,
    enum.Enum,
)
_KINDS = (
    ("bool", bool),
    ("int", int),
    ("float", float),
    ("complex", complex),
    ("str", str),
    ("bytes", bytes),
)


def to_snake_case(name: str) -> str:
    """Turn ASCII capitals into lower case, with an underscore before all but a leading one."""
    out = []
    for index, char in enumerate(name):
        if "A" <= char <= "Z":
            if index > 0:
                out.append("_")
            out.append(char.lower())
        else:
            out.append(char)
    return "".join(out)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_struct(value: Any) -> bool:
    if isinstance(value, _NOT_STRUCTS):
        return False
    if dataclasses.is_dataclass(value):
        return True
    return hasattr(value, "__dict__")


def _is_stringer(value: Any) -> bool:
    return type(value).__str__ is not object.__str__


def _struct_fields(value: Any) -> list[tuple[str, Any]]:
    if dataclasses.is_dataclass(value):
        return [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
    return list(vars(value).items())


def _key_text(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "<nil>"
    return str(key)


def _placeholder(value: Any) -> str:
    return f"<{type(value).__name__} Value>"


def _duration_ms(value: timedelta) -> int:
    return int(value / timedelta(milliseconds=1))


def _kind(value: Any) -> str:
    if value is None:
        return "invalid"
    for name, kind in _KINDS:
        if isinstance(value, kind):
            return name
    return "object"


class Marshaller:
    """Serialises one value into dictionaries and lists with size and depth limits."""

    def __init__(
        self,
        obj: Any,
        nested_level: int = 1,
        nested_level_limit: int = DEFAULT_NESTED_LEVEL_LIMIT,
        field_or_element_limit: int = DEFAULT_FIELD_OR_ELEMENT_LIMIT,
    ) -> None:
        self.value = obj
        self.nested_level = nested_level
        self.nested_level_limit = nested_level_limit
        self.field_or_element_limit = field_or_element_limit

    def __repr__(self) -> str:
        return (
            f"Marshaller({self.value!r}, nested_level={self.nested_level}, "
            f"nested_level_limit={self.nested_level_limit}, "
            f"field_or_element_limit={self.field_or_element_limit})"
        )

    def nest(self) -> Marshaller:
        """Go one level deeper and return this marshaller."""
        self.nested_level += 1
        return self

    def _child(self, value: Any) -> Marshaller:
        return Marshaller(
            value,
            self.nested_level,
            self.nested_level_limit,
            self.field_or_element_limit,
        )

    def _too_deep(self) -> bool:
        return self.nested_level + 1 > self.nested_level_limit

    def to_object(self) -> dict[str, Any]:
        """Render the value as a JSON object."""
        value = self.value
        if isinstance(value, Mapping):
            return self._map_object(value)
        if _is_struct(value):
            result: dict[str, Any] = {}
            for index, (name, field_value) in enumerate(_struct_fields(value)):
                if index >= self.field_or_element_limit:
                    result[ELLIPSIS] = FIELD_TRUNCATED
                    break
                self._put(result, to_snake_case(name), field_value)
            return result
        if _is_sequence(value):
            return {"array": self.to_array()}
        return {
            "kind": _kind(value),
            "type": type(value).__qualname__,
            "value": str(value) if _is_stringer(value) else repr(value),
        }

    def _map_object(self, mapping: Mapping) -> dict[str, Any]:
        keys: dict[str, Any] = {}
        for key in mapping:
            keys[_key_text(key)] = key
        result: dict[str, Any] = {}
        for index, name in enumerate(sorted(keys)):
            if index >= self.field_or_element_limit:
                result[ELLIPSIS] = MAP_TRUNCATED
                break
            self._put(result, to_snake_case(name), mapping[keys[name]])
        return result

    def _put(self, result: dict[str, Any], name: str, value: Any) -> None:
        converted = self._field_value(value)
        if converted is not _SKIP:
            result[name] = converted

    def _field_value(self, value: Any) -> Any:
        if value is None:
            return _SKIP
        if isinstance(value, BaseException):
            return str(value)
        if isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, timedelta):
            return _duration_ms(value)
        if isinstance(value, (date, time)):
            return value.isoformat()
        if _is_sequence(value):
            if self._too_deep():
                return _placeholder(value)
            return self._child(value).nest().to_array()
        if isinstance(value, Mapping) or _is_struct(value):
            if self._too_deep():
                return _placeholder(value)
            return self._child(value).nest().to_object()
        if _is_stringer(value):
            return str(value)
        return Marshaller(value).to_object()

    def to_array(self) -> list[Any]:
        """Render the value as a JSON array; anything that is not a sequence gives an empty one."""
        if not _is_sequence(self.value):
            return []
        result: list[Any] = []
        for index, element in enumerate(self.value):
            if index >= self.field_or_element_limit:
                result.append(ELLIPSIS)
                break
            converted = self._element_value(element)
            if converted is not _SKIP:
                result.append(converted)
        return result

    def _element_value(self, value: Any) -> Any:
        if value is None:
            return _SKIP
        if isinstance(value, BaseException):
            return str(value)
        if isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, timedelta):
            return _duration_ms(value)
        if isinstance(value, (date, time)):
            return value.isoformat()
        if isinstance(value, Mapping) or _is_struct(value):
            if self._too_deep():
                return _placeholder(value)
            return self._child(value).nest().to_object()
        if _is_stringer(value):
            return str(value)
        return self._child(value).to_object()