"""
Conversion between domain dataclasses and JSON-safe structures.

Decimals travel as strings, dates and datetimes as ISO 8601, enums as their
values, tuples as lists. Decoding is driven by the dataclass type hints.
"""
from __future__ import annotations

import dataclasses
import typing
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import lru_cache
from typing import Any, Type, TypeVar, Union

from .domain import AppState

T = TypeVar("T")


class DecodeError(ValueError):
    pass


def to_data(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_data(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (list, tuple)):
        return [to_data(v) for v in obj]
    if isinstance(obj, dict):
        return {k: to_data(v) for k, v in obj.items()}
    return obj


@lru_cache(maxsize=None)
def _hints(cls: type) -> dict[str, Any]:
    return typing.get_type_hints(cls)


def _decode(tp: Any, value: Any) -> Any:
    origin = typing.get_origin(tp)
    if origin is Union:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if value is None:
            return None
        return _decode(args[0], value)
    if origin in (tuple, list):
        if not isinstance(value, (list, tuple)):
            raise DecodeError(f"Expected a list, got {type(value).__name__}")
        inner = typing.get_args(tp)[0]
        items = [_decode(inner, v) for v in value]
        return tuple(items) if origin is tuple else items
    if origin is dict:
        return dict(value)
    if value is None:
        return None
    if dataclasses.is_dataclass(tp):
        return from_data(tp, value)
    if isinstance(tp, type) and issubclass(tp, Enum):
        return tp(value)
    if tp is datetime:
        return value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if tp is date:
        return value if isinstance(value, date) else date.fromisoformat(value)
    if tp is Decimal:
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            raise DecodeError(f"Invalid amount: {value!r}") from e
    if tp is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise DecodeError(f"Expected a number, got {value!r}")
        return float(value)
    if tp is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise DecodeError(f"Expected an integer, got {value!r}")
        return value
    if tp is bool and not isinstance(value, bool):
        raise DecodeError(f"Expected true or false, got {value!r}")
    if tp is str and not isinstance(value, str):
        raise DecodeError(f"Expected a string, got {value!r}")
    return value


def from_data(cls: Type[T], data: Any) -> T:
    if not isinstance(data, dict):
        raise DecodeError(f"Expected an object for {cls.__name__}")
    hints = _hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if f.name not in data:
            continue
        try:
            kwargs[f.name] = _decode(hints[f.name], data[f.name])
        except (ValueError, TypeError) as e:
            raise DecodeError(f"{cls.__name__}.{f.name}: {e}") from e
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise DecodeError(f"{cls.__name__}: {e}") from e


def state_to_data(state: AppState) -> dict:
    return to_data(state)


def state_from_data(data: dict) -> AppState:
    return from_data(AppState, data)
