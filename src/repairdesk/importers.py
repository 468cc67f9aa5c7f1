from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from .domain import Customer
from .serialization import DecodeError, from_data, to_data


class ImportError(Exception):
    pass


def export_customers_json(customers: Iterable[Customer]) -> str:
    return json.dumps([to_data(c) for c in customers], ensure_ascii=False, indent=2)


def parse_customers_json(text: str) -> tuple[Customer, ...]:
    """Parse a customer export. Any bad record rejects the whole batch."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise ImportError("JSON must be a list of customer objects")

    customers = []
    for i, obj in enumerate(data):
        if not isinstance(obj, dict):
            raise ImportError(f"Record {i} is not an object")
        for key in ("id", "name", "phone"):
            if not str(obj.get(key) or "").strip():
                raise ImportError(f"Record {i} is missing '{key}'")
        try:
            customers.append(from_data(Customer, obj))
        except DecodeError as e:
            raise ImportError(f"Record {i}: {e}") from e
    return tuple(customers)


def read_customers_json(path: str | Path) -> tuple[Customer, ...]:
    p = Path(path)
    if not p.exists():
        raise ImportError(f"File not found: {p}")
    return parse_customers_json(p.read_text(encoding="utf-8"))


def write_customers_json(path: str | Path, customers: Iterable[Customer]) -> int:
    customers = list(customers)
    Path(path).write_text(export_customers_json(customers), encoding="utf-8")
    return len(customers)
