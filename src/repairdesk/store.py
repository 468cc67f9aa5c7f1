from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable, Iterable, Optional, TypeVar

from .domain import AppState
from .services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def find_by_id(items: Iterable[T], item_id: Optional[str]) -> Optional[T]:
    if item_id is None:
        return None
    for item in items:
        if getattr(item, "id") == item_id:
            return item
    return None


def get_by_id(items: Iterable[T], item_id: Optional[str], label: str) -> T:
    item = find_by_id(items, item_id)
    if item is None:
        raise NotFoundError(f"Unknown {label}: {item_id}")
    return item


def replace_by_id(items: tuple[T, ...], new_item: T) -> tuple[T, ...]:
    new_id_ = getattr(new_item, "id")
    return tuple(new_item if getattr(i, "id") == new_id_ else i for i in items)


def remove_by_id(items: tuple[T, ...], item_id: str) -> tuple[T, ...]:
    return tuple(i for i in items if getattr(i, "id") != item_id)


def require_actor(state: AppState, actor_id: Optional[str]) -> str:
    actor = actor_id or state.current_user_id
    if not actor:
        raise ValidationError("No current user selected.")
    return actor


class Store:
    """Holds the single AppState snapshot and applies transitions one at a time.

    A transition is a pure function ``fn(state, *args, **kwargs)`` returning
    either a new ``AppState`` or a ``(AppState, result)`` pair. If it raises,
    the held state is left untouched.
    """

    def __init__(self, state: Optional[AppState] = None) -> None:
        self._state = state if state is not None else AppState()
        self._lock = threading.Lock()

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, transition: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            outcome = transition(self._state, *args, **kwargs)
            if isinstance(outcome, AppState):
                new_state, result = outcome, None
            else:
                new_state, result = outcome
            self._state = new_state
        logger.debug("Applied %s", getattr(transition, "__name__", transition))
        return result

    def replace(self, state: AppState) -> None:
        with self._lock:
            self._state = state
