from __future__ import annotations

from enum import Enum
from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


class BoundaryPolicy(str, Enum):
    CLAMP = "clamp"
    WRAP = "wrap"


class SelectableList(Generic[T]):
    """Item list with a selected index kept inside bounds by a boundary policy."""

    def __init__(self, policy: BoundaryPolicy = BoundaryPolicy.CLAMP, items: Iterable[T] | None = None) -> None:
        self.policy = BoundaryPolicy(policy)
        self._items: list[T] = list(items or [])
        self._selected = 0

    @property
    def items(self) -> list[T]:
        return list(self._items)

    @property
    def selected_index(self) -> int:
        return self._selected

    def __len__(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def set_items(self, items: Iterable[T], *, keep_selection: bool = False) -> None:
        self._items = list(items or [])
        self.select(self._selected if keep_selection else 0)

    def selected(self) -> T | None:
        if not self._items:
            return None
        return self._items[self._selected]

    def select(self, index: int) -> int:
        count = len(self._items)
        if count <= 0:
            self._selected = 0
            return self._selected
        idx = int(index)
        if self.policy == BoundaryPolicy.WRAP:
            idx %= count
        else:
            idx = max(0, min(count - 1, idx))
        self._selected = idx
        return idx

    def move(self, delta: int) -> int:
        return self.select(self._selected + int(delta))
