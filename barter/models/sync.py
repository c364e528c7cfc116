"""Snapshot type delivered by the realtime sync bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """Full decoded state of one collection path at a point in time."""

    path: str
    items: dict[str, T] = field(default_factory=dict)
    version: int = 0
    replay: bool = False
    dropped: int = 0

    def values(self) -> list[T]:
        return list(self.items.values())

    def __contains__(self, key: object) -> bool:
        return key in self.items

    def __len__(self) -> int:
        return len(self.items)
