from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Sequence, TypeVar

from ..core.constants import DEFAULT_PER_PAGE, MAX_PER_PAGE

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    @classmethod
    def from_args(cls, args, default_per_page: int = DEFAULT_PER_PAGE) -> "PageRequest":
        def _int(name: str, default: int) -> int:
            try:
                return int(args.get(name, default))
            except (TypeError, ValueError):
                return default

        page = max(_int("page", 1), 1)
        per_page = min(max(_int("per_page", default_per_page), 1), MAX_PER_PAGE)
        return cls(page=page, per_page=per_page)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


@dataclass(frozen=True)
class Page(Generic[T]):
    items: Sequence[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    @property
    def last_page(self) -> int:
        return max((self.total + self.per_page - 1) // self.per_page, 1)
