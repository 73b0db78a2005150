from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from linkeater.store import StoreError


@dataclass(frozen=True, slots=True)
class Link:
    url: str
    author: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class Stored:
    url: str
    link: Link


@dataclass(frozen=True, slots=True)
class Repost:
    url: str
    original_author: str
    original_time: datetime


@dataclass(frozen=True, slots=True)
class Skipped:
    url: str
    reason: str


Outcome = Union[Stored, Repost, Skipped]


class BadPatternError(ValueError):
    """Raised when a search pattern is not a valid regular expression."""

    def __init__(self, pattern: str, detail: str) -> None:
        super().__init__(f"invalid pattern {pattern!r}: {detail}")
        self.pattern = pattern
        self.detail = detail


@dataclass(slots=True)
class QueryResult:
    matches: list[Link] = field(default_factory=list)
    error: BadPatternError | StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
