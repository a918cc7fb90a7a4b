"""Typed results for calls into external sources (directory, roster file)."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from eotm.models.employee import EmployeeRecord

T = TypeVar("T")


class SyncState(str, Enum):
    FETCHING = "fetching"
    MATCHING = "matching"
    EVALUATING = "evaluating"
    DIFFING = "diffing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchError:
    source: str
    message: str


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """A value plus the error that produced it, if any.

    A failed fetch still carries an (empty) value so callers can degrade,
    while ``ok`` distinguishes "legitimately empty" from "source failed".
    """

    value: T
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, value: T, source: str, message: str) -> FetchResult[T]:
        return cls(value=value, error=FetchError(source=source, message=message))


@dataclass
class DirectoryPage:
    employees: list[EmployeeRecord] = field(default_factory=list)
    next_page_token: str | None = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token)
