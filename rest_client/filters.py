# rest_client/filters.py
"""
History filters.

A HistoryFilter holds the optional method/status/search criteria from a history
query and is translated into SQLAlchemy conditions (ANDed together). Values
are always bound as parameters.
"""
import os
from dataclasses import dataclass
from typing import Optional, List, Tuple

from sqlalchemy import or_

STATUS_MODE_CLASS = "class"
STATUS_MODE_EXACT = "exact"

STATUS_FILTER_MODE = os.getenv("STATUS_FILTER_MODE", STATUS_MODE_CLASS).strip().lower()

# submitted value -> [low, high)
STATUS_CLASSES = {
    200: (200, 300),
    300: (300, 400),
    400: (400, 500),
    500: (500, 600),
}

LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class StatusPredicate:
    """Either an exact status code or a half-open [low, high) range."""
    low: int
    high: Optional[int] = None

    @property
    def is_range(self) -> bool:
        return self.high is not None

    def matches(self, status: int) -> bool:
        if self.is_range:
            return self.low <= status < self.high
        return status == self.low


def status_predicate(value: int, mode: Optional[str] = None) -> StatusPredicate:
    mode = (mode or STATUS_FILTER_MODE)
    if mode not in (STATUS_MODE_CLASS, STATUS_MODE_EXACT):
        raise ValueError(f"unknown status filter mode: {mode!r}")
    if mode == STATUS_MODE_CLASS and value in STATUS_CLASSES:
        low, high = STATUS_CLASSES[value]
        return StatusPredicate(low=low, high=high)
    return StatusPredicate(low=value)


@dataclass(frozen=True)
class HistoryFilter:
    method: Optional[str] = None
    status: Optional[StatusPredicate] = None
    search: Optional[str] = None

    @classmethod
    def from_params(
        cls,
        method: Optional[str] = None,
        status: Optional[int] = None,
        search: Optional[str] = None,
        status_mode: Optional[str] = None,
    ) -> "HistoryFilter":
        return cls(
            method=method or None,
            status=status_predicate(status, status_mode) if status is not None else None,
            search=search or None,
        )

    def cache_key(self) -> Tuple:
        status = (self.status.low, self.status.high) if self.status else None
        return (self.method, status, self.search)


def escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def build_conditions(model, history_filter: HistoryFilter) -> List:
    conditions = []
    if history_filter.method is not None:
        conditions.append(model.method == history_filter.method)
    predicate = history_filter.status
    if predicate is not None:
        if predicate.is_range:
            conditions.append(model.status >= predicate.low)
            conditions.append(model.status < predicate.high)
        else:
            conditions.append(model.status == predicate.low)
    if history_filter.search is not None:
        pattern = f"%{escape_like(history_filter.search)}%"
        conditions.append(or_(
            model.url.ilike(pattern, escape=LIKE_ESCAPE),
            model.response.ilike(pattern, escape=LIKE_ESCAPE),
        ))
    return conditions
