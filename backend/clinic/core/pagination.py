"""
Page/sort/filter requests shared by every list operation.

Usage:
    page_request = build_page_request(0, 20, "visit_date", ascending=False)
    if is_blank_filter(text):
        page = repo.find_all(page_request)
    else:
        page = repo.find_by_patient_or_doctor_filter(filter_pattern(text), page_request)
"""

from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar

from clinic.core import config
from clinic.core.exceptions import InvalidRequestError

T = TypeVar("T")
R = TypeVar("R")

ASC = "asc"
DESC = "desc"


@dataclass(frozen=True)
class PageRequest:
    """Validated page descriptor handed to repositories."""

    page_index: int
    page_size: int
    sort_field: str
    direction: str = ASC

    @property
    def offset(self) -> int:
        return self.page_index * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def ascending(self) -> bool:
        return self.direction == ASC


@dataclass
class Page(Generic[T]):
    """One page of results plus the total number of matching rows."""

    items: List[T] = field(default_factory=list)
    total: int = 0
    page_index: int = 0
    page_size: int = 0

    @property
    def total_pages(self) -> int:
        if not self.page_size:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    def map(self, fn: Callable[[T], R]) -> "Page[R]":
        return Page(
            items=[fn(item) for item in self.items],
            total=self.total,
            page_index=self.page_index,
            page_size=self.page_size,
        )


def validate_page_bounds(
    page_index: int, page_size: int, max_page_size: Optional[int] = None
) -> None:
    """Raise InvalidRequestError unless 0 <= page_index and 1 <= page_size <= max."""
    limit = max_page_size if max_page_size is not None else config.MAX_PAGE_SIZE
    if page_index is None or page_size is None:
        raise InvalidRequestError("Invalid pagination parameters")
    if page_index < 0 or page_size < 1 or page_size > limit:
        raise InvalidRequestError(
            f"Invalid pagination parameters: page={page_index}, size={page_size} "
            f"(size must be between 1 and {limit})"
        )


def build_page_request(
    page_index: int,
    page_size: int,
    sort_field: str,
    ascending: bool = True,
    max_page_size: Optional[int] = None,
) -> PageRequest:
    """Validate pagination input and build a PageRequest.

    Raises:
        InvalidRequestError: page_index < 0, page_size outside [1, max_page_size]
            or a blank sort_field.
    """
    validate_page_bounds(page_index, page_size, max_page_size)
    if not sort_field or not str(sort_field).strip():
        raise InvalidRequestError("Sort field is required")
    return PageRequest(
        page_index=page_index,
        page_size=page_size,
        sort_field=str(sort_field).strip(),
        direction=ASC if ascending else DESC,
    )


def is_blank_filter(filter_text: Optional[str]) -> bool:
    return filter_text is None or not filter_text.strip()


LIKE_ESCAPE = "\\"


def filter_pattern(filter_text: str) -> str:
    """Return the case-insensitive containment pattern for a non-blank filter.

    `%` and `_` in the filter match literally; use with `escape=LIKE_ESCAPE`.
    """
    text = filter_text.strip().lower()
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"
