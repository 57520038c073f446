import math
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from unitrack.schemas.response_schemas import AggregateCounters, PageState
from unitrack.utils.errors import ValidationError

T = TypeVar("T")
FieldSpec = Union[str, Callable[[Any], Any]]


def _read_number(item: Any, spec: FieldSpec) -> int:
    if callable(spec):
        value = spec(item)
    elif isinstance(item, dict):
        value = item.get(spec)
    else:
        value = getattr(item, spec, None)
    return value or 0


@dataclass(frozen=True)
class CacheSnapshot(Generic[T]):
    items: Tuple[T, ...]
    current_page: int


class PaginatedCollectionCache(Generic[T]):
    """
    A full in-memory collection viewed one page at a time.

    Out-of-range pages are clamped into [1, max(total_pages, 1)], never
    rejected: a stale view may ask for a page that vanished after a delete.
    The two aggregate sums are derived from the full collection and only
    recomputed when the collection is replaced.
    """

    def __init__(
        self,
        page_size: int = 8,
        aggregate_fields: Optional[Tuple[FieldSpec, FieldSpec]] = None,
        items: Optional[Iterable[T]] = None,
    ):
        if page_size <= 0:
            raise ValidationError(
                f"Page size must be greater than zero, got {page_size}",
                "INVALID_PAGE_SIZE",
            )
        self._page_size = page_size
        self._aggregate_fields = aggregate_fields
        self._items: List[T] = []
        self._current_page = 1
        self._visible: List[T] = []
        self._aggregates = AggregateCounters()
        self.replace(items or [])

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def items(self) -> List[T]:
        return list(self._items)

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def total_items(self) -> int:
        return len(self._items)

    @property
    def total_pages(self) -> int:
        return math.ceil(len(self._items) / self._page_size)

    @property
    def has_next(self) -> bool:
        return self._current_page * self._page_size < len(self._items)

    @property
    def has_prev(self) -> bool:
        return self._current_page > 1

    def _clamp(self, page: int) -> int:
        return min(max(int(page), 1), max(self.total_pages, 1))

    def _slice(self) -> None:
        start = (self._current_page - 1) * self._page_size
        self._visible = self._items[start : start + self._page_size]

    def _compute_aggregates(self) -> AggregateCounters:
        if not self._aggregate_fields:
            return AggregateCounters()
        field_a, field_b = self._aggregate_fields
        return AggregateCounters(
            sum_a=sum(_read_number(item, field_a) for item in self._items),
            sum_b=sum(_read_number(item, field_b) for item in self._items),
        )

    def replace(self, items: Iterable[T], preserve_page: bool = False) -> None:
        """
        Swap in a new full collection.

        The view goes back to page 1, unless `preserve_page` is set (background
        refresh), in which case the current page is kept and clamped.
        """
        self._items = list(items)
        self._current_page = self._clamp(self._current_page) if preserve_page else 1
        self._aggregates = self._compute_aggregates()
        self._slice()

    def set_page(self, page: int) -> None:
        self._current_page = self._clamp(page)
        self._slice()

    def next_page(self) -> None:
        self.set_page(self._current_page + 1)

    def prev_page(self) -> None:
        self.set_page(self._current_page - 1)

    def visible(self) -> List[T]:
        return list(self._visible)

    def aggregates(self) -> AggregateCounters:
        return self._aggregates.model_copy()

    def page_state(self) -> PageState:
        return PageState(
            current_page=self._current_page,
            page_size=self._page_size,
            total_items=len(self._items),
            total_pages=self.total_pages,
            has_next=self.has_next,
            has_prev=self.has_prev,
        )

    def snapshot(self) -> CacheSnapshot[T]:
        return CacheSnapshot(items=tuple(self._items), current_page=self._current_page)

    def restore(self, snapshot: CacheSnapshot[T]) -> None:
        self._items = list(snapshot.items)
        self._current_page = self._clamp(snapshot.current_page)
        self._aggregates = self._compute_aggregates()
        self._slice()
