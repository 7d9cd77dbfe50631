# Services/listing.py
"""
Client-side list presentation: filter predicates, pagination windows and
dropdown option lists over an already-fetched collection.

Option lists are derived from whatever collection is handed in, normally the
currently loaded (already filtered) result set, so they shrink as filters
narrow the results.
"""
import math
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")

PAGE_SIZE = 6
ADMIN_PAGE_SIZE = 10


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages for *count* items; never less than 1."""
    return max(1, math.ceil(count / page_size))


def clamp_page(page: int, pages: int) -> int:
    return min(max(page, 1), pages)


def page_slice(items: List[T], page: int, page_size: int = PAGE_SIZE) -> List[T]:
    """Items shown on 1-based *page*: ``items[(page-1)*size : page*size]``."""
    start = (page - 1) * page_size
    return items[start:start + page_size]


def distinct_values(items: Iterable[Any], attr: str) -> List[Any]:
    """Distinct non-empty values of *attr*, in first-seen order."""
    seen = []
    for item in items:
        value = item.get(attr) if isinstance(item, dict) else getattr(item, attr, None)
        if value in (None, "") or value in seen:
            continue
        seen.append(value)
    return seen


def parse_number(value: Any) -> Optional[float]:
    """Empty or unparseable form input means "no bound"."""
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def price_in_range(price: float, min_price: Any = None, max_price: Any = None) -> bool:
    low = parse_number(min_price)
    high = parse_number(max_price)
    # A zero bound counts as no bound
    if low and price < low:
        return False
    if high and price > high:
        return False
    return True


class Page(Generic[T]):
    def __init__(self, items: List[T], page: int, pages: int, total: int, page_size: int):
        self.items = items
        self.page = page
        self.pages = pages
        self.total = total
        self.page_size = page_size

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    def as_dict(self, serialize: Callable[[T], Any] = lambda item: item) -> Dict[str, Any]:
        return {
            "items": [serialize(item) for item in self.items],
            "page": self.page,
            "pages": self.pages,
            "total": self.total,
            "page_size": self.page_size,
            "has_previous": self.has_previous,
            "has_next": self.has_next,
        }


def paginate(items: List[T], page: int = 1, page_size: int = PAGE_SIZE) -> Page[T]:
    pages = total_pages(len(items), page_size)
    page = clamp_page(page, pages)
    return Page(page_slice(items, page, page_size), page, pages, len(items), page_size)


class ListState:
    """Filter values plus current page for one list view.

    Changing any filter sends the view back to page 1; navigation is clamped to
    ``1..total_pages``.
    """

    def __init__(self, filter_names: Iterable[str], page_size: int = PAGE_SIZE,
                 defaults: Optional[Dict[str, Any]] = None):
        self._defaults = {name: "" for name in filter_names}
        self._defaults.update(defaults or {})
        self.filters: Dict[str, Any] = dict(self._defaults)
        self.page = 1
        self.page_size = page_size
        self._count = 0

    def set_filter(self, name: str, value: Any) -> None:
        if name not in self.filters:
            raise KeyError(f"Unknown filter: {name}")
        self.filters[name] = value
        self.page = 1

    def reset(self) -> None:
        self.filters = dict(self._defaults)
        self.page = 1

    def view(self, items: List[T]) -> Page[T]:
        self._count = len(items)
        self.page = clamp_page(self.page, total_pages(self._count, self.page_size))
        return paginate(items, self.page, self.page_size)

    @property
    def pages(self) -> int:
        return total_pages(self._count, self.page_size)

    def go_to(self, page: int) -> int:
        self.page = clamp_page(page, self.pages)
        return self.page

    def next_page(self) -> int:
        return self.go_to(self.page + 1)

    def previous_page(self) -> int:
        return self.go_to(self.page - 1)
