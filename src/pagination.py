import re
from dataclasses import dataclass
from typing import Any, Collection, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

_SORT_RE = re.compile(r"^([A-Za-z_]+):(asc|desc)$", re.IGNORECASE)

T = TypeVar("T")


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: str

    @property
    def descending(self) -> bool:
        return self.direction == "desc"

    def __str__(self) -> str:
        return f"{self.field}:{self.direction}"


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int
    sort: SortSpec

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def clamp_page(page: Optional[int]) -> int:
    if page is None or page < 1:
        return 1
    return page


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return min(max(1, limit), MAX_LIMIT)


def total_pages(total: int, limit: int) -> int:
    # ceil(total / limit) without going through floats
    return -(-total // limit)


def parse_sort(value: str, sortable: Collection[str], field: str = "sort") -> SortSpec:
    """
    Parse a ``field:direction`` sort string.

    Raises a pydantic custom error so it can be used from model validators.
    """
    match = _SORT_RE.match(value.strip())
    if not match:
        raise PydanticCustomError(
            "sort_format", f"{field} must look like field:asc or field:desc"
        )
    name, direction = match.group(1), match.group(2).lower()
    if name not in sortable:
        raise PydanticCustomError(
            "sort_field", f"{field} field must be one of: {', '.join(sorted(sortable))}"
        )
    return SortSpec(name, direction)


class PageMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int
    sort: str
    filters: Dict[str, Any] = Field(default_factory=dict)


class Page(BaseModel, Generic[T]):
    meta: PageMeta
    data: List[T]


def build_meta(request: PageRequest, total: int, filters: Dict[str, Any]) -> PageMeta:
    return PageMeta(
        page=request.page,
        limit=request.limit,
        total=total,
        total_pages=total_pages(total, request.limit),
        sort=str(request.sort),
        filters=filters,
    )
