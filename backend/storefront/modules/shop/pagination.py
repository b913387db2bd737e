"""
Cursor pagination shared by item and order listings.

A page is addressed by ``before`` (ids >= before, walking towards newer rows)
or ``after`` (ids <= after, walking towards older rows). Pages are always
returned newest first. One extra row is fetched to learn whether another
page exists in the walking direction.

Usage:
    params = PaginationParams(per_page=20, after=118)
    params.normalize()
    query = apply_cursor(select(Item), Item.id, params)
    rows = list((await db.execute(query)).scalars())
    rows, pages = build_page(rows, params, request.url)
"""

from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select
from sqlalchemy.orm import InstrumentedAttribute
from starlette.datastructures import URL

from storefront.core.config import settings

T = TypeVar("T")


@dataclass
class PaginationParams:
    """Requested page size and cursor."""

    per_page: int = 0
    before: int = 0
    after: int = 0

    def normalize(self) -> "PaginationParams":
        """Clamp values into their valid ranges, in place."""
        if self.per_page <= 0:
            self.per_page = settings.shop_items_per_page_default
        if self.per_page > settings.shop_items_per_page_max:
            self.per_page = settings.shop_items_per_page_max
        if self.before < 0:
            self.before = 0
        if self.after < 0:
            self.after = 0
        return self

    @property
    def is_initial(self) -> bool:
        return self.before == 0 and self.after == 0

    @property
    def walks_after(self) -> bool:
        # after wins when a client sends both
        return self.after > 0

    @property
    def walks_before(self) -> bool:
        return self.after == 0 and self.before > 0


class PaginationResponse(BaseModel):
    """Cursors for the neighbouring pages; ``None`` when there is none."""

    cursor_before: str | None = None
    cursor_after: str | None = None
    before: str | None = None
    after: str | None = None


def apply_cursor(
    query: Select,
    id_column: InstrumentedAttribute,
    params: PaginationParams,
) -> Select:
    """Restrict, order and limit ``query`` for the requested page."""
    if params.walks_after:
        query = query.where(id_column <= params.after).order_by(id_column.desc())
    elif params.walks_before:
        query = query.where(id_column >= params.before).order_by(id_column.asc())
    else:
        query = query.where(id_column > 0).order_by(id_column.desc())

    return query.limit(params.per_page + 1)


def _cursor_url(url: URL, key: str, value: int) -> str:
    drop = "after" if key == "before" else "before"
    cursor = url.remove_query_params(drop).include_query_params(**{key: value})
    return f"{cursor.path}?{cursor.query}"


def build_page(
    rows: Sequence[T],
    params: PaginationParams,
    url: URL,
    key: Callable[[T], int] = lambda row: row.id,
) -> tuple[list[T], PaginationResponse]:
    """
    Trim the look-ahead row and compute cursors.

    Args:
        rows: Rows as returned by a query built with ``apply_cursor``
        params: The normalized params used for that query
        url: Current request URL; cursors are built from it
        key: Extracts the row id

    Returns:
        Rows newest first, plus the cursors of the adjacent pages
    """
    data = list(rows)
    if params.walks_before:
        data.reverse()

    pages = PaginationResponse()
    if not data:
        return data, pages

    before_id: int | None = None
    after_id: int | None = None

    if len(data) > params.per_page:
        if params.walks_before:
            # Extra row is the newest one: there is a newer page starting at it
            extra = data.pop(0)
            before_id = key(extra)
            after_id = key(data[-1]) - 1
        else:
            # Extra row is the oldest one: the next page starts at it
            extra = data.pop()
            after_id = key(extra)
            if params.walks_after:
                before_id = key(data[0]) + 1
    elif params.walks_before:
        after_id = key(data[-1]) - 1
    elif params.walks_after:
        before_id = key(data[0]) + 1

    if before_id is not None:
        pages.before = str(before_id)
        pages.cursor_before = _cursor_url(url, "before", before_id)
    # after=0 would mean "first page", so a walk that reached id 1 stops here
    if after_id is not None and after_id > 0:
        pages.after = str(after_id)
        pages.cursor_after = _cursor_url(url, "after", after_id)

    return data, pages
