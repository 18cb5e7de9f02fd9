"""Filter and pagination helpers shared by list endpoints."""

import json
import math
from datetime import date, datetime, time, timezone

from sqlalchemy import String, Select, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def search_clause(search: str | None, *columns):
    """Case-insensitive substring match across ``columns``, OR-ed together.

    JSON columns (tags) are matched against their text form. LIKE wildcards
    in ``search`` match literally.
    """
    if not search or not search.strip():
        return None
    term = search.strip().lower()
    for ch in ("\\", "%", "_"):
        term = term.replace(ch, "\\" + ch)
    pattern = f"%{term}%"
    return or_(*(
        func.lower(cast(col, String)).like(pattern, escape="\\") for col in columns
    ))


def _as_datetime(value: date | datetime, *, end: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.max if end else time.min, tzinfo=timezone.utc)


def date_range_clauses(column, start: date | datetime | None, end: date | datetime | None) -> list:
    clauses = []
    if start is not None:
        clauses.append(column >= _as_datetime(start))
    if end is not None:
        clauses.append(column <= _as_datetime(end, end=True))
    return clauses


def normalize_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    page = max(page or DEFAULT_PAGE, 1)
    limit = min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)
    return page, limit


async def paginate(db: AsyncSession, stmt: Select, *, page: int, limit: int) -> tuple[list, int]:
    """Run ``stmt`` for one page. Returns (items, total matching rows)."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "current": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
    }


async def page_response(
    db: AsyncSession,
    stmt: Select,
    *,
    page: int | None,
    limit: int | None,
    schema,
) -> dict:
    """``{"items": [...], "pagination": {...}}`` for one page of ``stmt``."""
    page, limit = normalize_paging(page, limit)
    items, total = await paginate(db, stmt, page=page, limit=limit)
    return {
        "items": [schema.model_validate(i) for i in items],
        "pagination": pagination_meta(page, limit, total),
    }


def parse_list_field(value) -> list[str]:
    """Leniently parse a list-valued form field.

    Accepts a list, a JSON-encoded list, a JSON scalar, or a comma separated
    string. Never raises; unparseable input degrades to a comma split.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = []
        for v in value:
            items.extend(parse_list_field(v) if isinstance(v, str) else [str(v)])
        return _dedupe(items)
    text = str(value).strip()
    if not text:
        return []
    if text.startswith("[") or text.startswith('"'):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return _dedupe(str(v).strip() for v in parsed if str(v).strip())
        if isinstance(parsed, str):
            text = parsed
        else:
            text = text.strip("[]")
    return _dedupe(part.strip().strip('"').strip() for part in text.split(","))


def _dedupe(items) -> list[str]:
    seen = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen
