"""
VetPintar Backend — Shared Service Helpers
============================================

What:  Offset pagination, free-text search filters and the error-wrapping
       helper every domain service uses.

Pagination:
    Two queries per page:
        SELECT count(*) FROM (<filtered query>)
        <filtered query> ORDER BY ... OFFSET (page-1)*limit LIMIT limit
    total_pages = ceil(total / limit), 0 when total is 0.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, NoReturn, Optional

from pydantic import BaseModel
from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vetpintar.exceptions import DatabaseError, VetPintarError

logger = logging.getLogger(__name__)


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20

    @property
    def total_pages(self) -> int:
        if self.total == 0 or self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)


async def paginate(db: AsyncSession, query: Select, page: int, limit: int) -> Page:
    page = max(page, 1)
    limit = max(limit, 1)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    items = list(result.scalars().all())

    return Page(items=items, total=total, page=page, limit=limit)


def search_filter(search: Optional[str], *columns):
    """
    Case-insensitive OR of `column ILIKE %search%` over `columns`.

    Returns None for an empty search so callers can write:
        clause = search_filter(search, Patient.name, Patient.breed)
        if clause is not None:
            query = query.where(clause)
    """
    if not search or not search.strip():
        return None
    pattern = f"%{search.strip()}%"
    return or_(*(column.ilike(pattern) for column in columns))


def wrap_unexpected(exc: Exception, operation: str, **context: Any) -> NoReturn:
    """
    Re-raises application errors and IntegrityError (answered with 409 by
    the global handler) unchanged; anything else is logged with a stack
    trace and surfaced as a generic DatabaseError.
    """
    if isinstance(exc, (VetPintarError, IntegrityError)):
        raise exc
    logger.error("Unexpected error during %s: %s", operation, exc, exc_info=True)
    raise DatabaseError(
        message=f"Could not {operation}. Please try again.",
        context={"error_type": type(exc).__name__, **{k: str(v) for k, v in context.items()}},
    ) from exc


def changed_fields(
    data: BaseModel, clearable: Collection[str] = (), exclude: Collection[str] = ()
) -> Dict[str, Any]:
    """
    Fields the client actually sent in a partial update.

    An explicit null only clears a field named in `clearable` (a nullable
    column); on any other field it means "leave as is".
    """
    changes = data.model_dump(exclude_unset=True, exclude=set(exclude))
    return {
        name: value for name, value in changes.items()
        if value is not None or name in clearable
    }
