"""
Loop Query Builder

Filtered, sorted views over the loops table. Sort columns come from a
closed mapping; unknown names fall back to created_at.
"""

from datetime import timedelta

from models import db, Loop
from utils import local_today
from .types import LoopFilters, OPEN_STATUSES, status_variants

SORTABLE_FIELDS = {
    'created_at': Loop.created_at,
    'updated_at': Loop.updated_at,
    'end_date': Loop.end_date,
    'sale': Loop.sale,
    'status': Loop.status,
    'type': Loop.type,
}

DEFAULT_SORT = 'created_at'
DEFAULT_CLOSING_DAYS = 3


def build_loop_query(filters: LoopFilters):
    """Build (but do not execute) the query for a set of filters."""
    query = Loop.query.filter(Loop.archived == bool(filters.archived))

    if filters.status:
        query = query.filter(Loop.status.in_(status_variants(filters.status)))

    if filters.type:
        query = query.filter(Loop.type == filters.type)

    if filters.creator_id:
        query = query.filter(Loop.creator_id == filters.creator_id)

    if filters.search:
        # % and _ in the search text match literally
        query = query.filter(
            db.or_(
                Loop.property_address.icontains(filters.search, autoescape=True),
                Loop.client_name.icontains(filters.search, autoescape=True),
                Loop.tags.icontains(filters.search, autoescape=True)
            )
        )

    column = SORTABLE_FIELDS.get(filters.sort, SORTABLE_FIELDS[DEFAULT_SORT])
    if filters.order == 'asc':
        query = query.order_by(column.asc(), Loop.id.asc())
    else:
        query = query.order_by(column.desc(), Loop.id.desc())

    if filters.limit:
        query = query.limit(filters.limit)

    return query


def build_closing_query(days: int = DEFAULT_CLOSING_DAYS, today=None):
    """Open, non-archived loops whose end_date is in [today, today + days]."""
    today = today or local_today()
    return Loop.query.filter(
        Loop.archived.is_(False),
        Loop.end_date.isnot(None),
        Loop.end_date >= today,
        Loop.end_date <= today + timedelta(days=days),
        Loop.status.in_(OPEN_STATUSES)
    ).order_by(Loop.end_date.asc(), Loop.id.asc())
