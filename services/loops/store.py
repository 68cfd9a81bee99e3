"""
Loop Store

Persistence for Loop rows. Missing ids yield an affected count of 0;
callers translate that into NotFound.
"""

import logging
from datetime import datetime
from typing import List, Optional

from models import db, Loop
from .query import DEFAULT_CLOSING_DAYS, build_closing_query, build_loop_query
from .types import LoopFilters, LoopPatch, LoopStatus, status_variants

logger = logging.getLogger(__name__)


class LoopStore:
    """CRUD, archive and aggregate queries over loops."""

    @classmethod
    def create(cls, loop: Loop) -> int:
        db.session.add(loop)
        db.session.commit()
        logger.info(f"Created loop {loop.id} ({loop.property_address})")
        return loop.id

    @classmethod
    def get_by_id(cls, loop_id) -> Optional[Loop]:
        """Loop with its creator joined (see Loop.creator lazy='joined')."""
        return db.session.get(Loop, loop_id)

    @classmethod
    def update(cls, loop_id, patch: LoopPatch) -> int:
        if not patch:
            return Loop.query.filter_by(id=loop_id).count()
        values = dict(patch.changes)
        values['updated_at'] = datetime.utcnow()
        count = Loop.query.filter_by(id=loop_id).update(values, synchronize_session='fetch')
        db.session.commit()
        return count

    @classmethod
    def delete(cls, loop_id) -> int:
        count = Loop.query.filter_by(id=loop_id).delete(synchronize_session='fetch')
        db.session.commit()
        return count

    @classmethod
    def _set_archived(cls, loop_id, archived: bool) -> int:
        count = Loop.query.filter_by(id=loop_id).update({
            'archived': archived,
            'updated_at': datetime.utcnow(),
        }, synchronize_session='fetch')
        db.session.commit()
        return count

    @classmethod
    def archive(cls, loop_id) -> int:
        return cls._set_archived(loop_id, True)

    @classmethod
    def unarchive(cls, loop_id) -> int:
        return cls._set_archived(loop_id, False)

    @classmethod
    def query(cls, filters: LoopFilters) -> List[Loop]:
        return build_loop_query(filters).all()

    @classmethod
    def closing_within(cls, days: int = DEFAULT_CLOSING_DAYS, today=None) -> List[Loop]:
        return build_closing_query(days, today).all()

    @classmethod
    def stats(cls) -> dict:
        """
        Dashboard counts over non-archived loops.

        Legacy statuses count with their canonical status.
        """
        def count_of(status):
            return db.func.sum(
                db.case((Loop.status.in_(status_variants(status)), 1), else_=0)
            )

        row = db.session.query(
            db.func.count(Loop.id),
            count_of(LoopStatus.PRE_OFFER.value),
            count_of(LoopStatus.UNDER_CONTRACT.value),
            count_of(LoopStatus.SOLD.value),
            db.func.coalesce(db.func.sum(Loop.sale), 0),
        ).filter(Loop.archived.is_(False)).one()

        total, active, closing, closed, total_sales = row
        return {
            'total': int(total or 0),
            'active': int(active or 0),
            'closing': int(closing or 0),
            'closed': int(closed or 0),
            'total_sales': float(total_sales or 0),
        }
