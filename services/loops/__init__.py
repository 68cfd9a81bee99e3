"""
Loop Management

Loops are real-estate transactions tracked from pre-offer through to a
terminal status (sold, withdrawn or terminated).

Usage:
    from services.loops import LoopStore, LoopFilters

    loops = LoopStore.query(LoopFilters(status='sold', sort='sale', order='asc'))

The service layer (services.loops.service) adds validation, ownership
checks and post-commit hooks on top of the store.
"""

from .types import (
    LoopStatus,
    LoopFilters,
    LoopPatch,
    LEGACY_ALIASES,
    OPEN_STATUSES,
    PATCHABLE_FIELDS,
    TRANSACTION_TYPES,
    normalize_status,
    status_variants,
)

from .query import SORTABLE_FIELDS, build_loop_query, build_closing_query
from .store import LoopStore

__all__ = [
    # Types
    'LoopStatus',
    'LoopFilters',
    'LoopPatch',
    'LEGACY_ALIASES',
    'OPEN_STATUSES',
    'PATCHABLE_FIELDS',
    'TRANSACTION_TYPES',
    'normalize_status',
    'status_variants',

    # Query
    'SORTABLE_FIELDS',
    'build_loop_query',
    'build_closing_query',

    # Store
    'LoopStore',
]
