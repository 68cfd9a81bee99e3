"""
Loop Type Definitions

Statuses, filter and patch structures shared by the loop store, query
engine and service layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from utils import parse_bool, parse_int


class LoopStatus(Enum):
    PRE_OFFER = "pre-offer"
    UNDER_CONTRACT = "under-contract"
    WITHDRAWN = "withdrawn"
    SOLD = "sold"
    TERMINATED = "terminated"


# Older records use these values; they mean the same as their canonical status
LEGACY_ALIASES = {
    'active': LoopStatus.PRE_OFFER.value,
    'closing': LoopStatus.UNDER_CONTRACT.value,
    'closed': LoopStatus.SOLD.value,
    'cancelled': LoopStatus.TERMINATED.value,
}

CANONICAL_STATUSES = tuple(s.value for s in LoopStatus)
ALL_STATUSES = CANONICAL_STATUSES + tuple(LEGACY_ALIASES)

OPEN_STATUSES = (
    LoopStatus.PRE_OFFER.value,
    LoopStatus.UNDER_CONTRACT.value,
    'active',
    'closing',
)

TRANSACTION_TYPES = (
    'Listing for Sale',
    'Listing for Lease',
    'Purchase',
    'Lease',
    'Real Estate Other',
    'Others',
)


def normalize_status(status: Optional[str]) -> Optional[str]:
    """Map a legacy alias to its canonical status; other values pass through."""
    if status is None:
        return None
    return LEGACY_ALIASES.get(status, status)


def status_variants(status: str) -> Tuple[str, ...]:
    """
    Every stored value that means the given status.

    Example:
        "sold" -> ("sold", "closed")
        "closed" -> ("sold", "closed")
    """
    canonical = normalize_status(status)
    aliases = tuple(a for a, c in LEGACY_ALIASES.items() if c == canonical)
    return (canonical,) + aliases


@dataclass
class LoopFilters:
    """
    Filters for listing loops.

    Attributes:
        archived: Show archived loops instead of active ones
        status: Exact status (legacy aliases match their canonical status)
        type: Exact loop type
        creator_id: Restrict to one creator
        search: Case-insensitive substring over address, client name, tags
        sort: Column name from the sortable allow-list
        order: 'asc' or 'desc'
        limit: Maximum rows returned
    """
    archived: bool = False
    status: Optional[str] = None
    type: Optional[str] = None
    creator_id: Optional[int] = None
    search: Optional[str] = None
    sort: str = 'created_at'
    order: str = 'desc'
    limit: Optional[int] = None

    @classmethod
    def from_args(cls, args) -> 'LoopFilters':
        """Build from request.args; blank values are ignored."""
        def text(key):
            value = args.get(key)
            value = value.strip() if isinstance(value, str) else value
            return value or None

        return cls(
            archived=parse_bool(args.get('archived')),
            status=text('status'),
            type=text('type'),
            creator_id=parse_int(args.get('creator_id') or args.get('creator')),
            search=text('search'),
            sort=text('sort') or 'created_at',
            order=(text('order') or 'desc').lower(),
            limit=parse_int(args.get('limit')),
        )


# Loop attributes a client may change through update
PATCHABLE_FIELDS = (
    'type',
    'sale',
    'status',
    'property_address',
    'client_name',
    'client_email',
    'client_phone',
    'notes',
    'tags',
    'start_date',
    'end_date',
)


@dataclass
class LoopPatch:
    """Only the fields present in an update request, already validated."""
    changes: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self):
        return bool(self.changes)

    def __contains__(self, name):
        return name in self.changes

    def get(self, name, default=None):
        return self.changes.get(name, default)

    def set(self, name, value):
        if name not in PATCHABLE_FIELDS and name != 'images':
            raise KeyError(f"Field {name!r} cannot be patched")
        self.changes[name] = value
