"""Sort key lookup per document type."""

import logging
from typing import Dict, FrozenSet, Mapping, Optional

logger = logging.getLogger(__name__)

ASC = "asc"
DESC = "desc"
DIRECTIONS = (ASC, DESC)

# Sort alias prefix -> index field
SORT_FIELDS = {
    "created": "created_at",
    "updated": "updated_at",
    "health_status": "health_status",
    "weight": "weight",
    "closed_at": "closed_at",
    "due_date": "due_date",
    "milestone_due": "milestone_due_date",
    "popularity": "upvotes",
    "stars": "star_count",
}

# Aliases each document type can be sorted by
DOC_TYPE_SORTS = {
    "issue": ("created", "updated", "popularity"),
    "merge_request": ("created", "updated"),
    "milestone": ("created", "updated"),
    "note": ("created", "updated"),
    "project": ("created", "updated", "stars"),
    "work_item": (
        "created", "updated", "health_status", "weight", "closed_at",
        "due_date", "milestone_due", "popularity",
    ),
}

# Fields that may be absent on a document
NULLABLE_FIELDS = frozenset({"health_status", "weight", "closed_at", "due_date", "milestone_due_date"})


class SortMapper:
    """Maps ``order_by``/``sort`` options or a sort alias to a sort clause.

    Accepts either an alias like ``created_desc`` as ``sort``, or a field name
    as ``order_by`` with ``asc``/``desc`` as ``sort``. Anything unrecognized
    maps to ``{}`` so the caller falls back to relevance order.

    Args:
        extra_sorts: Additional aliases, ``{alias: {field: direction}}``,
            available for every document type
    """

    def __init__(self, extra_sorts: Optional[Mapping[str, Mapping[str, str]]] = None):
        self.extra_sorts = {alias: dict(sort) for alias, sort in (extra_sorts or {}).items()}

    def aliases(self, doc_type: str) -> Dict[str, Dict[str, str]]:
        """All sort aliases available for a document type."""
        table: Dict[str, Dict[str, str]] = {}
        for prefix in DOC_TYPE_SORTS.get(doc_type, ()):
            for direction in DIRECTIONS:
                table[f"{prefix}_{direction}"] = {SORT_FIELDS[prefix]: direction}
        if doc_type in DOC_TYPE_SORTS:
            table.update(self.extra_sorts)
        return table

    def map(self, doc_type: str, order_by: Optional[str] = None, sort: Optional[str] = None) -> Dict[str, str]:
        aliases = self.aliases(doc_type)
        if not aliases:
            return {}

        if order_by:
            direction = (sort or DESC).lower()
            known_fields = {field for clause in aliases.values() for field in clause}
            if order_by not in known_fields or direction not in DIRECTIONS:
                logger.debug(f"Unknown sort {order_by} {sort} for {doc_type}")
                return {}
            return {order_by: direction}

        if sort and sort in aliases:
            return dict(aliases[sort])
        return {}

    def nullable_fields(self, doc_type: str) -> FrozenSet[str]:
        """Sortable fields of a document type that may hold no value."""
        fields = {field for clause in self.aliases(doc_type).values() for field in clause}
        return frozenset(fields & NULLABLE_FIELDS)


def sort_by(doc_type: str, order_by: Optional[str] = None, sort: Optional[str] = None) -> Dict[str, str]:
    """Map a sort request using only the built-in tables."""
    return SortMapper().map(doc_type, order_by, sort)
