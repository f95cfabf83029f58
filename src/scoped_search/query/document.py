"""Query document builder and clause naming context."""

import copy
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from .bool_clause import BoolClause, CLAUSE_LISTS


class QueryContext:
    """Stack of name parts used to label clauses with ``_name``.

    Names are the colon-joined stack plus any extra parts, e.g. inside
    ``scope("filters")`` the call ``name("state")`` returns ``"filters:state"``.
    """

    def __init__(self):
        self._parts: List[str] = []

    def name(self, *parts: Any) -> str:
        return ":".join(self._parts + [str(p) for p in parts])

    @contextmanager
    def scope(self, *parts: Any) -> Iterator[str]:
        """Push parts for the duration of the block, yielding the full name."""
        pushed = [str(p) for p in parts]
        self._parts.extend(pushed)
        try:
            yield self.name()
        finally:
            if pushed:
                del self._parts[-len(pushed):]


class QueryDocument:
    """Mutable accumulator threaded through filter and query functions.

    Owns the top-level ``query.bool`` clause, the remaining top-level keys
    (sort, size, highlight, knn, track_scores, _source) and its own naming
    context. One instance belongs to one build; ``build()`` hands out an
    independent copy in wire format.
    """

    def __init__(self, bool_clause: Optional[BoolClause] = None, **extra: Any):
        self.bool = bool_clause or BoolClause()
        self.extra: Dict[str, Any] = dict(extra)
        self.context = QueryContext()

    @property
    def filters(self) -> List[Dict[str, Any]]:
        return self.bool.filter

    def add_filter(self, clause: Optional[Dict[str, Any]], clause_list: str = "filter") -> "QueryDocument":
        """Append a clause to one of the top-level bool lists.

        Empty or None clauses are skipped so callers can pass the result of a
        builder that had nothing to contribute.

        Args:
            clause: Clause to append
            clause_list: One of must, must_not, should, filter

        Returns:
            self, for chaining
        """
        if clause_list not in CLAUSE_LISTS:
            raise ValueError(f"Unknown clause list: {clause_list}")
        if clause:
            getattr(self.bool, clause_list).append(clause)
        return self

    def __getitem__(self, key: str) -> Any:
        return self.extra[key]

    def __setitem__(self, key: str, value: Any):
        self.extra[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self.extra

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)

    def pop(self, key: str, default: Any = None) -> Any:
        return self.extra.pop(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Return the wire-format document as an independent deep copy."""
        doc: Dict[str, Any] = {"query": {"bool": self.bool.to_document()}}
        doc.update(self.extra)
        return copy.deepcopy(doc)

    build = to_dict

    def copy(self) -> "QueryDocument":
        return QueryDocument.from_dict(self.to_dict())

    @classmethod
    def from_dict(cls, document: Dict[str, Any]) -> "QueryDocument":
        """Parse a wire-format document whose query is a bool clause.

        Raises:
            ValueError: If the query is not a bool clause
        """
        document = copy.deepcopy(document)
        query = document.pop("query", None) or {"bool": {}}
        if set(query) != {"bool"}:
            raise ValueError(f"Expected a bool query, got keys: {sorted(query)}")
        return cls(BoolClause.from_document(query["bool"]), **document)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryDocument):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"QueryDocument({self.to_dict()!r})"
