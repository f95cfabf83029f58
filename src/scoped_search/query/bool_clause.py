"""Boolean compound clause model."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CLAUSE_LISTS = ("must", "must_not", "should", "filter")


@dataclass
class BoolClause:
    """A compound ``bool`` clause.

    The four sub-clause lists always exist (never None) so filter functions can
    append without checking. Serialization drops empty lists and a None
    ``minimum_should_match``.

    Attributes:
        must: Clauses that must match and contribute to score
        must_not: Clauses that must not match
        should: Optional clauses; at least ``minimum_should_match`` must match
        filter: Clauses that must match without scoring
        minimum_should_match: Number of ``should`` clauses required
    """
    must: List[Dict[str, Any]] = field(default_factory=list)
    must_not: List[Dict[str, Any]] = field(default_factory=list)
    should: List[Dict[str, Any]] = field(default_factory=list)
    filter: List[Dict[str, Any]] = field(default_factory=list)
    minimum_should_match: Optional[int] = None

    def reset(self):
        """Restore the empty default state."""
        for name in CLAUSE_LISTS:
            setattr(self, name, [])
        self.minimum_should_match = None

    def is_empty(self) -> bool:
        return not self.to_document()

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the wire format, omitting empty lists and None values.

        Returns:
            Dictionary suitable as the value of a ``bool`` key
        """
        doc: Dict[str, Any] = {}
        for name in CLAUSE_LISTS:
            clauses = getattr(self, name)
            if clauses:
                doc[name] = list(clauses)
        if self.minimum_should_match is not None:
            doc["minimum_should_match"] = self.minimum_should_match
        return doc

    def to_bool_query(self) -> Optional[Dict[str, Any]]:
        """Wrap the serialized clause as ``{"bool": ...}``, or None when empty."""
        doc = self.to_document()
        if not doc:
            return None
        return {"bool": doc}

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> "BoolClause":
        """Parse the value of a ``bool`` key.

        A single clause given as a mapping instead of a list is wrapped in a
        list, matching how the search engine accepts both forms.

        Args:
            document: Serialized bool clause (may be None or empty)

        Returns:
            BoolClause instance

        Raises:
            ValueError: If the document contains keys a bool clause can't hold
        """
        document = document or {}
        unknown = set(document) - set(CLAUSE_LISTS) - {"minimum_should_match"}
        if unknown:
            raise ValueError(f"Unsupported bool clause keys: {sorted(unknown)}")

        clause = cls()
        for name in CLAUSE_LISTS:
            value = document.get(name)
            if value is None:
                continue
            setattr(clause, name, list(value) if isinstance(value, list) else [value])
        clause.minimum_should_match = document.get("minimum_should_match")
        return clause
