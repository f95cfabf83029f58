"""Keyset pagination over a sorted query.

A page boundary is the pair of sort values of the last (or first) hit seen:
the primary sort field and a unique tie-breaker field. The next page is
requested with range clauses strictly past that pair instead of an offset,
so results stay stable while the index changes underneath.

Example:
    paginator = KeysetPaginator(document, [{"created_at": "asc"}], tie_breaker="id")
    body = paginator.after("2025-01-01", 1).first(10)
    ...
    cursor = paginator.cursor_for(hits[-1])
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import InvalidArgumentError
from ..query.document import QueryDocument

logger = logging.getLogger(__name__)

# Values the search engine returns in place of a missing numeric sort value
MAX_SORT_SENTINEL = 9223372036854775807
MIN_SORT_SENTINEL = -9223372036854775808
SENTINELS = frozenset({MAX_SORT_SENTINEL, MIN_SORT_SENTINEL})

ASC = "asc"
DESC = "desc"

AFTER = "after"
BEFORE = "before"

SortInput = Union[Mapping[str, str], Sequence[Mapping[str, str]]]


def _flip(direction: str) -> str:
    return DESC if direction == ASC else ASC


def _operator(direction: str, side: str) -> str:
    """Range operator for a bound: ascending-after and descending-before page upward."""
    if (direction == ASC) == (side == AFTER):
        return "gt"
    return "lt"


@dataclass(frozen=True)
class SortSpec:
    """Ordered sort fields, bounded on the primary field and a unique tie-breaker.

    Fields between the primary and the tie-breaker stay in the emitted sort
    but take no part in page bounds.

    Attributes:
        primary: (field, direction) of the primary sort
        tie_breaker: (field, direction) of the tie-breaker
        nullable_fields: Fields that may be missing on a document
        entries: Every (field, direction) in emitted order; defaults to
            primary then tie-breaker
    """
    primary: Tuple[str, str]
    tie_breaker: Tuple[str, str]
    nullable_fields: FrozenSet[str] = frozenset()
    entries: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self):
        if not self.entries:
            entries = (self.primary,) if self.primary == self.tie_breaker else (self.primary, self.tie_breaker)
            object.__setattr__(self, "entries", entries)

    @classmethod
    def from_sort(cls, sort: SortInput, tie_breaker: str = "id",
                  nullable_fields: Iterable[str] = ()) -> "SortSpec":
        """Build a SortSpec from a sort clause.

        ``sort`` is a list of single-key ``{field: direction}`` mappings, or
        one mapping holding several fields in order. Every declared field is
        kept in order. The tie-breaker keeps its declared position and
        direction when it appears in the sort. If it does not and the sort
        declares a second field, that field is used instead. Otherwise it is
        appended with the primary's direction.

        Raises:
            InvalidArgumentError: If the sort is empty or a direction is not asc/desc
        """
        entries = _sort_entries(sort)
        if not entries:
            raise InvalidArgumentError("sort must name at least one field")

        primary = entries[0]
        declared = dict(entries)
        if tie_breaker in declared:
            resolved = (tie_breaker, declared[tie_breaker])
        elif len(entries) >= 2:
            logger.debug(f"Tie-breaker {tie_breaker} not in sort, using {entries[1][0]}")
            resolved = entries[1]
        else:
            resolved = (tie_breaker, primary[1])
            entries.append(resolved)

        return cls(primary=primary, tie_breaker=resolved, nullable_fields=frozenset(nullable_fields),
                   entries=tuple(entries))

    @property
    def primary_field(self) -> str:
        return self.primary[0]

    @property
    def tie_breaker_field(self) -> str:
        return self.tie_breaker[0]

    @property
    def tie_breaker_index(self) -> int:
        """Position of the tie-breaker among a hit's sort values."""
        return [field for field, _ in self.entries].index(self.tie_breaker[0])

    def is_nullable(self, field: str) -> bool:
        return field in self.nullable_fields

    def to_sort(self, reverse: bool = False) -> List[Dict[str, str]]:
        """Sort clause in wire format, optionally with every direction flipped."""
        sort = []
        for field, direction in self.entries:
            sort.append({field: _flip(direction) if reverse else direction})
        return sort


def _sort_entries(sort: SortInput) -> List[Tuple[str, str]]:
    if isinstance(sort, Mapping):
        items = list(sort.items())
    else:
        items = [item for clause in sort for item in clause.items()]

    entries: List[Tuple[str, str]] = []
    for field, direction in items:
        if isinstance(direction, Mapping):
            direction = direction.get("order", ASC)
        direction = str(direction).lower()
        if direction not in (ASC, DESC):
            raise InvalidArgumentError(f"Invalid sort direction for {field}: {direction}")
        entries.append((field, direction))
    return entries


@dataclass(frozen=True)
class Cursor:
    """Position in a sorted result set.

    ``primary`` is None when the document has no value for the primary sort
    field. Tokens produced by ``encode()`` are opaque to callers.
    """
    primary: Any
    tie_breaker: Any

    def encode(self) -> str:
        payload = json.dumps([self.primary, self.tie_breaker], separators=(",", ":"))
        return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, token: str) -> "Cursor":
        """Parse a token produced by ``encode()``.

        Raises:
            InvalidArgumentError: If the token is not a valid cursor
        """
        try:
            values = json.loads(base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidArgumentError(f"Invalid cursor token: {token}") from e

        if not isinstance(values, list) or len(values) != 2:
            raise InvalidArgumentError(f"Invalid cursor token: {token}")
        return cls(primary=values[0], tie_breaker=values[1])


def decode_sort_value(value: Any) -> Any:
    """Map a sentinel sort value back to None."""
    if isinstance(value, int) and not isinstance(value, bool) and value in SENTINELS:
        return None
    return value


def cursor_for(sort_values: Sequence[Any], tie_breaker_index: int = -1) -> Cursor:
    """Cursor for a hit's returned sort values.

    The first value is the primary; the tie-breaker is at ``tie_breaker_index``
    (the last value by default). Either sentinel decodes to None regardless of
    sort direction.

    Raises:
        InvalidArgumentError: If the hit has no sort values or too few of them
    """
    values = [decode_sort_value(v) for v in sort_values or []]
    if not values:
        raise InvalidArgumentError("Hit has no sort values; was the query sorted?")
    try:
        tie_breaker = values[tie_breaker_index]
    except IndexError as e:
        raise InvalidArgumentError(f"Hit has {len(values)} sort values, no tie-breaker at {tie_breaker_index}") from e
    return Cursor(primary=values[0], tie_breaker=tie_breaker)


class KeysetPaginator:
    """Adds keyset bounds, sort and size to a query document.

    ``before``/``after`` record the bound; ``first``/``last`` produce the
    request body. ``last`` flips every sort direction, so callers reverse
    the returned page to restore the declared order. The wrapped document is
    never modified.

    Args:
        document: Query to paginate (QueryDocument, wire-format dict, or None
            for match-all)
        sort: Declared sort order
        tie_breaker: Unique field that ends the sort
        nullable_fields: Fields that may be missing on a document
    """

    def __init__(self, document: Union[QueryDocument, Dict[str, Any], None], sort: SortInput,
                 tie_breaker: str = "id", nullable_fields: Iterable[str] = ()):
        if isinstance(document, QueryDocument):
            self.document = document.copy()
        else:
            self.document = QueryDocument.from_dict(document or {})
        self.document.pop("sort")
        self.document.pop("size")

        self.sort_spec = SortSpec.from_sort(sort, tie_breaker, nullable_fields)
        self._side: Optional[str] = None
        self._cursor: Optional[Cursor] = None

    def before(self, primary: Any, tie_breaker: Any) -> "KeysetPaginator":
        return self._bound(BEFORE, Cursor(primary, tie_breaker))

    def after(self, primary: Any, tie_breaker: Any) -> "KeysetPaginator":
        return self._bound(AFTER, Cursor(primary, tie_breaker))

    def before_cursor(self, cursor: Cursor) -> "KeysetPaginator":
        return self._bound(BEFORE, cursor)

    def after_cursor(self, cursor: Cursor) -> "KeysetPaginator":
        return self._bound(AFTER, cursor)

    def _bound(self, side: str, cursor: Cursor) -> "KeysetPaginator":
        self._side = side
        self._cursor = cursor
        return self

    def first(self, n: int) -> Dict[str, Any]:
        """Request body for the first ``n`` hits past the bound, in declared order."""
        return self._page(n, reverse=False)

    def last(self, n: int) -> Dict[str, Any]:
        """Request body for the ``n`` hits nearest the bound, in reversed order."""
        return self._page(n, reverse=True)

    def cursor_for(self, hit: Union[Mapping[str, Any], Sequence[Any]]) -> Cursor:
        """Cursor for a hit (or its ``sort`` values) returned by a page request."""
        sort_values = hit.get("sort") if isinstance(hit, Mapping) else hit
        return cursor_for(sort_values, self.sort_spec.tie_breaker_index)

    def _page(self, n: int, reverse: bool) -> Dict[str, Any]:
        if n < 0:
            raise InvalidArgumentError(f"Page size must not be negative: {n}")

        document = self.document.copy()
        if self._cursor is not None:
            document.add_filter(self._tie_break_filter(self._side, self._cursor))
        document["sort"] = self.sort_spec.to_sort(reverse=reverse)
        document["size"] = n
        return document.build()

    def _tie_break_filter(self, side: str, cursor: Cursor) -> Dict[str, Any]:
        field, direction = self.sort_spec.primary
        tie_field, tie_direction = self.sort_spec.tie_breaker
        op = _operator(direction, side)
        tie_range = {"range": {tie_field: {_operator(tie_direction, side): cursor.tie_breaker}}}
        missing = {"bool": {"must_not": {"exists": {"field": field}}}}

        if cursor.primary is None:
            # nothing compares greater than null, only the tie-breaker orders missing values
            return {"bool": {"must": [missing, tie_range]}}

        should = [
            {"range": {field: {op: cursor.primary}}},
            {"bool": {"must": [{"term": {field: cursor.primary}}, tie_range]}},
        ]
        if side == AFTER and self.sort_spec.is_nullable(field):
            should.append(missing)
        return {"bool": {"should": should}}
