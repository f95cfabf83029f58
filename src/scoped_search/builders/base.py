"""Shared steps of the entity query builders."""

import logging
import re
from typing import Callable, Iterable, Optional, Pattern

from ..config import QuerySettings
from ..query import filters, queries
from ..query.document import QueryDocument
from ..query.options import QueryOptions
from ..query.sorts import SortMapper

logger = logging.getLogger(__name__)

Filter = Callable[[QueryDocument, QueryOptions], QueryDocument]

ISSUE_IID_REGEX = re.compile(r"\A#(\d+)\Z")
MERGE_REQUEST_IID_REGEX = re.compile(r"\A!(\d+)\Z")

VECTOR_ENGINE = "elasticsearch"


def with_defaults(options: QueryOptions, settings: QuerySettings, **defaults) -> QueryOptions:
    """Fill entity defaults the caller left unset, without touching the caller's options."""
    changes = {}
    for name, value in defaults.items():
        current = getattr(options, name)
        if current is None or current == [] or current == "":
            changes[name] = value
    if options.related_size is None:
        changes["related_size"] = settings.related_size
    return options.replace(**changes) if changes else options


def hybrid_enabled(options: QueryOptions) -> bool:
    return bool(options.embeddings and options.vectors_supported == VECTOR_ENGINE and options.embedding_service)


def text_query(query: Optional[str], options: QueryOptions, settings: QuerySettings,
               iid_regex: Optional[Pattern] = None, hybrid: bool = False) -> QueryDocument:
    """Start a document from the query text.

    ``#123`` style input becomes an iid lookup. Empty input matches all
    documents of the entity's type.
    """
    query = (query or "").strip()

    if iid_regex is not None:
        match = iid_regex.match(query)
        if match:
            return queries.by_iid(int(match.group(1)), options.doc_type)

    document = queries.by_full_text(query, options, settings)
    if not query:
        filters.by_type(document, options)

    if hybrid and query:
        queries.by_knn(document, query, options, settings)
    return document


def apply_filters(document: QueryDocument, options: QueryOptions, chain: Iterable[Filter]) -> QueryDocument:
    for apply in chain:
        document = apply(document, options)
    return document


def apply_sort(document: QueryDocument, options: QueryOptions, settings: QuerySettings) -> QueryDocument:
    """Set the sort clause from ``order_by``/``sort``; relevance order when unmapped."""
    if options.count_only:
        return document

    sort = SortMapper(settings.extra_sorts).map(options.doc_type, options.order_by, options.sort)
    if sort:
        document["sort"] = [sort]
    elif options.sort or options.order_by:
        logger.debug(f"No sort mapping for {options.doc_type}: {options.order_by} {options.sort}")
    return document
