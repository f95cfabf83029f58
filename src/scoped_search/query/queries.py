"""Leaf queries: full-text matching, identifier lookup and vector similarity.

Full-text queries start a new QueryDocument; entity builders then apply
filters to it. The vector query augments an existing document and never
fails the build: any embedding or rate-limit problem is reported and the
document is returned without a ``knn`` clause.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from ..config import QuerySettings
from ..errors import RateLimitExceededError
from .collaborators import LoggingErrorTracker
from .document import QueryDocument
from .options import QueryOptions

logger = logging.getLogger(__name__)

ADVANCED_QUERY_SYNTAX_REGEX = re.compile(r'[+*"\-|()~\\]')
HIGHLIGHT_START_TAG = "gitlabelasticsearch→"
HIGHLIGHT_END_TAG = "←gitlabelasticsearch"

EMBEDDINGS_RATE_LIMIT_KEY = "embeddings_api"

# Fields that never get analyzer sub-fields
UNANALYZED_FIELDS = ("iid",)


def _strip_boost(field: str) -> str:
    return field.split("^", 1)[0]


def _search_fields(fields: List[str], options: QueryOptions, settings: QuerySettings) -> List[str]:
    """Field list for matching: boosts dropped in count-only mode, analyzer sub-fields appended."""
    result = [_strip_boost(f) for f in fields] if options.count_only else list(fields)

    for suffix in settings.analyzer_suffixes:
        for field in fields:
            base = _strip_boost(field)
            if base not in UNANALYZED_FIELDS:
                result.append(f"{base}.{suffix}")
    return result


def _highlight(fields: List[str]) -> Dict[str, Any]:
    return {
        "fields": {_strip_boost(f): {} for f in fields},
        "number_of_fragments": 0,
        "pre_tags": [HIGHLIGHT_START_TAG],
        "post_tags": [HIGHLIGHT_END_TAG],
    }


def _type_filter(doc_type: str) -> Dict[str, Any]:
    return {"term": {"type": {"_name": f"doc:is_a:{doc_type}", "value": doc_type}}}


def _text_query(fields: List[str], query: Optional[str], options: QueryOptions,
                clause: Dict[str, Any]) -> QueryDocument:
    """Place a text clause according to mode and attach highlighting."""
    document = QueryDocument()

    if not query:
        document.bool.must = [{"match_all": {}}]
        document["track_scores"] = True
        return document

    if options.doc_type:
        document.add_filter(_type_filter(options.doc_type))

    if options.count_only:
        document.add_filter(clause)
    else:
        match_list = "should" if options.keyword_match_clause == "should" else "must"
        document.add_filter(clause, clause_list=match_list)
        document["highlight"] = _highlight(fields)

    return document


def by_iid(iid: int, doc_type: str) -> QueryDocument:
    """Exact lookup by internal id within one document type."""
    document = QueryDocument()
    document.add_filter({"term": {"iid": {"_name": f"{doc_type}:related:iid", "value": iid}}})
    document.add_filter(_type_filter(doc_type))
    return document


def by_simple_query_string(fields: List[str], query: Optional[str], options: QueryOptions,
                           settings: Optional[QuerySettings] = None) -> QueryDocument:
    """Single ``simple_query_string`` clause, AND between terms."""
    settings = settings or QuerySettings()
    clause = {"simple_query_string": {
        "_name": f"{options.doc_type}:match:search_terms",
        "fields": _search_fields(fields, options, settings),
        "query": query,
        "lenient": True,
        "default_operator": "and",
    }}
    return _text_query(fields, query, options, clause)


def by_multi_match_query(fields: List[str], query: Optional[str], options: QueryOptions,
                         settings: Optional[QuerySettings] = None) -> QueryDocument:
    """Disjunction of OR, AND and phrase ``multi_match`` clauses."""
    settings = settings or QuerySettings()
    search_fields = _search_fields(fields, options, settings)
    doc_type = options.doc_type

    clause = {"bool": {
        "should": [
            {"multi_match": {"_name": f"{doc_type}:multi_match:or:search_terms",
                             "fields": search_fields, "query": query, "operator": "or", "lenient": True}},
            {"multi_match": {"_name": f"{doc_type}:multi_match:and:search_terms",
                             "fields": list(search_fields), "query": query, "operator": "and", "lenient": True}},
            {"multi_match": {"_name": f"{doc_type}:multi_match_phrase:search_terms",
                             "type": "phrase", "fields": list(search_fields), "query": query, "lenient": True}},
        ],
        "minimum_should_match": 1,
    }}
    return _text_query(fields, query, options, clause)


def by_full_text(query: Optional[str], options: QueryOptions,
                 settings: Optional[QuerySettings] = None) -> QueryDocument:
    """Pick the text query for the input.

    Advanced syntax characters (``+ * " - | ( ) ~ \\``) need
    ``simple_query_string``; otherwise the multi-match disjunction is used
    unless disabled in settings.
    """
    settings = settings or QuerySettings()
    fields = options.fields

    if settings.multi_match_enabled and not ADVANCED_QUERY_SYNTAX_REGEX.search(query or ""):
        return by_multi_match_query(fields, query, options, settings)

    return by_simple_query_string(fields, query, options, settings)


def by_knn(document: QueryDocument, query: str, options: QueryOptions,
           settings: Optional[QuerySettings] = None) -> QueryDocument:
    """Add a nearest-neighbour clause built from an embedding of ``query``.

    Checks the rate limiter, then asks the embedding service for a vector.
    Either failing is tracked and logged; the document is returned without
    ``knn`` and the keyword search proceeds alone.
    """
    settings = settings or QuerySettings()
    service = options.embedding_service
    if service is None or not options.embedding_field:
        logger.debug("No embedding service or field configured, skipping knn")
        return document

    tracker = options.error_tracker or LoggingErrorTracker()
    user = options.current_user
    scope = user.id if user is not None else "anonymous"

    try:
        if options.rate_limiter is not None and options.rate_limiter.throttled(EMBEDDINGS_RATE_LIMIT_KEY, str(scope)):
            raise RateLimitExceededError(f"Rate limit exceeded for {EMBEDDINGS_RATE_LIMIT_KEY}")

        vector = service.execute(query)
    except Exception as e:
        logger.warning(f"Skipping knn query: {e}")
        tracker.track_exception(e, query_type="knn", doc_type=options.doc_type)
        return document

    similarity = options.hybrid_similarity if options.hybrid_similarity is not None else settings.hybrid_similarity
    boost = options.hybrid_boost if options.hybrid_boost is not None else settings.hybrid_boost

    document["knn"] = {
        "field": options.embedding_field,
        "query_vector": list(vector),
        "k": settings.knn_k,
        "num_candidates": settings.knn_num_candidates,
        "similarity": similarity,
        "boost": boost,
    }
    return document
