"""Query document model and the filter/query composition library."""

from .bool_clause import BoolClause
from .document import QueryContext, QueryDocument
from .options import (
    ANY_PROJECTS,
    SEARCH_LEVEL_GLOBAL,
    SEARCH_LEVEL_GROUP,
    SEARCH_LEVEL_PROJECT,
    Principal,
    QueryOptions,
)
from .collaborators import (
    ErrorTracker,
    LabelDirectory,
    LoggingErrorTracker,
    RateLimiter,
    StaticLabelDirectory,
    StaticUserDirectory,
    UserDirectory,
)
from .queries import by_full_text, by_iid, by_knn, by_multi_match_query, by_simple_query_string
from .sorts import SortMapper, sort_by

__all__ = [
    # Model
    "BoolClause",
    "QueryContext",
    "QueryDocument",
    # Options
    "ANY_PROJECTS",
    "SEARCH_LEVEL_GLOBAL",
    "SEARCH_LEVEL_GROUP",
    "SEARCH_LEVEL_PROJECT",
    "Principal",
    "QueryOptions",
    # Collaborators
    "ErrorTracker",
    "LabelDirectory",
    "LoggingErrorTracker",
    "StaticLabelDirectory",
    "StaticUserDirectory",
    "RateLimiter",
    "UserDirectory",
    # Queries
    "by_full_text",
    "by_iid",
    "by_knn",
    "by_multi_match_query",
    "by_simple_query_string",
    # Sorts
    "SortMapper",
    "sort_by",
]
