"""Issue search query."""

from typing import Any, Dict, Optional

from ..config import QuerySettings
from ..query import authorization, confidentiality, filters
from ..query.options import QueryOptions
from .base import ISSUE_IID_REGEX, apply_filters, apply_sort, hybrid_enabled, text_query, with_defaults

DOC_TYPE = "issue"
FIELDS = ["iid^3", "title^2", "description"]

FILTERS = (
    authorization.by_search_level_and_membership,
    confidentiality.by_project_confidentiality,
    filters.by_state,
    filters.by_not_hidden,
    filters.by_label_ids,
    filters.by_archived,
)


def build_issue_query(query: Optional[str], options: QueryOptions,
                      settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    """Build the search request body for issues.

    Raises:
        InvalidArgumentError: If search_level is missing or invalid
    """
    settings = settings or QuerySettings()
    options = with_defaults(options, settings, doc_type=DOC_TYPE, features=["issues"],
                            fields=list(FIELDS), embedding_field="embedding_0")
    hybrid = hybrid_enabled(options)

    document = text_query(query, options, settings, ISSUE_IID_REGEX, hybrid=hybrid)
    document = apply_filters(document, options, FILTERS)
    if hybrid:
        filters.by_knn(document, options)
    document = apply_sort(document, options, settings)
    return document.build()
