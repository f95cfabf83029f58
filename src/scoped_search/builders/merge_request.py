"""Merge request search query."""

from typing import Any, Dict, Optional

from ..config import QuerySettings
from ..query import authorization, filters
from ..query.options import QueryOptions
from .base import MERGE_REQUEST_IID_REGEX, apply_filters, apply_sort, text_query, with_defaults

DOC_TYPE = "merge_request"
FIELDS = ["iid^3", "title^2", "description"]

FILTERS = (
    authorization.by_search_level_and_membership,
    filters.by_state,
    filters.by_archived,
    filters.by_source_branch,
    filters.by_target_branch,
    filters.by_author,
    filters.by_label_names,
)


def build_merge_request_query(query: Optional[str], options: QueryOptions,
                              settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    """Build the search request body for merge requests.

    ``!123`` searches by iid.
    """
    settings = settings or QuerySettings()
    options = with_defaults(options, settings, doc_type=DOC_TYPE, features=["merge_requests"], fields=list(FIELDS))

    document = text_query(query, options, settings, MERGE_REQUEST_IID_REGEX)
    document = apply_filters(document, options, FILTERS)
    document = apply_sort(document, options, settings)
    return document.build()
