"""Milestone search query."""

from typing import Any, Dict, Optional

from ..config import QuerySettings
from ..query import authorization, filters
from ..query.options import QueryOptions
from .base import apply_filters, apply_sort, text_query, with_defaults

DOC_TYPE = "milestone"
FIELDS = ["title^2", "description"]

# Milestones are readable when either feature is
FEATURES = ["issues", "merge_requests"]


def build_milestone_query(query: Optional[str], options: QueryOptions,
                          settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    """Build the search request body for milestones.

    Milestone documents are children of project documents, so authorization
    goes through the project join.
    """
    settings = settings or QuerySettings()
    options = with_defaults(options, settings, doc_type=DOC_TYPE, features=list(FEATURES), fields=list(FIELDS))

    document = text_query(query, options, settings)
    document = apply_filters(document, options, (
        authorization.by_project_authorization,
        filters.by_archived,
    ))
    document = apply_sort(document, options, settings)
    return document.build()
