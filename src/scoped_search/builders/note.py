"""Note (comment) search query."""

from typing import Any, Dict, Optional

from ..config import QuerySettings
from ..query import authorization, filters
from ..query.options import QueryOptions
from .base import apply_filters, apply_sort, text_query, with_defaults

DOC_TYPE = "note"
FIELDS = ["note"]

# Project feature gating each kind of noteable
NOTEABLE_FEATURES = {
    "Issue": "issues",
    "MergeRequest": "merge_requests",
    "Commit": "repository",
    "Snippet": "snippets",
}

FILTERS = (
    authorization.by_project_authorization,
    filters.by_noteable_type,
    filters.by_archived,
)


def build_note_query(query: Optional[str], options: QueryOptions,
                     settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    """Build the search request body for notes.

    Project permissions are stored on each note, so no parent join is used.
    With ``related_ids_only`` the request returns just the ids of the
    noteables that matched.
    """
    settings = settings or QuerySettings()
    feature = NOTEABLE_FEATURES.get(options.noteable_type or "")
    features = [feature] if feature else sorted(NOTEABLE_FEATURES.values())
    options = with_defaults(options, settings, doc_type=DOC_TYPE, features=features, fields=list(FIELDS))
    options = options.replace(no_join_project=True)

    document = text_query(query, options, settings)
    document = apply_filters(document, options, FILTERS)
    document = apply_sort(document, options, settings)
    return document.build()
