"""Project search query."""

from typing import Any, Dict, Optional

from ..config import QuerySettings
from ..query import authorization, filters
from ..query.options import QueryOptions
from .base import apply_filters, apply_sort, text_query, with_defaults

DOC_TYPE = "project"
FIELDS = ["name^10", "name_with_namespace^2", "path_with_namespace", "path^9", "description"]


def build_project_query(query: Optional[str], options: QueryOptions,
                        settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    settings = settings or QuerySettings()
    # a project document's own id is its project id
    options = with_defaults(options, settings, doc_type=DOC_TYPE, fields=list(FIELDS))
    options = options.replace(project_id_field="id")

    document = text_query(query, options, settings)
    document = apply_filters(document, options, (
        authorization.by_search_level_and_membership,
        filters.by_archived,
    ))
    document = apply_sort(document, options, settings)
    return document.build()
