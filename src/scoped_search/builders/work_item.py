"""Work item search queries, project-level and group-level."""

import logging
from typing import Any, Dict, Optional

from ..config import QuerySettings
from ..query import authorization, confidentiality, filters
from ..query.options import QueryOptions
from .base import ISSUE_IID_REGEX, apply_filters, apply_sort, hybrid_enabled, text_query, with_defaults

logger = logging.getLogger(__name__)

DOC_TYPE = "work_item"
FIELDS = ["iid^50", "title^2", "description"]

ENTITY_FILTERS = (
    filters.by_state,
    filters.by_not_hidden,
    filters.by_label_ids,
    filters.by_archived,
    filters.by_work_item_type_ids,
    filters.by_author,
    filters.by_milestone,
    filters.by_milestone_state,
    filters.by_assignees,
    filters.by_label_names,
    filters.by_weight,
    filters.by_health_status,
    filters.by_closed_at,
    filters.by_created_at,
    filters.by_updated_at,
    filters.by_due_date,
    filters.by_iids,
)

GROUP_ENTITY_FILTERS = (
    filters.by_state,
    filters.by_author,
    filters.by_label_names,
    filters.by_created_at,
    filters.by_updated_at,
    filters.by_closed_at,
    filters.by_iids,
)


def _authorization_filters(options: QueryOptions):
    """Combined project/group authorization when requested, project-level otherwise."""
    if options.use_project_authorization or options.use_group_authorization:
        return (
            authorization.by_combined_search_level_and_membership,
            confidentiality.by_combined_confidentiality,
        )
    return (
        authorization.by_search_level_and_membership,
        confidentiality.by_project_confidentiality,
    )


def build_work_item_query(query: Optional[str], options: QueryOptions,
                          settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    """Build the search request body for work items.

    With an embedding service and vector support the keyword query is
    combined with a nearest-neighbour clause constrained by the same filters.

    Raises:
        InvalidArgumentError: If search_level is missing or invalid, or label
            names are given without a label directory
    """
    settings = settings or QuerySettings()
    options = with_defaults(options, settings, doc_type=DOC_TYPE, features=["issues"],
                            fields=list(FIELDS), embedding_field="embedding_0")
    hybrid = hybrid_enabled(options)

    document = text_query(query, options, settings, ISSUE_IID_REGEX, hybrid=hybrid)
    document = apply_filters(document, options, _authorization_filters(options))
    document = apply_filters(document, options, ENTITY_FILTERS)
    if hybrid:
        filters.by_knn(document, options)
    document = apply_sort(document, options, settings)
    return document.build()


def build_group_work_item_query(query: Optional[str], options: QueryOptions,
                                settings: Optional[QuerySettings] = None) -> Dict[str, Any]:
    """Build the search request body for work items owned by groups (epics).

    Group documents carry namespace visibility instead of project feature
    levels. Traversal-id authorization is used when
    ``authorization_use_traversal_ids`` is set, namespace visibility terms
    otherwise.
    """
    settings = settings or QuerySettings()
    options = with_defaults(options, settings, doc_type=DOC_TYPE, fields=list(FIELDS))
    options = options.replace(features=[])

    if options.authorization_use_traversal_ids:
        group_authorization = authorization.by_search_level_and_group_membership
    else:
        group_authorization = authorization.by_group_level_authorization

    document = text_query(query, options, settings, ISSUE_IID_REGEX)
    document = apply_filters(document, options, (group_authorization, confidentiality.by_group_level_confidentiality))
    document = apply_filters(document, options, GROUP_ENTITY_FILTERS)
    document = apply_sort(document, options, settings)
    return document.build()
