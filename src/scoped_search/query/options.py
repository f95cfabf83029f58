"""Typed options passed to filter, query and builder functions."""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

SEARCH_LEVEL_GLOBAL = "global"
SEARCH_LEVEL_GROUP = "group"
SEARCH_LEVEL_PROJECT = "project"
SEARCH_LEVELS = (SEARCH_LEVEL_GLOBAL, SEARCH_LEVEL_GROUP, SEARCH_LEVEL_PROJECT)

# Visibility levels of projects and namespaces
VISIBILITY_PRIVATE = 0
VISIBILITY_INTERNAL = 10
VISIBILITY_PUBLIC = 20

# Project feature access levels
FEATURE_DISABLED = 0
FEATURE_PRIVATE = 10
FEATURE_ENABLED = 20

# Marker for "every project the principal may see"
ANY_PROJECTS = "any"

ProjectIds = Union[List[int], str, None]


@dataclass(frozen=True)
class Principal:
    """Requesting user, reduced to the capabilities query building needs.

    Policy evaluation happens outside this package; a Principal only carries
    its answers.
    """
    id: int
    username: str = ""
    external: bool = False
    can_read_all_resources: bool = False
    can_admin_all_resources: bool = False
    can_read_cross_project: bool = True


def is_anonymous(user: Optional[Principal]) -> bool:
    return user is None


def can_read_all(user: Optional[Principal]) -> bool:
    return bool(user and user.can_read_all_resources)


@dataclass
class QueryOptions:
    """Options read by the filter library.

    Each filter reads only its own fields and treats None/empty as "not
    requested". Membership data (authorized ids, traversal-id prefixes) is
    resolved by the caller before building.
    """
    # Principal and scope
    current_user: Optional[Principal] = None
    search_level: Optional[str] = None
    project_ids: ProjectIds = None
    group_ids: List[int] = field(default_factory=list)
    doc_type: Optional[str] = None
    features: List[str] = field(default_factory=list)

    # Membership data resolved by the caller
    member_project_ids: List[int] = field(default_factory=list)
    authorized_project_ids: List[int] = field(default_factory=list)  # reporter or above
    authorized_group_ids: List[int] = field(default_factory=list)  # guest or above
    confidential_group_ids: List[int] = field(default_factory=list)
    feature_project_ids: Dict[str, List[int]] = field(default_factory=dict)
    group_ancestries: Dict[int, str] = field(default_factory=dict)  # group id -> "1-2-"
    member_traversal_ids: List[str] = field(default_factory=list)
    rejected_project_ids: List[int] = field(default_factory=list)

    # Index field layout
    project_id_field: str = "project_id"
    project_visibility_level_field: str = "visibility_level"
    traversal_ids_prefix: str = "traversal_ids"
    no_join_project: bool = False
    public_and_internal_projects: bool = False
    authorization_use_traversal_ids: bool = False
    use_project_authorization: bool = False
    use_group_authorization: bool = False

    # Entity filters
    state: Optional[str] = None
    confidential: Optional[bool] = None
    include_archived: bool = False
    source_branch: Optional[str] = None
    not_source_branch: Optional[str] = None
    target_branch: Optional[str] = None
    not_target_branch: Optional[str] = None
    author_username: Optional[str] = None
    not_author_username: Optional[str] = None
    author_id: Optional[int] = None
    not_author_id: Optional[int] = None
    work_item_type_ids: Optional[List[int]] = None
    not_work_item_type_ids: Optional[List[int]] = None
    label_name: Union[str, List[str], None] = None
    label_names: Optional[List[str]] = None
    not_label_names: Optional[List[str]] = None
    or_label_names: Optional[List[str]] = None
    any_label_names: bool = False
    none_label_names: bool = False
    milestone_title: Optional[List[str]] = None
    not_milestone_title: Optional[List[str]] = None
    any_milestones: bool = False
    none_milestones: bool = False
    milestone_state_filters: Optional[List[str]] = None
    assignee_ids: Optional[List[int]] = None
    not_assignee_ids: Optional[List[int]] = None
    or_assignee_ids: Optional[List[int]] = None
    any_assignees: bool = False
    none_assignees: bool = False
    weight: Optional[int] = None
    not_weight: Optional[int] = None
    any_weight: bool = False
    none_weight: bool = False
    health_status: Optional[List[int]] = None
    not_health_status: Optional[List[int]] = None
    any_health_status: bool = False
    none_health_status: bool = False
    created_after: Optional[str] = None
    created_before: Optional[str] = None
    updated_after: Optional[str] = None
    updated_before: Optional[str] = None
    closed_after: Optional[str] = None
    closed_before: Optional[str] = None
    due_after: Optional[str] = None
    due_before: Optional[str] = None
    iids: Optional[List[int]] = None
    noteable_type: Optional[str] = None
    related_ids_only: bool = False
    related_size: Optional[int] = None

    # Query shaping
    fields: List[str] = field(default_factory=list)
    keyword_match_clause: str = "must"
    count_only: bool = False
    aggregation: bool = False
    order_by: Optional[str] = None
    sort: Optional[str] = None

    # Vector search
    embeddings: bool = False
    vectors_supported: Optional[str] = None
    embedding_field: Optional[str] = None
    hybrid_similarity: Optional[float] = None
    hybrid_boost: Optional[float] = None

    # Collaborators
    user_directory: Any = None
    label_directory: Any = None
    embedding_service: Any = None
    rate_limiter: Any = None
    error_tracker: Any = None

    def replace(self, **changes: Any) -> "QueryOptions":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)
