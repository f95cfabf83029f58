"""Work items finder: turns list-view filter params into a search query.

Params follow the work item list API:

    state                  - 'opened', 'closed' or 'all'
    label_name             - list of names, or the wildcards 'none' / 'any'
    sort                   - one of SORT_KEYS, default created_desc
    confidential           - bool
    author_username        - str
    milestone_title        - list of titles
    milestone_wildcard_id  - 'none', 'any', 'upcoming' or 'started'
    assignee_usernames     - list of usernames
    assignee_wildcard_id   - 'none' or 'any'
    weight                 - integer as a string
    weight_wildcard_id     - 'none' or 'any'
    issue_types            - list of work item type names
    health_status_filter   - 'on_track', 'needs_attention', 'at_risk', 'none' or 'any'
    due_after, due_before, created_after, created_before,
    updated_after, updated_before, closed_after, closed_before
    iids                   - list of iids as strings
    include_archived       - bool
    not                    - mapping of negatable keys (NOT_FILTERS)
    or                     - mapping of OR-able keys (OR_FILTERS)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..builders.work_item import build_work_item_query
from ..config import QuerySettings
from ..query.options import SEARCH_LEVEL_GROUP, SEARCH_LEVEL_PROJECT, QueryOptions

logger = logging.getLogger(__name__)

# Control keys steer database-backed lookups and have no search counterpart
CONTROL_KEYS = frozenset({
    "sort", "include_ancestors", "include_descendants", "exclude_projects", "exclude_group_work_items",
})
ALLOWED_FILTERS = frozenset({
    "label_name", "group_id", "project_id", "state", "confidential", "author_username",
    "milestone_title", "milestone_wildcard_id", "assignee_usernames", "assignee_wildcard_id", "not", "or",
    "weight", "weight_wildcard_id", "issue_types", "health_status_filter", "due_after", "due_before",
    "created_after", "created_before", "updated_after", "updated_before", "closed_after", "closed_before", "iids",
    "include_archived",
})
NOT_FILTERS = frozenset({
    "author_username", "milestone_title", "assignee_usernames", "label_name", "weight",
    "weight_wildcard_id", "health_status_filter", "milestone_wildcard_id",
})
OR_FILTERS = frozenset({"assignee_usernames", "label_names"})

SORT_KEYS = frozenset({
    "created_asc", "created_desc",
    "updated_asc", "updated_desc",
    "health_status_asc", "health_status_desc",
    "weight_asc", "weight_desc",
    "closed_at_asc", "closed_at_desc",
    "due_date_asc", "due_date_desc",
    "milestone_due_asc", "milestone_due_desc",
    "popularity_asc", "popularity_desc",
})
DEFAULT_SORT = "created_desc"

FILTER_NONE = "none"
FILTER_ANY = "any"
FILTER_MILESTONE_UPCOMING = "upcoming"
FILTER_MILESTONE_STARTED = "started"

WORK_ITEM_TYPE_IDS = {
    "issue": 1,
    "incident": 2,
    "test_case": 3,
    "requirement": 4,
    "task": 5,
    "objective": 6,
    "key_result": 7,
    "epic": 8,
    "ticket": 9,
}
HEALTH_STATUSES = {"on_track": 1, "needs_attention": 2, "at_risk": 3}

# Match everything; the filters do the work
QUERY = "*"


@dataclass(frozen=True)
class ResourceParent:
    """Project or group whose work items are listed."""
    kind: str  # "project" or "group"
    id: int

    def __post_init__(self):
        if self.kind not in ("project", "group"):
            raise ValueError(f"Unexpected parent: {self.kind}")


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _is_wildcard(value: Any, wildcard: str) -> bool:
    return str(value or "").lower() == wildcard


class WorkItemsFinder:
    """Build a work item search for a project or group list view.

    Args:
        current_user: Requesting principal (None for anonymous)
        parent: Project or group being listed
        params: Filter params (see module docstring)
        base_options: Options carrying caller-resolved membership data and
            collaborators; finder-derived fields override it
        settings: Query settings passed to the builder
    """

    def __init__(self, current_user, parent: ResourceParent, params: Optional[Mapping[str, Any]] = None,
                 base_options: Optional[QueryOptions] = None, settings: Optional[QuerySettings] = None):
        self.current_user = current_user
        self.parent = parent
        self.params: Dict[str, Any] = dict(params or {})
        self.base_options = base_options or QueryOptions()
        self.settings = settings or QuerySettings()

    def execute(self) -> Dict[str, Any]:
        """Return the search request body."""
        return build_work_item_query(QUERY, self.search_options(), self.settings)

    def elasticsearch_fields_supported(self) -> bool:
        """Whether every given param can be answered by the search index."""
        return (
            self._allowed_main_filters()
            and self._allowed_nested_filters("not", NOT_FILTERS)
            and self._allowed_nested_filters("or", OR_FILTERS)
            and self._allowed_sort()
        )

    def search_options(self) -> QueryOptions:
        """Translate params into QueryOptions for the work item builder."""
        params = self.params
        changes: Dict[str, Any] = {
            "current_user": self.current_user,
            "sort": self.sort,
            "state": params.get("state"),
            "confidential": params.get("confidential"),
            "work_item_type_ids": self._type_ids(params.get("issue_types")),
            "public_and_internal_projects": False,
            "include_archived": bool(params.get("include_archived")),
        }
        changes.update(self._scope_options())
        changes.update(self._label_options())
        changes.update(self._author_options())
        changes.update(self._milestone_options())
        changes.update(self._assignee_options())
        changes.update(self._weight_options())
        changes.update(self._health_status_options())
        changes.update(self._date_options())
        changes["iids"] = [int(iid) for iid in params["iids"]] if params.get("iids") else None
        return self.base_options.replace(**changes)

    @property
    def sort(self) -> str:
        return str(self.params.get("sort") or DEFAULT_SORT)

    def _not(self, key: str) -> Any:
        return (self.params.get("not") or {}).get(key)

    def _or(self, key: str) -> Any:
        return (self.params.get("or") or {}).get(key)

    def _scope_options(self) -> Dict[str, Any]:
        if self.parent.kind == "group":
            return {
                "search_level": SEARCH_LEVEL_GROUP,
                "group_ids": [self.parent.id],
                "project_ids": self.base_options.project_ids or [],
            }
        return {"search_level": SEARCH_LEVEL_PROJECT, "project_ids": [self.parent.id]}

    def _type_ids(self, type_names: Any) -> List[int]:
        names = _as_list(type_names)
        if not names:
            return sorted(WORK_ITEM_TYPE_IDS.values())
        return [WORK_ITEM_TYPE_IDS[name] for name in names if name in WORK_ITEM_TYPE_IDS]

    def _label_names(self, names: Any) -> Optional[List[str]]:
        names = _as_list(names)
        if not names or self._any(names) or self._none(names):
            return None
        return names

    @staticmethod
    def _any(values: List[Any]) -> bool:
        return any(_is_wildcard(v, FILTER_ANY) for v in values)

    @staticmethod
    def _none(values: List[Any]) -> bool:
        return any(_is_wildcard(v, FILTER_NONE) for v in values)

    def _label_options(self) -> Dict[str, Any]:
        names = _as_list(self.params.get("label_name"))
        return {
            "label_names": self._label_names(names),
            "not_label_names": self._label_names(self._not("label_name")),
            "or_label_names": self._label_names(self._or("label_names")),
            "none_label_names": self._none(names),
            "any_label_names": self._any(names),
        }

    def _author_options(self) -> Dict[str, Any]:
        return {
            "author_username": self.params.get("author_username"),
            "not_author_username": self._not("author_username"),
        }

    def _milestone_options(self) -> Dict[str, Any]:
        wildcard = self.params.get("milestone_wildcard_id")
        not_wildcard = self._not("milestone_wildcard_id")

        states = []
        if _is_wildcard(wildcard, FILTER_MILESTONE_UPCOMING):
            states.append("upcoming")
        if _is_wildcard(wildcard, FILTER_MILESTONE_STARTED):
            states.append("started")
        if _is_wildcard(not_wildcard, FILTER_MILESTONE_UPCOMING):
            states.append("not_upcoming")
        if _is_wildcard(not_wildcard, FILTER_MILESTONE_STARTED):
            states.append("not_started")

        return {
            "milestone_title": _as_list(self.params.get("milestone_title")) or None,
            "not_milestone_title": _as_list(self._not("milestone_title")) or None,
            "none_milestones": _is_wildcard(wildcard, FILTER_NONE),
            "any_milestones": _is_wildcard(wildcard, FILTER_ANY),
            "milestone_state_filters": states or None,
        }

    def _assignee_ids(self, usernames: Any) -> Optional[List[int]]:
        usernames = _as_list(usernames)
        if not usernames:
            return None

        directory = self.base_options.user_directory
        if directory is None:
            logger.warning("No user directory configured, ignoring assignee usernames")
            return None

        ids = [directory.find_id_by_username(name) for name in usernames]
        return [user_id for user_id in ids if user_id is not None]

    def _assignee_options(self) -> Dict[str, Any]:
        wildcard = self.params.get("assignee_wildcard_id")
        return {
            "assignee_ids": self._assignee_ids(self.params.get("assignee_usernames")),
            "not_assignee_ids": self._assignee_ids(self._not("assignee_usernames")),
            "or_assignee_ids": self._assignee_ids(self._or("assignee_usernames")),
            "none_assignees": _is_wildcard(wildcard, FILTER_NONE),
            "any_assignees": _is_wildcard(wildcard, FILTER_ANY),
        }

    def _weight_options(self) -> Dict[str, Any]:
        # weight arrives as a string but is indexed as an integer
        weight = self.params.get("weight")
        not_weight = self._not("weight")
        wildcard = self.params.get("weight_wildcard_id")
        return {
            "weight": int(weight) if weight is not None else None,
            "not_weight": int(not_weight) if not_weight is not None else None,
            "none_weight": _is_wildcard(wildcard, FILTER_NONE),
            "any_weight": _is_wildcard(wildcard, FILTER_ANY),
        }

    def _health_statuses(self, statuses: List[Any]) -> Optional[List[int]]:
        if not statuses or self._any(statuses) or self._none(statuses):
            return None
        return [HEALTH_STATUSES[s] for s in statuses if s in HEALTH_STATUSES]

    def _health_status_options(self) -> Dict[str, Any]:
        statuses = _as_list(self.params.get("health_status_filter"))
        not_statuses = _as_list(self._not("health_status_filter"))
        return {
            "health_status": self._health_statuses(statuses),
            "not_health_status": self._health_statuses(not_statuses),
            "none_health_status": self._none(statuses),
            "any_health_status": self._any(statuses),
        }

    def _date_options(self) -> Dict[str, Any]:
        keys = (
            "due_after", "due_before", "created_after", "created_before",
            "updated_after", "updated_before", "closed_after", "closed_before",
        )
        return {key: self.params.get(key) for key in keys}

    def _allowed_main_filters(self) -> bool:
        filter_keys = set(self.params) - CONTROL_KEYS
        return filter_keys <= ALLOWED_FILTERS

    def _allowed_nested_filters(self, key: str, allowed: frozenset) -> bool:
        nested = self.params.get(key)
        if not nested:
            return True
        if not isinstance(nested, Mapping):
            return False
        return set(nested) <= allowed

    def _allowed_sort(self) -> bool:
        sort = self.params.get("sort")
        if not sort:
            return True
        return str(sort) in SORT_KEYS
