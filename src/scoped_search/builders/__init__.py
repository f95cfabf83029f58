"""One query builder per searchable entity.

Each builder applies a fixed, ordered list of filters so clause names stay
stable between builds.
"""

from .issue import build_issue_query
from .merge_request import build_merge_request_query
from .milestone import build_milestone_query
from .note import build_note_query
from .project import build_project_query
from .work_item import build_group_work_item_query, build_work_item_query

# Entity name -> builder, as accepted on the command line
BUILDERS = {
    "issue": build_issue_query,
    "merge_request": build_merge_request_query,
    "milestone": build_milestone_query,
    "note": build_note_query,
    "project": build_project_query,
    "work_item": build_work_item_query,
    "group_work_item": build_group_work_item_query,
}

__all__ = [
    "BUILDERS",
    "build_issue_query",
    "build_merge_request_query",
    "build_milestone_query",
    "build_note_query",
    "build_project_query",
    "build_work_item_query",
    "build_group_work_item_query",
]
