"""Confidentiality filters for issues, work items and epics.

A confidential document is visible to its author, its assignees and members
of a scope authorized to read confidential data. Everything else only sees
non-confidential documents.
"""

import logging
from typing import Any, Dict, List, Optional

from .bool_clause import BoolClause
from .document import QueryContext, QueryDocument
from .options import ANY_PROJECTS, Principal, QueryOptions, can_read_all
from .authorization import scoped_project_ids

logger = logging.getLogger(__name__)


def _user_filter(document: QueryDocument, options: QueryOptions) -> None:
    """Honor an explicit ``confidential`` option from the caller."""
    confidential = options.confidential
    if confidential is None:
        return

    ctx = document.context
    if options.current_user is None and confidential:
        document.add_filter({"match_none": {"_name": ctx.name("anonymous_user_confidential_filter_not_allowed")}})
        return

    document.add_filter({"term": {"confidential": {"_name": ctx.name("user_filter"), "value": confidential}}})


def _non_confidential(ctx: QueryContext) -> Dict[str, Any]:
    return {"term": {"confidential": {"_name": ctx.name("non_confidential"), "value": False}}}


def _confidential_access(ctx: QueryContext, user: Principal,
                         membership: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Confidential documents the user authored, is assigned to or can read as a member."""
    should = [
        {"term": {"author_id": {"_name": ctx.name("confidential", "as_author"), "value": user.id}}},
        {"term": {"assignee_id": {"_name": ctx.name("confidential", "as_assignee"), "value": user.id}}},
    ]
    if membership:
        should.append(membership)

    return {"bool": {"must": [
        {"term": {"confidential": {"_name": ctx.name("confidential"), "value": True}}},
        {"bool": {"should": should}},
    ]}}


def _apply_access_filter(document: QueryDocument, options: QueryOptions,
                         membership: Optional[Dict[str, Any]]) -> QueryDocument:
    ctx = document.context
    user = options.current_user

    if user is None:
        return document.add_filter(_non_confidential(ctx))

    access = _confidential_access(ctx, user, membership)
    if options.confidential:
        return document.add_filter(access)

    return document.add_filter({"bool": {"should": [_non_confidential(ctx), access]}})


def by_project_confidentiality(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Hide confidential project documents the principal may not read.

    Membership means reporter access or above to the document's project
    (``authorized_project_ids``), limited to the projects in scope. When the
    principal is authorized for every scoped project, nothing is added.
    """
    user = options.current_user
    ctx = document.context

    if can_read_all(user):
        return document

    with ctx.scope("filters", "confidentiality", "projects"):
        _user_filter(document, options)
        if options.confidential is False:
            return document

        membership = None
        if user is not None:
            project_ids = scoped_project_ids(user, options.project_ids)
            authorized: List[int] = list(options.authorized_project_ids)
            if project_ids != ANY_PROJECTS:
                scoped = set(project_ids)
                authorized = [pid for pid in authorized if pid in scoped]
                if scoped and set(authorized) == scoped:
                    return document

            if authorized:
                membership = {"terms": {
                    "_name": ctx.name("confidential", "project", "membership", "id"),
                    options.project_id_field: authorized,
                }}

        return _apply_access_filter(document, options, membership)


def by_group_level_confidentiality(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Hide confidential group documents the principal may not read.

    Membership means planner access or above to the owning group
    (``confidential_group_ids``).
    """
    user = options.current_user
    ctx = document.context

    if can_read_all(user):
        return document

    with ctx.scope("filters", "confidentiality", "groups"):
        _user_filter(document, options)
        if options.confidential is False:
            return document

        membership = None
        if user is not None and options.confidential_group_ids:
            membership = {"terms": {
                "_name": ctx.name("confidential", "group", "membership", "id"),
                "namespace_id": list(options.confidential_group_ids),
            }}

        return _apply_access_filter(document, options, membership)


def by_combined_confidentiality(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """OR together project and group confidentiality, as enabled by the options.

    Feature access levels only apply to projects, so they are dropped for the
    group branch.
    """
    combined = BoolClause()

    if options.use_project_authorization:
        project_part = by_project_confidentiality(QueryDocument(), options)
        combined.should.append(project_part.bool.to_bool_query())

    if options.use_group_authorization:
        group_part = by_group_level_confidentiality(QueryDocument(), options.replace(features=[]))
        combined.should.append(group_part.bool.to_bool_query())

    combined.should = [clause for clause in combined.should if clause]
    document.add_filter(combined.to_bool_query())
    return document
