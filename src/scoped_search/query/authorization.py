"""Authorization filters: search level, membership and visibility.

These filters restrict a query to documents the principal may read. They take
membership data already resolved by the caller from ``QueryOptions``
(member project ids, traversal-id prefixes, authorized group ids) and only
translate it into clauses. Missing or invalid ``search_level`` is a caller
error, never a silent default.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import InvalidArgumentError
from .bool_clause import BoolClause
from .document import QueryContext, QueryDocument
from .options import (
    ANY_PROJECTS,
    FEATURE_ENABLED,
    FEATURE_PRIVATE,
    SEARCH_LEVEL_GROUP,
    SEARCH_LEVEL_PROJECT,
    SEARCH_LEVELS,
    VISIBILITY_INTERNAL,
    VISIBILITY_PRIVATE,
    VISIBILITY_PUBLIC,
    Principal,
    ProjectIds,
    QueryOptions,
    can_read_all,
)

logger = logging.getLogger(__name__)

NAMESPACE_VISIBILITY_FIELD = "namespace_visibility_level"


def _validate_search_level(options: QueryOptions) -> str:
    if options.search_level is None:
        raise InvalidArgumentError("search_level is a required option")
    if options.search_level not in SEARCH_LEVELS:
        raise InvalidArgumentError(f"Invalid search_level option provided: {options.search_level}")
    return options.search_level


def scoped_project_ids(user: Optional[Principal], project_ids: ProjectIds) -> ProjectIds:
    """Project ids a search may be scoped to.

    A principal that cannot read across projects may only search a single
    project, so a longer list is reduced to nothing.
    """
    if project_ids == ANY_PROJECTS:
        return ANY_PROJECTS

    project_ids = list(project_ids or [])
    if user is not None and not user.can_read_cross_project and len(project_ids) > 1:
        return []
    return project_ids


def ancestry_for(options: QueryOptions, group_id: int) -> str:
    """Traversal-id prefix of a group, e.g. ``"9970-123-"``."""
    return options.group_ancestries.get(group_id) or f"{group_id}-"


def ancestry_filter(ctx: QueryContext, ancestries: List[str], field: str) -> List[Dict[str, Any]]:
    with ctx.scope("ancestry_filter"):
        return [
            {"prefix": {field: {"_name": ctx.name("descendants"), "value": ancestry}}}
            for ancestry in ancestries
        ]


def search_level_filter(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Limit documents to the searched group hierarchy or projects.

    Global searches add nothing.

    Raises:
        InvalidArgumentError: If a group search has no group_ids, or a project
            search has no usable project_ids
    """
    search_level = options.search_level
    ctx = document.context

    with ctx.scope("filters", "level", search_level) as name:
        if search_level == SEARCH_LEVEL_GROUP:
            if not options.group_ids:
                raise InvalidArgumentError("No group_ids provided for group level search")

            ancestries = [ancestry_for(options, gid) for gid in options.group_ids]
            document.add_filter({"bool": {
                "_name": name,
                "minimum_should_match": 1,
                "should": ancestry_filter(ctx, ancestries, options.traversal_ids_prefix),
            }})
        elif search_level == SEARCH_LEVEL_PROJECT:
            project_ids = scoped_project_ids(options.current_user, options.project_ids)
            if not project_ids or project_ids == ANY_PROJECTS:
                raise InvalidArgumentError("No project_ids provided for project level search")

            document.add_filter({"bool": {
                "_name": name,
                "must": {"terms": {options.project_id_field: project_ids}},
            }})
    return document


def _visibility_level_terms(ctx: QueryContext, user: Optional[Principal], field: str) -> Dict[str, Any]:
    if user is not None and not user.external:
        return {"terms": {
            "_name": ctx.name(field, "public_and_internal"),
            field: [VISIBILITY_PUBLIC, VISIBILITY_INTERNAL],
        }}
    return {"terms": {"_name": ctx.name(field, "public"), field: [VISIBILITY_PUBLIC]}}


def _feature_access_terms(ctx: QueryContext, feature: str, include_private: bool) -> Dict[str, Any]:
    field = f"{feature}_access_level"
    if include_private:
        return {"terms": {"_name": ctx.name(field, "enabled_or_private"), field: [FEATURE_ENABLED, FEATURE_PRIVATE]}}
    return {"terms": {"_name": ctx.name(field, "enabled"), field: [FEATURE_ENABLED]}}


def _membership_clause(ctx: QueryContext, options: QueryOptions) -> BoolClause:
    """Clauses granting access through direct group or project membership."""
    membership = BoolClause()
    user = options.current_user
    if user is None or can_read_all(user):
        return membership

    if options.member_traversal_ids:
        membership.should.extend(ancestry_filter(ctx, options.member_traversal_ids, options.traversal_ids_prefix))
    if options.member_project_ids:
        membership.should.append({"terms": {
            "_name": ctx.name("project", "member"),
            options.project_id_field: list(options.member_project_ids),
        }})

    if membership.should:
        membership.minimum_should_match = 1
        if options.features:
            feature_filter = BoolClause(
                should=[_feature_access_terms(ctx, f, include_private=True) for f in options.features],
                minimum_should_match=1,
            )
            membership.filter.append(feature_filter.to_bool_query())
    return membership


def membership_filter(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Grant access by project visibility and feature level, or by membership."""
    user = options.current_user
    ctx = document.context

    with ctx.scope("filters", "permissions", options.search_level) as name:
        permissions = BoolClause()
        if not can_read_all(user):
            permissions.must.append(_visibility_level_terms(ctx, user, options.project_visibility_level_field))
        if options.features:
            permissions.minimum_should_match = 1
            permissions.should.extend(
                _feature_access_terms(ctx, f, include_private=can_read_all(user)) for f in options.features
            )

        should = [{"bool": permissions.to_document()}]
        membership = _membership_clause(ctx, options)
        if not membership.is_empty():
            should.append({"bool": membership.to_document()})

        document.add_filter({"bool": {"_name": name, "should": should, "minimum_should_match": 1}})
    return document


def by_search_level_and_membership(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Project-level authorization: scope by search level, then by membership.

    Raises:
        InvalidArgumentError: If search_level is missing or invalid, or the
            level's required ids are missing
    """
    _validate_search_level(options)
    search_level_filter(document, options)
    return membership_filter(document, options)


def by_search_level_and_group_membership(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Group-level authorization using namespace visibility and ancestry.

    Raises:
        InvalidArgumentError: If search_level is missing or invalid
    """
    search_level = _validate_search_level(options)
    search_level_filter(document, options)

    user = options.current_user
    ctx = document.context
    with ctx.scope("filters", "permissions", search_level) as name:
        if can_read_all(user):
            document.add_filter({"exists": {
                "_name": ctx.name("admin_all_groups", NAMESPACE_VISIBILITY_FIELD, "all"),
                "field": NAMESPACE_VISIBILITY_FIELD,
            }})
            return document

        should = [{"bool": {"filter": [_visibility_level_terms(ctx, user, NAMESPACE_VISIBILITY_FIELD)]}}]
        if user is not None and options.member_traversal_ids:
            should.append({"bool": {
                "must": [{"terms": {
                    "_name": ctx.name(NAMESPACE_VISIBILITY_FIELD, "private"),
                    NAMESPACE_VISIBILITY_FIELD: [VISIBILITY_PRIVATE],
                }}],
                "should": ancestry_filter(ctx, options.member_traversal_ids, options.traversal_ids_prefix),
                "minimum_should_match": 1,
            }})

        document.add_filter({"bool": {"_name": name, "should": should, "minimum_should_match": 1}})
    return document


def by_combined_search_level_and_membership(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """OR together project and group authorization, as enabled by the options.

    ``use_project_authorization`` and ``use_group_authorization`` select the
    branches. With neither set the document is unchanged.
    """
    combined = BoolClause()

    if options.use_project_authorization:
        project_part = by_search_level_and_membership(QueryDocument(), options)
        combined.should.append(project_part.bool.to_bool_query())

    if options.use_group_authorization:
        group_part = by_search_level_and_group_membership(QueryDocument(), options)
        combined.should.append(group_part.bool.to_bool_query())

    document.add_filter(combined.to_bool_query())
    return document


def _feature_project_ids(options: QueryOptions, project_ids: List[int], feature: str) -> List[int]:
    allowed = options.feature_project_ids.get(feature)
    if allowed is None:
        return list(project_ids)
    allowed = set(allowed)
    return [pid for pid in project_ids if pid in allowed]


def _pick_projects_by_membership(ctx: QueryContext, project_ids: ProjectIds,
                                 options: QueryOptions) -> List[Dict[str, Any]]:
    """Projects the principal is a member of, with the feature not disabled.

    Read-all principals pass ``any`` and get every private project instead.
    """
    id_field = options.project_id_field if options.no_join_project else "id"
    visibility_field = options.project_visibility_level_field

    def condition(ids):
        if project_ids == ANY_PROJECTS:
            return {"term": {visibility_field: {"_name": ctx.name("any"), "value": VISIBILITY_PRIVATE}}}
        return {"terms": {"_name": ctx.name("membership", "id"), id_field: ids}}

    if not options.features:
        return [condition(project_ids)]

    conditions = []
    for feature in options.features:
        ids = None if project_ids == ANY_PROJECTS else _feature_project_ids(options, project_ids, feature)
        field = f"{feature}_access_level"
        limit = {"terms": {"_name": ctx.name(feature, "enabled_or_private"), field: [FEATURE_ENABLED, FEATURE_PRIVATE]}}
        conditions.append({"bool": {"filter": [condition(ids), limit]}})
    return conditions


def _pick_projects_by_visibility(ctx: QueryContext, visibility: int,
                                 options: QueryOptions) -> List[Dict[str, Any]]:
    """Projects of one visibility level whose feature is enabled.

    Read-all principals also get projects where the feature is private.
    Disabled features are always excluded.
    """
    field = options.project_visibility_level_field
    with ctx.scope(visibility):
        if not options.features:
            return [{"term": {field: {"_name": ctx.name(), "value": visibility}}}]

        conditions = []
        for feature in options.features:
            condition = {"term": {field: {"_name": ctx.name(), "value": visibility}}}
            with ctx.scope(feature, "access_level") as name:
                limit = _feature_limit(ctx, feature, can_read_all(options.current_user))
                conditions.append({"bool": {"_name": name, "filter": [condition, limit]}})
        return conditions


def _feature_limit(ctx: QueryContext, feature: str, include_members_only: bool) -> Dict[str, Any]:
    field = f"{feature}_access_level"
    if include_members_only:
        return {"terms": {"_name": ctx.name("enabled_or_private"), field: [FEATURE_ENABLED, FEATURE_PRIVATE]}}
    return {"term": {field: {"_name": ctx.name("enabled"), "value": FEATURE_ENABLED}}}


def _project_ids_query(ctx: QueryContext, options: QueryOptions) -> Dict[str, Any]:
    user = options.current_user
    project_ids = scoped_project_ids(user, options.project_ids)

    conditions = _pick_projects_by_membership(ctx, project_ids, options)
    if options.public_and_internal_projects:
        with ctx.scope("visibility"):
            if user is not None and not user.external:
                conditions += _pick_projects_by_visibility(ctx, VISIBILITY_INTERNAL, options)
            conditions += _pick_projects_by_visibility(ctx, VISIBILITY_PUBLIC, options)

    return {"should": conditions}


def _project_ids_filter(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    ctx = document.context
    with ctx.scope("project") as name:
        project_query = _project_ids_query(ctx, options)

        if options.no_join_project:
            document.add_filter({"bool": {"_name": name, **project_query}})
        else:
            document.add_filter({"has_parent": {
                "_name": f"{name}:parent",
                "parent_type": "project",
                "query": {"bool": project_query},
            }})
    return document


def _traversal_ids_filter(document: QueryDocument, options: QueryOptions, namespace_ids: List[int]) -> QueryDocument:
    ctx = document.context
    project_ids = scoped_project_ids(options.current_user, options.project_ids)

    with ctx.scope("reject_projects") as name:
        if project_ids != ANY_PROJECTS and options.rejected_project_ids:
            document.add_filter({"terms": {
                "_name": name,
                options.project_id_field: list(options.rejected_project_ids),
            }}, clause_list="must_not")

    with ctx.scope("namespace"):
        ancestries = [ancestry_for(options, gid) for gid in namespace_ids]
        document.add_filter({"bool": {
            "should": ancestry_filter(ctx, ancestries, options.traversal_ids_prefix),
            "minimum_should_match": 1,
        }})
    return document


def by_project_authorization(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Select child documents of projects the principal may read.

    Uses a parent-join on the project document unless ``no_join_project``
    says permissions are denormalized onto the child. Group searches with
    ``authorization_use_traversal_ids`` switch to an ancestry prefix filter
    plus an exclusion of projects the principal may not read.
    """
    user = options.current_user
    group_ids = options.group_ids

    with document.context.scope("filters"):
        if options.project_ids == ANY_PROJECTS or not group_ids or not options.authorization_use_traversal_ids:
            return _project_ids_filter(document, options)

        authorized = set(options.authorized_group_ids) if user is not None else set()
        namespace_ids = [gid for gid in group_ids if gid in authorized]
        if not namespace_ids:
            return _project_ids_filter(document, options)

        return _traversal_ids_filter(document, options, namespace_ids)


def by_group_level_authorization(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Restrict group-owned documents by namespace visibility.

    Public namespaces are open to everyone, internal ones to signed-in
    non-external users, private ones to members of the authorized groups.
    """
    user = options.current_user
    if options.search_level is not None:
        search_level_filter(document, options)
    if can_read_all(user):
        return document

    ctx = document.context
    with ctx.scope("filters"):
        def level(value: int, label: str, *extra: Dict[str, Any]) -> Dict[str, Any]:
            term = {"term": {NAMESPACE_VISIBILITY_FIELD: {
                "value": value, "_name": ctx.name(NAMESPACE_VISIBILITY_FIELD, label),
            }}}
            return {"bool": {"filter": [term, *extra]}}

        visibility = BoolClause(minimum_should_match=1)
        visibility.should.append(level(VISIBILITY_PUBLIC, "public"))

        if user is not None and not user.external:
            visibility.should.append(level(VISIBILITY_INTERNAL, "internal"))
            if options.authorized_group_ids:
                visibility.should.append(level(
                    VISIBILITY_PRIVATE, "private",
                    {"terms": {"namespace_id": list(options.authorized_group_ids)}},
                ))

        document.add_filter(visibility.to_bool_query())
    return document
