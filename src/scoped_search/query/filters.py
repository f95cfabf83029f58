"""Entity filters for query documents.

Every public function takes ``(document, options)``, appends its clauses to
``query.bool`` and returns the same document. A filter whose options are
absent leaves the document untouched. Filters that cannot be built correctly
without a specific option (archived, label ids, doc type, noteable type)
raise InvalidArgumentError instead.
"""

import copy
import logging
import re
from typing import Any, Dict, List, Optional

from ..errors import InvalidArgumentError
from .document import QueryDocument
from .options import QueryOptions, SEARCH_LEVELS, SEARCH_LEVEL_GLOBAL, SEARCH_LEVEL_PROJECT

logger = logging.getLogger(__name__)

ALLOWED_STATES = ("opened", "closed", "merged", "all")
NOTEABLE_TYPES = ("Issue", "MergeRequest", "Commit", "Snippet")
DEFAULT_RELATED_SIZE = 100
LABEL_WILDCARD_SUFFIX = "::*"

MILESTONE_UPCOMING = "upcoming"
MILESTONE_STARTED = "started"
MILESTONE_NOT_UPCOMING = "not_upcoming"
MILESTONE_NOT_STARTED = "not_started"


def _named_term(field: str, value: Any, name: str) -> Dict[str, Any]:
    return {"term": {field: {"_name": name, "value": value}}}


def _must_not(clause: Dict[str, Any]) -> Dict[str, Any]:
    return {"bool": {"must_not": clause}}


def _missing(field: str) -> Dict[str, Any]:
    return {"bool": {"must_not": {"exists": {"field": field}}}}


def _existence(document: QueryDocument, field: str, any_name: str, none_name: str,
               any_value: bool, none_value: bool):
    """Append named exists / not-exists clauses for any/none wildcards."""
    ctx = document.context
    if any_value:
        document.add_filter({"bool": {"_name": ctx.name(any_name), "must": {"exists": {"field": field}}}})
    if none_value:
        document.add_filter({"bool": {"_name": ctx.name(none_name), "must_not": {"exists": {"field": field}}}})


def _pair_filter(document: QueryDocument, field: str, include: Any, exclude: Any,
                 name: str, not_name: str) -> QueryDocument:
    """Disjunction of ``field == include`` and ``field != exclude``."""
    if include is None and exclude is None:
        return document

    with document.context.scope("filters"):
        should = []
        if include is not None:
            should.append(_named_term(field, include, document.context.name(name)))
        if exclude is not None:
            should.append(_must_not(_named_term(field, exclude, document.context.name(not_name))))

        document.add_filter({"bool": {"should": should, "minimum_should_match": 1}})
    return document


def by_source_branch(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    return _pair_filter(document, "source_branch", options.source_branch or None,
                        options.not_source_branch or None, "source_branch", "not_source_branch")


def by_target_branch(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    return _pair_filter(document, "target_branch", options.target_branch or None,
                        options.not_target_branch or None, "target_branch", "not_target_branch")


def by_author(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Filter by author, resolving usernames through the user directory.

    Pre-resolved ``author_id`` / ``not_author_id`` take precedence over
    usernames. Usernames that don't resolve are dropped; if nothing resolves
    the document is unchanged.
    """
    included = options.author_id
    excluded = options.not_author_id
    directory = options.user_directory

    if directory is not None:
        if included is None and options.author_username:
            included = directory.find_id_by_username(options.author_username)
        if excluded is None and options.not_author_username:
            excluded = directory.find_id_by_username(options.not_author_username)
    elif options.author_username or options.not_author_username:
        logger.debug("No user directory configured, skipping author username filter")

    return _pair_filter(document, "author_id", included, excluded, "author", "not_author")


def by_work_item_type_ids(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    type_ids = options.work_item_type_ids
    not_type_ids = options.not_work_item_type_ids
    if not type_ids and not not_type_ids:
        return document

    ctx = document.context
    with ctx.scope("filters"):
        if type_ids:
            document.add_filter({"bool": {"must": {"bool": {
                "should": [
                    {"terms": {"_name": ctx.name("work_item_type_ids"), "work_item_type_id": type_ids}},
                    {"terms": {"_name": ctx.name("correct_work_item_type_ids"),
                               "correct_work_item_type_id": type_ids}},
                ],
                "minimum_should_match": 1,
            }}}})

        if not_type_ids:
            document.add_filter({"bool": {"must_not": {"bool": {
                "should": [
                    {"terms": {"_name": ctx.name("not_work_item_type_ids"), "work_item_type_id": not_type_ids}},
                    {"terms": {"_name": ctx.name("not_correct_work_item_type_ids"),
                               "correct_work_item_type_id": not_type_ids}},
                ],
                "minimum_should_match": 1,
            }}}})
    return document


def by_not_hidden(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Hide documents flagged hidden unless the principal administers everything."""
    user = options.current_user
    if user is not None and user.can_admin_all_resources:
        return document

    with document.context.scope("filters"):
        document.add_filter(_named_term("hidden", False, document.context.name("not_hidden")))
    return document


def by_state(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Restrict to a state. ``all`` and unknown states mean no constraint."""
    state = options.state
    if not state or state == "all" or state not in ALLOWED_STATES:
        return document

    with document.context.scope("filters"):
        document.add_filter({"match": {"state": {"_name": document.context.name("state"), "query": state}}})
    return document


def by_archived(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Exclude archived projects' documents outside project scope.

    Raises:
        InvalidArgumentError: If search_level is not set
    """
    if options.search_level is None:
        raise InvalidArgumentError("search_level is a required option")

    if options.search_level == SEARCH_LEVEL_PROJECT or options.include_archived:
        return document

    with document.context.scope("filters"):
        archived_false = {"bool": {"filter": {"term": {"archived": {"value": False}}}}}
        archived_missing = _missing("archived")
        document.add_filter({"bool": {
            "_name": document.context.name("non_archived"),
            "should": [archived_false, archived_missing],
        }})
    return document


def _label_names_from(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [name for name in value if name]


def by_label_ids(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Require every requested label, matching any id a label name resolves to.

    Raises:
        InvalidArgumentError: If search_level is missing or invalid, or no
            label directory is available to resolve names
    """
    if options.count_only or options.aggregation:
        return document

    names = _label_names_from(options.label_name)
    if not names:
        return document

    if options.search_level is None:
        raise InvalidArgumentError("search_level is a required option")
    if options.search_level not in SEARCH_LEVELS:
        raise InvalidArgumentError("Invalid search_level option provided")
    if options.label_directory is None:
        raise InvalidArgumentError("label_directory is required to filter by label name")

    labels_by_name = options.label_directory.find_ids_by_name(
        names, options.search_level, options.group_ids, options.project_ids
    )
    if not labels_by_name:
        return document

    with document.context.scope("filters"):
        must = [
            {"terms": {"_name": document.context.name("label_ids"), "label_ids": list(label_ids)}}
            for label_ids in labels_by_name.values()
        ]
    document.add_filter({"bool": {"must": must}})
    return document


def _label_clause(name: str) -> Dict[str, Any]:
    if name.endswith(LABEL_WILDCARD_SUFFIX):
        return {"prefix": {"label_names": name[:-1]}}
    return {"term": {"label_names": name}}


def by_label_names(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Filter by label names stored on the document.

    A name ending in ``::*`` matches every scoped label with that prefix.
    """
    ctx = document.context
    with ctx.scope("filters"):
        if options.label_names:
            document.add_filter({"bool": {
                "_name": ctx.name("label_names"),
                "must": [_label_clause(n) for n in options.label_names],
            }})
        if options.not_label_names:
            document.add_filter({"bool": {
                "_name": ctx.name("not_label_names"),
                "must_not": [_label_clause(n) for n in options.not_label_names],
            }})
        if options.or_label_names:
            document.add_filter({"bool": {
                "_name": ctx.name("or_label_names"),
                "should": [_label_clause(n) for n in options.or_label_names],
                "minimum_should_match": 1,
            }})
        _existence(document, "label_names", "any_label_names", "none_label_names",
                   options.any_label_names, options.none_label_names)
    return document


def by_milestone(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    ctx = document.context
    with ctx.scope("filters"):
        if options.milestone_title:
            document.add_filter({"bool": {"must": {"terms": {
                "_name": ctx.name("milestone_title"), "milestone_title": options.milestone_title,
            }}}})
        if options.not_milestone_title:
            document.add_filter({"bool": {"must_not": {"terms": {
                "_name": ctx.name("not_milestone_title"), "milestone_title": options.not_milestone_title,
            }}}})
        _existence(document, "milestone_title", "any_milestones", "none_milestones",
                   options.any_milestones, options.none_milestones)
    return document


def _milestone_state_clause(state: str) -> Optional[Dict[str, Any]]:
    active = {"term": {"milestone_state": "active"}}
    if state in (MILESTONE_UPCOMING, MILESTONE_NOT_STARTED):
        return {"must": [active, {"range": {"milestone_start_date": {"gt": "now/d"}}}]}
    if state == MILESTONE_NOT_UPCOMING:
        return {"must": [active, {"range": {"milestone_start_date": {"lte": "now/d"}}}]}
    if state == MILESTONE_STARTED:
        return {
            "must": [
                active,
                {"bool": {"should": [
                    {"range": {"milestone_start_date": {"lte": "now/d"}}},
                    _missing("milestone_start_date"),
                ]}},
                {"bool": {"should": [
                    {"range": {"milestone_due_date": {"gte": "now/d"}}},
                    _missing("milestone_due_date"),
                ]}},
            ],
            # a milestone with neither date has not started
            "must_not": {"bool": {"must": [
                _missing("milestone_start_date"),
                _missing("milestone_due_date"),
            ]}},
        }
    return None


def by_milestone_state(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Filter by milestone timing: upcoming, started and their negations."""
    if not options.milestone_state_filters:
        return document

    with document.context.scope("filters"):
        for state in options.milestone_state_filters:
            clause = _milestone_state_clause(str(state))
            if clause is None:
                logger.debug(f"Ignoring unknown milestone state filter: {state}")
                continue
            document.add_filter({"bool": {"_name": document.context.name(f"milestone_state_{state}"), **clause}})
    return document


def by_assignees(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    ctx = document.context
    with ctx.scope("filters"):
        if options.assignee_ids:
            document.add_filter({"bool": {
                "_name": ctx.name("assignee_ids"),
                "must": [{"term": {"assignee_id": assignee_id}} for assignee_id in options.assignee_ids],
            }})
        if options.not_assignee_ids:
            document.add_filter({"bool": {"must_not": {"terms": {
                "_name": ctx.name("not_assignee_ids"), "assignee_id": options.not_assignee_ids,
            }}}})
        if options.or_assignee_ids:
            document.add_filter({"bool": {"must": {"terms": {
                "_name": ctx.name("or_assignee_ids"), "assignee_id": options.or_assignee_ids,
            }}}})
        _existence(document, "assignee_id", "any_assignees", "none_assignees",
                   options.any_assignees, options.none_assignees)
    return document


def by_weight(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    ctx = document.context
    with ctx.scope("filters"):
        if options.weight is not None:
            document.add_filter(_named_term("weight", options.weight, ctx.name("weight")))
        if options.not_weight is not None:
            document.add_filter(_must_not(_named_term("weight", options.not_weight, ctx.name("not_weight"))))
        _existence(document, "weight", "any_weight", "none_weight", options.any_weight, options.none_weight)
    return document


def by_health_status(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    ctx = document.context
    with ctx.scope("filters"):
        if options.health_status:
            document.add_filter({"bool": {"must": {"terms": {
                "_name": ctx.name("health_status"), "health_status": options.health_status,
            }}}})
        if options.not_health_status:
            document.add_filter({"bool": {"must_not": {"terms": {
                "_name": ctx.name("not_health_status"), "health_status": options.not_health_status,
            }}}})
        _existence(document, "health_status", "any_health_status", "none_health_status",
                   options.any_health_status, options.none_health_status)
    return document


def _date_range(document: QueryDocument, field: str, prefix: str, after: Any, before: Any) -> QueryDocument:
    ctx = document.context
    with ctx.scope("filters"):
        if after:
            document.add_filter({"bool": {"_name": ctx.name(f"{prefix}_after"),
                                          "must": {"range": {field: {"gte": after}}}}})
        if before:
            document.add_filter({"bool": {"_name": ctx.name(f"{prefix}_before"),
                                          "must": {"range": {field: {"lte": before}}}}})
    return document


def by_closed_at(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    return _date_range(document, "closed_at", "closed", options.closed_after, options.closed_before)


def by_created_at(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    return _date_range(document, "created_at", "created", options.created_after, options.created_before)


def by_updated_at(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    return _date_range(document, "updated_at", "updated", options.updated_after, options.updated_before)


def by_due_date(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    return _date_range(document, "due_date", "due", options.due_after, options.due_before)


def by_iids(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    if not options.iids:
        return document

    with document.context.scope("filters"):
        document.add_filter({"bool": {"_name": document.context.name("iids"),
                                      "filter": {"terms": {"iid": list(options.iids)}}}})
    return document


def _underscore(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def by_noteable_type(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Restrict notes to one noteable type.

    In related-ids-only mode the document is reshaped to return just
    ``noteable_id`` values: highlighting is dropped and size is set.

    Raises:
        InvalidArgumentError: If noteable_type is not a known type
    """
    if options.search_level == SEARCH_LEVEL_GLOBAL or not options.noteable_type:
        return document

    noteable_type = options.noteable_type
    if noteable_type not in NOTEABLE_TYPES:
        raise InvalidArgumentError(f"Invalid noteable_type option provided: {noteable_type}")

    if not options.related_ids_only:
        return document

    document.pop("highlight")
    document["_source"] = ["noteable_id"]
    document["size"] = options.related_size or DEFAULT_RELATED_SIZE

    with document.context.scope("filters"):
        name = document.context.name("related", _underscore(noteable_type))
        document.add_filter(_named_term("noteable_type", noteable_type, name))
    return document


def by_type(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Restrict to one document type.

    Raises:
        InvalidArgumentError: If doc_type is not set
    """
    if not options.doc_type:
        raise InvalidArgumentError("by_type filter requires doc_type option")

    doc_type = options.doc_type
    with document.context.scope("filters"):
        document.add_filter(_named_term("type", doc_type, document.context.name("doc", "is_a", doc_type)))
    return document


def by_knn(document: QueryDocument, options: QueryOptions) -> QueryDocument:
    """Constrain the nearest-neighbour search with the current keyword filters.

    Copies ``query.bool.filter`` into ``knn.filter`` when an embedding was
    requested, the target engine supports vector search and a query vector is
    already present. Without a vector the document is returned unchanged.
    """
    if not options.embeddings:
        return document
    if options.vectors_supported != "elasticsearch":
        return document
    if not (document.get("knn") or {}).get("query_vector"):
        return document

    knn = dict(document["knn"])
    knn["filter"] = copy.deepcopy(document.filters)
    document["knn"] = knn
    return document
