"""Tests for translating work item list params into search options."""

import pytest

from scoped_search.finders.work_items import (
    DEFAULT_SORT,
    WORK_ITEM_TYPE_IDS,
    ResourceParent,
    WorkItemsFinder,
)
from scoped_search.query.options import QueryOptions


@pytest.fixture
def project():
    return ResourceParent("project", 11)


@pytest.fixture
def base_options(user_directory):
    return QueryOptions(member_project_ids=[11], authorized_project_ids=[11], user_directory=user_directory)


def finder_for(user, parent, params, base_options=None):
    return WorkItemsFinder(user, parent, params, base_options=base_options)


class TestScope:
    def test_project_parent(self, user, project):
        options = finder_for(user, project, {}).search_options()

        assert options.search_level == "project"
        assert options.project_ids == [11]
        assert options.sort == DEFAULT_SORT
        assert options.work_item_type_ids == sorted(WORK_ITEM_TYPE_IDS.values())

    def test_group_parent_keeps_resolved_projects(self, user):
        base = QueryOptions(project_ids=[11, 12])

        options = finder_for(user, ResourceParent("group", 5), {}, base).search_options()

        assert options.search_level == "group"
        assert options.group_ids == [5]
        assert options.project_ids == [11, 12]

    def test_invalid_parent_kind(self):
        with pytest.raises(ValueError):
            ResourceParent("namespace", 1)


class TestParams:
    """Test normalization of individual params."""

    def test_issue_types_to_ids(self, user, project):
        options = finder_for(user, project, {"issue_types": ["task", "epic", "unknown"]}).search_options()

        assert options.work_item_type_ids == [5, 8]

    def test_label_wildcards(self, user, project):
        options = finder_for(user, project, {"label_name": ["None"]}).search_options()

        assert options.label_names is None
        assert options.none_label_names is True
        assert options.any_label_names is False

    def test_label_names_not_and_or(self, user, project):
        params = {"label_name": ["bug"], "not": {"label_name": ["wontfix"]}, "or": {"label_names": ["a", "b"]}}

        options = finder_for(user, project, params).search_options()

        assert options.label_names == ["bug"]
        assert options.not_label_names == ["wontfix"]
        assert options.or_label_names == ["a", "b"]

    @pytest.mark.parametrize("wildcard,negated,expected", [
        ("upcoming", None, ["upcoming"]),
        ("started", None, ["started"]),
        (None, "upcoming", ["not_upcoming"]),
        (None, "started", ["not_started"]),
        ("none", None, None),
    ])
    def test_milestone_wildcards(self, user, project, wildcard, negated, expected):
        params = {"milestone_wildcard_id": wildcard, "not": {"milestone_wildcard_id": negated}}

        options = finder_for(user, project, params).search_options()

        assert options.milestone_state_filters == expected
        assert options.none_milestones is (wildcard == "none")

    def test_assignees_resolved_through_directory(self, user, project, base_options):
        params = {"assignee_usernames": ["alice", "ghost"], "not": {"assignee_usernames": ["bob"]},
                  "assignee_wildcard_id": "any"}

        options = finder_for(user, project, params, base_options).search_options()

        assert options.assignee_ids == [7]
        assert options.not_assignee_ids == [9]
        assert options.any_assignees is True

    def test_assignees_without_directory_ignored(self, user, project):
        options = finder_for(user, project, {"assignee_usernames": ["alice"]}).search_options()

        assert options.assignee_ids is None

    def test_weight_is_converted_to_int(self, user, project):
        params = {"weight": "3", "not": {"weight": "0"}, "weight_wildcard_id": "None"}

        options = finder_for(user, project, params).search_options()

        assert options.weight == 3
        assert options.not_weight == 0
        assert options.none_weight is True

    def test_health_status(self, user, project):
        params = {"health_status_filter": ["on_track", "at_risk"], "not": {"health_status_filter": "needs_attention"}}

        options = finder_for(user, project, params).search_options()

        assert options.health_status == [1, 3]
        assert options.not_health_status == [2]

    def test_health_status_wildcard(self, user, project):
        options = finder_for(user, project, {"health_status_filter": "any"}).search_options()

        assert options.health_status is None
        assert options.any_health_status is True

    def test_dates_iids_and_archived(self, user, project):
        params = {"due_after": "2025-01-01", "closed_before": "2025-02-01", "iids": ["1", "22"],
                  "include_archived": True}

        options = finder_for(user, project, params).search_options()

        assert options.due_after == "2025-01-01"
        assert options.closed_before == "2025-02-01"
        assert options.iids == [1, 22]
        assert options.include_archived is True

    def test_base_options_are_kept(self, user, project, base_options):
        options = finder_for(user, project, {"state": "opened"}, base_options).search_options()

        assert options.member_project_ids == [11]
        assert options.state == "opened"
        assert options.current_user == user


class TestSupportedFields:
    """Test whether a param set can be served by search."""

    def test_supported(self, user, project):
        params = {"state": "opened", "sort": "weight_desc", "not": {"label_name": ["x"]},
                  "or": {"assignee_usernames": ["alice"]}, "include_descendants": True}

        assert finder_for(user, project, params).elasticsearch_fields_supported()

    @pytest.mark.parametrize("params", [
        {"search": "text"},
        {"sort": "title_asc"},
        {"not": {"state": "closed"}},
        {"or": {"label_name": ["a"]}},
        {"not": ["label_name"]},
    ])
    def test_unsupported(self, user, project, params):
        assert not finder_for(user, project, params).elasticsearch_fields_supported()


class TestExecute:
    def test_builds_work_item_query(self, user, project, base_options):
        finder = finder_for(user, project, {"state": "opened", "sort": "due_date_asc"}, base_options)

        body = finder.execute()

        assert body["sort"] == [{"due_date": "asc"}]
        clause = body["query"]["bool"]["must"][0]["simple_query_string"]
        assert clause["query"] == "*"
        assert clause["_name"] == "work_item:match:search_terms"
