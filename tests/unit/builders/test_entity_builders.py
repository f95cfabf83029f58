"""Tests for the per-entity query builders."""

from unittest.mock import MagicMock

import pytest

from scoped_search.builders import (
    BUILDERS,
    build_group_work_item_query,
    build_issue_query,
    build_merge_request_query,
    build_milestone_query,
    build_note_query,
    build_project_query,
    build_work_item_query,
)
from scoped_search.config import QuerySettings
from scoped_search.errors import EmbeddingError, InvalidArgumentError
from scoped_search.query.options import QueryOptions


def names_in(value):
    found = []
    if isinstance(value, dict):
        for key, child in value.items():
            if key == "_name":
                found.append(child)
            else:
                found.extend(names_in(child))
    elif isinstance(value, list):
        for child in value:
            found.extend(names_in(child))
    return found


class TestIssueQuery:
    """Test issue search bodies."""

    def test_filters_in_order(self, project_options):
        options = project_options.replace(state="opened", sort="created_desc")

        body = build_issue_query("login", options)

        names = names_in(body["query"]["bool"]["filter"])
        assert names[0] == "doc:is_a:issue"
        assert "filters:level:project" in names
        assert "filters:permissions:project" in names
        assert names.index("filters:permissions:project") < names.index("filters:state")
        assert "filters:not_hidden" in names
        assert body["sort"] == [{"created_at": "desc"}]
        assert "highlight" in body

    def test_iid_lookup(self, project_options):
        body = build_issue_query("#12", project_options)

        names = names_in(body["query"]["bool"]["filter"])
        assert names[:2] == ["issue:related:iid", "doc:is_a:issue"]
        assert "must" not in body["query"]["bool"]

    def test_empty_query_filters_by_type(self, project_options):
        body = build_issue_query("", project_options)

        assert body["query"]["bool"]["must"] == [{"match_all": {}}]
        assert "filters:doc:is_a:issue" in names_in(body)

    def test_missing_search_level_raises(self, user):
        with pytest.raises(InvalidArgumentError, match="search_level"):
            build_issue_query("login", QueryOptions(current_user=user))

    def test_caller_options_untouched(self, project_options):
        options = project_options.replace(doc_type=None, fields=[])

        build_issue_query("login", options)

        assert options.doc_type is None
        assert options.fields == []

    def test_count_only_has_no_sort(self, project_options):
        body = build_issue_query("login", project_options.replace(count_only=True, sort="created_desc"))

        assert "sort" not in body

    def test_hybrid_adds_filtered_knn(self, project_options, mock_embedding_service):
        options = project_options.replace(embeddings=True, vectors_supported="elasticsearch",
                                          embedding_service=mock_embedding_service)

        body = build_issue_query("login", options)

        assert body["knn"]["field"] == "embedding_0"
        assert body["knn"]["filter"] == body["query"]["bool"]["filter"]

    def test_hybrid_embedding_failure_omits_knn(self, project_options, mock_embedding_service):
        mock_embedding_service.execute.side_effect = EmbeddingError("model unavailable")
        tracker = MagicMock()
        options = project_options.replace(embeddings=True, vectors_supported="elasticsearch",
                                          embedding_service=mock_embedding_service, error_tracker=tracker)

        body = build_issue_query("login bug", options)

        assert "knn" not in body
        assert body["query"]["bool"]["must"]
        tracker.track_exception.assert_called_once()

    def test_hybrid_rate_limited_omits_knn(self, project_options, mock_embedding_service):
        limiter = MagicMock()
        limiter.throttled.return_value = True
        options = project_options.replace(embeddings=True, vectors_supported="elasticsearch",
                                          embedding_service=mock_embedding_service, rate_limiter=limiter,
                                          error_tracker=MagicMock())

        body = build_issue_query("login bug", options)

        assert "knn" not in body
        mock_embedding_service.execute.assert_not_called()


class TestMergeRequestQuery:
    @pytest.fixture
    def mr_options(self, project_options):
        return project_options.replace(doc_type=None, features=[])

    def test_bang_iid_lookup(self, mr_options):
        body = build_merge_request_query("!7", mr_options)

        assert names_in(body)[0] == "merge_request:related:iid"

    def test_hash_is_text(self, mr_options):
        body = build_merge_request_query("#7", mr_options)

        assert "merge_request:related:iid" not in names_in(body)

    def test_branch_filters(self, mr_options):
        body = build_merge_request_query("fix", mr_options.replace(source_branch="feature", not_target_branch="main"))

        names = names_in(body)
        assert "filters:source_branch" in names
        assert "filters:not_target_branch" in names
        assert "filters:permissions:project:merge_requests_access_level:enabled" in names


class TestMilestoneQuery:
    def test_project_join_with_both_features(self, user):
        options = QueryOptions(current_user=user, search_level="global", project_ids=[1])

        body = build_milestone_query("v1", options)

        names = names_in(body)
        assert "filters:project:parent" in names
        assert "filters:project:issues:enabled_or_private" in names
        assert "filters:project:merge_requests:enabled_or_private" in names
        assert "filters:non_archived" in names


class TestProjectQuery:
    def test_project_id_is_document_id(self, project_options):
        body = build_project_query("gitlab", project_options.replace(doc_type=None, features=[]))

        level = body["query"]["bool"]["filter"][1]
        assert level == {"bool": {"_name": "filters:level:project", "must": {"terms": {"id": [11]}}}}


class TestNoteQuery:
    def test_denormalized_permissions(self, user):
        options = QueryOptions(current_user=user, search_level="project", project_ids=[1],
                               noteable_type="Issue", related_ids_only=True)

        body = build_note_query("typo", options)

        names = names_in(body)
        assert "filters:project" in names
        assert "filters:project:parent" not in names
        assert "filters:related:issue" in names
        assert body["_source"] == ["noteable_id"]
        assert body["size"] == 100


class TestWorkItemQuery:
    def test_entity_filters(self, group_options):
        options = group_options.replace(doc_type=None, weight=3, work_item_type_ids=[1], iids=[4])

        body = build_work_item_query("crash", options)

        names = names_in(body)
        assert "filters:level:group" in names
        assert "filters:weight" in names
        assert "filters:work_item_type_ids" in names
        assert "filters:iids" in names
        assert "filters:confidentiality:projects:non_confidential" in names

    def test_combined_authorization(self, group_options):
        options = group_options.replace(doc_type=None, use_project_authorization=True,
                                        use_group_authorization=True)

        body = build_work_item_query("crash", options)

        names = names_in(body)
        assert "filters:permissions:group:namespace_visibility_level:private" in names
        assert "filters:confidentiality:groups:non_confidential" in names

    def test_hybrid_adds_filtered_knn(self, group_options, mock_embedding_service):
        options = group_options.replace(doc_type=None, embeddings=True, vectors_supported="elasticsearch",
                                        embedding_service=mock_embedding_service)

        body = build_work_item_query("crash", options)

        assert body["knn"]["query_vector"] == [0.1, 0.2, 0.3]
        assert body["knn"]["filter"] == body["query"]["bool"]["filter"]

    def test_hybrid_embedding_failure_omits_knn(self, group_options, mock_embedding_service):
        mock_embedding_service.execute.side_effect = EmbeddingError("model unavailable")
        options = group_options.replace(doc_type=None, embeddings=True, vectors_supported="elasticsearch",
                                        embedding_service=mock_embedding_service, error_tracker=MagicMock())

        body = build_work_item_query("crash", options)

        assert "knn" not in body
        assert "filters:level:group" in names_in(body)

    def test_sort_alias(self, group_options):
        body = build_work_item_query("crash", group_options.replace(doc_type=None, sort="weight_asc"))

        assert body["sort"] == [{"weight": "asc"}]

    def test_extra_sorts_from_settings(self, group_options):
        settings = QuerySettings(extra_sorts={"severity_desc": {"severity": "desc"}})

        body = build_work_item_query("crash", group_options.replace(doc_type=None, sort="severity_desc"), settings)

        assert body["sort"] == [{"severity": "desc"}]


class TestGroupWorkItemQuery:
    def test_namespace_visibility(self, group_options):
        body = build_group_work_item_query("roadmap", group_options.replace(doc_type=None))

        names = names_in(body)
        assert "filters:namespace_visibility_level:public" in names
        assert "filters:confidentiality:groups:non_confidential" in names
        assert not any("access_level" in name for name in names)

    def test_traversal_ids_authorization(self, group_options):
        options = group_options.replace(doc_type=None, authorization_use_traversal_ids=True)

        body = build_group_work_item_query("roadmap", options)

        assert "filters:permissions:group:namespace_visibility_level:private" in names_in(body)


def test_registry_covers_every_entity():
    assert set(BUILDERS) == {
        "issue", "merge_request", "milestone", "note", "project", "work_item", "group_work_item",
    }
