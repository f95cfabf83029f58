"""Tests for loading query options from YAML."""

import pytest
import yaml

from scoped_search.cli.options_file import attach_embeddings, load_options, options_from_dict
from scoped_search.config import ScopedSearchConfig
from scoped_search.embeddings.client import FastEmbedService
from scoped_search.embeddings.rate_limit import LocalRateLimiter
from scoped_search.errors import InvalidArgumentError, ResourceNotFoundError
from scoped_search.query.collaborators import LoggingErrorTracker
from scoped_search.query.options import Principal, QueryOptions


class TestOptionsFromDict:
    def test_principal_and_fields(self):
        options = options_from_dict({
            "current_user": {"id": 7, "username": "alice", "can_read_all_resources": True},
            "search_level": "group",
            "group_ids": [5],
            "group_ancestries": {5: "1-5-"},
        })

        assert options.current_user == Principal(id=7, username="alice", can_read_all_resources=True)
        assert options.search_level == "group"
        assert options.group_ancestries == {5: "1-5-"}

    def test_anonymous(self):
        assert options_from_dict({"search_level": "global"}).current_user is None

    def test_directories(self):
        options = options_from_dict({"users": {"alice": 7}, "labels": {"bug": [3], "stale": []}})

        assert options.user_directory.find_id_by_username("alice") == 7
        assert options.user_directory.find_id_by_username("bob") is None
        assert options.label_directory.find_ids_by_name(["bug", "stale", "missing"], "project", None, [1]) == {"bug": [3]}

    def test_unknown_keys(self):
        with pytest.raises(InvalidArgumentError, match="searchlevel"):
            options_from_dict({"searchlevel": "project"})

    def test_collaborators_cannot_be_set(self):
        with pytest.raises(InvalidArgumentError, match="embedding_service"):
            options_from_dict({"embedding_service": "x"})

    @pytest.mark.parametrize("user", [7, {"username": "alice"}, {"id": 1, "role": "owner"}])
    def test_bad_principal(self, user):
        with pytest.raises(InvalidArgumentError, match="current_user"):
            options_from_dict({"current_user": user})


class TestLoadOptions:
    def test_no_path_gives_defaults(self):
        assert load_options(None) == QueryOptions()

    def test_load(self, temp_dir):
        path = temp_dir / "options.yaml"
        path.write_text(yaml.dump({"search_level": "project", "project_ids": [11], "state": "opened"}))

        options = load_options(path)

        assert options.project_ids == [11]
        assert options.state == "opened"

    def test_missing_file(self, temp_dir):
        with pytest.raises(ResourceNotFoundError):
            load_options(temp_dir / "missing.yaml")

    def test_not_a_mapping(self, temp_dir):
        path = temp_dir / "options.yaml"
        path.write_text("- project\n- group\n")

        with pytest.raises(InvalidArgumentError, match="mapping"):
            load_options(path)


class TestAttachEmbeddings:
    def test_without_embeddings_unchanged(self):
        options = QueryOptions()

        assert attach_embeddings(options, ScopedSearchConfig()) is options

    def test_wires_service_limiter_and_tracker(self):
        options = attach_embeddings(QueryOptions(embeddings=True), ScopedSearchConfig())

        assert isinstance(options.embedding_service, FastEmbedService)
        assert isinstance(options.rate_limiter, LocalRateLimiter)
        assert isinstance(options.error_tracker, LoggingErrorTracker)

    def test_existing_service_kept(self, mock_embedding_service):
        options = QueryOptions(embeddings=True, embedding_service=mock_embedding_service)

        assert attach_embeddings(options, ScopedSearchConfig()).embedding_service is mock_embedding_service
