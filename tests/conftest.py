"""Shared pytest fixtures for scoped search tests."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from scoped_search.query.collaborators import StaticLabelDirectory, StaticUserDirectory
from scoped_search.query.options import Principal, QueryOptions


# ============================================================================
# Auto-mark tests based on directory
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        test_path = str(item.fspath)

        if '/tests/unit/' in test_path or '\\tests\\unit\\' in test_path:
            item.add_marker(pytest.mark.unit)
        elif '/tests/integration/' in test_path or '\\tests\\integration\\' in test_path:
            item.add_marker(pytest.mark.integration)


# ============================================================================
# Principals
# ============================================================================

@pytest.fixture
def user():
    """Regular signed-in user."""
    return Principal(id=7, username="alice")


@pytest.fixture
def external_user():
    return Principal(id=8, username="ext", external=True)


@pytest.fixture
def admin():
    """Principal that may read and administer everything."""
    return Principal(id=1, username="root", can_read_all_resources=True, can_admin_all_resources=True)


# ============================================================================
# Options and collaborators
# ============================================================================

@pytest.fixture
def user_directory():
    return StaticUserDirectory({"alice": 7, "bob": 9})


@pytest.fixture
def label_directory():
    return StaticLabelDirectory({"bug": [3, 4], "feature": [5]})


@pytest.fixture
def project_options(user):
    """Project-level search for a member of project 11."""
    return QueryOptions(
        current_user=user,
        search_level="project",
        project_ids=[11],
        member_project_ids=[11],
        authorized_project_ids=[11],
        doc_type="issue",
        features=["issues"],
    )


@pytest.fixture
def group_options(user):
    """Group-level search under group 5 (ancestry 1-5-)."""
    return QueryOptions(
        current_user=user,
        search_level="group",
        group_ids=[5],
        group_ancestries={5: "1-5-"},
        project_ids=[11, 12],
        member_project_ids=[11],
        authorized_project_ids=[11],
        authorized_group_ids=[5],
        member_traversal_ids=["1-5-"],
        doc_type="issue",
        features=["issues"],
    )


@pytest.fixture
def mock_embedding_service():
    service = MagicMock()
    service.execute.return_value = [0.1, 0.2, 0.3]
    return service


@pytest.fixture
def mock_es_client():
    """Mocked elasticsearch.Elasticsearch."""
    client = MagicMock()
    client.search.return_value = {"hits": {"hits": []}}
    client.ping.return_value = True
    return client


# ============================================================================
# Filesystem and CLI
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def cli_runner():
    """Provide Click's CliRunner for testing CLI commands."""
    from click.testing import CliRunner
    return CliRunner()
