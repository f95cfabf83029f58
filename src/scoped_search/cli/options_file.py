"""Load QueryOptions from a YAML options file.

Example file:

    current_user: {id: 7, username: alice}
    search_level: group
    group_ids: [5]
    project_ids: [11, 12]
    authorized_project_ids: [11]
    group_ancestries: {5: "1-5-"}
    state: opened
    users: {alice: 7}      # username -> id, for assignee/author lookups
    labels: {bug: [3, 4]}  # label name -> ids
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..config import ScopedSearchConfig
from ..embeddings.client import FastEmbedService
from ..embeddings.rate_limit import LocalRateLimiter
from ..errors import InvalidArgumentError, ResourceNotFoundError
from ..query.collaborators import LoggingErrorTracker, StaticLabelDirectory, StaticUserDirectory
from ..query.options import Principal, QueryOptions

logger = logging.getLogger(__name__)

COLLABORATOR_FIELDS = frozenset({
    "user_directory", "label_directory", "embedding_service", "rate_limiter", "error_tracker",
})


def _option_fields():
    return {f.name for f in dataclasses.fields(QueryOptions)} - COLLABORATOR_FIELDS


def _principal(data: Any) -> Optional[Principal]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise InvalidArgumentError(f"current_user must be a mapping, got {type(data).__name__}")
    try:
        return Principal(**data)
    except TypeError as e:
        raise InvalidArgumentError(f"Invalid current_user: {e}") from e


def options_from_dict(data: Dict[str, Any]) -> QueryOptions:
    """Build QueryOptions from a plain mapping.

    ``users`` and ``labels`` become static directories; every other key must
    name a QueryOptions field.

    Raises:
        InvalidArgumentError: On unknown keys or a malformed current_user
    """
    data = dict(data or {})
    users = data.pop("users", None)
    labels = data.pop("labels", None)

    unknown = sorted(set(data) - _option_fields())
    if unknown:
        raise InvalidArgumentError(f"Unknown option(s): {', '.join(unknown)}")

    data["current_user"] = _principal(data.get("current_user"))
    if users is not None:
        data["user_directory"] = StaticUserDirectory(users)
    if labels is not None:
        data["label_directory"] = StaticLabelDirectory(labels)
    return QueryOptions(**data)


def load_options(path: Optional[Path]) -> QueryOptions:
    """Load options from YAML, or defaults when no path is given.

    Raises:
        ResourceNotFoundError: If the file doesn't exist
        InvalidArgumentError: If the file is not a mapping of known options
    """
    if path is None:
        return QueryOptions()
    if not path.exists():
        raise ResourceNotFoundError(f"Options file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidArgumentError(f"Options file must contain a mapping: {path}")
    return options_from_dict(data)


def attach_embeddings(options: QueryOptions, config: ScopedSearchConfig) -> QueryOptions:
    """Wire the configured embedding service, rate limiter and error tracker.

    Only done when the options ask for embeddings; the model itself loads
    lazily on the first query.
    """
    if not options.embeddings or options.embedding_service is not None:
        return options

    logger.info(f"Using embedding model {config.embeddings.model}")
    return options.replace(
        embedding_service=FastEmbedService(config.embeddings.model, cache_dir=config.embeddings.cache_dir),
        rate_limiter=options.rate_limiter or LocalRateLimiter(
            config.embeddings.rate_limit, config.embeddings.rate_window_seconds,
        ),
        error_tracker=options.error_tracker or LoggingErrorTracker(),
    )
