"""Interfaces for services the query library consults but does not own."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class UserDirectory(ABC):
    """Resolves usernames to user ids."""

    @abstractmethod
    def find_id_by_username(self, username: str) -> Optional[int]:
        """Return the id for a username, or None if no such user exists."""


class LabelDirectory(ABC):
    """Resolves label names to label ids within a search scope."""

    @abstractmethod
    def find_ids_by_name(
        self,
        names: List[str],
        search_level: str,
        group_ids: List[int],
        project_ids,
    ) -> Dict[str, List[int]]:
        """Return label ids grouped by name.

        A name may resolve to several ids when labels of the same name exist
        in more than one group or project in scope. Names with no match are
        left out of the result.
        """


class RateLimiter(ABC):
    """Answers whether a keyed action is over its quota."""

    @abstractmethod
    def throttled(self, key: str, scope: str) -> bool:
        """Record an attempt and return True if it must be rejected."""


class ErrorTracker(ABC):
    """Receives exceptions that were handled without failing the request."""

    @abstractmethod
    def track_exception(self, exc: BaseException, **context) -> None:
        ...


class LoggingErrorTracker(ErrorTracker):
    """Error tracker that reports through the standard logger."""

    def track_exception(self, exc: BaseException, **context) -> None:
        logger.warning(
            "Handled %s: %s %s", type(exc).__name__, exc, context or "",
            exc_info=(type(exc), exc, exc.__traceback__),
        )


class StaticUserDirectory(UserDirectory):
    """User directory backed by a fixed ``{username: id}`` mapping."""

    def __init__(self, users: Optional[Dict[str, int]] = None):
        self.users = dict(users or {})

    def find_id_by_username(self, username: str) -> Optional[int]:
        return self.users.get(username)


class StaticLabelDirectory(LabelDirectory):
    """Label directory backed by a fixed ``{name: [ids]}`` mapping.

    Scope arguments are ignored; the mapping is assumed to be pre-scoped.
    """

    def __init__(self, labels: Optional[Dict[str, List[int]]] = None):
        self.labels = {name: list(ids) for name, ids in (labels or {}).items()}

    def find_ids_by_name(self, names, search_level, group_ids, project_ids) -> Dict[str, List[int]]:
        return {name: self.labels[name] for name in names if self.labels.get(name)}
