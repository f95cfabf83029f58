"""Exception classes for query building and the CLI.

Each exception carries the exit code the CLI returns when it escapes a command.

Exit Codes:
- 0: Success
- 1: General error
- 2: Invalid arguments
- 3: Resource not found
"""


EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID_ARGS = 2
EXIT_NOT_FOUND = 3


class ScopedSearchError(Exception):
    """Base exception for scoped search errors.

    Default exit code is EXIT_ERROR (1).
    """
    exit_code = EXIT_ERROR


class InvalidArgumentError(ScopedSearchError, ValueError):
    """A caller broke the options contract of a query function.

    Examples:
    - Required option (search_level, doc_type) missing
    - Search level outside global/group/project
    - Group level search without group ids

    Exit code: 2
    """
    exit_code = EXIT_INVALID_ARGS


class ResourceNotFoundError(ScopedSearchError):
    """Resource not found (config file, index, entity type).

    Exit code: 3
    """
    exit_code = EXIT_NOT_FOUND


class EmbeddingError(ScopedSearchError):
    """Embedding service could not produce a vector."""
    pass


class RateLimitExceededError(ScopedSearchError):
    """A rate limiter rejected the request."""
    pass
