"""Centralized logging configuration for CLI commands.

Provides three logging levels:
- Default: Clean output, suppress library warnings
- Verbose: Show query building and paging progress
- Debug: Show everything including transport internals
"""

import logging
import os

LIBRARY_LOGGERS = ("elasticsearch", "elastic_transport", "urllib3", "fastembed", "huggingface_hub")


def setup_logging_default():
    """Default logging: only warnings and errors.

    Suppresses:
    - Elasticsearch transport request logging
    - FastEmbed model download messages
    """
    os.environ.setdefault('TOKENIZERS_PARALLELISM', 'false')

    logging.basicConfig(
        level=logging.WARNING,
        format='%(levelname)s: %(message)s'
    )

    logging.getLogger('scoped_search').setLevel(logging.WARNING)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def setup_logging_verbose():
    """Verbose logging: show scoped_search INFO messages.

    Library DEBUG output stays suppressed.
    """
    os.environ.setdefault('TOKENIZERS_PARALLELISM', 'false')

    logging.basicConfig(
        level=logging.INFO,
        format='%(levelname)s: %(message)s'
    )

    logging.getLogger('scoped_search').setLevel(logging.INFO)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_debug():
    """Debug logging: everything, including request traces from the transport."""
    os.environ.setdefault('TOKENIZERS_PARALLELISM', 'false')

    logging.basicConfig(
        level=logging.DEBUG,
        format='%(name)s - %(levelname)s: %(message)s'
    )


def setup_logging(verbose: bool = False, debug: bool = False):
    """Pick a logging level from the CLI flags; debug wins over verbose."""
    if debug:
        setup_logging_debug()
    elif verbose:
        setup_logging_verbose()
    else:
        setup_logging_default()
