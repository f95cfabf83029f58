"""Main CLI entry point for scoped search."""

import sys
from pathlib import Path

import click

from scoped_search import __version__
from scoped_search.builders import BUILDERS
from scoped_search.errors import (
    EXIT_ERROR,
    EXIT_INVALID_ARGS,
    EXIT_NOT_FOUND,
    EXIT_SUCCESS,
    InvalidArgumentError,
    ResourceNotFoundError,
    ScopedSearchError,
)
from scoped_search.cli.logging_config import setup_logging

ENTITY = click.Choice(sorted(BUILDERS))
PATH = click.Path(path_type=Path)


def logging_options(f):
    f = click.option('--debug', is_flag=True, help='Debug mode (show library internals)')(f)
    f = click.option('--verbose', '-v', is_flag=True, help='Verbose output')(f)
    return f


def paging_options(f):
    f = click.option('--before', help='Cursor token: return hits before it')(f)
    f = click.option('--after', help='Cursor token: return hits after it')(f)
    f = click.option('--last', type=click.IntRange(min=0), help='Page size, nearest the cursor (reversed sort)')(f)
    f = click.option('--first', type=click.IntRange(min=0), help='Page size (default: 20)')(f)
    return f


@click.group()
@click.version_option(version=__version__)
def cli():
    """Scoped search: authorization-aware search queries with keyset pagination"""
    pass


@cli.command('build')
@click.argument('entity', type=ENTITY)
@click.argument('query', required=False)
@click.option('--options-file', '-o', type=PATH, help='YAML file of query options')
@click.option('--config', 'config_path', type=PATH, help='YAML configuration file')
@logging_options
def build(entity, query, options_file, config_path, verbose, debug):
    """Print the search request body for ENTITY"""
    setup_logging(verbose, debug)
    from scoped_search.cli.commands import build_command
    build_command(entity, query, options_file, config_path)


@cli.command('page')
@click.option('--body-file', type=PATH, help='JSON/YAML request body to paginate (default: match all)')
@click.option('--sort', 'sort', multiple=True, help='Sort as field:direction, repeatable (default: body sort)')
@click.option('--tie-breaker', default='id', show_default=True, help='Unique field ending the sort')
@click.option('--nullable', multiple=True, help='Sort field that may be missing, repeatable')
@paging_options
@logging_options
def page(body_file, sort, tie_breaker, nullable, first, last, after, before, verbose, debug):
    """Add keyset pagination to a request body"""
    setup_logging(verbose, debug)
    from scoped_search.cli.commands import page_command
    page_command(body_file, sort, tie_breaker, nullable, first, last, after, before)


@cli.command('search')
@click.argument('entity', type=ENTITY)
@click.argument('query', required=False)
@click.option('--options-file', '-o', type=PATH, help='YAML file of query options')
@click.option('--config', 'config_path', type=PATH, help='YAML configuration file')
@click.option('--field', 'fields', multiple=True, help='Source field to show, repeatable')
@click.option('--json', 'output_json', is_flag=True, help='Output JSON format')
@paging_options
@logging_options
def search(entity, query, options_file, config_path, fields, output_json, first, last, after, before, verbose, debug):
    """Run an ENTITY search and print one page of hits"""
    setup_logging(verbose, debug)
    from scoped_search.cli.commands import search_command
    search_command(entity, query, options_file, config_path, first, last, after, before, fields, output_json)


@cli.command('cursor')
@click.argument('sort_values', nargs=-1, required=True)
def cursor(sort_values):
    """Encode a hit's SORT_VALUES as a cursor token"""
    from scoped_search.cli.commands import cursor_command
    cursor_command(sort_values)


def main():
    """Main CLI entry point with structured error handling."""
    try:
        cli(standalone_mode=False)
        return EXIT_SUCCESS
    except click.exceptions.Abort:
        print("\n[INFO] Operation cancelled by user", file=sys.stderr)
        return EXIT_ERROR
    except click.ClickException as e:
        # Click handles its own exceptions (usage errors, etc.)
        e.show()
        return EXIT_INVALID_ARGS
    except InvalidArgumentError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS
    except ResourceNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except KeyboardInterrupt:
        print("\n[INFO] Operation cancelled by user", file=sys.stderr)
        return EXIT_ERROR
    except ScopedSearchError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return e.exit_code
    except Exception as e:
        print(f"[ERROR] Unexpected error: {e}", file=sys.stderr)
        if '--verbose' in sys.argv or '-v' in sys.argv:
            import traceback
            traceback.print_exc()
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
