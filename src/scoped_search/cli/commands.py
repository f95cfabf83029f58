"""Implementations behind the CLI commands."""

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from ..builders import BUILDERS
from ..config import ScopedSearchConfig, load_config
from ..errors import InvalidArgumentError, ResourceNotFoundError
from ..pagination.keyset import Cursor, KeysetPaginator, cursor_for
from ..query.sorts import SortMapper
from ..transport.client import SearchClient, hits_of
from .options_file import attach_embeddings, load_options
from .output import print_body, print_hits, print_info, print_json

logger = logging.getLogger(__name__)

DEFAULT_SORT = [{"created_at": "desc"}]


def _doc_type(entity: str) -> str:
    return "work_item" if entity == "group_work_item" else entity


def read_config(config_path: Optional[Path]) -> ScopedSearchConfig:
    if config_path is None:
        return ScopedSearchConfig()
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        raise ResourceNotFoundError(str(e)) from e


def parse_sort(values: Sequence[str]) -> List[Dict[str, str]]:
    """Parse ``field:direction`` pairs; direction defaults to asc."""
    sort = []
    for value in values:
        field, _, direction = value.partition(":")
        if not field:
            raise InvalidArgumentError(f"Invalid sort: {value}")
        sort.append({field: (direction or "asc").lower()})
    return sort


def _read_body(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise ResourceNotFoundError(f"Body file not found: {path}")
    with open(path) as f:
        # YAML is a superset of JSON
        body = yaml.safe_load(f) or {}
    if not isinstance(body, dict):
        raise InvalidArgumentError(f"Body file must contain a mapping: {path}")
    return body


def _bounded(paginator: KeysetPaginator, after: Optional[str], before: Optional[str]) -> KeysetPaginator:
    if after and before:
        raise InvalidArgumentError("--after and --before are mutually exclusive")
    if after:
        paginator.after_cursor(Cursor.decode(after))
    elif before:
        paginator.before_cursor(Cursor.decode(before))
    return paginator


def _page_body(paginator: KeysetPaginator, first: Optional[int], last: Optional[int]) -> Dict[str, Any]:
    if first is not None and last is not None:
        raise InvalidArgumentError("--first and --last are mutually exclusive")
    if last is not None:
        return paginator.last(last)
    return paginator.first(first if first is not None else 20)


def build_query(entity: str, query: Optional[str], options_file: Optional[Path],
                config: ScopedSearchConfig) -> Dict[str, Any]:
    """Build the request body for an entity search."""
    if entity not in BUILDERS:
        raise InvalidArgumentError(f"Unknown entity: {entity}. Available: {', '.join(BUILDERS)}")

    options = attach_embeddings(load_options(options_file), config)
    logger.info(f"Building {entity} query at search level {options.search_level}")
    return BUILDERS[entity](query, options, config.query)


def build_command(entity: str, query: Optional[str], options_file: Optional[Path], config_path: Optional[Path]):
    print_body(build_query(entity, query, options_file, read_config(config_path)))


def page_command(body_file: Optional[Path], sort: Sequence[str], tie_breaker: str, nullable: Sequence[str],
                 first: Optional[int], last: Optional[int], after: Optional[str], before: Optional[str]):
    """Add keyset bounds to an existing request body."""
    body = _read_body(body_file)
    declared = parse_sort(sort) if sort else body.get("sort") or DEFAULT_SORT
    paginator = KeysetPaginator(body, declared, tie_breaker=tie_breaker, nullable_fields=nullable)
    print_body(_page_body(_bounded(paginator, after, before), first, last))


def search_command(entity: str, query: Optional[str], options_file: Optional[Path], config_path: Optional[Path],
                   first: Optional[int], last: Optional[int], after: Optional[str], before: Optional[str],
                   fields: Sequence[str], output_json: bool):
    """Build, paginate and run an entity search, printing hits and page cursors."""
    config = read_config(config_path)
    body = build_query(entity, query, options_file, config)
    doc_type = _doc_type(entity)

    paginator = KeysetPaginator(
        body,
        body.get("sort") or DEFAULT_SORT,
        tie_breaker=config.query.tie_breaker,
        nullable_fields=SortMapper(config.query.extra_sorts).nullable_fields(doc_type),
    )
    request = _page_body(_bounded(paginator, after, before), first, last)

    index = config.indexes.index_for(doc_type)
    client = SearchClient.from_config(config.elasticsearch)

    start_time = time.time()
    hits = hits_of(client.search(index, request))
    if last is not None:
        # last() pages in reversed order
        hits.reverse()
    elapsed_ms = (time.time() - start_time) * 1000
    logger.info(f"Search on {index} returned {len(hits)} hits in {elapsed_ms:.1f}ms")

    start_cursor = paginator.cursor_for(hits[0]).encode() if hits else None
    end_cursor = paginator.cursor_for(hits[-1]).encode() if hits else None

    if output_json:
        print_json("success", f"{len(hits)} hits", data={
            "index": index,
            "hits": hits,
            "start_cursor": start_cursor,
            "end_cursor": end_cursor,
        })
        return

    print_hits(hits, list(fields))
    if end_cursor:
        print_info(f"Start cursor: {start_cursor}")
        print_info(f"End cursor: {end_cursor}")


def cursor_command(sort_values: Sequence[str]):
    """Encode raw sort values (JSON literals) of a hit as a cursor token."""
    values = []
    for value in sort_values:
        try:
            values.append(json.loads(value))
        except ValueError:
            values.append(value)
    print(cursor_for(values).encode())
