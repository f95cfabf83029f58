"""Output formatting for CLI commands.

Request bodies are printed as JSON; results as a rich table unless JSON
output is requested.
"""

import json
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

console = Console()


def format_json_response(
    status: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
    errors: Optional[List[str]] = None
) -> str:
    """Format a consistent JSON response envelope."""
    response = {
        "status": status,
        "message": message,
        "data": data or {},
        "errors": errors or []
    }
    return json.dumps(response, indent=2, default=str)


def print_json(status: str, message: str = "", data: Optional[Dict[str, Any]] = None,
               errors: Optional[List[str]] = None):
    # print() rather than console.print() so rich never wraps the JSON
    print(format_json_response(status, message, data, errors))


def print_body(body: Dict[str, Any]):
    """Print a request body as plain JSON."""
    print(json.dumps(body, indent=2, default=str))


def print_error(message: str, json_output: bool = False):
    if json_output:
        print_json("error", f"[ERROR] {message}", errors=[message])
    else:
        print(f"[ERROR] {message}", file=sys.stderr)


def print_info(message: str, json_output: bool = False):
    if not json_output:
        console.print(f"[INFO] {message}", highlight=False)


def print_hits(hits: List[Dict[str, Any]], fields: List[str]):
    """Render search hits as a table of id, score and selected source fields."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Score", justify="right")
    for field in fields:
        table.add_column(field)

    for hit in hits:
        source = hit.get("_source") or {}
        score = hit.get("_score")
        table.add_row(
            str(hit.get("_id", "")),
            f"{score:.3f}" if isinstance(score, (int, float)) else "-",
            *[str(source.get(field, "")) for field in fields],
        )

    console.print(table)
