from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_import, render_readings, render_summary


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the scalar reading store service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _range_params(
    start: Optional[int],
    end: Optional[int],
    exclusive_start: bool,
    exclusive_end: bool,
    newest_first: bool = False,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "start_inclusive": not exclusive_start,
        "end_inclusive": not exclusive_end,
        "order": "newest_first" if newest_first else "oldest_first",
    }
    if start is not None:
        params["start"] = start
    if end is not None:
        params["end"] = end
    return params


_START_OPTION = typer.Option(None, "--start", "-s", help="Lower bound in epoch milliseconds.")
_END_OPTION = typer.Option(None, "--end", "-e", help="Upper bound in epoch milliseconds.")
_EXCLUSIVE_START_OPTION = typer.Option(
    False, "--exclusive-start", help="Treat the lower bound as open."
)
_EXCLUSIVE_END_OPTION = typer.Option(False, "--exclusive-end", help="Treat the upper bound as open.")


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Store API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, http_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("add")
def add_command(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Sensor tag."),
    timestamp: int = typer.Option(..., "--timestamp", "-t", help="Epoch milliseconds."),
    value: float = typer.Option(..., "--value", "-v", help="Reading value."),
    tier: int = typer.Option(0, "--tier", help="Resolution tier (0 = raw)."),
) -> None:
    """Store a single reading."""
    state = _get_state(ctx)
    state.client.add_reading(tag, timestamp, value, tier)
    typer.secho(f"Stored {tag}@{timestamp} = {value} (tier {tier}).", fg=typer.colors.GREEN)


@app.command("query")
def query_command(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Sensor tag."),
    start: Optional[int] = _START_OPTION,
    end: Optional[int] = _END_OPTION,
    exclusive_start: bool = _EXCLUSIVE_START_OPTION,
    exclusive_end: bool = _EXCLUSIVE_END_OPTION,
    newest_first: bool = typer.Option(
        False, "--newest-first", help="Return the newest readings first."
    ),
    tier: int = typer.Option(0, "--tier", help="Resolution tier; negative matches every tier."),
    max_records: Optional[int] = typer.Option(
        None, "--max", "-n", help="Maximum number of readings to return."
    ),
    summary: bool = typer.Option(
        False,
        "--summary",
        help="Print summary statistics over the whole range (not combinable with --max).",
    ),
) -> None:
    """Fetch readings for a tag within a time range."""
    if summary and max_records is not None:
        raise typer.BadParameter("--max cannot be combined with --summary.", param_hint="--max")
    state = _get_state(ctx)
    params = _range_params(start, end, exclusive_start, exclusive_end, newest_first)
    params["tier"] = tier
    if summary:
        render_summary(state.client.get_summary(tag, params))
        return
    if max_records is not None:
        params["max_records"] = max_records
    render_readings(state.client.get_readings(tag, params))


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    tag: str = typer.Argument(..., help="Sensor tag."),
    start: Optional[int] = _START_OPTION,
    end: Optional[int] = _END_OPTION,
    exclusive_start: bool = _EXCLUSIVE_START_OPTION,
    exclusive_end: bool = _EXCLUSIVE_END_OPTION,
) -> None:
    """Delete readings of every resolution tier for a tag within a time range."""
    state = _get_state(ctx)
    params = _range_params(start, end, exclusive_start, exclusive_end)
    deleted = state.client.delete_readings(tag, params)
    typer.secho(f"Deleted {deleted} readings for {tag}.", fg=typer.colors.GREEN)


@app.command("first-after")
def first_after_command(
    ctx: typer.Context,
    timestamp: int = typer.Argument(..., help="Exclusive lower bound in epoch milliseconds."),
) -> None:
    """Print the tag of the earliest reading after a timestamp."""
    state = _get_state(ctx)
    tag = state.client.first_tag_after(timestamp)
    if tag is None:
        typer.secho(f"No reading found after {timestamp}.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(tag)


@app.command("import")
def import_command(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="Path to CSV file."
    ),
) -> None:
    """Import readings from a CSV file."""
    state = _get_state(ctx)
    typer.echo(f"Importing {file} to {state.config.base_url} ...")
    render_import(state.client.import_file(file))
