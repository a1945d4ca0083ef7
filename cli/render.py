from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading(f"Readings for {payload.get('tag')}")
    tier = payload.get("resolution_tier")
    echo_key_values(
        [
            ("resolution_tier", "any" if tier is None else tier),
            ("order", payload.get("order")),
            ("count", payload.get("count")),
        ]
    )
    points = payload.get("points") or []
    typer.echo()
    if not points:
        typer.echo("No readings in range.")
        return
    for point in points:
        typer.echo(f"  {point.get('timestamp_millis')}\t{point.get('value')}")


def render_summary(payload: Dict[str, Any]) -> None:
    echo_heading(f"Summary for {payload.get('tag')}")
    echo_key_values(
        [
            ("count", payload.get("count")),
            ("min_value", payload.get("min_value")),
            ("max_value", payload.get("max_value")),
            ("mean_value", payload.get("mean_value")),
            ("first_timestamp", payload.get("first_timestamp")),
            ("last_timestamp", payload.get("last_timestamp")),
        ]
    )


def render_import(payload: Dict[str, Any]) -> None:
    echo_heading("Import Result")
    echo_key_values([("imported", payload.get("imported"))])
    per_tag = payload.get("per_tag_count") or {}
    if per_tag:
        typer.echo("per_tag_count:")
        for tag, count in per_tag.items():
            typer.echo(f"  - {tag}: {count}")

    errors = payload.get("errors") or []
    typer.echo()
    echo_heading("Errors")
    if errors:
        for error in errors:
            typer.echo(f"  - row {error.get('row_number')}: {error.get('reason')}")
    else:
        typer.echo("No errors recorded.")
