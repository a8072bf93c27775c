from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from .verify_config import VerifierConfig

console = Console()


def read_image(path: Path) -> bytes:
    if not path.exists():
        typer.secho(f"Image not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return path.read_bytes()


def build_config(
    threshold: Optional[float] = None,
    batch_size: Optional[int] = None,
    timeout: Optional[float] = None,
    min_confidence: Optional[float] = None,
) -> VerifierConfig:
    try:
        return VerifierConfig.from_env().with_overrides(
            match_threshold=threshold,
            batch_size=batch_size,
            request_timeout_s=timeout,
            min_detection_confidence=min_confidence,
        )
    except ValueError as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def exit_code_for(status: int) -> int:
    if status < 400:
        return 0
    if status < 500:
        return 1
    return 2


def render_payload(status: int, payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
        return
    if status == 200:
        console.print(
            f"[bold green]Match found[/bold green]: {payload['identity_id']} "
            f"(confidence {payload['confidence_text']})"
        )
        profile = payload.get("profile") or {}
        if profile:
            table = Table(show_header=False)
            for key, value in profile.items():
                table.add_row(key.replace("_", " "), "" if value is None else str(value))
            console.print(table)
        return
    color = "yellow" if status < 500 else "red"
    console.print(f"[bold {color}]{payload['kind']}[/bold {color}]: {payload['detail']}")


def render_stats(stats: Dict[str, Any]) -> None:
    table = Table(title=f"Gallery: {stats['with_template']}/{stats['total']} with template")
    table.add_column("identity")
    table.add_column("template")
    table.add_column("bytes", justify="right")
    for item in stats["details"]:
        table.add_row(
            item["identity_id"],
            "yes" if item["has_template"] else "no",
            str(item["template_bytes"]),
        )
    console.print(table)
