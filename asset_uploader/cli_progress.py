"""Console rendering and progress helpers for the uploader CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .models import BatchResult, UploadOutcome

console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]asset-up[/bold green]",
        subtitle="[dim]asset uploader CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_batch_result(result: BatchResult, sizes: Optional[Dict[str, int]] = None) -> None:
    """Render one row per file, in input order."""
    sizes = sizes or {}
    table = Table(title="Upload results", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("URL / error", overflow="fold")

    for idx, outcome in enumerate(result, 1):
        if outcome.success:
            status = "[green]OK[/green]"
            detail = outcome.url or ""
        else:
            kind = outcome.error.value if outcome.error else "failed"
            status = f"[red]{kind}[/red]"
            detail = outcome.detail or ""
        size = sizes.get(outcome.filename)
        table.add_row(
            str(idx),
            outcome.filename,
            _human_size(size) if size is not None else "-",
            status,
            str(outcome.attempts),
            detail,
        )

    console.print(table)
    console.print(
        f"[bold]Finished[/bold] uploaded={result.succeeded} total={len(result)} failed={result.failed}"
    )


class BatchUploadProgressDisplay:
    """Progress bar plus a timeline line per finished file."""

    def __init__(self, total: int):
        self._total = total
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("{task.completed}/{task.total}"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=console,
        )
        self._task_id: Optional[TaskID] = None
        self._failed = 0

    def start(self) -> None:
        self._progress.start()
        self._task_id = self._progress.add_task(
            "overall",
            label="Uploading",
            total=self._total,
            completed=0,
            detail="uploaded=0 failed=0",
        )

    def stop(self) -> None:
        self._progress.stop()

    def _emit_timeline(self, status: str, name: str, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        color = "green" if status == "DONE" else "red"
        error_label = f" cause={error}" if error else ""
        self._progress.console.print(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] file: {name}{error_label}"
        )

    def on_outcome(self, outcome: UploadOutcome, completed: int, total: int) -> None:
        """Progress callback for BatchUploadOrchestrator.upload."""
        if outcome.success:
            self._emit_timeline("DONE", outcome.filename)
        else:
            self._failed += 1
            error = outcome.error.value if outcome.error else None
            self._emit_timeline("FAIL", outcome.filename, error=error)

        if self._task_id is not None:
            self._progress.update(
                self._task_id,
                completed=completed,
                detail=f"uploaded={completed - self._failed} failed={self._failed}",
            )
