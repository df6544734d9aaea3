"""Console rendering and progress helpers for the stream-up CLI."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import VideoUploadTask
from .utils.events import TransferProgress

console = Console()


def human_size(value: int) -> str:
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

    console.print(
        Panel(
            table,
            title="[bold green]stream-up[/bold green]",
            subtitle="[dim]streamupload CLI[/dim]",
            border_style="blue",
        )
    )


def render_response(data: Optional[Dict[str, Any]]) -> None:
    """Print a JSON response, or a failure line when there is none."""
    if data is None:
        console.print("[red]Upload failed: no JSON response[/red]")
        return
    console.print_json(json.dumps(data))


class TransferProgressDisplay:
    """
    Progress bars for background upload tasks.

    Subscribe the handlers to a BackgroundUploadSession's events:
        session.events.on(TASK_PROGRESS, display.on_progress)
        session.events.on(TASK_COMPLETE, display.on_complete)
        session.events.on(TASK_FAIL, display.on_fail)
    """

    def __init__(self):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )
        self._bars: Dict[int, TaskID] = {}

    def start(self) -> None:
        self._progress.start()

    def stop(self) -> None:
        self._progress.stop()

    def __enter__(self) -> "TransferProgressDisplay":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    def _bar_for(self, task_id: int, description: str, total: Optional[int]) -> TaskID:
        if task_id not in self._bars:
            self._bars[task_id] = self._progress.add_task(description, total=total)
        return self._bars[task_id]

    def on_progress(self, progress: TransferProgress) -> None:
        bar = self._bar_for(progress.task_id, progress.filename, progress.total_bytes)
        self._progress.update(bar, completed=progress.bytes_sent, total=progress.total_bytes)

    def on_complete(self, record: VideoUploadTask) -> None:
        bar = self._bar_for(record.task_id, record.filename, None)
        self._progress.update(bar, description=f"[green]{record.filename} done[/green]")

    def on_fail(self, record: VideoUploadTask) -> None:
        bar = self._bar_for(record.task_id, record.filename, None)
        self._progress.update(
            bar, description=f"[red]{record.filename} failed: {record.error}[/red]"
        )
