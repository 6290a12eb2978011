"""Console rendering and progress helpers for resource-up CLI."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.live import Live
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

STATUS_LABELS = {
    "pending": "waiting",
    "requesting-url": "preparing",
    "uploading": "uploading",
    "confirming": "saving",
    "complete": "done",
    "failed": "failed",
}

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

    panel = Panel(
        table,
        title="[bold green]resource-up[/bold green]",
        subtitle="[dim]resource uploader CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def _make_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
        BarColumn(bar_width=42),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        TextColumn("[dim]{task.fields[status]}"),
        expand=False,
        console=console,
    )


class UploadProgressDisplay:
    """
    Live per-file progress for one or more uploads.

    Works as the progress callback of a single upload (get_callback) and as
    the event sink of a QueueUploadProcess (on_file_* methods).
    """

    def __init__(self):
        self._progress = _make_progress()
        self._live: Optional[Live] = None
        self._tasks: Dict[str, TaskID] = {}
        self._started_at = time.monotonic()

    def start(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _task_for(
        self,
        key: str,
        name: str,
        total: int,
        position: Optional[int] = None,
        size: Optional[int] = None,
    ) -> TaskID:
        task_id = self._tasks.get(key)
        if task_id is None:
            label = name[:60]
            if position and size:
                label = f"[{position}/{size}] {label}"
            task_id = self._progress.add_task(
                "upload",
                label=label,
                total=max(total, 1),
                status=STATUS_LABELS["pending"],
            )
            self._tasks[key] = task_id
        return task_id

    def update(self, file_progress: Any) -> None:
        """Apply a FileProgress update."""
        self.start()
        name = getattr(file_progress, "filename", "file")
        total = int(getattr(file_progress, "total_bytes", 0) or 0)
        uploaded = int(getattr(file_progress, "bytes_uploaded", 0) or 0)
        status = getattr(file_progress, "status", "uploading")
        # Same-named files from different folders get their own bar
        key = str(getattr(file_progress, "file_path", None) or name)
        task_id = self._task_for(
            key,
            name,
            total,
            getattr(file_progress, "position", None),
            getattr(file_progress, "queue_size", None),
        )
        self._progress.update(
            task_id,
            completed=min(uploaded, max(total, 1)),
            total=max(total, 1),
            status=STATUS_LABELS.get(status, status),
        )

    def get_callback(self):
        def callback(file_progress: Any) -> None:
            self.update(file_progress)

        return callback

    # QueueUploadProcess events
    def on_file_start(self, file_path: Path) -> None:
        self.start()
        path = Path(file_path)
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        self._task_for(str(path), path.name, size)

    def on_file_progress(self, file_path: Path, file_progress: Any) -> None:
        self.update(file_progress)

    def on_file_complete(self, result: Any) -> None:
        self._report(result)

    def on_file_fail(self, result: Any) -> None:
        self._report(result)

    def _report(self, result: Any) -> None:
        name = getattr(result, "filename", "file")
        if getattr(result, "success", False):
            resource = getattr(result, "resource", None)
            resource_id = getattr(resource, "id", None)
            suffix = f" (resource {resource_id})" if resource_id else ""
            console.print(f"[green]Uploaded:[/green] {name}{suffix}")
            return

        error = getattr(result, "error", None)
        console.print(f"[red]Failed:[/red] {name}" + (f" - {error}" if error else ""))
        orphan = getattr(result, "file_path", None)
        if orphan:
            console.print(f"[yellow]  file may remain in storage at {orphan}[/yellow]")

    def on_finish(self, queue_result: Any) -> None:
        self.stop()
        elapsed = time.monotonic() - self._started_at
        uploaded = getattr(queue_result, "uploaded_files", 0)
        total = getattr(queue_result, "total_files", 0)
        failed = getattr(queue_result, "failed_files", 0)
        console.print(
            f"[bold]Finished[/bold] uploaded={uploaded} total={total} "
            f"failed={failed} in {elapsed:.1f}s"
        )
