"""
Manages a Rich Live display for a playlist run: session statistics, the overall
progress bar and one spinner row per active track showing its current stage.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from brainz_dl.models.stats import PipelineEvent, TrackStage, TrackStatus
from brainz_dl.utils.formatting import format_duration, track_label

log = logging.getLogger("brainz_dl")

STAGE_STYLES = {
    TrackStage.SEARCHING: "cyan",
    TrackStage.MATCHING: "blue",
    TrackStage.FETCHING: "magenta",
    TrackStage.TAGGING: "yellow",
}


class ProgressManager:
    """
    Renders pipeline events as they arrive.

    `on_event` is the listener handed to the pipelines; in quiet mode it only
    keeps count and nothing is drawn.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}", justify="left"),
            TextColumn("[dim]{task.fields[stage]}[/dim]"),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )

        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        )

        self._live: Optional[Live] = None
        self._layout: Optional[Layout] = None
        self._playlist_title = ""

        self._stats = {
            "total_tracks": 0,
            "completed": 0,
            "failed": 0,
            "skipped": 0,
            "active": 0,
            "peak_concurrent": 0,
            "start_time": None,
        }

        self._overall_task_id: Optional[TaskID] = None
        self._active_tasks: dict[int, TaskID] = {}

    def initialize_session(self, playlist_title: str, total_tracks: int) -> None:
        self._playlist_title = playlist_title
        self._stats["total_tracks"] = total_tracks
        self._stats["start_time"] = datetime.now()
        if not self.quiet:
            self._overall_task_id = self.overall_progress.add_task(
                "Overall Progress", total=total_tracks, start=True
            )
        self._update_display()

    def on_event(self, event: PipelineEvent) -> None:
        """Listener for pipeline stage changes."""
        if event.stage.is_terminal:
            self._finish_track(event)
            return
        if event.stage == TrackStage.QUEUED:
            return

        stage = f"[{STAGE_STYLES.get(event.stage, 'white')}]{event.stage.value}[/]"
        task_id = self._active_tasks.get(event.track_number)
        if task_id is None:
            if not self.quiet:
                task_id = self.progress.add_task(
                    escape(track_label(event.track)), total=None, stage=stage
                )
            self._active_tasks[event.track_number] = task_id
            self._stats["active"] = len(self._active_tasks)
            self._stats["peak_concurrent"] = max(
                self._stats["peak_concurrent"], self._stats["active"]
            )
        elif not self.quiet:
            self.progress.update(task_id, stage=stage)
        self._update_display()

    def _finish_track(self, event: PipelineEvent) -> None:
        task_id = self._active_tasks.pop(event.track_number, None)
        if task_id is not None and not self.quiet:
            self.progress.remove_task(task_id)
        self._stats["active"] = len(self._active_tasks)

        outcome = event.outcome
        if outcome is not None and outcome.status == TrackStatus.SKIPPED:
            self._stats["skipped"] += 1
        elif event.stage == TrackStage.DONE:
            self._stats["completed"] += 1
        else:
            self._stats["failed"] += 1

        if self._overall_task_id is not None:
            self.overall_progress.update(
                self._overall_task_id, completed=self._processed_count()
            )
        self._update_display()

    def _processed_count(self) -> int:
        return self._stats["completed"] + self._stats["failed"] + self._stats["skipped"]

    def get_statistics(self) -> dict:
        return self._stats.copy()

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="stats", size=7),
            Layout(name="progress", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        if self._stats["start_time"]:
            elapsed = (datetime.now() - self._stats["start_time"]).total_seconds()
        else:
            elapsed = 0
        header_text = Text()
        header_text.append("🎵 brainz-dl ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(self._playlist_title or "Playlist", style="bold")
        header_text.append(" │ ", style="dim")
        header_text.append(f"Session: {format_duration(elapsed)}", style="yellow")
        return Panel(header_text, border_style="cyan")

    def _generate_stats_panel(self) -> Panel:
        stats_table = Table.grid(padding=(0, 2))
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        remaining = self._stats["total_tracks"] - self._processed_count()
        stats_table.add_row(
            "Downloaded:",
            f"[green]{self._stats['completed']}[/green]",
            "Failed:",
            f"[red]{self._stats['failed']}[/red]",
        )
        stats_table.add_row(
            "Skipped:",
            f"[yellow]{self._stats['skipped']}[/yellow]",
            "Remaining:",
            f"[cyan]{remaining}[/cyan]",
        )
        stats_table.add_row(
            "Active:",
            f"[cyan]{self._stats['active']}[/cyan]",
            "Peak:",
            f"[magenta]{self._stats['peak_concurrent']}[/magenta]",
        )
        combined = Table.grid()
        combined.add_row(stats_table)
        if self._overall_task_id is not None:
            combined.add_row(self.overall_progress)
        return Panel(
            combined, title="[bold]📊 Session Statistics[/bold]", border_style="blue"
        )

    def _generate_progress_panel(self) -> Panel:
        if not self._active_tasks:
            return Panel(
                Text("Waiting for tracks to start...", style="dim italic"),
                title="[bold]📥 Active Tracks[/bold]",
                border_style="green",
            )
        return Panel(
            self.progress,
            title=f"[bold]📥 Active Tracks ({len(self._active_tasks)})[/bold]",
            border_style="green",
        )

    def _update_display(self) -> None:
        """Updates all panels; the Live object handles the refresh rate."""
        if self.quiet or not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["stats"].update(self._generate_stats_panel())
        self._layout["progress"].update(self._generate_progress_panel())

    async def __aenter__(self):
        if self.quiet:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=12,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live and not self.quiet:
            await asyncio.sleep(0.2)
            self._live.stop()
