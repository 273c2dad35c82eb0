"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from brainz_dl.models.stats import RunSummary
from brainz_dl.utils.formatting import format_duration, format_size, track_label


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NetworkError": [
            "• A network connection issue occurred.",
            "• GitHub or ListenBrainz might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "UnsupportedPlatformError": [
            "• No prebuilt yt-dlp exists for this system.",
            "• Install yt-dlp yourself and pass it with `--ytdlp`.",
        ],
        "PersistenceError": [
            "• Check that the cache and data directories are writable.",
            "• Delete the yt-dlp state file to start from scratch.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `brainz-dl init --force` to write a fresh default file.",
        ],
        "PlaylistError": [
            "• Make sure the file is a JSPF playlist exported from ListenBrainz.",
            "• Check the ListenBrainz username for typos.",
        ],
        "ExternalProcessError": [
            "• yt-dlp failed. Run `brainz-dl update --force` to refresh it.",
            "• Run the command with -vv to see yt-dlp's error output.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Try reducing the number of `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            escape(content) or "[dim](defaults)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _failures_table(summary: RunSummary) -> Table:
    table = Table(box=box.SIMPLE, show_edge=False, padding=(0, 1))
    table.add_column("#", style="dim", justify="right")
    table.add_column("Track", style="cyan")
    table.add_column("Stage", style="yellow")
    table.add_column("Reason", style="red")
    for outcome in summary.failures:
        stage = outcome.failed_stage.value if outcome.failed_stage else "?"
        table.add_row(
            str(outcome.track_number),
            escape(track_label(outcome.track, 40)),
            stage,
            escape(outcome.reason),
        )
    return table


def print_summary_panel(summary: RunSummary, progress_stats: dict | None = None):
    """Displays the final summary of the run."""
    console = Console()
    duration_s = summary.duration_seconds

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{summary.tracks_downloaded}[/bold green]"
    )
    if summary.tracks_skipped > 0:
        stats_table.add_row(
            "○ Skipped:", f"[yellow]{summary.tracks_skipped} (exists)[/yellow]"
        )
    if summary.tracks_failed > 0:
        stats_table.add_row(
            "✗ Failed:", f"[bold red]{summary.tracks_failed}[/bold red]"
        )
    if summary.tracks_cancelled > 0:
        stats_table.add_row(
            "⚠ Cancelled:", f"[yellow]{summary.tracks_cancelled}[/yellow]"
        )

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(summary.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if progress_stats:
        stats_table.add_row(
            "Peak Concurrent:",
            f"[green]{progress_stats.get('peak_concurrent', 0)}[/green]",
        )

    if summary.tracks_downloaded > 0 and duration_s > 0:
        tracks_per_minute = (summary.tracks_downloaded / duration_s) * 60
        stats_table.add_row(
            "Throughput:", f"[cyan]{tracks_per_minute:.1f} tracks/min[/cyan]"
        )

    if summary.failures:
        title = "⚠ [bold]Download Finished With Errors[/bold]"
        border_color = "yellow"
    else:
        title = "🎵 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    if summary.failures:
        console.print(_failures_table(summary))
    console.print()
