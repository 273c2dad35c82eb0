"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import signal
from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from brainz_dl import __version__
from brainz_dl.api import ListenBrainzClient
from brainz_dl.core.download_manager import DownloadManager
from brainz_dl.models.playlist import load_playlist_file
from brainz_dl.storage.config_manager import ConfigManager
from brainz_dl.utils.path import get_cache_dir, get_config_dir, get_data_dir
from brainz_dl.ytdlp import VersionManager

from .formatters import print_config, print_summary_panel
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("brainz_dl")

app = typer.Typer(
    name="brainz-dl",
    help=(
        "Download ListenBrainz playlists as tagged audio files through yt-dlp."
        " Use 'brainz-dl <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for info, -vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """ListenBrainz playlist downloader"""
    if version:
        console.print(f"[bold]brainz-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    log.setLevel(log_level)

    if show_config:
        config = ConfigManager(CONFIG_FILE).load_config()
        config_data = config.model_dump(include=config.get_ini_keys())
        print_config(CONFIG_FILE, dict(sorted(config_data.items())))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Write a configuration file holding the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config()
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print(
        "Ready to download! Try: [cyan]brainz-dl download --user <NAME>[/cyan]"
    )


@app.command()
def update(
    force: bool = typer.Option(
        False, "--force", "-f", help="Query upstream even if checked recently."
    ),
):
    """Make sure the managed yt-dlp executable is up to date."""
    config = ConfigManager(CONFIG_FILE).load_config()

    async def _update_async():
        manager = VersionManager.from_dirs(
            get_cache_dir(),
            get_data_dir(),
            update_interval=timedelta(hours=config.update_interval_hours),
        )
        path = await manager.ensure_current(force=force)
        console.print(
            f"[green]✓ yt-dlp[/] [cyan]{manager.state.last_version}[/cyan] "
            f"[dim]({path})[/dim]"
        )

    asyncio.run(_update_async())


def _install_signal_handlers(manager: DownloadManager) -> None:
    """Routes SIGINT/SIGTERM to a graceful cancel; a second SIGINT aborts."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals):
        log.warning(f"[yellow]Received {sig.name}.[/yellow]")
        manager.request_cancel()
        loop.remove_signal_handler(sig)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except (NotImplementedError, RuntimeError):
            log.debug(f"Signal handlers are not supported for {sig.name}.")


@app.command(name="download")
def download_command(
    playlist_file: Path | None = typer.Argument(  # noqa: B008
        None, help="A JSPF playlist file exported from ListenBrainz."
    ),
    user: str | None = typer.Option(
        None,
        "-u",
        "--user",
        help="Download the first playlist recommended to this ListenBrainz user.",
    ),
    output_dir: str | None = typer.Option(
        None,
        "-o",
        "--output",
        help="Directory the playlist folder is created in.",
    ),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of tracks processed at once (default 5).",
    ),
    image_workers: int | None = typer.Option(
        None,
        "--image-workers",
        help="Number of artwork downloads at once (default 4).",
    ),
    youtube_thumbnails: bool | None = typer.Option(
        None,
        "-t",
        "--youtube-thumbnails/--cover-art",
        help="Always use the video thumbnail instead of Cover Art Archive.",
    ),
    no_m3u: bool | None = typer.Option(
        None,
        "--no-m3u/--m3u",
        help="Do not create a .m3u playlist file.",
    ),
    ytdlp_path: str | None = typer.Option(
        None,
        "--ytdlp",
        help="Use this yt-dlp executable instead of the managed one.",
    ),
    quiet: bool = typer.Option(
        False, "-q", "--quiet", help="Hide the live progress display."
    ),
):
    """Download a ListenBrainz playlist."""
    if (playlist_file is None) == (user is None):
        console.print(
            "[red]✗ Give either a playlist file or --user.[/red] "
            "Use: [cyan]brainz-dl download playlist.jspf[/cyan] or "
            "[cyan]brainz-dl download --user <NAME>[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "output_dir": output_dir,
            "max_workers": workers,
            "image_workers": image_workers,
            "always_use_youtube_thumbnails": youtube_thumbnails,
            "no_m3u": no_m3u,
            "ytdlp_path": ytdlp_path,
        }.items()
        if value is not None
    }
    cli_options["quiet"] = quiet
    config = ConfigManager(CONFIG_FILE).load_config(cli_options)

    async def _download_async():
        if playlist_file is not None:
            playlist = load_playlist_file(playlist_file)
        else:
            async with ListenBrainzClient() as client:
                playlist = await client.fetch_recommended_playlist(user)

        if not playlist.tracks:
            console.print("[yellow]⚠ The playlist has no tracks. Nothing to do.[/]")
            return None, None

        async with ProgressManager(console=console, quiet=config.quiet) as progress:
            manager = DownloadManager(config, listener=progress.on_event)
            _install_signal_handlers(manager)
            progress.initialize_session(playlist.title, len(playlist.tracks))
            console.print("[bold cyan]🎵 Starting download session...[/bold cyan]")
            summary = await manager.execute(playlist)
            return summary, progress.get_statistics()

    summary, progress_stats = asyncio.run(_download_async())
    if summary is not None:
        print_summary_panel(summary, progress_stats)
