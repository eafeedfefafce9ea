"""CLI interface for BackupBox."""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import click

from .api import FleaboxClient
from .channel import EventChannel
from .cli_progress import run_backup_with_progress
from .config import config
from .controller import BackupController
from .exceptions import BackupBoxConfigError, BackupBoxError, BackupBoxNotFoundError
from .folders import FolderConfigStore
from .messages import Done, Error, Event, Progress, Started, Stopped, TriggerBackup
from .output import OutputFormatter
from .scheduler import BackupScheduler
from .sync.engine import SyncEngine
from .sync.models import SyncResult
from .sync.scanner import DirectoryScanner
from .sync.state import MetadataStore
from .utils import format_size

logger = logging.getLogger(__name__)


def _make_client(ctx: Any) -> FleaboxClient:
    if not ctx.obj["api_url"] and not config.is_configured():
        ctx.obj["out"].warning(
            f"No server configured, using {config.api_url}. Run 'backupbox init'."
        )
    return FleaboxClient(api_url=ctx.obj["api_url"])


def _load_store(ctx: Any) -> FolderConfigStore:
    return FolderConfigStore(ctx.obj["folders_file"])


@click.group()
@click.option("--api-url", "-u", envvar="BACKUPBOX_API_URL", help="Fleabox server URL")
@click.option(
    "--folders-file",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="BACKUPBOX_FOLDERS_FILE",
    help="File holding the folder selection",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="backupbox")
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    folders_file: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """BackupBox - Incremental folder backups to a Fleabox server."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["folders_file"] = folders_file
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("backupbox").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--api-url",
    "-u",
    prompt="Enter your Fleabox server URL",
    help="Fleabox server URL",
)
@click.option(
    "--token",
    "-t",
    prompt="Enter an API token (leave empty for none)",
    default="",
    show_default=False,
    help="Optional bearer token",
)
@click.pass_context
def init(ctx: Any, api_url: str, token: str) -> None:
    """Initialize BackupBox configuration.

    Stores the server URL in ~/.config/backupbox/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Checking server...")
    client = FleaboxClient(api_url=api_url, api_token=token or None, max_retries=0)
    try:
        # Any answer from the data API, even "not found", means it is reachable
        client.get_metadata("__backupbox_check__")
        out.success("✓ Server is reachable")
    except BackupBoxNotFoundError:
        out.success("✓ Server is reachable")
    except BackupBoxError as e:
        out.error(f"Server check failed: {e}")
        if not click.confirm("Save configuration anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)
    finally:
        client.close()

    try:
        config.save(api_url, token or None)
    except OSError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "✓ Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--name", "-n", help="Remote folder name (defaults to directory name)")
@click.pass_context
def add(ctx: Any, path: Path, name: Optional[str]) -> None:
    """Add a local folder to the backup selection.

    Examples:

        backupbox add ~/Documents

        backupbox add ~/Pictures --name photos
    """
    out: OutputFormatter = ctx.obj["out"]
    store = _load_store(ctx)

    try:
        folder = store.add(path, name)
    except BackupBoxConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    out.success(f"Added folder: {folder.local_path} → {folder.remote_name}")


@main.command()
@click.argument("remote_name")
@click.pass_context
def remove(ctx: Any, remote_name: str) -> None:
    """Remove a folder from the backup selection by its remote name."""
    out: OutputFormatter = ctx.obj["out"]
    store = _load_store(ctx)

    try:
        folder = store.remove(remote_name)
    except BackupBoxConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    out.success(f"Removed: {folder.local_path} ({folder.remote_name})")


@main.command()
@click.pass_context
def folders(ctx: Any) -> None:
    """List the folders selected for backup."""
    out: OutputFormatter = ctx.obj["out"]
    store = _load_store(ctx)

    if out.json_output:
        out.output_json([folder.to_dict() for folder in store.folders])
        return

    if not store.folders:
        out.warning("No folders selected. Use 'backupbox add PATH' to add one.")
        return

    out.print_summary(
        "Backup Folders",
        [(folder.remote_name, str(folder.local_path)) for folder in store.folders],
    )


@main.command()
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.pass_context
def backup(ctx: Any, no_progress: bool) -> None:
    """Back up all selected folders once.

    Only files that are new or modified since the last backup are uploaded.
    """
    out: OutputFormatter = ctx.obj["out"]
    store = _load_store(ctx)

    if not store.folders:
        out.error("No folders selected.")
        ctx.exit(1)
        return

    with _make_client(ctx) as client:
        engine = SyncEngine(client)
        if no_progress or out.quiet or out.json_output:
            result = engine.sync_all(store.folders)
        else:
            result = run_backup_with_progress(engine, store.folders)

    if out.json_output:
        out.output_json(result.to_dict())
    else:
        out.print_summary(
            "Backup Complete",
            [
                ("Uploaded", str(result.uploaded)),
                ("Unchanged", str(result.skipped)),
                ("Failed", str(result.failed)),
                ("Remote files", str(result.total_files)),
                ("Remote size", format_size(result.total_bytes)),
            ],
        )

    if result.failed:
        ctx.exit(1)


@main.command()
@click.option(
    "--interval",
    "-i",
    type=float,
    default=None,
    help="Seconds between backup runs (default: from config, 300)",
)
@click.option("--watch", is_flag=True, help="Also report file counts every 30s")
@click.pass_context
def daemon(ctx: Any, interval: Optional[float], watch: bool) -> None:
    """Run backups unattended until interrupted.

    The first backup starts immediately; each completed run schedules the
    next one.
    """
    out: OutputFormatter = ctx.obj["out"]
    store = _load_store(ctx)

    if not store.folders:
        out.error("No folders selected.")
        ctx.exit(1)
        return

    interval = interval if interval is not None else config.backup_interval

    def report(event: Event) -> None:
        if isinstance(event, Started):
            out.info("Starting backup...")
        elif isinstance(event, Progress):
            suffix = f" ({event.current_file})" if event.current_file else ""
            out.info(f"Uploading: {event.done}/{event.total}{suffix}")
        elif isinstance(event, Done):
            if "count" in event.result:
                out.info(f"Files in watched folders: {event.result['count']}")
            else:
                summary = SyncResult.from_dict(event.result)
                out.success(
                    f"Backup complete: {summary.uploaded} uploaded, "
                    f"{summary.skipped} unchanged, {summary.failed} failed "
                    f"({datetime.now().strftime('%H:%M:%S')})"
                )
        elif isinstance(event, Error):
            out.error(f"Error: {event.message}")
        elif isinstance(event, Stopped):
            out.info("Backup stopped.")
        elif isinstance(event, TriggerBackup):
            logger.debug("Timer fired")

    channel = EventChannel()
    reporter = channel.connect(listener=report)
    scheduler = BackupScheduler(channel)
    stop = threading.Event()

    with _make_client(ctx) as client:
        controller = BackupController(
            SyncEngine(client), scheduler, channel, store.folders, interval=interval
        )
        port = channel.connect()
        scheduler.start()
        try:
            if watch:
                scheduler.start_watch([folder.local_path for folder in store.folders])
            controller.start_backup()
            controller.run_forever(port, stop)
        except KeyboardInterrupt:
            out.warning("\nStopping...")
            controller.stop_backup()
        finally:
            stop.set()
            scheduler.shutdown()
            port.close()
            reporter.close()


@main.command()
@click.argument(
    "paths", nargs=-1, type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.pass_context
def count(ctx: Any, paths: tuple[Path, ...]) -> None:
    """Count files in PATHS (defaults to the selected folders)."""
    out: OutputFormatter = ctx.obj["out"]
    directories = list(paths) or [f.local_path for f in _load_store(ctx).folders]

    if not directories:
        out.error("No directories provided for count.")
        ctx.exit(1)
        return

    total = DirectoryScanner().count_all(directories)
    if out.json_output:
        out.output_json({"count": total})
    else:
        out.info(f"{total} files in {len(directories)} folder(s)")


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show what the server holds for each selected folder."""
    out: OutputFormatter = ctx.obj["out"]
    store = _load_store(ctx)

    rows = []
    with _make_client(ctx) as client:
        metadata_store = MetadataStore(client)
        for folder in store.folders:
            metadata = metadata_store.load(folder.remote_name)
            last = (
                datetime.fromtimestamp(metadata.last_backup / 1000).isoformat(
                    sep=" ", timespec="seconds"
                )
                if metadata.last_backup
                else None
            )
            rows.append(
                {
                    "remoteName": folder.remote_name,
                    "localPath": str(folder.local_path),
                    "totalFiles": metadata.total_files,
                    "totalBytes": metadata.total_bytes,
                    "lastBackup": last,
                }
            )

    if out.json_output:
        out.output_json(rows)
        return

    if not rows:
        out.warning("No folders selected.")
        return

    out.print_summary(
        "Backup Status",
        [
            (
                row["remoteName"],
                f"{row['totalFiles']} files, {format_size(row['totalBytes'])}, "
                f"last backup: {row['lastBackup'] or 'never'}",
            )
            for row in rows
        ],
    )


if __name__ == "__main__":
    main()
