"""
Command-line interface for sysnap.

Provides commands for collecting a system snapshot and delivering it,
encrypted, to a collector.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from sysnap import __version__
from sysnap.aggregator import CollectionReport
from sysnap.config import Config, ConfigError
from sysnap.core import SnapshotAgent
from sysnap.crypto import EncryptionError, generate_key
from sysnap.serializer import SerializationError, to_dict
from sysnap.uploader import TransportError

console = Console()


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure logging with rich handler."""
    handlers: list[logging.Handler] = [RichHandler(console=console, rich_tracebacks=True)]
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
        except OSError as e:
            raise ConfigError(f"Cannot open log file {log_file}: {e}") from e
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def _fail(stage: str, error: Exception) -> NoReturn:
    """Print a terminating diagnostic and exit non-zero."""
    console.print(f"[red]✗ {stage}: {escape(str(error))}[/]")
    sys.exit(1)


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="sysnap")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "-V",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """
    sysnap - machine state snapshots.

    Collect hardware, software, network and performance information and
    deliver it encrypted to a remote collector.
    """
    ctx.ensure_object(dict)

    try:
        ctx.obj["config"] = Config.load(config)
        log_level = "DEBUG" if verbose else ctx.obj["config"].log_level
        setup_logging(log_level, ctx.obj["config"].log_file)
    except ConfigError as e:
        _fail("Configuration error", e)

    ctx.obj["verbose"] = verbose


def _collect(agent: SnapshotAgent, probes: tuple[str, ...]) -> CollectionReport:
    try:
        with _progress() as progress:
            task = progress.add_task("Running probes...", total=None)
            report = agent.collect(list(probes) if probes else None)
            progress.update(task, completed=True)
    except ConfigError as e:
        _fail("Configuration error", e)
    return report


@main.command("run")
@click.option(
    "--probes",
    "-P",
    multiple=True,
    help="Specific probes to run (can be repeated)",
)
@click.pass_context
def run_pipeline(ctx: click.Context, probes: tuple[str, ...]) -> None:
    """
    Collect, encrypt and deliver one snapshot.

    Exits non-zero if configuration, encryption or delivery fails. Probe
    failures are reported but do not stop the run.
    """
    config: Config = ctx.obj["config"]

    try:
        config.validate()
    except ConfigError as e:
        _fail("Configuration error", e)

    agent = SnapshotAgent(config)

    console.print()
    console.print(
        Panel.fit(
            f"[bold blue]sysnap v{__version__}[/]\nCollecting system snapshot...",
            border_style="blue",
        )
    )
    console.print()

    report = _collect(agent, probes)
    _display_summary(report)

    with _progress() as progress:
        task = progress.add_task(f"Delivering to {config.server_address}...", total=None)
        try:
            result = agent.ship(report)
        except SerializationError as e:
            _fail("Serialization failed", e)
        except EncryptionError as e:
            _fail("Encryption failed", e)
        except TransportError as e:
            _fail("Delivery failed", e)
        finally:
            progress.update(task, completed=True)

    console.print(
        "[green]✓ System snapshot collected, encrypted and delivered successfully[/]"
    )
    if ctx.obj["verbose"]:
        console.print(
            f"  Payload: {result.payload_size} characters, "
            f"HTTP {result.upload.status_code} in {result.upload.duration_ms:.0f}ms"
        )
    if result.local_copy:
        console.print(f"[dim]Encrypted copy saved to: {result.local_copy}[/]")


@main.command()
@click.option(
    "--probes",
    "-P",
    multiple=True,
    help="Specific probes to run (can be repeated)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Write the plaintext snapshot to a file instead of stdout",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["json", "pretty"]),
    default="pretty",
    help="Output format",
)
@click.pass_context
def collect(
    ctx: click.Context,
    probes: tuple[str, ...],
    output: Path | None,
    format: str,
) -> None:
    """
    Collect a snapshot and show it locally.

    Nothing is encrypted or sent. Use --probes to run specific probes only.
    """
    config: Config = ctx.obj["config"]
    agent = SnapshotAgent(config)

    report = _collect(agent, probes)
    _display_summary(report)

    snapshot_json = json.dumps(to_dict(report.snapshot), indent=2, ensure_ascii=False)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(snapshot_json, encoding="utf-8")
        console.print(f"\n[dim]Snapshot saved to: {output}[/]")
    elif format == "json":
        console.print()
        console.print_json(snapshot_json)


def _display_summary(report: CollectionReport) -> None:
    """Display a summary table of probe results."""
    table = Table(title="Probe Results", show_header=True)
    table.add_column("Probe", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Unavailable fields", justify="right")
    table.add_column("Time", justify="right")

    status_styles = {
        "ok": "[green]✓[/]",
        "partial": "[yellow]partial[/]",
        "failed": "[red]✗[/]",
        "skipped": "[dim]skipped[/]",
    }

    for name, status in report.statuses.items():
        field_errors = [e for e in report.errors if e.domain == name]
        duration = report.durations_ms.get(name, 0.0)
        table.add_row(
            name,
            status_styles.get(status, status),
            str(len(field_errors)) if status != "skipped" else "-",
            f"{duration:.0f}ms",
        )

    console.print(table)

    if report.errors:
        console.print()
        console.print("[yellow]Probe errors:[/]")
        for error in report.errors:
            console.print(f"  • {escape(str(error))}")


@main.command("list")
def list_available() -> None:
    """List all available probes."""
    table = Table(title="Available Probes", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Description")

    from sysnap.probes import PROBES

    for name, cls in PROBES.items():
        table.add_row(name, cls.description)

    console.print()
    console.print(table)


@main.command("version", short_help="Display version information")
def version() -> None:
    """Display version information for sysnap."""
    console.print()
    console.print(
        Panel.fit(
            f"[bold blue]sysnap[/]\nVersion: [cyan]{__version__}[/]",
            border_style="blue",
            title="Version Information",
        )
    )
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Component", style="dim", width=20)
    table.add_column("Version", style="cyan")

    table.add_row("sysnap", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)
    console.print()


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show current configuration and connection status."""
    config: Config = ctx.obj["config"]

    console.print()
    console.print(
        Panel.fit(
            "[bold]sysnap Status[/]",
            border_style="blue",
        )
    )

    try:
        config.validate()
        validity = "[green]Valid[/]"
    except ConfigError as e:
        validity = f"[red]{escape(str(e))}[/]"

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Config File", config.source_path or "[dim]None (defaults/environment)[/]")
    table.add_row("Server Address", config.server_address or "[dim]Not configured[/]")
    table.add_row("Encryption Key", "Configured" if config.encryption_key else "[dim]Not set[/]")
    table.add_row("Configuration", validity)
    table.add_row("Probe Timeout", f"{config.probe_timeout:g}s" if config.probe_timeout else "None")
    table.add_row("Log Level", config.log_level)

    console.print(table)

    if config.server_address:
        console.print()
        with _progress() as progress:
            task = progress.add_task("Testing connection...", total=None)
            from sysnap.uploader import Uploader

            uploader = Uploader(config)
            connected = uploader.test_connection()
            progress.update(task, completed=True)

        if connected:
            console.print("[green]✓ Server is reachable[/]")
        else:
            console.print("[red]✗ Server is not reachable[/]")


SAMPLE_CONFIG = """; sysnap configuration
; Lines starting with ';' or '#' are comments.

# URL the encrypted snapshot is POSTed to
server_address = https://your-server.example.com/api/v1/snapshots

# AES key as hex: 32, 48 or 64 hex characters (AES-128/192/256)
encryption_key = {key}

# Request timeout in seconds
upload_timeout = 30

# Per-probe deadline in seconds (0 disables)
probe_timeout = 120

# Sampling window for rates (CPU, disk and network I/O), in seconds
sample_interval = 1.0

# Public IP echo service and latency target
public_ip_url = https://api.ipify.org
ping_host = 8.8.8.8

# Comma-separated probe names to skip
disabled_probes =

# Keep an encrypted copy of each payload in output_dir
keep_local_copy = false
output_dir = /var/lib/sysnap

# Log level: DEBUG, INFO, WARNING, ERROR
log_level = INFO
"""


@main.command()
@click.argument("output_path", type=click.Path(path_type=Path))
@click.option(
    "--generate-key",
    "with_key",
    is_flag=True,
    help="Fill in a freshly generated 256-bit key",
)
def init_config(output_path: Path, with_key: bool) -> None:
    """
    Generate a sample configuration file.

    Creates a key=value configuration file with all available options
    and helpful comments.
    """
    key = generate_key(32) if with_key else ""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(SAMPLE_CONFIG.format(key=key))
    if key:
        output_path.chmod(0o600)

    console.print(f"[green]✓ Configuration file created: {output_path}[/]")
    console.print()
    console.print("Next steps:")
    console.print("  1. Edit the configuration file with your server URL")
    if key:
        console.print("  2. Share the encryption_key with the collector")
    else:
        console.print("  2. Set encryption_key, or export [cyan]SYSNAP_ENCRYPTION_KEY[/]")
    console.print("  3. Run: [cyan]sysnap -c CONFIG run[/]")


if __name__ == "__main__":
    main()
