"""
Codeplug Flasher CLI

Command-line interface for downloading, uploading and verifying radio
codeplugs with write confirmation.
"""

import sys
import json
import logging
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, TextColumn

from codeplug_flasher.models import list_models as registry_list_models, get_model, env_dry_run
from codeplug_flasher.protocol.errors import RadioError, UnsupportedModelError
from codeplug_flasher.core.channels import decode_channels
from codeplug_flasher.core.results import TransferResult
from codeplug_flasher.core.safety import (
    CONFIRMATION_TOKEN,
    SafetyContext,
    WritePermissionError,
    require_write_permission,
    create_cli_safety_context,
)
from codeplug_flasher.core.actions import (
    download_codeplug as core_download_codeplug,
    upload_codeplug as core_upload_codeplug,
    verify_codeplug as core_verify_codeplug,
)

logger = logging.getLogger("codeplug_flasher")

# Setup Rich console
console = Console()
err_console = Console(stderr=True)

app = typer.Typer(help="Codeplug Flasher - read and write BF-888 / KT-8900 memory images")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def resolve_model(value: str) -> str:
    """Validate a model selector, converting errors to typer.BadParameter."""
    try:
        return get_model(value).model.value
    except UnsupportedModelError as e:
        raise typer.BadParameter(str(e))


def print_result(result: TransferResult, output_json: bool = False) -> None:
    """Print a TransferResult and exit non-zero on failure."""
    if output_json:
        console.print(json.dumps(result.to_dict(), indent=2), markup=False, highlight=False, soft_wrap=True)
    elif result.ok:
        print_success(escape(result.to_summary()))
    else:
        print_error(escape(result.to_summary()))
    if not result.ok:
        raise typer.Exit(1)


def confirm_write(
    write_flag: bool,
    model: str,
    bytes_length: int,
    dry_run: bool,
    confirm_token: Optional[str],
) -> SafetyContext:
    """
    Require --write plus a typed or --confirm token before any radio write.

    BF888_DRY_RUN counts as --dry-run for the BF-888.

    Returns:
        SafetyContext to hand to the core action; an interactive confirmation
        is recorded as the token so the action does not prompt again

    Raises:
        typer.Abort: If write is not permitted
    """
    dry_run = dry_run or env_dry_run(model)
    ctx = create_cli_safety_context(
        write_flag=write_flag,
        model=model,
        dry_run=dry_run,
        confirmation_token=confirm_token,
        prompt_confirmation=lambda text: typer.prompt(text),
    )
    if dry_run:
        print_warning("Dry run: blocks are logged, nothing is written.")
        return ctx
    if confirm_token is None and ctx.interactive and write_flag:
        print_warning(f"About to write {bytes_length:,} bytes to a {model} radio.")
    try:
        require_write_permission(ctx, bytes_length=bytes_length)
    except WritePermissionError as e:
        print_error(e.reason)
        raise typer.Abort()
    return replace(ctx, confirmation_token=CONFIRMATION_TOKEN, interactive=False)


@contextmanager
def transfer_progress(description: str, enabled: bool = True) -> Iterator[Optional[Callable[[int, int], None]]]:
    """Yield a progress callback(done, total) drawn as a rich progress bar."""
    if not enabled:
        yield None
        return

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task = progress.add_task(description, total=None)

        def update(done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        yield update


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every frame sent and received"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=err_console)],
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


@app.command("list-models")
def list_models() -> None:
    """Show supported radio models."""
    table = Table(title="Supported Models")
    table.add_column("Tag", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Vendor")
    table.add_column("Memory")
    table.add_column("Upload")
    table.add_column("Blocks (R/W)")

    for cfg in registry_list_models():
        table.add_row(
            cfg.model.value,
            cfg.name,
            cfg.vendor,
            f"0x{cfg.mem_size:04X}",
            f"0x{cfg.upload_size:04X}",
            f"{cfg.read_block_size}/{cfg.write_block_size}",
        )

    console.print(table)


@app.command()
def download(
    port: str = typer.Option(..., "--port", "-p", envvar="SERIAL_PORT", help="Serial port (e.g., /dev/ttyUSB0)"),
    model: str = typer.Option(..., "--model", "-m", envvar="RADIO_MODEL", help="Radio model (bf-888, kt-8900)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Save codeplug to file"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output result as JSON"),
) -> None:
    """Download the codeplug from a radio."""
    model = resolve_model(model)
    if not output_json:
        print_header(f"Download Codeplug ({model})")
        console.print(f"Port: {port}")

    with transfer_progress("Reading codeplug...", enabled=not output_json) as progress_cb:
        result = core_download_codeplug(port, model, progress_cb=progress_cb)
    if result.ok and output:
        output_path = Path(output)
        output_path.write_bytes(result.image)
        if not output_json:
            console.print(f"Saved to {output_path}")
    print_result(result, output_json)


@app.command()
def upload(
    port: str = typer.Option(..., "--port", "-p", envvar="SERIAL_PORT", help="Serial port"),
    model: str = typer.Option(..., "--model", "-m", envvar="RADIO_MODEL", help="Radio model (bf-888, kt-8900)"),
    image: str = typer.Option(..., "--in", "-i", help="Codeplug image file"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log blocks instead of writing them"),
    write: bool = typer.Option(False, "--write", help="Enable writing to the radio"),
    confirm: Optional[str] = typer.Option(None, "--confirm", help="Non-interactive confirmation token (WRITE)"),
) -> None:
    """Upload a codeplug image to a radio."""
    model = resolve_model(model)
    path = Path(image)
    if not path.exists():
        print_error(f"Image not found: {image}")
        raise typer.Exit(1)
    data = path.read_bytes()

    print_header(f"Upload Codeplug ({model})")
    console.print(f"Port: {port}")
    console.print(f"Image: {path} ({len(data):,} bytes)")

    safety_ctx = confirm_write(write, model, len(data), dry_run, confirm)
    with transfer_progress("Writing codeplug...") as progress_cb:
        result = core_upload_codeplug(port, model, data, safety_ctx, progress_cb=progress_cb)
    print_result(result)


@app.command()
def verify(
    port: str = typer.Option(..., "--port", "-p", envvar="SERIAL_PORT", help="Serial port"),
    model: str = typer.Option(..., "--model", "-m", envvar="RADIO_MODEL", help="Radio model (bf-888, kt-8900)"),
    write: bool = typer.Option(False, "--write", help="Enable writing to the radio"),
    confirm: Optional[str] = typer.Option(None, "--confirm", help="Non-interactive confirmation token (WRITE)"),
) -> None:
    """
    Write a test codeplug and verify it reads back intact.

    BF-888: programs a synthesized 16-channel table. KT-8900: writes the
    current codeplug back unchanged.
    """
    model = resolve_model(model)
    config = get_model(model)
    print_header(f"Write/Verify Codeplug ({config.name})")
    console.print(f"Port: {port}")

    if env_dry_run(model):
        print_error("Write-verify cannot run while BF888_DRY_RUN=1 is set.")
        raise typer.Exit(1)

    safety_ctx = confirm_write(write, config.name, config.upload_size, False, confirm)
    result = core_verify_codeplug(port, model, safety_ctx)
    if not result.ok and result.channel is not None:
        print_warning(f"First mismatching channel: {result.channel + 1}")
    elif not result.ok and result.offset is not None:
        print_warning(f"First mismatching offset: 0x{result.offset:04X}")
    print_result(result)


@app.command()
def channels(
    image: str = typer.Argument(..., help="Path to a saved BF-888 codeplug"),
) -> None:
    """Show the channel table of a saved BF-888 codeplug."""
    path = Path(image)
    if not path.exists():
        print_error(f"Image not found: {image}")
        raise typer.Exit(1)

    try:
        decoded = decode_channels(path.read_bytes())
    except (RadioError, ValueError) as e:
        print_error(f"Cannot decode channels: {e}")
        raise typer.Exit(1)

    table = Table(title=f"Channels: {path.name}")
    table.add_column("#", style="cyan")
    table.add_column("RX MHz", style="green")
    table.add_column("TX MHz", style="green")
    table.add_column("RX Tone")
    table.add_column("TX Tone")
    table.add_column("Flags")

    for ch in decoded:
        if ch.empty:
            table.add_row(str(ch.index + 1), "[dim]empty[/dim]", "", "", "", "")
            continue
        table.add_row(
            str(ch.index + 1),
            f"{ch.rx_freq_hz / 1e6:.5f}",
            f"{ch.tx_freq_hz / 1e6:.5f}" if ch.tx_freq_hz is not None else "-",
            f"0x{ch.rx_tone:04X}" if ch.rx_tone is not None else "-",
            f"0x{ch.tx_tone:04X}" if ch.tx_tone is not None else "-",
            f"0x{ch.flags:02X}",
        )

    console.print(table)


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
