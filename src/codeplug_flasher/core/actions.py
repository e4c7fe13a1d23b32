"""
Core workflow actions for Codeplug Flasher.

Wires a serial backend, the model registry and the scenarios together and
reports outcomes as TransferResult objects for the CLI. Every action that
writes to a radio enforces the safety gate before any I/O.
"""

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Optional, Union

from codeplug_flasher.models import RadioModel, env_dry_run, get_model
from codeplug_flasher.protocol.driver import ProgressCallback
from codeplug_flasher.protocol.errors import RadioError, VerificationMismatchError
from codeplug_flasher.protocol.serial_backend import SerialBackend

from .results import TransferResult
from .safety import SafetyContext, require_write_permission
from .scenarios import run_download_scenario, run_upload_scenario, run_verify_scenario
from .session import BackendFactory, make_session_runner

logger = logging.getLogger(__name__)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "codeplug_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def _serial_factory(port: str, model: Union[str, RadioModel]) -> BackendFactory:
    config = get_model(model)
    return lambda: SerialBackend(port, baudrate=config.baud_rate, timeout=config.timeout)


def _effective_context(safety_ctx: SafetyContext, model: RadioModel) -> SafetyContext:
    # BF888_DRY_RUN puts the driver in dry-run mode regardless of the caller.
    if not safety_ctx.dry_run and env_dry_run(model):
        return replace(safety_ctx, dry_run=True)
    return safety_ctx


def download_codeplug(
    port: str,
    model: Union[str, RadioModel],
    backend_factory: Optional[BackendFactory] = None,
    settle_delay: Optional[float] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> TransferResult:
    """
    Download the codeplug from a radio.

    Args:
        port: Serial port path
        model: Model selector
        backend_factory: Backend source (defaults to a SerialBackend on ``port``)
        settle_delay: Pause after the session (defaults to the model's)
        progress_cb: Optional progress callback(read, total)

    Returns:
        TransferResult whose ``image`` holds the downloaded bytes
    """
    config = get_model(model)
    factory = backend_factory or _serial_factory(port, model)

    with _capture_logs() as logs:
        try:
            runner = make_session_runner(config.model, factory, settle_delay=settle_delay)
            data = run_download_scenario(runner, progress_cb)
        except RadioError as e:
            logger.error(f"Download failed: {e}")
            return TransferResult.failed("download", e, model=config.name, logs=list(logs))

    return TransferResult(ok=True, operation="download", model=config.name, image=data, logs=list(logs))


def upload_codeplug(
    port: str,
    model: Union[str, RadioModel],
    data: bytes,
    safety_ctx: SafetyContext,
    backend_factory: Optional[BackendFactory] = None,
    settle_delay: Optional[float] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> TransferResult:
    """
    Upload a codeplug image to a radio.

    Args:
        port: Serial port path
        model: Model selector
        data: Codeplug image
        safety_ctx: Safety context for gating; its ``dry_run`` selects dry-run
        backend_factory: Backend source (defaults to a SerialBackend on ``port``)
        settle_delay: Pause after the session (defaults to the model's)
        progress_cb: Optional progress callback(written, total)

    Raises:
        WritePermissionError: If safety check fails (no radio I/O happens)
    """
    config = get_model(model)
    factory = backend_factory or _serial_factory(port, model)
    ctx = _effective_context(safety_ctx, config.model)

    with _capture_logs() as logs:
        require_write_permission(ctx, bytes_length=len(data))

        try:
            runner = make_session_runner(config.model, factory, settle_delay=settle_delay, dry_run=ctx.dry_run)
            run_upload_scenario(runner, data, progress_cb)
        except RadioError as e:
            logger.error(f"Upload failed: {e}")
            return TransferResult.failed(
                "upload", e, model=config.name, dry_run=ctx.dry_run, logs=list(logs),
            )

    return TransferResult(
        ok=True,
        operation="upload",
        model=config.name,
        image=bytes(data),
        dry_run=ctx.dry_run,
        logs=list(logs),
    )


def verify_codeplug(
    port: str,
    model: Union[str, RadioModel],
    safety_ctx: SafetyContext,
    backend_factory: Optional[BackendFactory] = None,
    settle_delay: Optional[float] = None,
) -> TransferResult:
    """
    Run the write-then-readback verification for a radio.

    Dry-run mode is refused: a readback of blocks that were never sent
    proves nothing.

    Returns:
        TransferResult; on mismatch, ``channel`` (BF-888) and ``offset`` mark
        the first difference

    Raises:
        WritePermissionError: If safety check fails (no radio I/O happens)
    """
    config = get_model(model)
    factory = backend_factory or _serial_factory(port, model)
    ctx = _effective_context(safety_ctx, config.model)

    if ctx.dry_run:
        return TransferResult(
            ok=False,
            operation="verify",
            model=config.name,
            dry_run=True,
            errors=["Write-verify cannot run in dry-run mode"],
        )

    with _capture_logs() as logs:
        require_write_permission(ctx, bytes_length=config.upload_size)

        try:
            runner = make_session_runner(config.model, factory, settle_delay=settle_delay)
            written = run_verify_scenario(config.model, runner)
        except VerificationMismatchError as e:
            logger.error(f"Verification failed: {e}")
            return TransferResult.failed(
                "verify", e, model=config.name, channel=e.channel, offset=e.offset, logs=list(logs),
            )
        except RadioError as e:
            logger.error(f"Verification aborted: {e}")
            return TransferResult.failed("verify", e, model=config.name, logs=list(logs))

    return TransferResult(ok=True, operation="verify", model=config.name, image=written, logs=list(logs))
