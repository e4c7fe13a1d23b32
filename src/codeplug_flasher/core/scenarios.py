"""
Download, upload and write-verify workflows built on the driver contract.

Every scenario takes a SessionRunner, so it never touches a backend or a
model-specific driver API directly.
"""

import logging
from typing import Optional, Union

from codeplug_flasher.models import RadioModel, parse_model
from codeplug_flasher.protocol.driver import ProgressCallback
from codeplug_flasher.protocol.errors import UnsupportedModelError
from codeplug_flasher.protocol.kt8900 import UPLOAD_MEM_SIZE

from .channels import synthesize_full_codeplug, verify_channel_blocks, verify_written_region
from .session import SessionRunner

logger = logging.getLogger(__name__)


def run_download_scenario(
    run_session: SessionRunner,
    progress_cb: Optional[ProgressCallback] = None,
) -> bytes:
    """Read the codeplug in one session."""
    logger.info("Downloading codeplug...")
    data = run_session(lambda driver: driver.read_codeplug(progress_cb))
    logger.info(f"Downloaded {len(data)} bytes.")
    return data


def run_upload_scenario(
    run_session: SessionRunner,
    data: bytes,
    progress_cb: Optional[ProgressCallback] = None,
) -> None:
    """Write ``data`` in one session."""
    logger.info("Uploading codeplug...")
    run_session(lambda driver: driver.write_codeplug(data, progress_cb))
    logger.info(f"Uploaded {len(data)} bytes.")


def run_bf888_verify_scenario(run_session: SessionRunner) -> bytes:
    """
    Program a synthesized channel table and check it reads back intact.

    Returns:
        The synthesized image that was written

    Raises:
        VerificationMismatchError: Naming the first channel that differs
    """
    logger.info("Reading current codeplug...")
    original = run_session(lambda driver: driver.read_codeplug())
    synthesized = synthesize_full_codeplug(original)

    logger.info("Writing synthesized codeplug...")
    run_session(lambda driver: driver.write_codeplug(synthesized))

    logger.info("Re-reading codeplug for verification...")
    read_back = run_session(lambda driver: driver.read_codeplug())

    verify_channel_blocks(synthesized, read_back)
    logger.info("Verification passed for all channels.")
    return synthesized


def run_kt8900_verify_scenario(run_session: SessionRunner) -> bytes:
    """
    Write the current codeplug back unchanged and check the upload region.

    Returns:
        The image that was read and written back

    Raises:
        VerificationMismatchError: Naming the first differing byte offset
    """
    logger.info("Reading current codeplug...")
    original = run_session(lambda driver: driver.read_codeplug())

    logger.info("Writing codeplug back for verification...")
    run_session(lambda driver: driver.write_codeplug(original))

    logger.info("Re-reading codeplug for verification...")
    read_back = run_session(lambda driver: driver.read_codeplug())

    verify_written_region(original, read_back, UPLOAD_MEM_SIZE)
    logger.info("Verification passed for written region.")
    return original


def run_verify_scenario(model: Union[str, RadioModel], run_session: SessionRunner) -> bytes:
    """Dispatch to the write-verify scenario for ``model``."""
    radio_model = parse_model(model)
    if radio_model is RadioModel.BF888:
        return run_bf888_verify_scenario(run_session)
    if radio_model is RadioModel.KT8900:
        return run_kt8900_verify_scenario(run_session)
    raise UnsupportedModelError(f"No verify scenario for radio model: {radio_model.value}")
