"""
Core module for Codeplug Flasher.

This module provides the single source of truth for:
- Channel table encoding and verification (channels.py)
- Session handling (session.py)
- Download/upload/verify workflows (scenarios.py)
- Write gating / confirmation (safety.py)
- Result objects (results.py)
- Serial-backed actions used by the CLI (actions.py)
"""

from .channels import (
    Channel,
    encode_lbcd_frequency,
    decode_lbcd_frequency,
    synthesize_full_codeplug,
    verify_channel_blocks,
    verify_written_region,
    decode_channels,
)
from .session import SessionRunner, radio_session, make_session_runner
from .scenarios import (
    run_download_scenario,
    run_upload_scenario,
    run_bf888_verify_scenario,
    run_kt8900_verify_scenario,
    run_verify_scenario,
)
from .safety import SafetyContext, require_write_permission, WritePermissionError
from .results import TransferResult
from .actions import download_codeplug, upload_codeplug, verify_codeplug

__all__ = [
    # Channels
    "Channel",
    "encode_lbcd_frequency",
    "decode_lbcd_frequency",
    "synthesize_full_codeplug",
    "verify_channel_blocks",
    "verify_written_region",
    "decode_channels",
    # Sessions
    "SessionRunner",
    "radio_session",
    "make_session_runner",
    # Scenarios
    "run_download_scenario",
    "run_upload_scenario",
    "run_bf888_verify_scenario",
    "run_kt8900_verify_scenario",
    "run_verify_scenario",
    # Safety
    "SafetyContext",
    "require_write_permission",
    "WritePermissionError",
    # Results
    "TransferResult",
    # Actions
    "download_codeplug",
    "upload_codeplug",
    "verify_codeplug",
]
