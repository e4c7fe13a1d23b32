"""
Safety context and write gating for radio operations.

Centralizes the confirmation rules every codeplug write must pass.
"""

import sys
from dataclasses import dataclass
from typing import Optional, Callable

# Confirmation token required for non-interactive writes
CONFIRMATION_TOKEN = "WRITE"


class WritePermissionError(Exception):
    """
    Raised when a write operation is not permitted.

    Attributes:
        reason: Human-readable explanation of why write was denied
        details: Additional context (model, bytes, etc.)
    """
    def __init__(self, reason: str, details: Optional[dict] = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


@dataclass
class SafetyContext:
    """
    Information needed to decide whether a write may proceed.

    Attributes:
        write_enabled: Whether the --write flag was provided
        confirmation_token: For non-interactive mode, must match CONFIRMATION_TOKEN
        interactive: Whether the user can be prompted
        model: Target radio model name
        dry_run: Writes are logged, not transmitted
        prompt_confirmation: Prompt function used in interactive mode
    """
    write_enabled: bool = False
    confirmation_token: Optional[str] = None
    interactive: bool = True
    model: str = ""
    dry_run: bool = False
    prompt_confirmation: Optional[Callable[[str], str]] = None

    def to_details_dict(self, bytes_length: int = 0) -> dict:
        """Create a details dictionary for display."""
        return {
            "model": self.model or "Unknown",
            "bytes_length": bytes_length,
            "dry_run": self.dry_run,
        }


def require_write_permission(ctx: SafetyContext, bytes_length: int = 0) -> None:
    """
    Enforce write permission rules.

    Rules enforced:
    1. Dry-run: always allowed (nothing is transmitted)
    2. Write not enabled: denied with instructions
    3. Confirmation token present: must match exactly
    4. Interactive: prompt user for the token

    Raises:
        WritePermissionError: If write is not permitted
    """
    details = ctx.to_details_dict(bytes_length)

    if ctx.dry_run:
        return

    if not ctx.write_enabled:
        raise WritePermissionError(
            "Write operation requires explicit permission. Use --write flag.",
            details=details,
        )

    if ctx.confirmation_token is not None:
        if ctx.confirmation_token.strip().upper() != CONFIRMATION_TOKEN:
            raise WritePermissionError(
                f"Confirmation token mismatch. Expected '{CONFIRMATION_TOKEN}'.",
                details=details,
            )
        return

    if ctx.interactive and ctx.prompt_confirmation:
        user_input = ctx.prompt_confirmation(
            f"Type '{CONFIRMATION_TOKEN}' to proceed, or anything else to abort"
        )
        if user_input.strip().upper() != CONFIRMATION_TOKEN:
            raise WritePermissionError(
                "Confirmation failed. Write aborted by user.",
                details=details,
            )
        return

    raise WritePermissionError(
        f"Non-interactive mode requires --confirm {CONFIRMATION_TOKEN}.",
        details=details,
    )


def create_cli_safety_context(
    write_flag: bool,
    model: str = "",
    dry_run: bool = False,
    confirmation_token: Optional[str] = None,
    prompt_confirmation: Optional[Callable[[str], str]] = None,
) -> SafetyContext:
    """
    Create a SafetyContext configured for CLI usage.

    Interactive prompting is only used on a TTY without a token.
    """
    interactive = sys.stdin.isatty() and confirmation_token is None

    return SafetyContext(
        write_enabled=write_flag,
        confirmation_token=confirmation_token,
        interactive=interactive,
        model=model,
        dry_run=dry_run,
        prompt_confirmation=prompt_confirmation,
    )
