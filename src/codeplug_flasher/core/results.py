"""
Outcome of one codeplug transfer, as shown by the CLI.

A TransferResult records which radio was involved, the image that moved
(download) or was sent (upload/verify), and, for a failed write-verify,
where the readback first diverged.
"""

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TransferResult:
    """
    Attributes:
        ok: Transfer and any readback check succeeded
        operation: "download", "upload" or "verify"
        model: Radio display name (e.g. "BF-888")
        image: Codeplug bytes read or written; never serialized
        dry_run: Blocks were logged instead of sent
        channel: Zero-based channel of the first BF-888 readback mismatch
        offset: Byte offset of the first readback mismatch
        errors: Messages of the failure, if any
        logs: Log lines captured while the transfer ran
    """
    ok: bool
    operation: str
    model: str = ""
    image: Optional[bytes] = None
    dry_run: bool = False
    channel: Optional[int] = None
    offset: Optional[int] = None
    errors: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)

    @property
    def bytes_len(self) -> int:
        return len(self.image) if self.image is not None else 0

    @property
    def sha256(self) -> Optional[str]:
        if self.image is None:
            return None
        return hashlib.sha256(self.image).hexdigest()

    def to_summary(self) -> str:
        status = "OK" if self.ok else "FAILED"
        mode = " (dry run)" if self.dry_run else ""
        lines = [f"[{status}] {self.operation} {self.model}{mode}".rstrip()]

        if self.image is not None:
            lines.append(f"  Image: {self.bytes_len:,} bytes, sha256 {self.sha256[:16]}...")
        if self.channel is not None:
            lines.append(f"  First bad channel: {self.channel + 1}")
        if self.offset is not None:
            lines.append(f"  First bad offset: 0x{self.offset:04X}")
        for err in self.errors:
            lines.append(f"  Error: {err}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe view; the image is reduced to its length and hash."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "model": self.model,
            "bytes_len": self.bytes_len,
            "sha256": self.sha256,
            "dry_run": self.dry_run,
            "channel": self.channel,
            "offset": self.offset,
            "errors": self.errors,
            "logs": self.logs,
        }

    @classmethod
    def failed(cls, operation: str, error: Exception, model: str = "", **kwargs) -> "TransferResult":
        return cls(ok=False, operation=operation, model=model, errors=[str(error)], **kwargs)
