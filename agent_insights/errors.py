"""Exceptions surfaced to callers of the ingestion core."""
from __future__ import annotations


class DiscoveryError(OSError):
    """The log root exists but cannot be listed."""

    def __init__(self, root: str, reason: str = "") -> None:
        self.root = root
        self.reason = reason
        message = f"Cannot read log root {root}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
