"""Error taxonomy.

Only ``RevisionResolutionError`` and ``ConfigurationError`` ever reach a
caller. ``SourceParseError`` becomes a snapshot diagnostic and
``CacheInconsistencyError`` is recovered by rebuilding the snapshot.
"""

from __future__ import annotations


class RiskflowError(Exception):
    """Base exception for all git-riskflow errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class SourceParseError(RiskflowError):
    """A single file could not be parsed."""

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"Cannot parse {file_path}: {reason}", {"file": file_path})
        self.file_path = file_path
        self.reason = reason


class RevisionResolutionError(RiskflowError):
    """A revision is missing or cannot be read."""

    def __init__(self, revision: str, reason: str = "") -> None:
        message = f"Cannot resolve revision: {revision}"
        super().__init__(message, {"reason": reason} if reason else None)
        self.revision = revision


class ConfigurationError(RiskflowError):
    """Malformed policy rules or settings."""


class CacheInconsistencyError(RiskflowError):
    """A cached snapshot does not match its recorded schema or digest."""
