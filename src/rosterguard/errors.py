# src/rosterguard/errors.py
from __future__ import annotations

from datetime import datetime, timezone


class RosterGuardError(Exception):
    """
    @brief
    Root of the structured exceptions raised at the I/O boundary.

    @details
    Schedule rule violations are never raised; they travel inside the
    validation result. These errors cover configuration, input and
    persistence failures and record where they were raised and what the
    operator can do about them.
    """

    def __init__(
        self, message: str, source: str | None = None, suggested_action: str | None = None
    ):
        super().__init__(message)
        self.message = message
        self.raised_at = datetime.now(timezone.utc)
        self.source = source or "unknown"
        self.suggested_action = suggested_action

    @property
    def error_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, str | None]:
        """Flat, JSON-ready view for logs and error files."""
        return {
            "type": self.error_type,
            "message": self.message,
            "source": self.source,
            "suggested_action": self.suggested_action,
            "raised_at": self.raised_at.isoformat(),
        }

    def __str__(self) -> str:
        text = f"[{self.error_type}] {self.message} (source={self.source})"
        if self.suggested_action:
            text += f" | action: {self.suggested_action}"
        return text


class ConfigError(RosterGuardError):
    """config.yaml is missing, unreadable or does not match the Config schema"""


class DataError(RosterGuardError):
    """Dataset bundle or stored result cannot be read, or an export failed"""


class ValidationError(RosterGuardError):
    """A validation report could not be persisted"""
