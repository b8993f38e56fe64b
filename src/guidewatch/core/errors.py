"""Exception types raised by guidewatch."""

from __future__ import annotations


class GuidewatchError(Exception):
    """Base class for all guidewatch errors."""


class ConfigurationError(GuidewatchError, ValueError):
    """Raised at construction time when a rule set or config is invalid."""


class SessionLoadError(GuidewatchError):
    """Raised when a session-context file cannot be read or parsed."""
