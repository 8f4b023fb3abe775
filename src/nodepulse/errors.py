"""
Exception types shared by the collector and the hub.

SourceUnavailable and PublishFailure are recovered locally (next tick,
next reconnect). ProcessFatal is meant to end the process so a supervisor
can restart it.
"""

from __future__ import annotations


class NodePulseError(Exception):
    """Base class for everything nodepulse raises on purpose."""


class ConfigError(NodePulseError):
    """Raised when a configuration value is missing or malformed."""


class SourceUnavailable(NodePulseError):
    """A single metrics call against the node failed (network, auth or decode)."""

    def __init__(self, method: str, target: str, cause: BaseException):
        self.method = method
        self.target = target
        self.cause = cause
        super().__init__(f"{method} on {target} failed: {cause}")


class PublishFailure(NodePulseError):
    """A hub target could not be reached or dropped the connection."""

    def __init__(self, url: str, cause: BaseException):
        self.url = url
        self.cause = cause
        super().__init__(f"publish to {url} failed: {cause}")


class ProcessFatal(NodePulseError):
    """Unrecoverable failure outside the poll cycle. The process should exit non-zero."""
