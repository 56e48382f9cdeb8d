"""Error taxonomy for load-path resolution.

Hard failures derive from OwlResolverError and abort startup. A resolution
miss is never an exception: resolvers return None and the host falls through
to its own default resolution.
"""

from __future__ import annotations


class OwlResolverError(Exception):
    """Base class for unrecoverable resolver failures."""


class ConfigurationError(OwlResolverError):
    """Gemfile or Gemfile.lock is missing or unreadable, or settings are invalid."""


class ExternalToolError(OwlResolverError):
    """The load-path enumeration command failed."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class CacheCorruptError(OwlResolverError):
    """The cache file did not decode into a valid load-path record."""


class StaleLockWarning(UserWarning):
    """Gemfile is newer than Gemfile.lock. Advisory only."""


__all__ = [
    "OwlResolverError",
    "ConfigurationError",
    "ExternalToolError",
    "CacheCorruptError",
    "StaleLockWarning",
]
