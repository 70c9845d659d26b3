"""
Error types raised by the matching pipeline and their process exit codes.
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    # Same value argparse uses for usage errors.
    CONFIGURATION_ERROR = 2
    MISSING_INPUT = 3
    EMPTY_SELECTION = 4


class MatchingError(Exception):
    """Base class for failures that abort the whole run."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class ConfigurationError(MatchingError):
    """Bad, missing or conflicting options."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class PairListError(ConfigurationError):
    """Malformed or out-of-range entry in a predefined pair list."""


class MissingInputError(MatchingError):
    """A required input artifact is absent or unreadable."""

    exit_code = ExitCode.MISSING_INPUT


class EmptySelectionError(MatchingError):
    """Pair selection produced nothing to match."""

    exit_code = ExitCode.EMPTY_SELECTION


__all__ = [
    "ExitCode",
    "MatchingError",
    "ConfigurationError",
    "PairListError",
    "MissingInputError",
    "EmptySelectionError",
]
