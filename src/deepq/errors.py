"""Exception hierarchy for deepq.

Expected conditions (e.g. a replay buffer that is still warming up) are
recoverable and handled inline by the training loop.  Structural
corruption (bad observation shapes, non-finite values) always
propagates to the caller.
"""

from __future__ import annotations


class DQNError(Exception):
    """Base class for all deepq errors."""


class InsufficientDataError(DQNError):
    """Raised when a replay buffer is sampled before it holds enough data."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Cannot sample {requested} transitions from a buffer holding {available}"
        )
        self.requested = requested
        self.available = available


class EnvAdapterError(DQNError):
    """Raised when an environment adapter produces malformed output.

    Covers observation shape mismatches, non-finite observations or
    rewards, and protocol misuse such as stepping before ``reset()``.
    Fatal for the current episode.
    """


class NumericInstabilityError(DQNError):
    """Raised when the loss or the online parameters become non-finite."""

    def __init__(self, message: str, *, update_step: int | None = None) -> None:
        super().__init__(message)
        self.update_step = update_step


class ConfigError(DQNError, ValueError):
    """Raised for invalid configuration values."""
