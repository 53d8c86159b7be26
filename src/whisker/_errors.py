"""Whisker error hierarchy.

All whisker-specific errors inherit from WhiskerError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from whisker.binding import ListenAttempt


class WhiskerError(Exception):
    """Base error for all whisker operations."""


class ConfigError(WhiskerError):
    """Invalid or missing configuration."""


class SourceReadError(WhiskerError):
    """The watched file could not be read or rendered."""


class ChannelDeliveryError(WhiskerError):
    """A change signal could not be pushed to a viewer channel."""


class BindError(WhiskerError):
    """No port could be claimed for the preview server.

    Attributes:
        attempts: Every listen attempt made before giving up.

    """

    def __init__(self, message: str, attempts: tuple[ListenAttempt, ...] = ()) -> None:
        super().__init__(message)
        self.attempts = attempts
