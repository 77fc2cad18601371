"""Exceptions raised by the rackwatch core and its stores.

All exceptions inherit from RackwatchError and carry an optional
troubleshooting hint for operators.
"""

from typing import Optional


class RackwatchError(Exception):
    """Base exception for rackwatch errors.

    Attributes:
        message: Human-readable error message.
        hint: Optional troubleshooting hint.
        exit_code: Suggested exit code for the CLI.
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.hint = hint
        if exit_code is not None:
            self.exit_code = exit_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional hint."""
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


class StoreError(RackwatchError):
    """A store operation failed.

    Raised for a single failed read or write. The alert lifecycle counts
    these per alert and keeps going.
    """

    exit_code: int = 2


class StoreUnavailableError(StoreError):
    """A store cannot be reached or its backing data cannot be read.

    This typically occurs when:
    - The thresholds or maintenance file is missing or unreadable
    - The alert table file is corrupted
    - The backing database is down
    """

    def __init__(
        self,
        message: str = "Store is unavailable",
        hint: Optional[str] = None,
    ) -> None:
        if hint is None:
            hint = (
                "Check that the configured data files exist and are readable. "
                "The cycle is retried from scratch on the next poll."
            )
        super().__init__(message=message, hint=hint)


class CycleAbortedError(RackwatchError):
    """A polling cycle was abandoned before any alert was written."""

    exit_code: int = 2

    def __init__(self, stage: str, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(
            message=f"Cycle aborted while {stage}: {cause}",
            hint="No alerts were modified. The next cycle starts from a fresh snapshot.",
        )
