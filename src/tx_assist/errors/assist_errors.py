"""AssistError: base exception class for all tx-assist errors."""

from __future__ import annotations


class AssistError(Exception):
    """Base error for all transaction orchestration failures.

    Attributes:
        message: Human-readable error description.
        event_code: Notification event code attached to this failure, if any.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        event_code: str | None = None,
        code: str = "assist-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.event_code = event_code
        self.code = code
