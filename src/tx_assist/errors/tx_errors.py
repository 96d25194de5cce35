"""Transaction lifecycle errors: preflight, provider and wallet failures."""

from __future__ import annotations

from tx_assist.errors.assist_errors import AssistError


class ValidationError(AssistError):
    """A preflight check rejected the transaction before any network call."""

    def __init__(self, message: str, *, event_code: str, code: str = "validation-error") -> None:
        super().__init__(message, event_code=event_code, code=code)


class InsufficientFundsError(ValidationError):
    """Account balance does not strictly exceed the total transaction cost."""

    def __init__(
        self,
        message: str = "User has insufficient funds to complete transaction",
        *,
        total_cost: int = 0,
        balance: int = 0,
    ) -> None:
        super().__init__(message, event_code="nsfFail", code="insufficient-funds")
        self.total_cost = total_cost
        self.balance = balance


class ProviderUnavailableError(AssistError):
    """A provider read (balance, nonce, gas, receipt) failed."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        super().__init__(message, event_code="txSendFail", code="provider-unavailable")
        self.operation = operation


class UserRejectionError(AssistError):
    """The signer declined, or the wallet failed for an unrecognised reason."""

    def __init__(self, message: str = "User denied transaction signature") -> None:
        super().__init__(message, event_code="txSendFail", code="user-rejected")


class UnderpricedError(AssistError):
    """The provider refused the transaction because its gas price is too low."""

    def __init__(self, message: str = "Transaction is underpriced") -> None:
        super().__init__(message, event_code="txUnderpriced", code="underpriced")


class SignRejectedError(AssistError):
    """The signer declined, or failed to sign, a message."""

    def __init__(self, message: str = "User denied message signature") -> None:
        super().__init__(message, event_code="signReject", code="sign-rejected")


class InvalidTransitionError(AssistError):
    """A queue mutation would move a record backwards or out of a terminal state."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid-transition")


class RpcError(AssistError):
    """Error object returned by a JSON-RPC endpoint.

    Carries the structured ``rpc_code`` so classification does not depend on
    message text alone.
    """

    def __init__(self, message: str, *, rpc_code: int | None = None, data: object = None) -> None:
        super().__init__(message, code="rpc-error")
        self.rpc_code = rpc_code
        self.data = data
