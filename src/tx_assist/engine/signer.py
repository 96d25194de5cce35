"""Message signing with the same notifications as transactions.

Flow for one request::

    signRequest            (reminder timer armed)
    signConfirmReminder    if the wallet is still silent when the timer fires
    signConfirm            signature returned, callback(None, signature)
    signReject             wallet refused or failed, callback(error, None)

Legacy wallets are called as ``sign(address, message)``, modern ones as
``sign(message, address)``. Either may return the signature or an awaitable.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from tx_assist.adapters.base import resolve
from tx_assist.adapters.errors import extract_message
from tx_assist.config.settings import ProviderConvention
from tx_assist.errors.tx_errors import SignRejectedError
from tx_assist.notifications.events import AssistEvent, CategoryCode, EventCode

if TYPE_CHECKING:
    from collections.abc import Callable

    from tx_assist.engine.session import Session
    from tx_assist.metrics.collector import AssistMetrics
    from tx_assist.monitor.lifecycle import LifecycleMonitor
    from tx_assist.notifications.service import Notifier

logger = logging.getLogger(__name__)


class MessageSigner:
    """Asks the wallet to sign a message and reports progress to the notifier."""

    def __init__(
        self,
        session: Session,
        monitor: LifecycleMonitor,
        notifier: Notifier,
        *,
        convention: ProviderConvention = ProviderConvention.LEGACY,
        metrics: AssistMetrics | None = None,
    ) -> None:
        self._session = session
        self._monitor = monitor
        self._notifier = notifier
        self._convention = convention
        self._metrics = metrics

    async def sign(
        self,
        message: str,
        sign: Callable[..., Any],
        *,
        address: str | None = None,
        callback: Callable[[BaseException | None, Any], None] | None = None,
        convention: ProviderConvention | None = None,
    ) -> str:
        """Request a signature of *message* from *address*.

        Args:
            message: Text or hex data to sign.
            sign: Wallet sign function.
            address: Signing account. Defaults to the session's active account.
            callback: Optional error-first ``callback(error, signature)``.
            convention: Overrides the configured calling convention of *sign*.

        Returns:
            The signature.

        Raises:
            SignRejectedError: The wallet declined or failed.
            ProviderUnavailableError: No account could be resolved.
        """
        address = address or await self._session.resolve_address()
        convention = convention or self._convention
        request_id = uuid.uuid4().hex

        self._emit(EventCode.SIGN_REQUEST, message)
        self._monitor.arm_sign_reminder(
            request_id, lambda _id: self._emit(EventCode.SIGN_CONFIRM_REMINDER, message)
        )

        try:
            if convention == ProviderConvention.MODERN:
                signature = await resolve(sign(message, address))
            else:
                signature = await resolve(sign(address, message))
        except Exception as exc:
            error = SignRejectedError(extract_message(exc))
            logger.info("Signature request from %s rejected: %s", address, error.message)
            self._emit(EventCode.SIGN_REJECT, None, reason=error.message)
            self._invoke(callback, error, None)
            raise error from exc
        finally:
            self._monitor.cancel_sign_reminder(request_id)

        self._invoke(callback, None, signature)
        self._emit(EventCode.SIGN_CONFIRM, message, result=signature)
        return signature

    def _emit(
        self,
        code: EventCode,
        message: str | None,
        *,
        reason: str | None = None,
        result: str | None = None,
    ) -> None:
        event = AssistEvent(
            event_code=code,
            category_code=CategoryCode.ACTIVE_SIGN,
            wallet=self._session.wallet_snapshot(),
            reason=reason,
            message_to_sign=message,
            result=result,
        )
        try:
            self._notifier.publish(event)
        except Exception:
            logger.exception("Notifier failed on %s", code)
        if self._metrics:
            self._metrics.record_event(code)

    @staticmethod
    def _invoke(
        callback: Callable[[BaseException | None, Any], None] | None,
        error: BaseException | None,
        result: Any,
    ) -> None:
        if callback is None:
            return
        try:
            callback(error, result)
        except Exception:
            logger.exception("Signature callback raised")
