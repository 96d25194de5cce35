"""Protocol adapter base: one notification contract for every wallet style.

Whatever the wallet's calling convention, a submission reports back through
exactly three callbacks: ``on_hash``, ``on_receipt`` and ``on_error``.
"""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from tx_assist.errors.assist_errors import AssistError

logger = logging.getLogger(__name__)


class Submission:
    """A transaction handed to the wallet, with its notification callbacks.

    Callbacks are registered first, then ``start()`` hands the transaction to
    the wallet. Registration methods return ``self`` so they can be chained.
    """

    def __init__(self, runner: Callable[[Submission], Coroutine[Any, Any, None]]) -> None:
        self._runner = runner
        self._hash_cbs: list[Callable[[str], None]] = []
        self._receipt_cbs: list[Callable[[dict[str, Any]], None]] = []
        self._error_cbs: list[Callable[[AssistError], None]] = []
        self._task: asyncio.Task[None] | None = None

    def on_hash(self, cb: Callable[[str], None]) -> Submission:
        self._hash_cbs.append(cb)
        return self

    def on_receipt(self, cb: Callable[[dict[str, Any]], None]) -> Submission:
        self._receipt_cbs.append(cb)
        return self

    def on_error(self, cb: Callable[[AssistError], None]) -> Submission:
        self._error_cbs.append(cb)
        return self

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> asyncio.Task[None]:
        """Begin the submission on the running loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._runner(self))
        return self._task

    def cancel(self) -> None:
        """Stop watching. A broadcast transaction cannot be withdrawn."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    # -- emission (used by adapters) --

    def emit_hash(self, tx_hash: str) -> None:
        for cb in list(self._hash_cbs):
            self._invoke(cb, tx_hash)

    def emit_receipt(self, receipt: dict[str, Any]) -> None:
        for cb in list(self._receipt_cbs):
            self._invoke(cb, receipt)

    def emit_error(self, error: AssistError) -> None:
        for cb in list(self._error_cbs):
            self._invoke(cb, error)

    @staticmethod
    def _invoke(cb: Callable[[Any], None], arg: Any) -> None:
        try:
            cb(arg)
        except Exception:
            logger.exception("Submission callback %r failed", cb)


class ProtocolAdapter(abc.ABC):
    """Normalizes a wallet calling convention into a ``Submission``."""

    def __init__(self) -> None:
        self._submissions: set[Submission] = set()

    def submit(
        self,
        send: Callable[[dict[str, Any]], Any],
        tx_params: dict[str, Any],
    ) -> Submission:
        """Prepare a submission of *tx_params* through *send*.

        Nothing reaches the wallet until ``Submission.start()`` is called.
        """
        params = dict(tx_params)

        async def _runner(submission: Submission) -> None:
            try:
                await self._run(submission, send, params)
            finally:
                self._submissions.discard(submission)

        submission = Submission(_runner)
        self._submissions.add(submission)
        return submission

    @property
    def active(self) -> int:
        """Submissions still being watched."""
        return len(self._submissions)

    async def aclose(self) -> None:
        """Cancel every watch still running."""
        tasks = [s.task for s in self._submissions if s.task is not None]
        for submission in list(self._submissions):
            submission.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._submissions.clear()

    @abc.abstractmethod
    async def _run(
        self,
        submission: Submission,
        send: Callable[[dict[str, Any]], Any],
        params: dict[str, Any],
    ) -> None:
        """Drive one submission, reporting through ``submission.emit_*``."""


async def resolve(value: Any) -> Any:
    """Await *value* if it is awaitable, else return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value

