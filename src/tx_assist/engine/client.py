"""AssistEngine: central client owning the provider, notifier and dispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from tx_assist.config.settings import ProviderConvention
from tx_assist.notifications.events import CategoryCode

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tx_assist.adapters.base import ProtocolAdapter
    from tx_assist.config.settings import AppConfig
    from tx_assist.engine.dispatcher import DispatchResult, TransactionDispatcher
    from tx_assist.engine.queue import TransactionQueue
    from tx_assist.engine.session import Session
    from tx_assist.engine.signer import MessageSigner
    from tx_assist.metrics.collector import AssistMetrics
    from tx_assist.monitor.timers import Scheduler
    from tx_assist.notifications.service import NotificationService, Notifier
    from tx_assist.notifications.webhook import WebhookNotifier
    from tx_assist.provider.base import Provider

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class AssistEngine:
    """Central engine that wires the components together.

    Every collaborator can be injected; whatever is left out is built from
    ``config`` in ``initialize()`` and owned (and closed) by the engine.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        provider: Provider | None = None,
        notifier: Notifier | None = None,
        scheduler: Scheduler | None = None,
        metrics: AssistMetrics | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            provider: Read-side provider. Defaults to a ``JsonRpcProvider``.
            notifier: Event sink. Defaults to a ``NotificationService``.
            scheduler: Time source. Defaults to the asyncio loop clock.
            metrics: Prometheus metrics. Built when ``config.metrics.enabled``.
        """
        self._config = config
        self._initialized = False

        self._provider = provider
        self._notifier = notifier
        self._scheduler = scheduler
        self._metrics = metrics
        self._owns_provider = provider is None

        self._session: Session | None = None
        self._queue: TransactionQueue | None = None
        self._adapter: ProtocolAdapter | None = None
        self._dispatcher: TransactionDispatcher | None = None
        self._signer: MessageSigner | None = None
        self._notifications: NotificationService | None = None
        self._webhook: WebhookNotifier | None = None

    async def initialize(self) -> None:
        """Connect the provider and start notification delivery.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from tx_assist.adapters import create_adapter
        from tx_assist.engine.dispatcher import TransactionDispatcher
        from tx_assist.engine.queue import TransactionQueue
        from tx_assist.engine.session import Session
        from tx_assist.engine.signer import MessageSigner
        from tx_assist.monitor.lifecycle import LifecycleMonitor
        from tx_assist.monitor.timers import AsyncioScheduler

        if self._provider is None:
            from tx_assist.provider.jsonrpc import JsonRpcProvider

            jsonrpc = JsonRpcProvider(self._config.provider)
            await jsonrpc.connect()
            self._provider = jsonrpc

        if self._notifier is None:
            from tx_assist.notifications.service import NotificationService

            self._notifications = NotificationService(buffer=self._config.notifications.buffer)
            if self._config.notifications.webhook_url:
                from tx_assist.notifications.webhook import WebhookConfig, WebhookNotifier

                self._webhook = WebhookNotifier(
                    WebhookConfig(
                        url=self._config.notifications.webhook_url,
                        token_value=self._config.notifications.webhook_token,
                    )
                )
                await self._webhook.start()
                self._notifications.add_sink("webhook", self._webhook.enqueue)
            await self._notifications.start()
            self._notifier = self._notifications

        if self._metrics is None and self._config.metrics.enabled:
            from tx_assist.metrics.collector import AssistMetrics

            self._metrics = AssistMetrics()

        if self._scheduler is None:
            self._scheduler = AsyncioScheduler()

        self._session = Session(config=self._config, provider=self._provider)
        self._queue = TransactionQueue()
        self._adapter = create_adapter(self._config, self._provider, self._scheduler)
        monitor = LifecycleMonitor(self._scheduler, self._config.timeouts)
        self._dispatcher = TransactionDispatcher(
            self._session,
            self._queue,
            self._adapter,
            monitor,
            self._notifier,
            metrics=self._metrics,
        )
        self._signer = MessageSigner(
            self._session,
            monitor,
            self._notifier,
            convention=self._config.provider.convention,
            metrics=self._metrics,
        )
        self._initialized = True

    async def close(self) -> None:
        """Stop timers and watches, then shut down owned services.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        if self._dispatcher is not None:
            await self._dispatcher.aclose()
            self._dispatcher = None
        self._adapter = None
        self._signer = None

        # Stop the exchange before its sinks
        if self._notifications is not None:
            await self._notifications.stop()
            if self._notifier is self._notifications:
                self._notifier = None
            self._notifications = None
        if self._webhook is not None:
            await self._webhook.stop()
            self._webhook = None

        if self._owns_provider and self._provider is not None:
            close = getattr(self._provider, "close", None)
            if close is not None:
                await close()
            self._provider = None

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def session(self) -> Session:
        """Get the wallet session."""
        if self._session is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._session

    @property
    def queue(self) -> TransactionQueue:
        """Get the in-flight transaction queue."""
        if self._queue is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._queue

    @property
    def dispatcher(self) -> TransactionDispatcher:
        """Get the transaction dispatcher."""
        if self._dispatcher is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._dispatcher

    @property
    def signer(self) -> MessageSigner:
        """Get the message signer."""
        if self._signer is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._signer

    @property
    def notifications(self) -> NotificationService | None:
        """The engine-owned notification service, if one was built."""
        return self._notifications

    @property
    def metrics(self) -> AssistMetrics | None:
        """Get the Prometheus metrics, if enabled."""
        return self._metrics

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def send_transaction(
        self,
        tx_params: dict[str, Any],
        send: Callable[[dict[str, Any]], Any] | None = None,
        callback: Callable[[BaseException | None, Any], None] | None = None,
    ) -> DispatchResult:
        """Send a plain value transfer.

        Without *send*, the provider's own ``send_transaction`` is used.
        """
        if send is None:
            send = getattr(self.session.provider, "send_transaction", None)
            if send is None:
                msg = "Provider has no send_transaction; pass a send function"
                raise ValueError(msg)
        return await self.dispatcher.dispatch(
            CategoryCode.ACTIVE_TRANSACTION,
            tx_params,
            send,
            callback=callback,
        )

    async def send_contract_transaction(
        self,
        method_name: str,
        parameters: Sequence[Any],
        send: Callable[[dict[str, Any]], Any],
        tx_params: dict[str, Any] | None = None,
        callback: Callable[[BaseException | None, Any], None] | None = None,
    ) -> DispatchResult:
        """Send a contract method call through the method's own *send*."""
        from tx_assist.engine.queue import ContractMeta

        return await self.dispatcher.dispatch(
            CategoryCode.ACTIVE_CONTRACT,
            tx_params or {},
            send,
            callback=callback,
            contract_meta=ContractMeta(method_name=method_name, parameters=tuple(parameters)),
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def sign_message(
        self,
        message: str,
        address: str | None = None,
        sign: Callable[..., Any] | None = None,
        callback: Callable[[BaseException | None, Any], None] | None = None,
    ) -> str:
        """Ask the wallet to sign *message*.

        Without *sign*, the provider's own ``sign_message(address, message)``
        is used.
        """
        if sign is not None:
            return await self.signer.sign(message, sign, address=address, callback=callback)
        provider_sign = getattr(self.session.provider, "sign_message", None)
        if provider_sign is None:
            msg = "Provider has no sign_message; pass a sign function"
            raise ValueError(msg)
        return await self.signer.sign(
            message,
            provider_sign,
            address=address,
            callback=callback,
            convention=ProviderConvention.LEGACY,
        )

    # ------------------------------------------------------------------
    # Live watch channel
    # ------------------------------------------------------------------

    def set_socket_connection(self, connected: bool) -> None:
        """Record whether a live notification channel is up. Gates stall detection."""
        self.session.socket_connected = connected

    def get_state(self) -> dict[str, Any]:
        """Return a read-only snapshot of the session and queue."""
        session = self.session
        return {
            "accountAddress": session.account_address,
            "accountBalance": (
                None if session.account_balance is None else str(session.account_balance)
            ),
            "socketConnection": session.socket_connected,
            "transactionQueue": [r.snapshot() for r in self.queue],
        }
