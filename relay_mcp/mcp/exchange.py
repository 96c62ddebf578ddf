"""
Server-to-client handle passed to every handler invocation.

An ``Exchange`` is bound to one session and one inbound call. It is valid
until the call completes; afterwards requests raise ``ConfigurationError`` and
log notifications are dropped.
"""

import asyncio
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from ..core.errors import ConfigurationError, MCPServerError
from ..core.models import (
    ClientCapabilities,
    CreateMessageRequest,
    CreateMessageResult,
    Implementation,
    LoggingLevel,
    LoggingMessageNotification,
    McpMethod,
    ProgressNotification,
)
from ..logging import get_logger

logger = get_logger(__name__)


class Exchange:
    """Asynchronous exchange, used directly by AsyncHandler functions"""

    def __init__(self, session, request_id: Any = None):
        self._session = session
        self.request_id = request_id
        # Set on session teardown or client cancellation of this call
        self.cancelled = asyncio.Event()
        self._released = False

    @property
    def session_id(self) -> str:
        return self._session.id

    @property
    def client_capabilities(self) -> ClientCapabilities:
        return self._session.client_capabilities

    @property
    def client_info(self) -> Optional[Implementation]:
        return self._session.client_info

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()

    @property
    def released(self) -> bool:
        return self._released

    async def create_message(self, request: Union[CreateMessageRequest, Dict[str, Any]],
                             timeout: Optional[float] = None) -> CreateMessageResult:
        """
        Ask the client to sample a model completion

        Suspends until the client replies or the timeout fires. The caller is
        responsible for checking ``client_capabilities.sampling`` first.

        Raises:
            PeerTimeoutError: no reply within the timeout
            PeerError: the client answered with a JSON-RPC error
            SessionClosedError: the session was torn down while waiting
        """
        self._ensure_active()
        if isinstance(request, dict):
            request = CreateMessageRequest.model_validate(request)

        result = await self._session.send_request(
            McpMethod.SAMPLING_CREATE_MESSAGE, request.to_wire(), timeout=timeout
        )
        try:
            return CreateMessageResult.model_validate(result)
        except ValidationError as e:
            raise MCPServerError("Malformed sampling result from client", data=str(e)) from e

    async def send_logging_notification(self, level: Union[LoggingLevel, str, LoggingMessageNotification],
                                        logger_name: Optional[str] = None, data: Any = None) -> None:
        """Queue a notifications/message for the client; never blocks or raises"""
        self.post_logging_notification(level, logger_name, data)

    async def send_progress_notification(self, progress_token: Union[str, int], progress: float,
                                         total: Optional[float] = None,
                                         message: Optional[str] = None) -> None:
        """Queue a notifications/progress for the client; never blocks or raises"""
        self.post_progress_notification(progress_token, progress, total, message)

    def post_logging_notification(self, level: Union[LoggingLevel, str, LoggingMessageNotification],
                                  logger_name: Optional[str] = None, data: Any = None) -> None:
        """Loop-side body of send_logging_notification"""
        if isinstance(level, LoggingMessageNotification):
            notification = level
        else:
            try:
                notification = LoggingMessageNotification(level=level, logger=logger_name, data=data)
            except ValidationError as e:
                logger.warning(f"Dropping malformed log notification ({e.error_count()} error(s)): {data!r}")
                return

        if self._released:
            logger.warning(f"Dropping log notification from released exchange: {notification.data!r}")
            return
        self._session.post_log_message(notification)

    def post_progress_notification(self, progress_token: Union[str, int], progress: float,
                                   total: Optional[float] = None, message: Optional[str] = None) -> None:
        """Loop-side body of send_progress_notification"""
        if self._released:
            return
        try:
            notification = ProgressNotification(
                progress_token=progress_token, progress=progress, total=total, message=message
            )
        except ValidationError as e:
            logger.warning(f"Dropping malformed progress notification ({e.error_count()} error(s))")
            return
        self._session.post_notification(McpMethod.NOTIFICATION_PROGRESS, notification.to_wire())

    def cancel(self) -> None:
        self.cancelled.set()

    def release(self) -> None:
        self._released = True

    def _ensure_active(self) -> None:
        if self._released:
            raise ConfigurationError("Exchange used after its call completed")


class SyncExchange:
    """
    Blocking facade over an Exchange for SyncHandler functions

    Sync handlers run in a worker thread. Requests are scheduled on the
    session's event loop and block the worker until the reply arrives;
    notifications are handed to the loop and return at once.
    """

    def __init__(self, exchange: Exchange, loop: asyncio.AbstractEventLoop):
        self._exchange = exchange
        self._loop = loop

    @property
    def exchange(self) -> Exchange:
        return self._exchange

    @property
    def session_id(self) -> str:
        return self._exchange.session_id

    @property
    def client_capabilities(self) -> ClientCapabilities:
        return self._exchange.client_capabilities

    @property
    def client_info(self) -> Optional[Implementation]:
        return self._exchange.client_info

    @property
    def is_cancelled(self) -> bool:
        return self._exchange.is_cancelled

    def create_message(self, request: Union[CreateMessageRequest, Dict[str, Any]],
                       timeout: Optional[float] = None) -> CreateMessageResult:
        return self._run(self._exchange.create_message(request, timeout=timeout))

    def send_logging_notification(self, level: Union[LoggingLevel, str, LoggingMessageNotification],
                                  logger_name: Optional[str] = None, data: Any = None) -> None:
        self._loop.call_soon_threadsafe(self._exchange.post_logging_notification, level, logger_name, data)

    def send_progress_notification(self, progress_token: Union[str, int], progress: float,
                                   total: Optional[float] = None,
                                   message: Optional[str] = None) -> None:
        self._loop.call_soon_threadsafe(self._exchange.post_progress_notification,
                                        progress_token, progress, total, message)

    def _run(self, coro):
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()
