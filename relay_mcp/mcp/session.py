"""
MCP session: handshake, inbound routing and teardown for one client connection.

Inbound frames are split in two lanes:
- replies to server-initiated requests go straight to the pending table
- requests and notifications are queued and accepted one at a time, in order

Sync handlers hold the accept lane until they return. Async handlers are
spawned as tasks so the next frame is accepted immediately; their responses
are sent whenever they settle.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set, Tuple, Union

from pydantic import ValidationError

from ..config import SessionConfig
from ..core.capabilities import CapabilitySet, Feature
from ..core.errors import (
    INTERNAL_ERROR,
    PARSE_ERROR,
    ConfigurationError,
    InvalidParamsError,
    InvalidRequestError,
    MCPServerError,
    MethodNotFoundError,
    NotInitializedError,
    PeerError,
    PeerTimeoutError,
    SessionClosedError,
    SessionCorruptedError,
)
from ..core.models import (
    JSONRPC_VERSION,
    CallToolParams,
    CancelledParams,
    ClientCapabilities,
    GetPromptParams,
    Implementation,
    InitializeParams,
    JSONRPCError,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    LoggingLevel,
    LoggingMessageNotification,
    McpMethod,
    ReadResourceParams,
    SetLevelParams,
    negotiate_protocol_version,
)
from ..logging import get_logger, with_session_id
from ..utils import fast_json as json
from .dispatcher import Dispatcher
from .exchange import Exchange
from .features import HandlerMode
from .pending import PendingRequestTable
from .registry import PromptRegistry, ResourceRegistry, ToolRegistry

_LIST_CHANGED_METHODS = {
    Feature.TOOLS: McpMethod.NOTIFICATION_TOOLS_LIST_CHANGED,
    Feature.RESOURCES: McpMethod.NOTIFICATION_RESOURCES_LIST_CHANGED,
    Feature.PROMPTS: McpMethod.NOTIFICATION_PROMPTS_LIST_CHANGED,
}


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    TERMINATING = "terminating"
    CLOSED = "closed"


_TRANSITIONS = {
    SessionState.UNINITIALIZED: {SessionState.NEGOTIATING, SessionState.TERMINATING},
    SessionState.NEGOTIATING: {SessionState.ACTIVE, SessionState.TERMINATING},
    SessionState.ACTIVE: {SessionState.TERMINATING},
    SessionState.TERMINATING: {SessionState.CLOSED},
    SessionState.CLOSED: set(),
}


class Session:
    """One negotiated MCP conversation over a transport"""

    def __init__(
        self,
        transport,
        server_info: Implementation,
        capabilities: CapabilitySet,
        tools: ToolRegistry,
        resources: ResourceRegistry,
        prompts: PromptRegistry,
        config: Optional[SessionConfig] = None,
        instructions: Optional[str] = None,
        on_close: Optional[Callable[["Session"], None]] = None,
    ):
        self.id = uuid.uuid4().hex
        self.transport = transport
        self.server_info = server_info
        self.capabilities = capabilities
        self.config = config or SessionConfig()
        self.instructions = instructions
        self.logger = get_logger(__name__)

        self.state = SessionState.UNINITIALIZED
        self.client_capabilities = ClientCapabilities()
        self.client_info: Optional[Implementation] = None
        self.protocol_version: Optional[str] = None
        self.log_level = LoggingLevel(self.config.default_log_level)

        self.dispatcher = Dispatcher(capabilities, tools, resources, prompts)
        self.pending = PendingRequestTable(self.id[:8], self.config.max_pending_requests)

        self._inbox: "asyncio.Queue[Optional[Dict[str, Any]]]" = asyncio.Queue()
        self._accept_task: Optional[asyncio.Task] = None
        self._inflight: Dict[Any, Tuple[asyncio.Task, Exchange]] = {}
        self._exchanges: Set[Exchange] = set()
        self._background: Set[asyncio.Task] = set()
        self._send_lock = asyncio.Lock()
        self._closed = asyncio.Event()
        self._on_close = on_close
        self._teardown: Optional[asyncio.Task] = None

        self._methods = {
            McpMethod.TOOLS_LIST: self._list_tools,
            McpMethod.RESOURCES_LIST: self._list_resources,
            McpMethod.RESOURCES_TEMPLATES_LIST: self._list_resource_templates,
            McpMethod.PROMPTS_LIST: self._list_prompts,
            McpMethod.LOGGING_SET_LEVEL: self._set_log_level,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "Session":
        """Start accepting queued frames; must run on the event loop"""
        if self._accept_task is None:
            self._accept_task = asyncio.create_task(self._accept_loop())
            self.logger.info(f"Session {self.id[:8]} started")
        return self

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise ConfigurationError(f"Illegal session transition {self.state.value} -> {target.value}")
        self.logger.debug(f"Session {self.id[:8]}: {self.state.value} -> {target.value}")
        self.state = target

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def close(self) -> None:
        """
        Tear the session down

        Pending outbound requests fail with SessionClosedError, in-flight
        handlers are offered cooperative cancellation and given
        ``shutdown_timeout_seconds`` to finish before they are cancelled.
        Results that arrive after teardown began are discarded.

        Teardown runs in a task owned by the session; cancelling a caller
        does not interrupt it, and every caller waits for the same task.
        """
        if self.state is SessionState.CLOSED:
            return
        if self._teardown is None:
            self._teardown = asyncio.create_task(self._tear_down())
        await asyncio.shield(self._teardown)

    async def _tear_down(self) -> None:
        with with_session_id(self.id):
            self._transition(SessionState.TERMINATING)
            self.logger.info(f"Session {self.id[:8]} terminating "
                             f"({len(self._inflight)} in flight, {len(self.pending)} pending)")
            try:
                self.pending.fail_all(SessionClosedError("Session closed"))
                for exchange in list(self._exchanges):
                    exchange.cancel()

                tasks = [task for task, _ in self._inflight.values()]
                if tasks:
                    _, stragglers = await asyncio.wait(tasks, timeout=self.config.shutdown_timeout_seconds)
                    for task in stragglers:
                        task.cancel()
                    if stragglers:
                        self.logger.warning(f"Cancelled {len(stragglers)} handlers still running at shutdown")
                        await asyncio.gather(*stragglers, return_exceptions=True)

                background = [task for task in self._background if not task.done()]
                for task in background:
                    task.cancel()
                if background:
                    await asyncio.gather(*background, return_exceptions=True)

                if self._accept_task is not None:
                    self._accept_task.cancel()
                    await asyncio.gather(self._accept_task, return_exceptions=True)

                try:
                    await asyncio.wait_for(self.transport.close(), self.config.shutdown_timeout_seconds)
                except asyncio.TimeoutError:
                    self.logger.warning("Transport did not close within the shutdown timeout")
                except Exception as e:
                    self.logger.warning(f"Error closing transport: {e}")
            finally:
                self._transition(SessionState.CLOSED)
                self._closed.set()
                self.logger.info(f"Session {self.id[:8]} closed")
                if self._on_close is not None:
                    self._on_close(self)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def receive(self, frame: Union[str, bytes, Dict[str, Any]]) -> None:
        """
        Entry point for the transport: hand over one inbound frame

        Raises:
            SessionClosedError: the session is already closed
        """
        if self.state is SessionState.CLOSED:
            raise SessionClosedError("Session is closed")

        if isinstance(frame, (str, bytes)):
            try:
                frame = json.loads(frame)
            except json.JSONDecodeError as e:
                await self._send_error(None, PARSE_ERROR, "Parse error", str(e))
                return

        if not isinstance(frame, dict):
            await self._send_error(None, InvalidRequestError.code, "Invalid request: expected a JSON object")
            return

        if "method" not in frame and ("result" in frame or "error" in frame):
            self._route_reply(frame)
            return

        await self._inbox.put(frame)

    def _route_reply(self, frame: Dict[str, Any]) -> None:
        request_id = frame.get("id")
        error = frame.get("error")
        if error is not None:
            error = error if isinstance(error, dict) else {}
            matched = self.pending.reject(request_id, PeerError(
                error.get("code", INTERNAL_ERROR),
                error.get("message", "Client returned an error"),
                error.get("data"),
            ))
        else:
            matched = self.pending.resolve(request_id, frame.get("result"))

        if not matched:
            self.logger.warning(f"Discarding reply for unknown request id {request_id!r}")

    async def _accept_loop(self) -> None:
        while True:
            frame = await self._inbox.get()
            with with_session_id(self.id):
                try:
                    await self._accept(frame)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.logger.error(f"Unexpected error processing frame: {e}", exc_info=True)
                    if isinstance(frame, dict) and frame.get("id") is not None:
                        await self._send_error(frame["id"], INTERNAL_ERROR, "Internal error", str(e))

    async def _accept(self, frame: Dict[str, Any]) -> None:
        request_id = frame.get("id")
        method = frame.get("method")
        if frame.get("jsonrpc") != JSONRPC_VERSION or not isinstance(method, str):
            await self._send_error(request_id, InvalidRequestError.code,
                                   "Invalid request: not a JSON-RPC 2.0 message")
            return

        params = frame.get("params")
        if params is not None and not isinstance(params, dict):
            if request_id is not None:
                await self._send_error(request_id, InvalidParamsError.code, "Invalid params: expected an object")
            return
        params = params or {}

        if "id" not in frame:
            await self._handle_notification(method, params)
            return

        try:
            await self._handle_request(request_id, method, params)
        except SessionCorruptedError as e:
            await self._send_error(request_id, e.code, e.message, e.data)
            self._corrupted(e)
        except MCPServerError as e:
            await self._send_error(request_id, e.code, e.message, e.data)

    async def _handle_notification(self, method: str, params: Dict[str, Any]) -> None:
        if method == McpMethod.NOTIFICATION_INITIALIZED:
            self.logger.info("Client confirmed initialization")
        elif method == McpMethod.NOTIFICATION_CANCELLED:
            try:
                cancelled = CancelledParams.model_validate(params)
            except ValidationError:
                self.logger.warning("Ignoring malformed cancellation notification")
                return
            self._cancel_inflight(cancelled.request_id, cancelled.reason)
        elif method == McpMethod.NOTIFICATION_PROGRESS:
            self.logger.debug(f"Client progress: {params}")
        else:
            self.logger.debug(f"Ignoring notification {method}")

    def _cancel_inflight(self, request_id: Any, reason: Optional[str]) -> None:
        entry = self._inflight.get(request_id)
        if entry is None:
            self.logger.debug(f"Cancellation for unknown or finished request {request_id!r}")
            return
        task, exchange = entry
        exchange.cancel()
        task.cancel()
        self.logger.info(f"Client cancelled request {request_id!r}: {reason or 'no reason given'}")

    async def _handle_request(self, request_id: Any, method: str, params: Dict[str, Any]) -> None:
        if method == McpMethod.PING:
            await self._send_result(request_id, {})
            return

        if self.state is SessionState.TERMINATING:
            raise SessionClosedError("Session is shutting down")

        if method == McpMethod.INITIALIZE:
            await self._initialize(request_id, params)
            return

        if self.state is not SessionState.ACTIVE:
            raise NotInitializedError(f"Session not initialized, cannot handle '{method}'")

        if method == McpMethod.TOOLS_CALL:
            call = _parse(CallToolParams, params)
            await self._run_operation(request_id, Feature.TOOLS, call.name,
                                      lambda exchange: self._call_tool(exchange, call))
        elif method == McpMethod.RESOURCES_READ:
            read = _parse(ReadResourceParams, params)
            await self._run_operation(request_id, Feature.RESOURCES, read.uri,
                                      lambda exchange: self._read_resource(exchange, read))
        elif method == McpMethod.PROMPTS_GET:
            get = _parse(GetPromptParams, params)
            await self._run_operation(request_id, Feature.PROMPTS, get.name,
                                      lambda exchange: self._get_prompt(exchange, get))
        elif method in self._methods:
            await self._send_result(request_id, self._methods[method](params))
        else:
            raise MethodNotFoundError(f"Method not found: {method}")

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def _initialize(self, request_id: Any, params: Dict[str, Any]) -> None:
        if self.state is not SessionState.UNINITIALIZED:
            raise InvalidRequestError("Session already initialized")

        init = _parse(InitializeParams, params)
        self._transition(SessionState.NEGOTIATING)

        self.client_capabilities = init.capabilities
        self.client_info = init.client_info
        self.protocol_version = negotiate_protocol_version(init.protocol_version)

        result: Dict[str, Any] = {
            "protocolVersion": self.protocol_version,
            "capabilities": self.capabilities.to_wire(),
            "serverInfo": self.server_info.to_wire(),
        }
        if self.instructions:
            result["instructions"] = self.instructions

        await self._send_result(request_id, result)
        if self.state is SessionState.NEGOTIATING:
            self._transition(SessionState.ACTIVE)
            self.logger.info(f"Session initialized with {init.client_info.name} {init.client_info.version} "
                             f"(protocol {self.protocol_version})")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def _run_operation(self, request_id: Any, feature: Feature, key: str, invoke) -> None:
        """Run sync handlers inline, spawn async ones"""
        if request_id in self._inflight:
            raise InvalidRequestError(f"Request id {request_id!r} is already in flight")
        exchange = Exchange(self, request_id)
        self._exchanges.add(exchange)

        if self.dispatcher.mode_for(feature, key) is HandlerMode.ASYNC:
            task = asyncio.create_task(self._complete(request_id, exchange, invoke(exchange)))
            self._inflight[request_id] = (task, exchange)
            return

        try:
            result = await invoke(exchange)
        finally:
            self._finish(exchange)
        if self.state is SessionState.ACTIVE:
            await self._send_result(request_id, result)

    async def _complete(self, request_id: Any, exchange: Exchange, call) -> None:
        with with_session_id(self.id):
            try:
                result = await call
            except asyncio.CancelledError:
                self.logger.debug(f"Request {request_id!r} cancelled")
                raise
            except SessionCorruptedError as e:
                await self._send_error(request_id, e.code, e.message, e.data)
                self._corrupted(e)
                return
            except MCPServerError as e:
                if self.state is SessionState.ACTIVE:
                    await self._send_error(request_id, e.code, e.message, e.data)
                return
            except Exception as e:
                self.logger.error(f"Async handler for {request_id!r} failed: {e}", exc_info=True)
                if self.state is SessionState.ACTIVE:
                    await self._send_error(request_id, INTERNAL_ERROR, "Internal error", str(e))
                return
            finally:
                if self._inflight.get(request_id, (None,))[0] is asyncio.current_task():
                    self._inflight.pop(request_id)
                self._finish(exchange)

            if self.state is SessionState.ACTIVE:
                await self._send_result(request_id, result)
            else:
                self.logger.debug(f"Discarding result of {request_id!r}, session is {self.state.value}")

    def _finish(self, exchange: Exchange) -> None:
        exchange.release()
        self._exchanges.discard(exchange)

    def _corrupted(self, error: SessionCorruptedError) -> None:
        self.logger.error(f"Session corrupted, tearing down: {error.message}")
        self._spawn(self.close())

    async def _call_tool(self, exchange: Exchange, call: CallToolParams) -> Dict[str, Any]:
        result = await self.dispatcher.invoke_tool(exchange, call.name, call.arguments)
        return result.to_wire()

    async def _read_resource(self, exchange: Exchange, read: ReadResourceParams) -> Dict[str, Any]:
        result = await self.dispatcher.read_resource(exchange, read.uri)
        return result.to_wire()

    async def _get_prompt(self, exchange: Exchange, get: GetPromptParams) -> Dict[str, Any]:
        result = await self.dispatcher.get_prompt(exchange, get.name, get.arguments)
        return result.to_wire()

    def _list_tools(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.dispatcher.require(Feature.TOOLS)
        return {"tools": [spec.tool.to_wire() for spec in self.dispatcher.tools.list()]}

    def _list_resources(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.dispatcher.require(Feature.RESOURCES)
        return {"resources": [spec.resource.to_wire() for spec in self.dispatcher.resources.resources()]}

    def _list_resource_templates(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.dispatcher.require(Feature.RESOURCES)
        return {"resourceTemplates": [spec.resource.to_template_wire()
                                      for spec in self.dispatcher.resources.templates()]}

    def _list_prompts(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.dispatcher.require(Feature.PROMPTS)
        return {"prompts": [spec.prompt.to_wire() for spec in self.dispatcher.prompts.list()]}

    def _set_log_level(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.dispatcher.require(Feature.LOGGING)
        self.log_level = _parse(SetLevelParams, params).level
        self.logger.info(f"Client log level set to {self.log_level.value}")
        return {}

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_request(self, method: str, params: Optional[Dict[str, Any]] = None,
                           timeout: Optional[float] = None) -> Any:
        """
        Send a server-initiated request and wait for the correlated reply

        Raises:
            PeerTimeoutError: no reply within the timeout
            PeerError: the client replied with an error
            SessionClosedError: the session is (or went) down
        """
        if self.state in (SessionState.UNINITIALIZED, SessionState.NEGOTIATING):
            raise NotInitializedError(f"Cannot send '{method}' before the handshake completed")
        if self.state is not SessionState.ACTIVE:
            raise SessionClosedError(f"Cannot send '{method}', session is {self.state.value}")

        timeout = self.config.request_timeout_seconds if timeout is None else timeout
        request_id, future = self.pending.create()
        try:
            await self._send(JSONRPCRequest(id=request_id, method=method, params=params).to_wire())
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise PeerTimeoutError(f"No reply to '{method}' within {timeout}s",
                                   data={"requestId": request_id}) from None
        finally:
            self.pending.discard(request_id)

    async def send_notification(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Fire-and-forget notification; failures are logged, never raised"""
        if self.state is not SessionState.ACTIVE:
            self.logger.debug(f"Dropping '{method}', session is {self.state.value}")
            return
        try:
            await self._send(JSONRPCNotification(method=method, params=params).to_wire())
        except Exception as e:
            self.logger.warning(f"Failed to send '{method}': {e}")

    async def send_log_message(self, notification: LoggingMessageNotification) -> None:
        if not self.capabilities.supports(Feature.LOGGING):
            self.logger.debug("Logging capability not advertised, dropping log notification")
            return
        if notification.level.severity < self.log_level.severity:
            return
        await self.send_notification(McpMethod.NOTIFICATION_MESSAGE, notification.to_wire())

    def post_notification(self, method: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Schedule send_notification without waiting for the transport"""
        if self.state is not SessionState.ACTIVE:
            self.logger.debug(f"Dropping '{method}', session is {self.state.value}")
            return
        self._spawn(self.send_notification(method, params))

    def post_log_message(self, notification: LoggingMessageNotification) -> None:
        """Schedule send_log_message without waiting for the transport"""
        if self.state is not SessionState.ACTIVE:
            return
        self._spawn(self.send_log_message(notification))

    async def notify_list_changed(self, feature: Feature) -> None:
        if not self.capabilities.notifies(feature):
            return
        await self.send_notification(_LIST_CHANGED_METHODS[feature])

    async def _send_result(self, request_id: Any, result: Any) -> None:
        await self._send(JSONRPCResponse(id=request_id, result=result).to_wire())

    async def _send_error(self, request_id: Any, code: int, message: str, data: Any = None) -> None:
        if request_id is None and code not in (PARSE_ERROR, InvalidRequestError.code):
            # notifications never get replies
            return
        response = JSONRPCResponse(id=request_id, error=JSONRPCError(code=code, message=message, data=data))
        try:
            await self._send(response.to_wire())
        except Exception as e:
            self.logger.warning(f"Failed to send error response: {e}")

    async def _send(self, message: Dict[str, Any]) -> None:
        async with self._send_lock:
            await self.transport.send(message)


def _parse(model, params: Dict[str, Any]):
    try:
        return model.model_validate(params)
    except ValidationError as e:
        raise InvalidParamsError(f"Invalid params: {e.error_count()} validation error(s)",
                                 data=e.errors(include_url=False, include_context=False)) from e
