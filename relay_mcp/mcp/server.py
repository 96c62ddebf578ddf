"""
MCP server host: owns identity, capabilities and registries, starts sessions.

Usage:
    server = (McpServer.builder()
              .server_info("my-server", "1.0.0")
              .capabilities(CapabilitySet.builder().tools(True).logging().build())
              .tools(calculator_spec)
              .build())

    session = await server.start(transport)
"""

import asyncio
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Union

from ..config import SessionConfig, get_config
from ..core.capabilities import CapabilitySet, Feature
from ..core.errors import ConfigurationError
from ..core.models import Implementation, LoggingMessageNotification
from ..logging import get_logger
from .features import PromptSpecification, ResourceSpecification, ToolSpecification
from .registry import PromptRegistry, Registry, ResourceRegistry, ToolRegistry
from .session import Session


def default_capabilities() -> CapabilitySet:
    """Every feature group enabled, without list-changed notifications"""
    return CapabilitySet.builder().tools().resources().prompts().logging().build()


class McpServer:
    """Hosts any number of sessions over one shared set of registries"""

    def __init__(
        self,
        server_info: Implementation,
        capabilities: CapabilitySet,
        session_config: Optional[SessionConfig] = None,
        instructions: Optional[str] = None,
    ):
        self.server_info = server_info
        self._capabilities = capabilities
        self.session_config = session_config or get_config().session
        self.instructions = instructions
        self.logger = get_logger(__name__)

        self.tools = ToolRegistry(capabilities.notifies(Feature.TOOLS), self._registry_changed)
        self.resources = ResourceRegistry(capabilities.notifies(Feature.RESOURCES), self._registry_changed)
        self.prompts = PromptRegistry(capabilities.notifies(Feature.PROMPTS), self._registry_changed)

        self._sessions: Dict[str, Session] = {}
        self._sessions_lock = threading.Lock()
        self._background: set = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @staticmethod
    def builder() -> "McpServerBuilder":
        return McpServerBuilder()

    @property
    def capabilities(self) -> CapabilitySet:
        """Fixed at construction; every session advertises the same set"""
        return self._capabilities

    @property
    def sessions(self) -> List[Session]:
        with self._sessions_lock:
            return list(self._sessions.values())

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def start(self, transport) -> Session:
        """Create a session for a freshly connected transport and start it"""
        self._loop = asyncio.get_running_loop()
        session = Session(
            transport,
            server_info=self.server_info,
            capabilities=self.capabilities,
            tools=self.tools,
            resources=self.resources,
            prompts=self.prompts,
            config=self.session_config,
            instructions=self.instructions,
            on_close=self._session_closed,
        )
        with self._sessions_lock:
            self._sessions[session.id] = session
        session.start()
        self.logger.info(f"Started session {session.id[:8]} ({len(self._sessions)} active)")
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._sessions_lock:
            return self._sessions.get(session_id)

    def _session_closed(self, session: Session) -> None:
        with self._sessions_lock:
            self._sessions.pop(session.id, None)

    async def shutdown(self) -> None:
        """Close every session concurrently"""
        sessions = self.sessions
        self.logger.info(f"Shutting down MCP server ({len(sessions)} sessions)")
        if sessions:
            await asyncio.gather(*(session.close() for session in sessions), return_exceptions=True)
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # ------------------------------------------------------------------
    # Registry mutation
    # ------------------------------------------------------------------

    def add_tool(self, spec: ToolSpecification) -> None:
        self._require(Feature.TOOLS)
        self.tools.register(spec)

    def remove_tool(self, name: str) -> None:
        self._require(Feature.TOOLS)
        self.tools.unregister(name)

    def add_resource(self, spec: ResourceSpecification) -> None:
        self._require(Feature.RESOURCES)
        self.resources.register(spec)

    def remove_resource(self, uri: str) -> None:
        self._require(Feature.RESOURCES)
        self.resources.unregister(uri)

    def add_prompt(self, spec: PromptSpecification) -> None:
        self._require(Feature.PROMPTS)
        self.prompts.register(spec)

    def remove_prompt(self, name: str) -> None:
        self._require(Feature.PROMPTS)
        self.prompts.unregister(name)

    def _require(self, feature: Feature) -> None:
        if not self.capabilities.supports(feature):
            raise ConfigurationError(
                f"Server was built without the '{feature.value}' capability"
            )

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------

    async def notify(self, event: Union[Feature, str]) -> None:
        """Broadcast a list-changed notification for tools, resources or prompts"""
        feature = Feature(event)
        if feature is Feature.LOGGING:
            raise ConfigurationError("Use logging_notification() to broadcast log messages")
        for session in self.sessions:
            await session.notify_list_changed(feature)

    async def logging_notification(self, notification: LoggingMessageNotification) -> None:
        """Send a log message to every active session"""
        for session in self.sessions:
            await session.send_log_message(notification)

    def _registry_changed(self, feature: Feature) -> None:
        # May be called from a worker thread running a sync handler
        loop = self._loop
        if loop is None or loop.is_closed() or not self.sessions:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._spawn_notify(feature)
        else:
            loop.call_soon_threadsafe(self._spawn_notify, feature)

    def _spawn_notify(self, feature: Feature) -> None:
        task = asyncio.ensure_future(self.notify(feature))
        self._background.add(task)
        task.add_done_callback(self._background.discard)


class McpServerBuilder:
    """Fluent builder for McpServer"""

    def __init__(self):
        config = get_config()
        self._server_info = Implementation(name=config.server.server_name,
                                           version=config.server.server_version)
        self._capabilities: Optional[CapabilitySet] = None
        self._session_config: SessionConfig = config.session
        self._instructions: Optional[str] = None
        self._tools: List[ToolSpecification] = []
        self._resources: List[ResourceSpecification] = []
        self._prompts: List[PromptSpecification] = []

    def server_info(self, name: str, version: str) -> "McpServerBuilder":
        self._server_info = Implementation(name=name, version=version)
        return self

    def capabilities(self, capabilities: CapabilitySet) -> "McpServerBuilder":
        self._capabilities = capabilities
        return self

    def session_config(self, session_config: SessionConfig) -> "McpServerBuilder":
        self._session_config = session_config
        return self

    def request_timeout(self, seconds: float) -> "McpServerBuilder":
        if seconds <= 0:
            raise ConfigurationError("Request timeout must be positive")
        self._session_config = replace(self._session_config, request_timeout_seconds=seconds)
        return self

    def instructions(self, instructions: str) -> "McpServerBuilder":
        self._instructions = instructions
        return self

    def tools(self, *specs: ToolSpecification) -> "McpServerBuilder":
        self._tools.extend(specs)
        return self

    def resources(self, *specs: ResourceSpecification) -> "McpServerBuilder":
        self._resources.extend(specs)
        return self

    def prompts(self, *specs: PromptSpecification) -> "McpServerBuilder":
        self._prompts.extend(specs)
        return self

    def build(self) -> McpServer:
        capabilities = self._capabilities or default_capabilities()
        server = McpServer(self._server_info, capabilities, self._session_config, self._instructions)

        initial = (
            (Feature.TOOLS, self._tools, server.tools),
            (Feature.RESOURCES, self._resources, server.resources),
            (Feature.PROMPTS, self._prompts, server.prompts),
        )
        for feature, specs, registry in initial:
            if specs and not capabilities.supports(feature):
                raise ConfigurationError(
                    f"{len(specs)} {feature.value} given but the '{feature.value}' capability is disabled"
                )
            _register_all(registry, specs)
        return server


def _register_all(registry: Registry, specs) -> None:
    for spec in specs:
        registry.register(spec)
