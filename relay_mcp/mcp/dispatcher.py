"""
Dispatcher: resolves calls against the registries and runs their handlers.

For every call the checks run in a fixed order: capability enabled, name
resolves, then the handler is invoked with an Exchange bound to the session.
Sync handlers run in a worker thread, async handlers run on the loop.
"""

import asyncio
import inspect
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from ..core.capabilities import CapabilitySet, Feature
from ..core.errors import (
    CapabilityDisabledError,
    HandlerFaultError,
    MCPServerError,
    NotFoundError,
    ResourceNotFoundError,
    SessionCorruptedError,
)
from ..core.models import CallToolResult, GetPromptParams, GetPromptResult, ReadResourceResult
from ..logging import get_logger
from .exchange import Exchange, SyncExchange
from .features import (
    Handler,
    HandlerMode,
    PromptSpecification,
    ResourceRequest,
    ResourceSpecification,
    ToolSpecification,
)
from .registry import PromptRegistry, ResourceRegistry, ToolRegistry


class Dispatcher:
    """Routes tools/call, resources/read and prompts/get to their handlers"""

    def __init__(self, capabilities: CapabilitySet, tools: ToolRegistry,
                 resources: ResourceRegistry, prompts: PromptRegistry):
        self.capabilities = capabilities
        self.tools = tools
        self.resources = resources
        self.prompts = prompts
        self.logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def require(self, feature: Feature) -> None:
        if not self.capabilities.supports(feature):
            raise CapabilityDisabledError(f"Capability '{feature.value}' is not enabled")

    def resolve_tool(self, name: str) -> ToolSpecification:
        self.require(Feature.TOOLS)
        spec = self.tools.get(name)
        if spec is None:
            raise NotFoundError(f"Unknown tool: {name}")
        return spec

    def resolve_resource(self, uri: str) -> Tuple[ResourceSpecification, Dict[str, str]]:
        self.require(Feature.RESOURCES)
        found = self.resources.match(uri)
        if found is None:
            raise ResourceNotFoundError(f"Unknown resource: {uri}", data={"uri": uri})
        return found

    def resolve_prompt(self, name: str) -> PromptSpecification:
        self.require(Feature.PROMPTS)
        spec = self.prompts.get(name)
        if spec is None:
            raise NotFoundError(f"Unknown prompt: {name}")
        return spec

    def mode_for(self, feature: Feature, key: str) -> Optional[HandlerMode]:
        """Handler mode of the operation, or None when the call cannot resolve"""
        try:
            if feature is Feature.TOOLS:
                return self.resolve_tool(key).handler.mode
            if feature is Feature.RESOURCES:
                return self.resolve_resource(key)[0].handler.mode
            if feature is Feature.PROMPTS:
                return self.resolve_prompt(key).handler.mode
        except MCPServerError:
            return None
        return None

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke_tool(self, exchange: Exchange, name: str,
                          arguments: Optional[Dict[str, Any]] = None) -> CallToolResult:
        """
        Run a tool; failures come back as an error-flagged result

        Only SessionCorruptedError and cancellation escape.
        """
        try:
            spec = self.resolve_tool(name)
        except MCPServerError as e:
            return CallToolResult.text(e.message, is_error=True)

        try:
            value = await self._run(spec.handler, exchange, arguments or {})
            return _tool_result(value)
        except SessionCorruptedError:
            raise
        except MCPServerError as e:
            self.logger.warning(f"Tool '{name}' failed: {e.message}")
            return CallToolResult.text(e.message, is_error=True)
        except Exception as e:
            self.logger.error(f"Tool '{name}' raised {type(e).__name__}: {e}", exc_info=True)
            return CallToolResult.text(f"Tool '{name}' failed: {e}", is_error=True)
        finally:
            exchange.release()

    async def read_resource(self, exchange: Exchange, uri: str) -> ReadResourceResult:
        spec, variables = self.resolve_resource(uri)
        try:
            value = await self._run(spec.handler, exchange, ResourceRequest(uri=uri, variables=variables))
            return _validated(ReadResourceResult, value, f"resource '{uri}'")
        except MCPServerError:
            raise
        except Exception as e:
            self.logger.error(f"Resource '{uri}' raised {type(e).__name__}: {e}", exc_info=True)
            raise HandlerFaultError(f"Resource '{uri}' failed: {e}") from e
        finally:
            exchange.release()

    async def get_prompt(self, exchange: Exchange, name: str,
                         arguments: Optional[Dict[str, Any]] = None) -> GetPromptResult:
        spec = self.resolve_prompt(name)
        try:
            request = GetPromptParams(name=name, arguments=arguments or {})
            value = await self._run(spec.handler, exchange, request)
            return _validated(GetPromptResult, value, f"prompt '{name}'")
        except MCPServerError:
            raise
        except Exception as e:
            self.logger.error(f"Prompt '{name}' raised {type(e).__name__}: {e}", exc_info=True)
            raise HandlerFaultError(f"Prompt '{name}' failed: {e}") from e
        finally:
            exchange.release()

    async def _run(self, handler: Handler, exchange: Exchange, payload: Any) -> Any:
        if handler.mode is HandlerMode.SYNC:
            facade = SyncExchange(exchange, asyncio.get_running_loop())
            return await asyncio.to_thread(handler.fn, facade, payload)

        value = handler.fn(exchange, payload)
        if inspect.isawaitable(value):
            value = await value
        return value


def _tool_result(value: Any) -> CallToolResult:
    if isinstance(value, CallToolResult):
        return value
    if isinstance(value, str):
        return CallToolResult.text(value)
    return _validated(CallToolResult, value, "tool")


def _validated(model, value: Any, what: str):
    if isinstance(value, model):
        return value
    if not isinstance(value, dict):
        raise HandlerFaultError(f"Handler for {what} returned unsupported type {type(value).__name__}")
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise HandlerFaultError(f"Handler for {what} returned an invalid result", data=str(e)) from e
