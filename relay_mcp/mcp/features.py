"""
Handler and specification types for registered MCP operations.

A handler is either synchronous or asynchronous; the mode decides how the
session executes it:

- ``SyncHandler(fn)``: ``fn(exchange, payload)`` runs in a worker thread and
  receives a blocking ``SyncExchange``.
- ``AsyncHandler(fn)``: ``async def fn(exchange, payload)`` runs as an asyncio
  task and receives the ``Exchange`` itself.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Union

from ..core.errors import ConfigurationError
from ..core.models import Prompt, Resource, Tool


class HandlerMode(str, Enum):
    SYNC = "sync"
    ASYNC = "async"


@dataclass(frozen=True)
class SyncHandler:
    """Blocking handler, executed off the event loop"""
    fn: Callable[[Any, Any], Any]
    mode: HandlerMode = field(default=HandlerMode.SYNC, init=False)

    def __post_init__(self):
        if not callable(self.fn):
            raise ConfigurationError("SyncHandler requires a callable")


@dataclass(frozen=True)
class AsyncHandler:
    """Coroutine handler, executed as a task on the event loop"""
    fn: Callable[[Any, Any], Any]
    mode: HandlerMode = field(default=HandlerMode.ASYNC, init=False)

    def __post_init__(self):
        if not callable(self.fn):
            raise ConfigurationError("AsyncHandler requires a callable")


Handler = Union[SyncHandler, AsyncHandler]


def _check_handler(handler: Any) -> None:
    if not isinstance(handler, (SyncHandler, AsyncHandler)):
        raise ConfigurationError(
            f"Handler must be a SyncHandler or AsyncHandler, got {type(handler).__name__}"
        )


@dataclass(frozen=True)
class ResourceRequest:
    """Payload handed to resource handlers"""
    uri: str
    # Values bound from a matching resource template, empty for exact matches
    variables: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolSpecification:
    tool: Tool
    handler: Handler

    @property
    def key(self) -> str:
        return self.tool.name

    @classmethod
    def sync(cls, tool: Tool, fn: Callable) -> "ToolSpecification":
        return cls(tool, SyncHandler(fn))

    @classmethod
    def asynchronous(cls, tool: Tool, fn: Callable) -> "ToolSpecification":
        return cls(tool, AsyncHandler(fn))

    def validate(self) -> None:
        if not self.tool.name:
            raise ConfigurationError("Tool name must not be empty")
        _check_handler(self.handler)


@dataclass(frozen=True)
class ResourceSpecification:
    resource: Resource
    handler: Handler

    @property
    def key(self) -> str:
        return self.resource.uri

    @classmethod
    def sync(cls, resource: Resource, fn: Callable) -> "ResourceSpecification":
        return cls(resource, SyncHandler(fn))

    @classmethod
    def asynchronous(cls, resource: Resource, fn: Callable) -> "ResourceSpecification":
        return cls(resource, AsyncHandler(fn))

    def validate(self) -> None:
        if not self.resource.uri:
            raise ConfigurationError("Resource URI must not be empty")
        _check_handler(self.handler)


@dataclass(frozen=True)
class PromptSpecification:
    prompt: Prompt
    handler: Handler

    @property
    def key(self) -> str:
        return self.prompt.name

    @classmethod
    def sync(cls, prompt: Prompt, fn: Callable) -> "PromptSpecification":
        return cls(prompt, SyncHandler(fn))

    @classmethod
    def asynchronous(cls, prompt: Prompt, fn: Callable) -> "PromptSpecification":
        return cls(prompt, AsyncHandler(fn))

    def validate(self) -> None:
        if not self.prompt.name:
            raise ConfigurationError("Prompt name must not be empty")
        _check_handler(self.handler)


Specification = Union[ToolSpecification, ResourceSpecification, PromptSpecification]
