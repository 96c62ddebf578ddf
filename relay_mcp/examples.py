"""
Example operations for the hosted server: calculators, a resource and a prompt.

``ai-calculator`` delegates the arithmetic to the client's model through a
sampling request; ``logging-test`` exercises log notifications from an
asynchronous handler.
"""

from typing import Any, Dict

from .core.capabilities import CapabilitySet
from .core.errors import InvalidParamsError
from .core.models import (
    CallToolResult,
    CreateMessageRequest,
    GetPromptResult,
    LoggingLevel,
    ModelHint,
    ModelPreferences,
    Prompt,
    PromptArgument,
    PromptMessage,
    ReadResourceResult,
    Resource,
    SamplingMessage,
    TextContent,
    TextResourceContents,
    Tool,
)
from .logging import get_logger
from .mcp.features import PromptSpecification, ResourceSpecification, ToolSpecification

logger = get_logger(__name__)

CALCULATOR_SCHEMA = """
{
  "type" : "object",
  "id" : "urn:jsonschema:Operation",
  "properties" : {
    "operation" : {
      "type" : "string"
    },
    "a" : {
      "type" : "number"
    },
    "b" : {
      "type" : "number"
    }
  }
}
"""

_OPERATIONS = {
    "add": lambda a, b: a + b,
    "subtract": lambda a, b: a - b,
    "multiply": lambda a, b: a * b,
    "divide": lambda a, b: a / b,
}


def example_capabilities() -> CapabilitySet:
    return (CapabilitySet.builder()
            .resources(False, True)
            .tools(True)
            .prompts(True)
            .logging()
            .build())


def format_number(value: float) -> str:
    """Render integral floats without the trailing .0"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def basic_calculator(exchange, arguments: Dict[str, Any]) -> CallToolResult:
    operation = arguments.get("operation", "add")
    if operation not in _OPERATIONS:
        return CallToolResult.text(f"Unknown operation: {operation}", is_error=True)

    try:
        a = float(arguments["a"])
        b = float(arguments["b"])
    except (KeyError, TypeError, ValueError):
        return CallToolResult.text("Arguments 'a' and 'b' must be numbers", is_error=True)

    if operation == "divide" and b == 0:
        return CallToolResult.text("Division by zero", is_error=True)

    logger.debug(f"basic-calculator: {a} {operation} {b}")
    return CallToolResult.text(format_number(_OPERATIONS[operation](a, b)))


def ai_calculator(exchange, arguments: Dict[str, Any]) -> CallToolResult:
    if exchange.client_capabilities.sampling is None:
        return CallToolResult.text("Client does not support AI capabilities")

    request = CreateMessageRequest(
        messages=[SamplingMessage(role="user",
                                  content=TextContent(text=f"Calculate: {arguments.get('expression')}"))],
        model_preferences=ModelPreferences(
            hints=[ModelHint.of("claude-3-sonnet"), ModelHint.of("claude")],
            intelligence_priority=0.8,
            speed_priority=0.5,
        ),
        system_prompt="You are a helpful calculator assistant. Provide only the numerical answer.",
        max_tokens=100,
    )

    result = exchange.create_message(request)
    if not isinstance(result.content, TextContent):
        return CallToolResult.text("Client answered with non-text content", is_error=True)
    return CallToolResult.text(result.content.text)


async def logging_test(exchange, arguments: Dict[str, Any]) -> CallToolResult:
    await exchange.send_logging_notification(LoggingLevel.DEBUG, "test-logger", "Debug message")
    return CallToolResult.text("Logging test completed")


def custom_resource(exchange, request) -> ReadResourceResult:
    return ReadResourceResult(contents=[
        TextResourceContents(uri=request.uri, mime_type="text/plain", text="Custom resource content")
    ])


def greeting_prompt(exchange, request) -> GetPromptResult:
    name = request.arguments.get("name")
    if not name:
        raise InvalidParamsError("Missing required argument: name")
    return GetPromptResult(
        description="A friendly greeting",
        messages=[PromptMessage(role="user", content=TextContent(text=f"Hello, {name}!"))],
    )


def example_tools():
    return [
        ToolSpecification.sync(
            Tool(name="basic-calculator", description="Basic calculator", input_schema=CALCULATOR_SCHEMA),
            basic_calculator,
        ),
        ToolSpecification.sync(
            Tool(name="ai-calculator", description="Performs calculations using AI",
                 input_schema=CALCULATOR_SCHEMA),
            ai_calculator,
        ),
        ToolSpecification.asynchronous(
            Tool(name="logging-test", description="Test logging notifications", input_schema="{}"),
            logging_test,
        ),
    ]


def example_resources():
    return [
        ResourceSpecification.sync(
            Resource(uri="custom://resource", name="name", description="description",
                     mime_type="text/plain"),
            custom_resource,
        ),
    ]


def example_prompts():
    return [
        PromptSpecification.sync(
            Prompt(name="greeting", description="Greet someone by name",
                   arguments=[PromptArgument(name="name", description="Who to greet", required=True)]),
            greeting_prompt,
        ),
    ]


def register_examples(server) -> None:
    """Add every example operation to a running server"""
    for spec in example_tools():
        server.add_tool(spec)
    for spec in example_resources():
        server.add_resource(spec)
    for spec in example_prompts():
        server.add_prompt(spec)
