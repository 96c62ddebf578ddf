"""
Tests for the operation registries
"""

import pytest
from unittest.mock import MagicMock

from relay_mcp.core import CallToolResult, ConfigurationError, NotFoundError, Resource, ResourceNotFoundError, Tool
from relay_mcp.core.capabilities import Feature
from relay_mcp.mcp import (
    AsyncHandler,
    PromptRegistry,
    ResourceRegistry,
    ResourceSpecification,
    SyncHandler,
    ToolRegistry,
    ToolSpecification,
)
from relay_mcp.mcp.registry import compile_uri_template


def tool_spec(name, text="ok"):
    return ToolSpecification.sync(Tool(name=name), lambda exchange, arguments: CallToolResult.text(text))


def resource_spec(uri):
    return ResourceSpecification.sync(Resource(uri=uri, name=uri), lambda exchange, request: {"contents": []})


class TestRegistryOrdering:
    """Test insertion order and replacement"""

    def test_list_reflects_insertion_order(self):
        registry = ToolRegistry()
        for name in ("b", "a", "c"):
            registry.register(tool_spec(name))

        assert [spec.key for spec in registry.list()] == ["b", "a", "c"]

    def test_duplicate_replaces_in_place(self):
        registry = ToolRegistry()
        registry.register(tool_spec("first", "old"))
        registry.register(tool_spec("second"))
        replacement = tool_spec("first", "new")

        registry.register(replacement)

        assert registry.get("first") is replacement
        assert [spec.key for spec in registry.list()] == ["first", "second"]
        assert len(registry) == 2

    def test_unregister_removes(self):
        registry = ToolRegistry()
        registry.register(tool_spec("gone"))

        registry.unregister("gone")

        assert registry.get("gone") is None
        assert "gone" not in registry

    def test_unregister_unknown_raises_not_found(self):
        registry = PromptRegistry()

        with pytest.raises(NotFoundError):
            registry.unregister("missing")

    def test_unregister_unknown_resource(self):
        with pytest.raises(ResourceNotFoundError):
            ResourceRegistry().unregister("custom://missing")

    def test_list_is_a_snapshot(self):
        registry = ToolRegistry()
        registry.register(tool_spec("a"))
        snapshot = registry.list()

        registry.register(tool_spec("b"))

        assert len(snapshot) == 1


class TestRegistryValidation:
    """Test descriptor and handler validation"""

    def test_empty_name_rejected(self):
        with pytest.raises(ConfigurationError):
            ToolRegistry().register(tool_spec(""))

    def test_empty_uri_rejected(self):
        with pytest.raises(ConfigurationError):
            ResourceRegistry().register(resource_spec(""))

    def test_untagged_handler_rejected(self):
        spec = ToolSpecification(Tool(name="raw"), lambda exchange, arguments: "x")

        with pytest.raises(ConfigurationError):
            ToolRegistry().register(spec)

    def test_wrong_specification_type_rejected(self):
        with pytest.raises(ConfigurationError):
            ToolRegistry().register(resource_spec("custom://resource"))

    def test_handler_requires_callable(self):
        with pytest.raises(ConfigurationError):
            SyncHandler("not callable")

    def test_handler_modes(self):
        async def fn(exchange, arguments):
            return "x"

        assert AsyncHandler(fn).mode.value == "async"
        assert SyncHandler(lambda exchange, arguments: "x").mode.value == "sync"


class TestChangeNotification:
    """Test list-changed notifications on mutation"""

    def test_notifies_on_register_and_unregister(self):
        notifier = MagicMock()
        registry = ToolRegistry(notify_changes=True, notifier=notifier)

        registry.register(tool_spec("a"))
        registry.register(tool_spec("a"))
        registry.unregister("a")

        assert notifier.call_count == 3
        notifier.assert_called_with(Feature.TOOLS)

    def test_silent_without_notification_bit(self):
        notifier = MagicMock()
        registry = ToolRegistry(notify_changes=False, notifier=notifier)

        registry.register(tool_spec("a"))

        notifier.assert_not_called()

    def test_notifier_failure_does_not_fail_mutation(self):
        notifier = MagicMock(side_effect=RuntimeError("transport down"))
        registry = ToolRegistry(notify_changes=True, notifier=notifier)

        registry.register(tool_spec("a"))

        assert registry.get("a") is not None
        notifier.assert_called_once()

    def test_failed_mutation_does_not_notify(self):
        notifier = MagicMock()
        registry = ToolRegistry(notify_changes=True, notifier=notifier)

        with pytest.raises(NotFoundError):
            registry.unregister("missing")

        notifier.assert_not_called()


class TestResourceTemplates:
    """Test URI template matching"""

    def test_templates_and_resources_are_split(self):
        registry = ResourceRegistry()
        registry.register(resource_spec("custom://resource"))
        registry.register(resource_spec("file://{path}"))

        assert [spec.key for spec in registry.resources()] == ["custom://resource"]
        assert [spec.key for spec in registry.templates()] == ["file://{path}"]

    def test_exact_match_wins(self):
        registry = ResourceRegistry()
        registry.register(resource_spec("users://{id}"))
        registry.register(resource_spec("users://me"))

        spec, variables = registry.match("users://me")

        assert spec.key == "users://me"
        assert variables == {}

    def test_template_match_extracts_variables(self):
        registry = ResourceRegistry()
        registry.register(resource_spec("repo://{owner}/{name}/readme"))

        spec, variables = registry.match("repo://acme/relay/readme")

        assert spec.key == "repo://{owner}/{name}/readme"
        assert variables == {"owner": "acme", "name": "relay"}

    def test_no_match(self):
        registry = ResourceRegistry()
        registry.register(resource_spec("repo://{owner}/readme"))

        assert registry.match("repo://acme/relay/readme") is None

    def test_literal_characters_are_escaped(self):
        pattern = compile_uri_template("calc://sum?x={x}")

        assert pattern.fullmatch("calc://sum?x=3").group("x") == "3"
        assert pattern.fullmatch("calc://sumXx=3") is None
