"""
Tests for the capability descriptor and its builder
"""

import pytest

from relay_mcp.core import CapabilitySet, ConfigurationError, Feature


class TestCapabilitySetBuilder:
    """Test building capability sets"""

    def test_empty_builder_disables_everything(self):
        capabilities = CapabilitySet.builder().build()

        for feature in Feature:
            assert not capabilities.supports(feature)
        assert capabilities.to_wire() == {}

    def test_wire_shape(self):
        capabilities = (CapabilitySet.builder()
                        .resources(True, False)
                        .tools(True)
                        .prompts(True)
                        .logging()
                        .build())

        assert capabilities.to_wire() == {
            "tools": {"listChanged": True},
            "resources": {"listChanged": False, "subscribe": True},
            "prompts": {"listChanged": True},
            "logging": {},
        }

    def test_notifies_requires_enabled_group(self):
        capabilities = CapabilitySet.builder().tools(True).prompts(False).build()

        assert capabilities.notifies(Feature.TOOLS)
        assert not capabilities.notifies(Feature.PROMPTS)
        assert not capabilities.notifies(Feature.RESOURCES)
        assert not capabilities.notifies(Feature.LOGGING)

    def test_supports_accepts_feature_names(self):
        capabilities = CapabilitySet.builder().logging().build()

        assert capabilities.supports("logging")
        assert not capabilities.supports("tools")


class TestCapabilitySetImmutability:
    """Capabilities cannot change once built"""

    def test_fields_are_frozen(self):
        capabilities = CapabilitySet.builder().tools().build()

        with pytest.raises(ConfigurationError):
            capabilities.tools = None

    def test_nested_groups_are_frozen(self):
        capabilities = CapabilitySet.builder().tools(False).build()

        with pytest.raises(ConfigurationError):
            capabilities.tools.list_changed = True

    def test_parses_camel_case(self):
        capabilities = CapabilitySet.model_validate({"tools": {"listChanged": True}})

        assert capabilities.notifies(Feature.TOOLS)
