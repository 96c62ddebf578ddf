"""
Capability descriptor exchanged during the initialize handshake.

A ``CapabilitySet`` is frozen: once a session has negotiated it, nothing may
change it. Build one with the fluent builder::

    capabilities = (CapabilitySet.builder()
                    .resources(subscribe=False, list_changed=True)
                    .tools(True)
                    .prompts(True)
                    .logging()
                    .build())
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ConfigDict, Field

from .errors import ConfigurationError
from .models import MCPModel


class Feature(str, Enum):
    """Optional feature groups a server can advertise"""
    TOOLS = "tools"
    RESOURCES = "resources"
    PROMPTS = "prompts"
    LOGGING = "logging"


class FrozenCapability(MCPModel):
    """Base for capability records; assignment after construction is rejected"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ConfigurationError(f"{type(self).__name__} is immutable, cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise ConfigurationError(f"{type(self).__name__} is immutable, cannot delete '{name}'")


class FeatureCapability(FrozenCapability):
    """An enabled feature group, with or without list-changed notifications"""

    list_changed: bool = Field(default=False, alias="listChanged")


class ResourcesCapability(FeatureCapability):
    subscribe: bool = False


class CapabilitySet(FrozenCapability):
    """Server capabilities; a missing group means the feature is disabled"""

    tools: Optional[FeatureCapability] = None
    resources: Optional[ResourcesCapability] = None
    prompts: Optional[FeatureCapability] = None
    logging: Optional[Dict[str, Any]] = None
    experimental: Optional[Dict[str, Any]] = None

    @staticmethod
    def builder() -> "CapabilitySetBuilder":
        return CapabilitySetBuilder()

    def supports(self, feature: Feature) -> bool:
        """True when the feature group was advertised"""
        return getattr(self, Feature(feature).value) is not None

    def notifies(self, feature: Feature) -> bool:
        """True when the feature group emits list-changed notifications"""
        feature = Feature(feature)
        if feature is Feature.LOGGING:
            return False
        group = getattr(self, feature.value)
        return group is not None and group.list_changed


class CapabilitySetBuilder:
    """Fluent builder for CapabilitySet"""

    def __init__(self):
        self._tools: Optional[FeatureCapability] = None
        self._resources: Optional[ResourcesCapability] = None
        self._prompts: Optional[FeatureCapability] = None
        self._logging: Optional[Dict[str, Any]] = None
        self._experimental: Optional[Dict[str, Any]] = None

    def resources(self, subscribe: bool = False, list_changed: bool = False) -> "CapabilitySetBuilder":
        self._resources = ResourcesCapability(subscribe=subscribe, list_changed=list_changed)
        return self

    def tools(self, list_changed: bool = False) -> "CapabilitySetBuilder":
        self._tools = FeatureCapability(list_changed=list_changed)
        return self

    def prompts(self, list_changed: bool = False) -> "CapabilitySetBuilder":
        self._prompts = FeatureCapability(list_changed=list_changed)
        return self

    def logging(self) -> "CapabilitySetBuilder":
        self._logging = {}
        return self

    def experimental(self, values: Dict[str, Any]) -> "CapabilitySetBuilder":
        self._experimental = dict(values)
        return self

    def build(self) -> CapabilitySet:
        return CapabilitySet(
            tools=self._tools,
            resources=self._resources,
            prompts=self._prompts,
            logging=self._logging,
            experimental=self._experimental,
        )
