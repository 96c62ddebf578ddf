"""
Operation registries: insertion-ordered name -> specification mappings.

Each registry is guarded by a lock so hosts may mutate it from any thread
while sessions read snapshots. When the owning feature group advertises
list-changed notifications, every successful mutation calls the notifier;
notifier failures are logged and never fail the mutation.
"""

import re
import threading
from typing import Callable, Dict, Generic, List, Optional, Pattern, Tuple, TypeVar

from ..core.capabilities import Feature
from ..core.errors import ConfigurationError, NotFoundError, ResourceNotFoundError
from ..logging import get_logger
from .features import PromptSpecification, ResourceSpecification, ToolSpecification

S = TypeVar("S", ToolSpecification, ResourceSpecification, PromptSpecification)

ChangeNotifier = Callable[[Feature], None]

_TEMPLATE_VARIABLE = re.compile(r"\{(\w+)\}")


class Registry(Generic[S]):
    """Thread-safe, insertion-ordered registry of operation specifications"""

    spec_type: type = object

    def __init__(self, feature: Feature, notify_changes: bool = False,
                 notifier: Optional[ChangeNotifier] = None):
        self.feature = feature
        self.notify_changes = notify_changes
        self._notifier = notifier
        self._entries: Dict[str, S] = {}
        self._lock = threading.RLock()
        self.logger = get_logger(__name__)

    def set_notifier(self, notifier: Optional[ChangeNotifier]) -> None:
        self._notifier = notifier

    def register(self, spec: S) -> None:
        """Add a specification; a duplicate key replaces the old entry in place"""
        if not isinstance(spec, self.spec_type):
            raise ConfigurationError(
                f"{self.feature.value} registry expects {self.spec_type.__name__}, "
                f"got {type(spec).__name__}"
            )
        spec.validate()

        with self._lock:
            replaced = spec.key in self._entries
            # dict assignment keeps the original position of an existing key
            self._entries[spec.key] = spec

        if replaced:
            self.logger.info(f"Replaced {self.feature.value} '{spec.key}'")
        else:
            self.logger.info(f"Registered {self.feature.value} '{spec.key}'")
        self._changed()

    def unregister(self, key: str) -> S:
        with self._lock:
            if key not in self._entries:
                raise self._not_found(key)
            spec = self._entries.pop(key)

        self.logger.info(f"Removed {self.feature.value} '{key}'")
        self._changed()
        return spec

    def get(self, key: str) -> Optional[S]:
        with self._lock:
            return self._entries.get(key)

    def list(self) -> List[S]:
        """Snapshot of all specifications in insertion order"""
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _not_found(self, key: str) -> NotFoundError:
        return NotFoundError(f"Unknown {self.feature.value[:-1]}: {key}")

    def _changed(self) -> None:
        if not self.notify_changes or self._notifier is None:
            return
        try:
            self._notifier(self.feature)
        except Exception as e:
            self.logger.warning(f"List-changed notification for {self.feature.value} failed: {e}")


class ToolRegistry(Registry[ToolSpecification]):
    spec_type = ToolSpecification

    def __init__(self, notify_changes: bool = False, notifier: Optional[ChangeNotifier] = None):
        super().__init__(Feature.TOOLS, notify_changes, notifier)


class PromptRegistry(Registry[PromptSpecification]):
    spec_type = PromptSpecification

    def __init__(self, notify_changes: bool = False, notifier: Optional[ChangeNotifier] = None):
        super().__init__(Feature.PROMPTS, notify_changes, notifier)


class ResourceRegistry(Registry[ResourceSpecification]):
    """Resources keyed by URI; URIs with {placeholders} act as templates"""

    spec_type = ResourceSpecification

    def __init__(self, notify_changes: bool = False, notifier: Optional[ChangeNotifier] = None):
        super().__init__(Feature.RESOURCES, notify_changes, notifier)
        self._patterns: Dict[str, Pattern[str]] = {}

    def _not_found(self, key: str) -> NotFoundError:
        return ResourceNotFoundError(f"Unknown resource: {key}", data={"uri": key})

    def resources(self) -> List[ResourceSpecification]:
        return [spec for spec in self.list() if not spec.resource.is_template]

    def templates(self) -> List[ResourceSpecification]:
        return [spec for spec in self.list() if spec.resource.is_template]

    def match(self, uri: str) -> Optional[Tuple[ResourceSpecification, Dict[str, str]]]:
        """Find the resource for a URI: exact match first, then templates in order"""
        spec = self.get(uri)
        if spec is not None:
            return spec, {}

        for template in self.templates():
            match = self._pattern_for(template.key).fullmatch(uri)
            if match:
                return template, match.groupdict()
        return None

    def _pattern_for(self, uri_template: str) -> Pattern[str]:
        with self._lock:
            pattern = self._patterns.get(uri_template)
            if pattern is None:
                pattern = compile_uri_template(uri_template)
                self._patterns[uri_template] = pattern
            return pattern


def compile_uri_template(uri_template: str) -> Pattern[str]:
    """Turn 'file://{path}/x' into a regex with one named group per variable"""
    parts = []
    position = 0
    for variable in _TEMPLATE_VARIABLE.finditer(uri_template):
        parts.append(re.escape(uri_template[position:variable.start()]))
        parts.append(f"(?P<{variable.group(1)}>[^/]+)")
        position = variable.end()
    parts.append(re.escape(uri_template[position:]))
    return re.compile("".join(parts))
