"""
Connector Registry
"""
import logging
import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from fastapi import Request

from ..core.errors import RegistryError
from .base import Connector, ToolDefinition

logger = logging.getLogger(__name__)

# Tool ids use "<tool>_<configId>"; a tool name ending in digits would be misparsed
_NUMERIC_SUFFIX = re.compile(r"_\d+$")


class ConnectorRegistry:
    """Fixed set of connectors, one instance per type"""

    def __init__(self, connectors: Iterable[Connector] = ()):
        self._connectors: Dict[str, Connector] = {}
        self._tool_index: Dict[str, Tuple[Connector, ToolDefinition]] = {}
        self._frozen = False
        for connector in connectors:
            self.register(connector)

    def register(self, connector: Connector) -> None:
        """Register a connector; duplicate types or tool names are configuration errors"""
        if self._frozen:
            raise RegistryError(f"Registry is frozen, cannot register '{connector.type}'")

        if connector.type in self._connectors:
            raise RegistryError(f"Connector type '{connector.type}' registered twice")

        tools = connector.tools()
        for definition in tools:
            if _NUMERIC_SUFFIX.search(definition.name):
                raise RegistryError(
                    f"Tool name '{definition.name}' of '{connector.type}' ends with a numeric suffix"
                )
            existing = self._tool_index.get(definition.name)
            if existing is not None:
                raise RegistryError(
                    f"Tool '{definition.name}' declared by both '{existing[0].type}' and '{connector.type}'"
                )

        self._connectors[connector.type] = connector
        for definition in tools:
            self._tool_index[definition.name] = (connector, definition)

        logger.debug(f"Registered connector {connector.type} with {len(tools)} tools")

    def freeze(self) -> "ConnectorRegistry":
        self._frozen = True
        return self

    def get(self, connector_type: str) -> Optional[Connector]:
        return self._connectors.get(connector_type)

    def has(self, connector_type: str) -> bool:
        return connector_type in self._connectors

    def all(self) -> List[Connector]:
        return list(self._connectors.values())

    def types(self) -> List[str]:
        return list(self._connectors.keys())

    def system_connectors(self) -> List[Connector]:
        return [c for c in self._connectors.values() if not c.requires_credentials()]

    def user_connectors(self) -> List[Connector]:
        return [c for c in self._connectors.values() if c.requires_credentials()]

    def all_tools(self) -> Iterator[Tuple[Connector, ToolDefinition]]:
        for connector in self._connectors.values():
            for definition in connector.tools():
                yield connector, definition

    def find_tool(self, tool_name: str) -> Optional[Tuple[Connector, ToolDefinition]]:
        return self._tool_index.get(tool_name)

    def is_system_tool(self, tool_name: str) -> bool:
        found = self._tool_index.get(tool_name)
        return found is not None and not found[0].requires_credentials()

    def __len__(self) -> int:
        return len(self._connectors)

    def __contains__(self, connector_type: str) -> bool:
        return connector_type in self._connectors


def get_registry(request: Request) -> ConnectorRegistry:
    """FastAPI dependency: the registry frozen at startup"""
    return request.app.state.registry
