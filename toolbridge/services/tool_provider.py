"""
Tool Catalog Builder

Computes the tools a caller may see: every connector from the registry,
multiplied by the organisation's configurations, minus what is inactive or
disabled.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import CredentialDecryptionError
from ..integrations.base import Connector, ToolDefinition
from ..integrations.registry import ConnectorRegistry
from ..models.integration import IntegrationConfiguration
from ..models.organisation import Organisation
from .configuration_service import IntegrationConfigurationService
from .credential_broker import CredentialBroker

logger = logging.getLogger(__name__)

SYSTEM = "system"


@dataclass(frozen=True)
class ToolFilterCriteria:
    """Optional workflow user plus an optional list of tool types"""

    workflow_user_id: Optional[str] = None
    tool_types: Tuple[str, ...] = ()

    @classmethod
    def from_csv(cls, workflow_user_id: Optional[str] = None, tool_types_csv: Optional[str] = None) -> "ToolFilterCriteria":
        types: List[str] = []
        for raw in (tool_types_csv or "").split(","):
            value = raw.strip()
            if value and value not in types:
                types.append(value)
        return cls(workflow_user_id=workflow_user_id or None, tool_types=tuple(types))

    def has_tool_type_filter(self) -> bool:
        return bool(self.tool_types)

    def includes_system_tools(self) -> bool:
        return SYSTEM in self.tool_types

    def includes_specific_type(self, integration_type: str) -> bool:
        return integration_type in self.tool_types

    def includes_only_system_tools(self) -> bool:
        if not self.tool_types:
            return False
        return all(t == SYSTEM or t.startswith(f"{SYSTEM}.") for t in self.tool_types)


class ToolProviderService:
    """Builds the per-organisation tool catalog"""

    def __init__(
        self,
        db: AsyncSession,
        registry: ConnectorRegistry,
        broker: Optional[CredentialBroker] = None,
        include_system_by_default: bool = False,
    ):
        self.db = db
        self.registry = registry
        self.broker = broker or CredentialBroker()
        self.include_system_by_default = include_system_by_default
        self.configurations = IntegrationConfigurationService(db, self.broker.encryption)

    async def get_tools_for_organisation(self, organisation: Organisation, criteria: ToolFilterCriteria) -> List[Dict[str, Any]]:
        configurations = await self.configurations.find_for_catalog(organisation.id, criteria.workflow_user_id)

        by_type: Dict[str, List[IntegrationConfiguration]] = {}
        for configuration in configurations:
            by_type.setdefault(configuration.integration_type, []).append(configuration)

        tools: List[Dict[str, Any]] = []
        for connector in self.registry.all():
            type_configs = by_type.get(connector.type, [])
            if connector.requires_credentials():
                tools.extend(self._user_connector_tools(connector, type_configs, criteria))
            else:
                tools.extend(self._system_connector_tools(connector, type_configs, criteria))

        logger.debug(f"Catalog for organisation {organisation.uuid}: {len(tools)} tools")
        return tools

    def _should_include_system(self, connector: Connector, criteria: ToolFilterCriteria) -> bool:
        if not criteria.has_tool_type_filter():
            return self.include_system_by_default
        return criteria.includes_system_tools() or criteria.includes_specific_type(connector.type)

    def _system_connector_tools(
        self,
        connector: Connector,
        configurations: List[IntegrationConfiguration],
        criteria: ToolFilterCriteria,
    ) -> List[Dict[str, Any]]:
        if not self._should_include_system(connector, criteria):
            return []

        # The first configuration, if any, only tracks on/off state and disabled tools
        configuration = configurations[0] if configurations else None
        if configuration is not None and not configuration.active:
            return []

        disabled = set(configuration.disabled_tools or []) if configuration is not None else set()
        return [
            self._entry(connector, definition, definition.name)
            for definition in connector.tools()
            if definition.name not in disabled
        ]

    def _user_connector_tools(
        self,
        connector: Connector,
        configurations: List[IntegrationConfiguration],
        criteria: ToolFilterCriteria,
    ) -> List[Dict[str, Any]]:
        if criteria.includes_only_system_tools():
            return []
        if criteria.has_tool_type_filter() and not criteria.includes_specific_type(connector.type):
            return []

        personalized = connector.as_personalized()
        tools: List[Dict[str, Any]] = []

        for configuration in configurations:
            if not configuration.active or not configuration.has_credentials():
                continue

            instance_label = self._instance_label(connector, configuration)
            system_prompt = personalized.system_prompt(configuration) if personalized else None

            for definition in connector.tools():
                if configuration.is_tool_disabled(definition.name):
                    continue

                entry = self._entry(connector, definition, f"{definition.name}_{configuration.id}", configuration)
                if instance_label:
                    entry["description"] = f"{entry['description']} ({instance_label})"
                if system_prompt is not None:
                    entry["system_prompt"] = system_prompt
                tools.append(entry)

        return tools

    def _instance_label(self, connector: Connector, configuration: IntegrationConfiguration) -> Optional[str]:
        try:
            credentials = self.broker.load_credentials(configuration)
        except CredentialDecryptionError:
            logger.warning(f"Could not decrypt credentials of configuration {configuration.id}, listing without instance URL")
            return None
        return connector.describe_instance(credentials)

    @staticmethod
    def _entry(
        connector: Connector,
        definition: ToolDefinition,
        tool_id: str,
        configuration: Optional[IntegrationConfiguration] = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "id": tool_id,
            "name": definition.name,
            "description": definition.description,
            "parameters": definition.json_schema(),
            "integration_type": connector.type,
        }
        if configuration is not None:
            entry["instance_name"] = configuration.instance_name
            entry["config_id"] = configuration.id
        return entry
