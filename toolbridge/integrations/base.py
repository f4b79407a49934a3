"""
Connector model

A connector wraps one third-party system: it declares its tool catalog and
credential form, validates credential bags and executes tools. Connectors are
stateless across calls; anything per-call (refreshed tokens, ...) travels in
the credential bag.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str = "string"
    required: bool = False
    description: str = ""
    default: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "description": self.description,
        }
        if self.default is not None:
            data["default"] = self.default
        return data


@dataclass(frozen=True)
class ToolDefinition:
    """Immutable description of one callable tool"""

    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = field(default_factory=tuple)

    def required_parameters(self) -> List[str]:
        return [param.name for param in self.parameters if param.required]

    def json_schema(self) -> Dict[str, Any]:
        """Parameters as a JSON-schema object (the shape LLM tool calling expects)"""
        properties: Dict[str, Any] = {}
        for param in self.parameters:
            prop: Dict[str, Any] = {"type": param.type, "description": param.description}
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": self.required_parameters(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [param.to_dict() for param in self.parameters],
        }


@dataclass(frozen=True)
class CredentialField:
    """One entry of a connector's credential form"""

    key: str
    input_type: str  # text, password, url, oauth, email, select
    label: str
    placeholder: Optional[str] = None
    required: bool = True
    help_text: Optional[str] = None
    options: Optional[Dict[str, str]] = None
    conditional_on: Optional[str] = None
    conditional_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "input_type": self.input_type,
            "label": self.label,
            "placeholder": self.placeholder,
            "required": self.required,
            "help_text": self.help_text,
            "options": self.options,
            "conditional_on": self.conditional_on,
            "conditional_value": self.conditional_value,
        }


def tool(name: str, description: str, *parameters: ToolParameter) -> ToolDefinition:
    """Shorthand used by connectors to declare their catalogs"""
    return ToolDefinition(name=name, description=description, parameters=tuple(parameters))


def param(name: str, type: str = "string", required: bool = False, description: str = "", default: Any = None) -> ToolParameter:
    return ToolParameter(name=name, type=type, required=required, description=description, default=default)


class PersonalizedSkill(ABC):
    """Capability: render a system prompt fragment for AI agents"""

    @abstractmethod
    def system_prompt(self, configuration=None) -> str:
        """Prompt for a configuration (an IntegrationConfiguration or None for the generic one)"""
        raise NotImplementedError


class Connector(ABC):
    """Base class for all connectors"""

    type: str
    name: str

    @abstractmethod
    def tools(self) -> List[ToolDefinition]:
        raise NotImplementedError

    @abstractmethod
    def requires_credentials(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def credential_fields(self) -> List[CredentialField]:
        raise NotImplementedError

    @abstractmethod
    async def validate_credentials(self, credentials: Dict[str, Any]) -> bool:
        """May perform a live connectivity check"""
        raise NotImplementedError

    @abstractmethod
    async def execute_tool(
        self,
        tool_name: str,
        parameters: Dict[str, Any],
        credentials: Optional[Dict[str, Any]] = None,
    ) -> Any:
        raise NotImplementedError

    def get_tool(self, tool_name: str) -> Optional[ToolDefinition]:
        for definition in self.tools():
            if definition.name == tool_name:
                return definition
        return None

    def tool_names(self) -> List[str]:
        return [definition.name for definition in self.tools()]

    def describe_instance(self, credentials: Optional[Dict[str, Any]]) -> Optional[str]:
        """Short label (usually the instance URL) that tells instances apart in a catalog"""
        return None

    def as_personalized(self) -> Optional[PersonalizedSkill]:
        if isinstance(self, PersonalizedSkill):
            return self
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "requires_credentials": self.requires_credentials(),
            "personalized": self.as_personalized() is not None,
            "tools": [definition.to_dict() for definition in self.tools()],
            "credential_fields": [f.to_dict() for f in self.credential_fields()],
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type={self.type!r}>"


class SystemConnector(Connector):
    """Platform tool that needs no third-party credentials"""

    def requires_credentials(self) -> bool:
        return False

    def credential_fields(self) -> List[CredentialField]:
        return []

    async def validate_credentials(self, credentials: Dict[str, Any]) -> bool:
        return True


class UserConnector(Connector):
    """Third-party integration configured per organisation with its own credentials"""

    # REST client with an async test_connection(credentials); None skips the live check
    client = None

    def requires_credentials(self) -> bool:
        return True

    def required_credential_keys(self) -> List[str]:
        return [f.key for f in self.credential_fields() if f.required]

    async def validate_credentials(self, credentials: Dict[str, Any]) -> bool:
        """Required keys present and, when a client is wired, a live call succeeds"""
        missing = missing_keys(credentials or {}, self.required_credential_keys())
        if missing:
            logger.debug(f"{self.type} credentials missing keys: {missing}")
            return False

        if self.client is None:
            return True

        try:
            return bool(await self.client.test_connection(credentials))
        except Exception as e:
            logger.info(f"{self.type} credential validation failed: {type(e).__name__}: {e}")
            return False

    @staticmethod
    def _require(parameters: Dict[str, Any], *names: str) -> None:
        missing = [name for name in names if parameters.get(name) in (None, "")]
        if missing:
            raise ValueError(f"Missing required parameter: {', '.join(missing)}")

    def _check_credentials(self, credentials: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not credentials:
            raise ValueError(f"{self.name} integration requires credentials")
        return credentials


def missing_keys(credentials: Dict[str, Any], keys: Iterable[str]) -> List[str]:
    return [key for key in keys if not credentials.get(key)]
