"""
Token-authenticated tool dispatcher

Resolves a tool reference against the registry and the caller's
organisation, enforces the configuration gates, runs the connector and turns
whatever happens into an audited, uniform response envelope.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

import httpx
from fastapi import Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.encryption import EncryptionService
from ..core.errors import (
    ConfigurationError,
    ConnectorExecutionError,
    CredentialUnavailableError,
    DispatchError,
    ToolNotFoundError,
)
from ..core.toml_config import toml_config
from ..integrations.base import Connector
from ..integrations.registry import ConnectorRegistry
from ..models.integration import IntegrationConfiguration
from ..models.organisation import Organisation, OrganisationMembership
from .audit_log import AuditLogService, sanitize_data, truncate_data
from .configuration_service import IntegrationConfigurationService
from .connection_status import ConnectionStatusService
from .credential_broker import CredentialBroker
from .tool_provider import ToolFilterCriteria, ToolProviderService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolReference:
    """A tool name plus, for credentialed connectors, the configuration it runs against"""

    tool_name: str
    config_id: Optional[int] = None

    @classmethod
    def parse(cls, tool_id: str) -> "ToolReference":
        """Decode the legacy "<tool>_<configId>" form; only an all-digit last segment counts"""
        name, sep, suffix = tool_id.rpartition("_")
        if sep and name and suffix.isdigit():
            return cls(tool_name=name, config_id=int(suffix))
        return cls(tool_name=tool_id)

    @classmethod
    def from_request(cls, tool_id: Optional[str] = None, tool: Optional[Dict[str, Any]] = None) -> "ToolReference":
        if tool and tool.get("name"):
            config_id = tool.get("config_id")
            try:
                config_id = int(config_id) if config_id is not None else None
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Invalid configuration id: {config_id!r}",
                    error="Invalid configuration id",
                )
            return cls(tool_name=str(tool["name"]), config_id=config_id)

        if tool_id:
            return cls.parse(str(tool_id))

        raise DispatchError(
            "Provide tool_id or tool.name in the request body",
            error="Tool ID is required",
            hint="List available tools via GET /api/mcp/tools",
        )

    @property
    def tool_id(self) -> str:
        if self.config_id is None:
            return self.tool_name
        return f"{self.tool_name}_{self.config_id}"


@dataclass(frozen=True)
class DispatchCaller:
    """An organisation plus an optional workflow user, for callers that hold no access token"""

    organisation: Organisation
    workflow_user_id: Optional[str] = None
    user_id: Optional[int] = None

    @property
    def organisation_id(self) -> int:
        return self.organisation.id


# Anything exposing organisation, organisation_id, user_id and workflow_user_id
Caller = Union[OrganisationMembership, DispatchCaller]


def _http_error_text(response: httpx.Response) -> Optional[str]:
    """Best human-readable message from an error body, covering the shapes the connected APIs use"""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    messages = data.get("errorMessages")
    if isinstance(messages, list) and messages:
        return str(messages[0])
    if data.get("message"):
        return str(data["message"])
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if data.get("error_description"):
        return str(data["error_description"])
    if data.get("errors"):
        return json.dumps(data["errors"])
    if isinstance(error, str) and error:
        return error
    return None


def format_exception_details(exc: BaseException) -> Tuple[str, str, int, str]:
    """(kind, message, code, hint) for a failed connector call"""
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        if status_code >= 500:
            return (
                ConnectorExecutionError.SERVER,
                f"Server Error (HTTP {status_code}): The external service encountered an internal error",
                status_code,
                "External service returned a server error (5xx) - try again later",
            )
        text = _http_error_text(exc.response) or str(exc) or "Client error"
        return (
            ConnectorExecutionError.CLIENT,
            f"API Error (HTTP {status_code}): {text}",
            status_code,
            "Request error - check parameters and credentials",
        )

    if isinstance(exc, httpx.RequestError):
        return (
            ConnectorExecutionError.TRANSPORT,
            f"Connection Error: Cannot reach external service. Details: {exc}",
            0,
            "Network error - check if the external service is reachable",
        )

    message = str(exc)
    if isinstance(exc, KeyError):
        message = f"Undefined key {message}"
    lowered = message.lower()

    if isinstance(exc, KeyError) or "credentials" in lowered:
        hint = "Credentials may be missing or invalid - verify integration configuration"
    elif "required" in lowered:
        hint = "Required field missing - check API documentation for required parameters"
    elif "not found" in lowered or "404" in lowered:
        hint = "Resource not found - verify the ID/key exists"
    elif "permission" in lowered or "forbidden" in lowered or "403" in lowered:
        hint = "Permission denied - check API token permissions"
    elif "unauthorized" in lowered or "401" in lowered:
        hint = "Authentication failed - verify credentials"
    else:
        hint = "Check the error message for details"

    code = getattr(exc, "status_code", None)
    return (
        ConnectorExecutionError.UNKNOWN,
        message or "Unknown error occurred",
        code if isinstance(code, int) and code else 500,
        hint,
    )


class ToolDispatcher:
    """Catalog listing and tool execution on behalf of a caller"""

    def __init__(
        self,
        db: AsyncSession,
        registry: ConnectorRegistry,
        encryption: Optional[EncryptionService] = None,
        audit: Optional[AuditLogService] = None,
        status_service: Optional[ConnectionStatusService] = None,
        source: str = "mcp",
    ):
        self.db = db
        self.registry = registry
        self.broker = CredentialBroker(encryption)
        self.configurations = IntegrationConfigurationService(db, self.broker.encryption)
        self.audit = audit or AuditLogService(db)
        self.status = status_service or ConnectionStatusService(db, self.audit)
        # audit label of the entry point: "mcp" for token callers, "api" for the basic-auth API
        self.source = source

    async def list_tools(
        self,
        caller: Caller,
        tool_type_csv: Optional[str] = None,
        execution_id: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> list:
        criteria = ToolFilterCriteria.from_csv(caller.workflow_user_id, tool_type_csv)
        provider = ToolProviderService(
            self.db,
            self.registry,
            self.broker,
            include_system_by_default=toml_config.include_system_by_default(),
        )
        tools = await provider.get_tools_for_organisation(caller.organisation, criteria)

        await self.audit.log(
            "api.mcp.get_tools" if self.source == "mcp" else "api.get_tools",
            caller.organisation_id,
            caller.user_id,
            data={
                "workflow_user_id": criteria.workflow_user_id,
                "tool_types": list(criteria.tool_types),
                "tools_count": len(tools),
            },
            execution_id=execution_id,
            request=request,
        )
        return tools

    async def execute(
        self,
        caller: Caller,
        reference: ToolReference,
        parameters: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> Tuple[int, Dict[str, Any]]:
        """Run a tool; returns (http status, response envelope)"""
        try:
            result = await self._execute(caller, reference, dict(parameters or {}), execution_id, request)
        except DispatchError as e:
            return e.status_code, e.to_envelope()
        return status.HTTP_200_OK, {"success": True, "result": result}

    async def _resolve(self, reference: ToolReference) -> Connector:
        found = self.registry.find_tool(reference.tool_name)
        if found is None:
            raise ToolNotFoundError(
                f"No tool named '{reference.tool_name}'",
                context={"tool_id": reference.tool_id},
            )
        return found[0]

    async def _load_user_configuration(
        self,
        caller: Caller,
        connector: Connector,
        reference: ToolReference,
    ) -> Tuple[IntegrationConfiguration, Dict[str, Any]]:
        if reference.config_id is None:
            raise ConfigurationError(
                "Configuration ID required for user integration tools",
                error="Configuration ID required",
                hint="Use the tool id from the catalog, e.g. <tool>_<configId>",
            )

        configuration = await self.configurations.get_for_organisation(caller.organisation_id, reference.config_id)
        if configuration is None or configuration.integration_type != connector.type:
            raise ConfigurationError(
                f"Configuration {reference.config_id} does not exist in this organisation",
                error="Configuration not found",
                status_code=status.HTTP_403_FORBIDDEN,
            )

        if not configuration.active or configuration.is_tool_disabled(reference.tool_name):
            raise ConfigurationError(
                configuration.disconnect_reason or f"'{reference.tool_name}' is disabled for this configuration",
                error="Tool is disabled",
                status_code=status.HTTP_403_FORBIDDEN,
                hint="Enable the tool or reconnect the integration",
            )

        context = {
            "tool_id": reference.tool_id,
            "tool_name": reference.tool_name,
            "integration_type": connector.type,
        }
        try:
            credentials = self.broker.load_credentials(configuration)
        except CredentialUnavailableError as e:
            raise type(e)(e.message, hint=e.hint, context=context)

        if not credentials:
            raise CredentialUnavailableError(
                "Failed to retrieve or decrypt credentials for this integration",
                context=context,
            )
        return configuration, credentials

    async def _check_system_configuration(
        self,
        caller: Caller,
        connector: Connector,
        reference: ToolReference,
    ) -> Optional[IntegrationConfiguration]:
        configuration = await self.configurations.find_one(
            caller.organisation_id, connector.type, caller.workflow_user_id
        )
        if configuration is not None and (not configuration.active or configuration.is_tool_disabled(reference.tool_name)):
            raise ConfigurationError(
                f"'{reference.tool_name}' is disabled for this organisation",
                error="Tool is disabled",
                status_code=status.HTTP_403_FORBIDDEN,
            )
        return configuration

    async def _execute(
        self,
        caller: Caller,
        reference: ToolReference,
        parameters: Dict[str, Any],
        execution_id: Optional[str],
        request: Optional[Request],
    ) -> Any:
        organisation = caller.organisation
        workflow_user_id = caller.workflow_user_id
        # plain values, the session may be rolled back before the last audit entry
        organisation_id, user_id = caller.organisation_id, caller.user_id

        logger.info(f"Tool execution requested: {reference.tool_id} (organisation {organisation.uuid})")

        connector = await self._resolve(reference)
        configuration: Optional[IntegrationConfiguration] = None
        credentials: Optional[Dict[str, Any]] = None

        if connector.requires_credentials():
            configuration, credentials = await self._load_user_configuration(caller, connector, reference)
        else:
            await self._check_system_configuration(caller, connector, reference)

        parameters["organisationId"] = organisation.id
        parameters["organisationUuid"] = organisation.uuid
        parameters["workflowUserId"] = workflow_user_id

        audit_base = {
            "tool_id": reference.tool_id,
            "tool_name": reference.tool_name,
            "integration_type": connector.type,
            "workflow_user_id": workflow_user_id,
            "source": self.source,
        }
        await self.audit.log(
            "tool_execution.started",
            organisation_id,
            user_id,
            data={**audit_base, "request_payload": sanitize_data(parameters)},
            execution_id=execution_id,
            request=request,
        )

        snapshot = dict(credentials) if credentials is not None else None
        try:
            result = await connector.execute_tool(reference.tool_name, parameters, credentials)
        except Exception as e:
            kind, message, code, hint = format_exception_details(e)

            logger.error(
                f"Tool execution failed: {reference.tool_id} ({connector.type}) "
                f"{type(e).__name__}: {e}"
            )

            if configuration is not None and connector.requires_credentials() and self.status.is_credential_failure(e, connector.type):
                await self._mark_disconnected(configuration, message)

            await self.audit.log(
                "tool_execution.failed",
                organisation_id,
                user_id,
                data={**audit_base, "success": False, "error": message},
                execution_id=execution_id,
                request=request,
            )

            raise ConnectorExecutionError(
                message,
                kind=kind,
                cause=e,
                hint=hint,
                error_code=code,
                context={
                    "tool_id": reference.tool_id,
                    "tool_name": reference.tool_name,
                    "integration_type": connector.type,
                },
            )

        logger.info(f"Tool executed successfully: {reference.tool_id} ({connector.type})")

        if configuration is not None:
            await self._record_access(configuration, credentials if credentials != snapshot else None)

        await self.audit.log(
            "tool_execution.completed",
            organisation_id,
            user_id,
            data={**audit_base, "success": True, "response_data": truncate_data(result)},
            execution_id=execution_id,
            request=request,
        )
        return result

    async def _mark_disconnected(self, configuration: IntegrationConfiguration, reason: str) -> None:
        try:
            await self.status.mark_disconnected(configuration, reason)
        except Exception:
            logger.exception(f"Failed to mark configuration {configuration.id} as disconnected")
            await self.db.rollback()

    async def _record_access(
        self,
        configuration: IntegrationConfiguration,
        refreshed_credentials: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Stamp last access and store a credential bag the connector refreshed in place"""
        try:
            if refreshed_credentials:
                logger.info(f"Storing refreshed credentials for configuration {configuration.id}")
                await self.configurations.set_credentials(configuration, refreshed_credentials)
            await self.configurations.touch_last_accessed(configuration)
        except Exception:
            logger.exception(f"Failed to update configuration {configuration.id} after tool execution")
            await self.db.rollback()
