"""
Integration Management API Endpoints (X-API-KEY)
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.auth import admin_key_required
from ..integrations.registry import ConnectorRegistry, get_registry
from ..models.integration import IntegrationConfiguration
from ..models.organisation import Organisation
from ..services.audit_log import AuditLogService
from ..services.configuration_service import IntegrationConfigurationService
from ..services.connection_status import ConnectionStatusService
from ..services.credential_broker import CredentialBroker
from ..core.errors import CredentialDecryptionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["Integrations"], dependencies=[Depends(admin_key_required)])


# Request Models
class ConfigurationUpsertRequest(BaseModel):
    """Create or update an integration configuration"""
    integration_type: str
    instance_name: str
    credentials: Optional[Dict[str, Any]] = None
    workflow_user_id: Optional[str] = None
    validate_credentials: bool = False


class ActiveStateRequest(BaseModel):
    active: bool


async def _get_organisation(db: AsyncSession, org_uuid: str) -> Organisation:
    result = await db.execute(select(Organisation).where(Organisation.uuid == org_uuid))
    organisation = result.scalar_one_or_none()
    if organisation is None:
        raise HTTPException(status_code=404, detail=f"Organisation '{org_uuid}' not found")
    return organisation


async def _get_configuration(db: AsyncSession, org_uuid: str, config_id: int) -> IntegrationConfiguration:
    organisation = await _get_organisation(db, org_uuid)
    configuration = await IntegrationConfigurationService(db).get_for_organisation(organisation.id, config_id)
    if configuration is None:
        raise HTTPException(status_code=404, detail=f"Configuration {config_id} not found")
    return configuration


@router.get("/connectors")
async def list_connectors(registry: ConnectorRegistry = Depends(get_registry)):
    """Every registered connector with its tools and credential form"""
    return {
        "success": True,
        "system": [connector.to_dict() for connector in registry.system_connectors()],
        "user": [connector.to_dict() for connector in registry.user_connectors()],
        "total": len(registry),
    }


@router.get("/organisations/{org_uuid}/configurations")
async def list_configurations(org_uuid: str, db: AsyncSession = Depends(get_db)):
    organisation = await _get_organisation(db, org_uuid)
    configurations = await IntegrationConfigurationService(db).list_for_organisation(organisation.id)
    return {
        "success": True,
        "configurations": [configuration.to_dict() for configuration in configurations],
        "total": len(configurations),
    }


@router.put("/organisations/{org_uuid}/configurations")
async def upsert_configuration(
    org_uuid: str,
    request: ConfigurationUpsertRequest,
    db: AsyncSession = Depends(get_db),
    registry: ConnectorRegistry = Depends(get_registry),
):
    """Create or update the configuration named instance_name (unique per organisation and type)"""
    organisation = await _get_organisation(db, org_uuid)

    connector = registry.get(request.integration_type)
    if connector is None:
        raise HTTPException(status_code=404, detail=f"Unknown integration type '{request.integration_type}'")

    if request.credentials is not None and request.validate_credentials:
        if not await connector.validate_credentials(request.credentials):
            raise HTTPException(status_code=400, detail=f"{connector.name} credentials could not be validated")

    configuration, created = await IntegrationConfigurationService(db).upsert(
        organisation.id,
        request.integration_type,
        request.instance_name,
        credentials=request.credentials,
        workflow_user_id=request.workflow_user_id,
    )

    await AuditLogService(db).log(
        "integration.created" if created else "integration.updated",
        organisation.id,
        data={
            "integration_id": configuration.id,
            "integration_type": configuration.integration_type,
            "integration_name": configuration.instance_name,
            "credentials_updated": request.credentials is not None,
        },
    )

    return {
        "success": True,
        "created": created,
        "configuration": configuration.to_dict(),
    }


@router.post("/organisations/{org_uuid}/configurations/{config_id}/tools/{tool_name}/disable")
async def disable_tool(
    org_uuid: str,
    config_id: int,
    tool_name: str,
    db: AsyncSession = Depends(get_db),
    registry: ConnectorRegistry = Depends(get_registry),
):
    configuration = await _get_configuration(db, org_uuid, config_id)
    _ensure_tool(registry, configuration, tool_name)
    await IntegrationConfigurationService(db).disable_tool(configuration, tool_name)
    return {"success": True, "configuration": configuration.to_dict()}


@router.post("/organisations/{org_uuid}/configurations/{config_id}/tools/{tool_name}/enable")
async def enable_tool(
    org_uuid: str,
    config_id: int,
    tool_name: str,
    db: AsyncSession = Depends(get_db),
    registry: ConnectorRegistry = Depends(get_registry),
):
    configuration = await _get_configuration(db, org_uuid, config_id)
    _ensure_tool(registry, configuration, tool_name)
    await IntegrationConfigurationService(db).enable_tool(configuration, tool_name)
    return {"success": True, "configuration": configuration.to_dict()}


def _ensure_tool(registry: ConnectorRegistry, configuration: IntegrationConfiguration, tool_name: str) -> None:
    connector = registry.get(configuration.integration_type)
    if connector is None or connector.get_tool(tool_name) is None:
        raise HTTPException(
            status_code=404,
            detail=f"Tool '{tool_name}' does not belong to {configuration.integration_type}",
        )


@router.post("/organisations/{org_uuid}/configurations/{config_id}/active")
async def set_active(
    org_uuid: str,
    config_id: int,
    request: ActiveStateRequest,
    db: AsyncSession = Depends(get_db),
):
    configuration = await _get_configuration(db, org_uuid, config_id)
    if request.active and configuration.disconnected_at is not None:
        await ConnectionStatusService(db).mark_reconnected(configuration)
    else:
        await IntegrationConfigurationService(db).set_active(configuration, request.active)
    return {"success": True, "configuration": configuration.to_dict()}


@router.post("/organisations/{org_uuid}/configurations/{config_id}/test")
async def test_configuration(
    org_uuid: str,
    config_id: int,
    db: AsyncSession = Depends(get_db),
    registry: ConnectorRegistry = Depends(get_registry),
):
    """Live credential check; reports only, never changes the configuration"""
    configuration = await _get_configuration(db, org_uuid, config_id)
    connector = registry.get(configuration.integration_type)
    if connector is None:
        raise HTTPException(status_code=404, detail=f"Unknown integration type '{configuration.integration_type}'")

    try:
        credentials = CredentialBroker().load_credentials(configuration)
    except CredentialDecryptionError as e:
        return {"success": False, "valid": False, "message": e.message}

    if connector.requires_credentials() and credentials is None:
        return {"success": False, "valid": False, "message": "No credentials stored"}

    valid = await connector.validate_credentials(credentials or {})
    return {
        "success": True,
        "valid": valid,
        "message": "Connection successful" if valid else "Connection failed",
    }


@router.delete("/organisations/{org_uuid}/configurations/{config_id}")
async def delete_configuration(org_uuid: str, config_id: int, db: AsyncSession = Depends(get_db)):
    configuration = await _get_configuration(db, org_uuid, config_id)
    await IntegrationConfigurationService(db).delete(configuration)
    return {"success": True, "message": f"Configuration {config_id} deleted"}
