"""
Integration API Endpoints (Basic authenticated)

Organisation-scoped variant of the dispatch API for server-to-server callers
(workflow engines) that hold no personal access token. The organisation comes
from the path and the workflow user from the request.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import basic_auth_required
from ..core.database import get_db
from ..core.errors import DispatchError
from ..integrations.registry import ConnectorRegistry, get_registry
from ..models.organisation import Organisation
from ..services.dispatcher import DispatchCaller, ToolDispatcher, ToolReference

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations", tags=["Integration API"], dependencies=[Depends(basic_auth_required)])


class IntegrationExecutionRequest(BaseModel):
    tool_id: str
    parameters: Optional[Dict[str, Any]] = None
    workflow_user_id: Optional[str] = None
    execution_id: Optional[str] = None


async def _get_organisation(db: AsyncSession, org_uuid: str) -> Organisation:
    result = await db.execute(select(Organisation).where(Organisation.uuid == org_uuid))
    organisation = result.scalar_one_or_none()
    if organisation is None:
        logger.info(f"Integration API request for unknown organisation {org_uuid}")
        raise DispatchError(
            f"Organisation '{org_uuid}' not found",
            error="Organisation not found",
            hint="Check the organisation UUID in the URL",
            status_code=404,
        )
    return organisation


@router.get("/{org_uuid}")
async def get_tools(
    org_uuid: str,
    request: Request,
    workflow_user_id: Optional[str] = Query(None),
    tool_type: Optional[str] = Query(None, description="Comma separated connector types, e.g. system,jira"),
    execution_id: Optional[str] = Query(None),
    registry: ConnectorRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_db),
):
    """Tool catalog of an organisation, optionally narrowed to one workflow user"""
    organisation = await _get_organisation(db, org_uuid)
    dispatcher = ToolDispatcher(db, registry, source="api")
    tools = await dispatcher.list_tools(DispatchCaller(organisation, workflow_user_id), tool_type, execution_id, request)
    return {"tools": tools}


@router.post("/{org_uuid}/execute")
async def execute_tool(
    org_uuid: str,
    body: IntegrationExecutionRequest,
    request: Request,
    registry: ConnectorRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_db),
):
    """Execute a tool for an organisation on behalf of a workflow user"""
    organisation = await _get_organisation(db, org_uuid)
    reference = ToolReference.from_request(body.tool_id)

    dispatcher = ToolDispatcher(db, registry, source="api")
    status_code, envelope = await dispatcher.execute(
        DispatchCaller(organisation, body.workflow_user_id),
        reference,
        body.parameters,
        body.execution_id,
        request,
    )
    return JSONResponse(status_code=status_code, content=envelope)
