"""
Dispatch API Endpoints (token authenticated)
"""
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import token_auth_required
from ..core.database import get_db
from ..integrations.registry import ConnectorRegistry, get_registry
from ..models.organisation import OrganisationMembership
from ..services.dispatcher import ToolDispatcher, ToolReference

router = APIRouter(prefix="/api/mcp", tags=["Dispatch"])


class ToolSelector(BaseModel):
    """Structured tool reference; a non-numeric config_id is rejected by ToolReference"""
    name: str
    config_id: Optional[Union[int, str]] = None


class ToolExecutionRequest(BaseModel):
    """Either tool_id ("jira_search_42") or tool ({"name": "jira_search", "config_id": 42})"""
    tool_id: Optional[str] = None
    tool: Optional[ToolSelector] = None
    parameters: Optional[Dict[str, Any]] = None
    execution_id: Optional[str] = None


@router.get("/tools")
async def get_tools(
    request: Request,
    tool_type: Optional[str] = Query(None, description="Comma separated connector types, e.g. system,jira"),
    execution_id: Optional[str] = Query(None),
    membership: OrganisationMembership = Depends(token_auth_required),
    registry: ConnectorRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_db),
):
    """Tool catalog for the caller's organisation"""
    dispatcher = ToolDispatcher(db, registry)
    tools = await dispatcher.list_tools(membership, tool_type, execution_id, request)
    return {"tools": tools}


@router.post("/execute")
async def execute_tool(
    body: ToolExecutionRequest,
    request: Request,
    execution_id: Optional[str] = Query(None),
    membership: OrganisationMembership = Depends(token_auth_required),
    registry: ConnectorRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_db),
):
    """Execute a tool on behalf of the authenticated caller"""
    # Raises DispatchError (rendered by the app handler) when no tool is named
    reference = ToolReference.from_request(
        body.tool_id,
        body.tool.model_dump() if body.tool else None,
    )

    dispatcher = ToolDispatcher(db, registry)
    status_code, envelope = await dispatcher.execute(
        membership,
        reference,
        body.parameters,
        body.execution_id or execution_id,
        request,
    )
    return JSONResponse(status_code=status_code, content=envelope)
