"""
System API Endpoints
"""
from fastapi import APIRouter, Depends, Request

from ..core.toml_config import toml_config
from ..core.auth import admin_key_required

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring and deployment"""
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "healthy",
        "service": "ToolBridge",
        "version": request.app.version,
        "connectors": len(registry) if registry is not None else 0,
    }


@router.get("/config")
async def get_system_config(
    _: bool = Depends(admin_key_required)
):
    """Get system configuration - Protected by X-API-KEY"""
    return {
        "success": True,
        "token_header": toml_config.get_token_header(),
        "config_info": toml_config.get_config_info(),
        "loaded_config_path": toml_config.get_loaded_config_path(),
        "message": "System configuration retrieved successfully"
    }


@router.post("/config/reload")
async def reload_system_config(
    _: bool = Depends(admin_key_required)
):
    """Reload TOML configuration - Protected by X-API-KEY"""
    toml_config.reload()
    return {
        "success": True,
        "token_header": toml_config.get_token_header(),
        "message": "Configuration reloaded successfully"
    }
