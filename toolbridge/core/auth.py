"""
Authentication dependencies

The dispatch API takes a personal access token, either in the configured token
header (X-Prompt-Token by default) or as Authorization: Bearer <token>. The
management API takes the operator key in X-API-KEY, and the organisation-scoped
integration API a shared Basic auth user.
"""
import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBasic, HTTPBasicCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import get_db
from .errors import AuthenticationError, BasicAuthenticationError
from .toml_config import toml_config
from ..models.organisation import OrganisationMembership
from ..services.access_token_service import AccessTokenService

logger = logging.getLogger(__name__)

# Security instance for Authorization Bearer tokens
security = HTTPBearer(auto_error=False)
admin_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)
basic = HTTPBasic(auto_error=False)

TOKEN_ENDPOINT = "POST /organisations/{uuid}/members/{user_id}/token"


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    token = request.headers.get(toml_config.get_token_header())
    if token:
        return token.strip()
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def token_auth_required(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> OrganisationMembership:
    """FastAPI dependency resolving the caller's (user, organisation) membership"""
    token = extract_token(request, credentials)
    if not token:
        raise AuthenticationError(
            f"Please generate a token at {TOKEN_ENDPOINT}",
            error="No API token provided",
        )

    membership = await AccessTokenService(db).authenticate(token)
    if membership is None:
        logger.info("Rejected dispatch request with unknown access token")
        raise AuthenticationError(f"Please generate a new token at {TOKEN_ENDPOINT}")

    return membership


async def admin_key_required(api_key: Optional[str] = Depends(admin_key_header)) -> bool:
    """FastAPI dependency guarding the management routers with ADMIN_API_KEY"""
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="ADMIN_API_KEY not configured on server",
        )

    rejection = None
    if not api_key:
        rejection = "X-API-KEY header required"
    elif not secrets.compare_digest(api_key.encode(), settings.ADMIN_API_KEY.encode()):
        logger.warning("Rejected management request with invalid X-API-KEY")
        rejection = "Invalid X-API-KEY"

    if rejection:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=rejection,
            headers={"WWW-Authenticate": "X-API-KEY"},
        )
    return True


async def basic_auth_required(credentials: Optional[HTTPBasicCredentials] = Depends(basic)) -> str:
    """FastAPI dependency for /api/integrations; returns the authenticated user name"""
    user, password = settings.INTEGRATION_API_USER, settings.INTEGRATION_API_PASSWORD
    if not user or not password:
        logger.warning("Rejected integration API request: INTEGRATION_API_USER/PASSWORD not configured")
        raise BasicAuthenticationError("The integration API is not enabled on this server")

    if credentials is None:
        raise BasicAuthenticationError("Basic credentials required")

    user_ok = secrets.compare_digest(credentials.username.encode(), user.encode())
    password_ok = secrets.compare_digest(credentials.password.encode(), password.encode())
    if not (user_ok and password_ok):
        logger.info("Rejected integration API request with wrong Basic credentials")
        raise BasicAuthenticationError("Invalid Basic credentials")

    return credentials.username
