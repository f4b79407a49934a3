"""
Connection status tracking

Decides whether a failed tool call means the stored credentials are dead and,
if so, takes the configuration offline until someone re-enters them.
"""
import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConnectorExecutionError
from ..core.toml_config import toml_config
from ..models.integration import IntegrationConfiguration
from .audit_log import AuditLogService

logger = logging.getLogger(__name__)

CREDENTIAL_ERROR_PATTERNS = (
    "unauthorized",
    "invalid_grant",
    "invalid_client",
    "access_denied",
    "token expired",
    "token revoked",
    "aadsts",
    "consent_required",
    "api token",
    "authentication failed",
    "invalid credentials",
    "invalid api key",
    "invalid api token",
)

TEMPORARY_ERROR_PATTERNS = (
    "rate limit",
    "too many requests",
    "timeout",
    "connection refused",
    "service unavailable",
    "internal server error",
    "bad gateway",
    "network error",
    "dns",
    "could not resolve",
    "connection reset",
    "ssl",
    "tls",
)

# 403 bodies that mean "the credential itself was rejected" rather than "no access to this resource"
FORBIDDEN_CREDENTIAL_PATTERNS = {
    "jira": ("api token", "permission denied for api"),
    "confluence": ("api token", "permission denied for api"),
    "gitlab": ("insufficient_scope", "forbidden"),
    "hubspot": ("expired", "invalid_authentication"),
    "sharepoint": ("consent", "aadsts", "invalid_grant"),
    "sap_c4c": ("not authorized",),
}


def is_credential_failure(exc: BaseException, integration_type: str) -> bool:
    """True when the failure should take the configuration offline"""
    if isinstance(exc, ConnectorExecutionError) and exc.cause is not None:
        exc = exc.cause

    message = str(exc).lower()

    for pattern in TEMPORARY_ERROR_PATTERNS:
        if pattern in message:
            logger.debug(f"Temporary error pattern '{pattern}' found, not a credential failure")
            return False

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        if status_code == 401:
            logger.info(f"401 Unauthorized from {integration_type}, treating as credential failure")
            return True
        if status_code == 403:
            return _is_forbidden_credential_failure(exc, integration_type)
        return False

    if isinstance(exc, httpx.RequestError):
        return False

    for pattern in CREDENTIAL_ERROR_PATTERNS:
        if pattern in message:
            logger.info(f"Credential error pattern '{pattern}' detected for {integration_type}")
            return True

    return False


def _is_forbidden_credential_failure(exc: httpx.HTTPStatusError, integration_type: str) -> bool:
    patterns = FORBIDDEN_CREDENTIAL_PATTERNS.get(integration_type)
    if not patterns:
        return False

    try:
        body = exc.response.text.lower()
    except Exception:
        body = str(exc).lower()

    return any(pattern in body for pattern in patterns)


class ConnectionStatusService:
    """Marks configurations disconnected / reconnected and audits the change"""

    def __init__(self, db: AsyncSession, audit: Optional[AuditLogService] = None):
        self.db = db
        self.audit = audit or AuditLogService(db)

    def is_credential_failure(self, exc: BaseException, integration_type: str) -> bool:
        return is_credential_failure(exc, integration_type)

    async def mark_disconnected(self, configuration: IntegrationConfiguration, reason: str) -> bool:
        """Take a configuration offline; returns False when it already was"""
        if not configuration.active and configuration.disconnected_at is not None:
            logger.debug(f"Configuration {configuration.id} already disconnected")
            return False

        max_chars = toml_config.get_reason_max_chars()
        if len(reason) > max_chars:
            reason = reason[: max_chars - 3] + "..."

        configuration.active = False
        configuration.disconnect_reason = reason
        configuration.disconnected_at = datetime.utcnow()
        await self.db.commit()

        logger.warning(
            f"Integration {configuration.id} ({configuration.integration_type}, '{configuration.instance_name}') "
            f"marked as disconnected: {reason}"
        )
        await self.audit.log(
            "integration.disconnected",
            configuration.organisation_id,
            configuration.owner_user_id,
            data={
                "integration_id": configuration.id,
                "integration_type": configuration.integration_type,
                "integration_name": configuration.instance_name,
                "reason": reason,
            },
        )
        return True

    async def mark_reconnected(self, configuration: IntegrationConfiguration) -> None:
        configuration.active = True
        configuration.disconnect_reason = None
        configuration.disconnected_at = None
        await self.db.commit()

        logger.info(f"Integration {configuration.id} ({configuration.integration_type}) reconnected")
        await self.audit.log(
            "integration.reconnected",
            configuration.organisation_id,
            configuration.owner_user_id,
            data={
                "integration_id": configuration.id,
                "integration_type": configuration.integration_type,
                "integration_name": configuration.instance_name,
            },
        )
