"""
Audit Log Service
"""
import json
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.toml_config import toml_config
from ..models.integration import AuditLog

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("password", "token", "api_key", "apikey", "secret", "credentials", "authorization")
REDACTED = "***REDACTED***"


def sanitize_data(data: Any) -> Any:
    """Recursively replace values whose key looks sensitive"""
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if any(marker in str(key).lower() for marker in SENSITIVE_KEYS):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_data(value)
        return sanitized
    if isinstance(data, list):
        return [sanitize_data(item) for item in data]
    return data


def truncate_data(data: Any, max_length: Optional[int] = None) -> Any:
    """Keep large payloads out of the audit table"""
    if max_length is None:
        max_length = toml_config.get_audit_response_max_chars()

    encoded = json.dumps(data, default=str)
    if len(encoded) <= max_length:
        return data

    return {
        "_truncated": True,
        "_original_size": len(encoded),
        "_preview": encoded[:max_length],
    }


class AuditLogService:
    """Append-only audit trail; writing never interrupts the caller"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str,
        organisation_id: Optional[int],
        user_id: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> None:
        try:
            entry = AuditLog(
                action=action,
                organisation_id=organisation_id,
                user_id=user_id,
                execution_id=execution_id,
                data=data or {},
            )
            if request is not None:
                entry.ip = request.client.host if request.client else None
                entry.user_agent = request.headers.get("user-agent")

            self.db.add(entry)
            await self.db.commit()
        except Exception:
            logger.exception(f"Failed to write audit log entry '{action}'")
            await self.db.rollback()
