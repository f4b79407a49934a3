"""
Personal access tokens for the dispatch API
"""
import hashlib
import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.organisation import OrganisationMembership

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class AccessTokenService:
    """One token per (user, organisation); only its SHA-256 is stored"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def regenerate(self, membership: OrganisationMembership) -> str:
        """Issue a new token; the previous one stops working immediately. Returns the plaintext once."""
        token = secrets.token_urlsafe(32)
        membership.access_token_hash = hash_token(token)
        membership.token_created_at = datetime.utcnow()
        await self.db.commit()

        logger.info(f"Regenerated access token for user {membership.user_id} in organisation {membership.organisation_id}")
        return token

    async def revoke(self, membership: OrganisationMembership) -> None:
        membership.access_token_hash = None
        membership.token_created_at = None
        await self.db.commit()
        logger.info(f"Revoked access token for user {membership.user_id} in organisation {membership.organisation_id}")

    async def authenticate(self, token: Optional[str]) -> Optional[OrganisationMembership]:
        """Membership owning the token, with user and organisation loaded"""
        if not token:
            return None

        result = await self.db.execute(
            select(OrganisationMembership).where(OrganisationMembership.access_token_hash == hash_token(token))
        )
        return result.scalar_one_or_none()
