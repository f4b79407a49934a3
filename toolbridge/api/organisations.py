"""
Organisation, Membership and Access Token API Endpoints (X-API-KEY)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.auth import admin_key_required
from ..models.organisation import Organisation, OrganisationMembership, User
from ..services.access_token_service import AccessTokenService
from ..services.audit_log import AuditLogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organisations", tags=["Organisations"], dependencies=[Depends(admin_key_required)])


class OrganisationCreateRequest(BaseModel):
    name: str


class MemberCreateRequest(BaseModel):
    email: str
    name: Optional[str] = None
    role: str = "member"
    workflow_user_id: Optional[str] = None


async def _get_organisation(db: AsyncSession, org_uuid: str) -> Organisation:
    result = await db.execute(select(Organisation).where(Organisation.uuid == org_uuid))
    organisation = result.scalar_one_or_none()
    if organisation is None:
        raise HTTPException(status_code=404, detail=f"Organisation '{org_uuid}' not found")
    return organisation


async def _get_membership(db: AsyncSession, org_uuid: str, user_id: int) -> OrganisationMembership:
    organisation = await _get_organisation(db, org_uuid)
    result = await db.execute(
        select(OrganisationMembership).where(
            OrganisationMembership.organisation_id == organisation.id,
            OrganisationMembership.user_id == user_id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} is not a member of '{org_uuid}'")
    return membership


def _membership_dict(membership: OrganisationMembership) -> dict:
    return {
        "user_id": membership.user_id,
        "organisation_id": membership.organisation_id,
        "role": membership.role,
        "workflow_user_id": membership.workflow_user_id,
        "has_token": membership.access_token_hash is not None,
        "token_created_at": membership.token_created_at.isoformat() if membership.token_created_at else None,
    }


@router.post("")
async def create_organisation(request: OrganisationCreateRequest, db: AsyncSession = Depends(get_db)):
    organisation = Organisation(name=request.name)
    db.add(organisation)
    await db.commit()
    await db.refresh(organisation)

    logger.info(f"Created organisation {organisation.uuid} ({organisation.name})")
    return {
        "success": True,
        "organisation": {"id": organisation.id, "uuid": organisation.uuid, "name": organisation.name},
    }


@router.post("/{org_uuid}/members")
async def add_member(org_uuid: str, request: MemberCreateRequest, db: AsyncSession = Depends(get_db)):
    """Add a user (created on first sight) to the organisation, or update the existing membership"""
    organisation = await _get_organisation(db, org_uuid)

    result = await db.execute(select(User).where(User.email == request.email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=request.email, name=request.name)
        db.add(user)
        await db.flush()

    result = await db.execute(
        select(OrganisationMembership).where(
            OrganisationMembership.organisation_id == organisation.id,
            OrganisationMembership.user_id == user.id,
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        membership = OrganisationMembership(user_id=user.id, organisation_id=organisation.id)
        db.add(membership)

    membership.role = request.role
    membership.workflow_user_id = request.workflow_user_id
    await db.commit()

    return {"success": True, "membership": _membership_dict(membership)}


@router.post("/{org_uuid}/members/{user_id}/token")
async def regenerate_token(org_uuid: str, user_id: int, db: AsyncSession = Depends(get_db)):
    """Issue a new access token; the plaintext is only ever returned here"""
    membership = await _get_membership(db, org_uuid, user_id)
    token = await AccessTokenService(db).regenerate(membership)

    await AuditLogService(db).log(
        "api.token.regenerated",
        membership.organisation_id,
        membership.user_id,
    )

    return {
        "success": True,
        "token": token,
        "message": "Store this token now, it cannot be retrieved again",
        "membership": _membership_dict(membership),
    }


@router.delete("/{org_uuid}/members/{user_id}/token")
async def revoke_token(org_uuid: str, user_id: int, db: AsyncSession = Depends(get_db)):
    membership = await _get_membership(db, org_uuid, user_id)
    await AccessTokenService(db).revoke(membership)

    await AuditLogService(db).log("api.token.revoked", membership.organisation_id, membership.user_id)
    return {"success": True, "message": "Token revoked"}
