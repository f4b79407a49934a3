"""
Organisation, User and membership models
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.database import Base


class Organisation(Base):
    """Tenant owning integration configurations"""
    __tablename__ = "organisations"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, index=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    memberships = relationship("OrganisationMembership", back_populates="organisation", cascade="all, delete-orphan")


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    memberships = relationship("OrganisationMembership", back_populates="user", cascade="all, delete-orphan")


class OrganisationMembership(Base):
    """(user, organisation) pairing; holds the personal access token for the dispatch API"""
    __tablename__ = "user_organisations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    organisation_id = Column(Integer, ForeignKey("organisations.id"), nullable=False, index=True)
    role = Column(String(50), nullable=False, default="member")
    workflow_user_id = Column(String(255), nullable=True)  # Identity in the calling workflow engine

    # SHA-256 of the personal access token; at most one valid token per pairing
    access_token_hash = Column(String(64), unique=True, nullable=True, index=True)
    token_created_at = Column(DateTime, nullable=True)

    joined_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="memberships", lazy="selectin")
    organisation = relationship("Organisation", back_populates="memberships", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('user_id', 'organisation_id', name='uq_user_organisation'),
    )
