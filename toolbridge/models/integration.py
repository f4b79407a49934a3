"""
Integration configuration and audit models
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON, UniqueConstraint

from ..core.database import Base


class IntegrationConfiguration(Base):
    """Named, per-organisation instance of a connector"""
    __tablename__ = "integration_configurations"

    id = Column(Integer, primary_key=True, index=True)
    organisation_id = Column(Integer, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    integration_type = Column(String(100), nullable=False, index=True)  # jira, system.share_file, ...
    instance_name = Column(String(255), nullable=False)
    workflow_user_id = Column(String(255), nullable=True)  # None = visible to every workflow user

    encrypted_credentials = Column(Text, nullable=True)
    disabled_tools = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)

    disconnect_reason = Column(String(500), nullable=True)
    disconnected_at = Column(DateTime, nullable=True)
    last_accessed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('organisation_id', 'integration_type', 'instance_name', name='uq_integration_instance'),
    )

    def is_tool_disabled(self, tool_name: str) -> bool:
        return tool_name in (self.disabled_tools or [])

    def disable_tool(self, tool_name: str) -> None:
        # Assign a new list so the JSON column is flagged dirty
        disabled = list(self.disabled_tools or [])
        if tool_name not in disabled:
            disabled.append(tool_name)
        self.disabled_tools = disabled

    def enable_tool(self, tool_name: str) -> None:
        self.disabled_tools = [name for name in (self.disabled_tools or []) if name != tool_name]

    def has_credentials(self) -> bool:
        return bool(self.encrypted_credentials)

    def is_system_integration(self) -> bool:
        return self.integration_type.startswith("system.")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "integration_type": self.integration_type,
            "instance_name": self.instance_name,
            "workflow_user_id": self.workflow_user_id,
            "active": self.active,
            "has_credentials": self.has_credentials(),
            "disabled_tools": list(self.disabled_tools or []),
            "disconnect_reason": self.disconnect_reason,
            "disconnected_at": self.disconnected_at.isoformat() if self.disconnected_at else None,
            "last_accessed_at": self.last_accessed_at.isoformat() if self.last_accessed_at else None,
        }


class AuditLog(Base):
    """Structured audit event"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    organisation_id = Column(Integer, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    execution_id = Column(String(255), nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
