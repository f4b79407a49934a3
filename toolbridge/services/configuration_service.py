"""
Integration Configuration Store
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.encryption import EncryptionService, get_encryption_service
from ..models.integration import IntegrationConfiguration

logger = logging.getLogger(__name__)


def default_instance_name(integration_type: str, existing_count: int) -> str:
    """Jira, Jira 2, Jira 3, ... for successive instances of a type"""
    base = integration_type[:1].upper() + integration_type[1:]
    return base if existing_count == 0 else f"{base} {existing_count + 1}"


class IntegrationConfigurationService:
    """CRUD for per-organisation connector instances"""

    def __init__(self, db: AsyncSession, encryption: Optional[EncryptionService] = None):
        self.db = db
        self.encryption = encryption or get_encryption_service()

    async def get(self, config_id: int) -> Optional[IntegrationConfiguration]:
        return await self.db.get(IntegrationConfiguration, config_id)

    async def get_for_organisation(self, organisation_id: int, config_id: int) -> Optional[IntegrationConfiguration]:
        """Configuration by id, only if it belongs to the organisation"""
        result = await self.db.execute(
            select(IntegrationConfiguration).where(
                IntegrationConfiguration.id == config_id,
                IntegrationConfiguration.organisation_id == organisation_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_organisation(self, organisation_id: int, integration_type: Optional[str] = None) -> List[IntegrationConfiguration]:
        stmt = select(IntegrationConfiguration).where(IntegrationConfiguration.organisation_id == organisation_id)
        if integration_type:
            stmt = stmt.where(IntegrationConfiguration.integration_type == integration_type)
        result = await self.db.execute(stmt.order_by(IntegrationConfiguration.id))
        return list(result.scalars().all())

    async def find_for_catalog(self, organisation_id: int, workflow_user_id: Optional[str] = None) -> List[IntegrationConfiguration]:
        """
        Configurations visible to a caller

        With a workflow user, only configurations bound to that user or bound to
        nobody (organisation-wide) are returned.
        """
        stmt = select(IntegrationConfiguration).where(IntegrationConfiguration.organisation_id == organisation_id)
        if workflow_user_id is not None:
            stmt = stmt.where(
                or_(
                    IntegrationConfiguration.workflow_user_id == workflow_user_id,
                    IntegrationConfiguration.workflow_user_id.is_(None),
                )
            )
        result = await self.db.execute(stmt.order_by(IntegrationConfiguration.id))
        return list(result.scalars().all())

    async def find_one(
        self,
        organisation_id: int,
        integration_type: str,
        workflow_user_id: Optional[str] = None,
        instance_name: Optional[str] = None,
    ) -> Optional[IntegrationConfiguration]:
        stmt = select(IntegrationConfiguration).where(
            IntegrationConfiguration.organisation_id == organisation_id,
            IntegrationConfiguration.integration_type == integration_type,
        )
        if instance_name is not None:
            stmt = stmt.where(IntegrationConfiguration.instance_name == instance_name)
        if workflow_user_id is not None:
            stmt = stmt.where(
                or_(
                    IntegrationConfiguration.workflow_user_id == workflow_user_id,
                    IntegrationConfiguration.workflow_user_id.is_(None),
                )
            )
        else:
            stmt = stmt.where(IntegrationConfiguration.workflow_user_id.is_(None))

        result = await self.db.execute(stmt.order_by(IntegrationConfiguration.id).limit(1))
        return result.scalar_one_or_none()

    async def _count(self, organisation_id: int, integration_type: str) -> int:
        result = await self.db.execute(
            select(func.count(IntegrationConfiguration.id)).where(
                IntegrationConfiguration.organisation_id == organisation_id,
                IntegrationConfiguration.integration_type == integration_type,
            )
        )
        return int(result.scalar() or 0)

    async def _name_taken(self, organisation_id: int, integration_type: str, instance_name: str) -> bool:
        result = await self.db.execute(
            select(IntegrationConfiguration.id).where(
                IntegrationConfiguration.organisation_id == organisation_id,
                IntegrationConfiguration.integration_type == integration_type,
                IntegrationConfiguration.instance_name == instance_name,
            )
        )
        return result.first() is not None

    async def get_or_create(
        self,
        organisation_id: int,
        integration_type: str,
        workflow_user_id: Optional[str] = None,
        instance_name: Optional[str] = None,
        owner_user_id: Optional[int] = None,
    ) -> IntegrationConfiguration:
        configuration = await self.find_one(organisation_id, integration_type, workflow_user_id, instance_name)
        if configuration:
            return configuration

        if instance_name is None:
            count = await self._count(organisation_id, integration_type)
            instance_name = default_instance_name(integration_type, count)
            while await self._name_taken(organisation_id, integration_type, instance_name):
                count += 1
                instance_name = default_instance_name(integration_type, count)

        configuration = IntegrationConfiguration(
            organisation_id=organisation_id,
            integration_type=integration_type,
            instance_name=instance_name,
            workflow_user_id=workflow_user_id,
            owner_user_id=owner_user_id,
            disabled_tools=[],
            active=True,
        )
        self.db.add(configuration)
        await self.db.commit()
        await self.db.refresh(configuration)

        logger.info(f"Created {integration_type} configuration '{instance_name}' for organisation {organisation_id}")
        return configuration

    async def upsert(
        self,
        organisation_id: int,
        integration_type: str,
        instance_name: str,
        credentials: Optional[Dict[str, Any]] = None,
        workflow_user_id: Optional[str] = None,
        owner_user_id: Optional[int] = None,
    ) -> Tuple[IntegrationConfiguration, bool]:
        """
        Create or update the (organisation, type, instance name) configuration

        Returns (configuration, created). The triple is unique, so a concurrent
        insert loses on the constraint and is retried as an update.
        """
        configuration = await self._find_by_name(organisation_id, integration_type, instance_name)
        created = configuration is None

        if created:
            configuration = IntegrationConfiguration(
                organisation_id=organisation_id,
                integration_type=integration_type,
                instance_name=instance_name,
                disabled_tools=[],
                active=True,
            )
            self.db.add(configuration)

        self._apply(configuration, credentials, workflow_user_id, owner_user_id)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if not created:
                raise
            logger.info(f"Concurrent create of {integration_type}/{instance_name}, updating instead")
            configuration = await self._find_by_name(organisation_id, integration_type, instance_name)
            if configuration is None:
                raise
            created = False
            self._apply(configuration, credentials, workflow_user_id, owner_user_id)
            await self.db.commit()

        await self.db.refresh(configuration)
        return configuration, created

    async def _find_by_name(self, organisation_id: int, integration_type: str, instance_name: str) -> Optional[IntegrationConfiguration]:
        result = await self.db.execute(
            select(IntegrationConfiguration).where(
                IntegrationConfiguration.organisation_id == organisation_id,
                IntegrationConfiguration.integration_type == integration_type,
                IntegrationConfiguration.instance_name == instance_name,
            )
        )
        return result.scalar_one_or_none()

    def _apply(
        self,
        configuration: IntegrationConfiguration,
        credentials: Optional[Dict[str, Any]],
        workflow_user_id: Optional[str],
        owner_user_id: Optional[int],
    ) -> None:
        if workflow_user_id is not None:
            configuration.workflow_user_id = workflow_user_id
        if owner_user_id is not None:
            configuration.owner_user_id = owner_user_id
        if credentials is not None:
            self._store_credentials(configuration, credentials)

    def _store_credentials(self, configuration: IntegrationConfiguration, credentials: Dict[str, Any]) -> None:
        configuration.encrypted_credentials = self.encryption.encrypt_credentials(credentials)
        if configuration.disconnected_at is not None:
            # Fresh credentials undo an automatic disconnect
            configuration.active = True
            configuration.disconnect_reason = None
            configuration.disconnected_at = None
            logger.info(f"Configuration {configuration.id} reactivated with new credentials")

    async def set_credentials(self, configuration: IntegrationConfiguration, credentials: Dict[str, Any]) -> IntegrationConfiguration:
        self._store_credentials(configuration, credentials)
        await self.db.commit()
        return configuration

    async def set_active(self, configuration: IntegrationConfiguration, active: bool) -> IntegrationConfiguration:
        configuration.active = active
        if active:
            configuration.disconnect_reason = None
            configuration.disconnected_at = None
        await self.db.commit()
        return configuration

    async def disable_tool(self, configuration: IntegrationConfiguration, tool_name: str) -> IntegrationConfiguration:
        configuration.disable_tool(tool_name)
        await self.db.commit()
        return configuration

    async def enable_tool(self, configuration: IntegrationConfiguration, tool_name: str) -> IntegrationConfiguration:
        configuration.enable_tool(tool_name)
        await self.db.commit()
        return configuration

    async def set_disabled_tools(self, configuration: IntegrationConfiguration, tool_names: Iterable[str]) -> IntegrationConfiguration:
        configuration.disabled_tools = list(dict.fromkeys(tool_names))
        await self.db.commit()
        return configuration

    async def touch_last_accessed(self, configuration: IntegrationConfiguration) -> None:
        configuration.last_accessed_at = datetime.utcnow()
        await self.db.commit()

    async def delete(self, configuration: IntegrationConfiguration) -> None:
        logger.info(f"Deleting configuration {configuration.id} ({configuration.integration_type})")
        await self.db.delete(configuration)
        await self.db.commit()
