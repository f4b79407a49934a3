# Models Package
from .organisation import Organisation, User, OrganisationMembership
from .integration import IntegrationConfiguration, AuditLog

__all__ = ["Organisation", "User", "OrganisationMembership", "IntegrationConfiguration", "AuditLog"]
