"""SQLAlchemy models."""

from nics_api.models.base import Base, BaseModel
from nics_api.models.enums import SystemRole
from nics_api.models.incident import Incident
from nics_api.models.incident_org import IncidentOrg
from nics_api.models.organization import Organization, OrgParent
from nics_api.models.user import User, UserOrg

__all__ = [
    "Base",
    "BaseModel",
    "SystemRole",
    "Organization",
    "OrgParent",
    "User",
    "UserOrg",
    "Incident",
    "IncidentOrg",
]
