"""Incident-organization visibility mapping model."""
from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from nics_api.models.base import BaseModel


class IncidentOrg(BaseModel):
    """Grants an organization's members visibility into an incident.

    An incident with no rows here is unrestricted (visible to the whole
    workspace). Once any row exists the incident is restricted to the mapped
    organizations, and the owning organization must stay mapped.
    """

    __tablename__ = "incident_orgs"

    incident_id = Column(
        Integer,
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    org_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Relationships
    incident = relationship(
        "Incident",
        back_populates="org_mappings"
    )

    __table_args__ = (
        UniqueConstraint(
            "incident_id",
            "org_id",
            name="uq_incident_org"
        ),
    )

    def __repr__(self) -> str:
        return f"<IncidentOrg(incident_id={self.incident_id}, org_id={self.org_id})>"
