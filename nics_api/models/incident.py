"""Incident model."""
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from nics_api.models.base import BaseModel


class Incident(BaseModel):
    """Incident entity.

    ``owner_org_id`` is the organization that created the incident and is
    fixed at creation. ``workspace_id`` is an opaque tenancy partition.
    """

    __tablename__ = "incidents"

    workspace_id = Column(
        Integer,
        nullable=False,
        index=True
    )
    name = Column(
        String(255),
        nullable=False
    )
    owner_org_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    created_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    active = Column(
        Boolean,
        nullable=False,
        default=True
    )
    description = Column(
        String(1024),
        nullable=True
    )

    # Relationships
    owner_org = relationship("Organization")
    org_mappings = relationship(
        "IncidentOrg",
        back_populates="incident",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "name",
            name="uq_incident_workspace_name"
        ),
    )

    def __repr__(self) -> str:
        return f"<Incident(id={self.id}, name={self.name}, owner_org_id={self.owner_org_id})>"
