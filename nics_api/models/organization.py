"""Organization and organization hierarchy models."""
from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from nics_api.models.base import Base, BaseModel


class Organization(BaseModel):
    """Organization entity (agency, department, unit).

    Organizations form a hierarchy through ``OrgParent`` rows. An org can
    have more than one parent; the graph is expected to be acyclic.
    """

    __tablename__ = "organizations"

    name = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )
    prefix = Column(
        String(32),
        nullable=True
    )

    # Relationships
    memberships = relationship(
        "UserOrg",
        back_populates="organization",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "LENGTH(name) > 0",
            name="organization_name_not_empty"
        ),
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"


class OrgParent(Base):
    """Edge in the organization hierarchy: ``org_id`` is a child of ``parent_org_id``."""

    __tablename__ = "org_parents"

    org_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True
    )
    parent_org_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
        index=True
    )

    __table_args__ = (
        CheckConstraint(
            "org_id <> parent_org_id",
            name="org_parent_not_self"
        ),
    )

    def __repr__(self) -> str:
        return f"<OrgParent(org_id={self.org_id}, parent_org_id={self.parent_org_id})>"
