"""User and organization membership models."""
from sqlalchemy import Boolean, Column, Enum as SQLEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from nics_api.models.base import BaseModel
from nics_api.models.enums import SystemRole


class User(BaseModel):
    """User entity, identified by the username the auth proxy forwards."""

    __tablename__ = "users"

    username = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True
    )
    active = Column(
        Boolean,
        nullable=False,
        default=True
    )

    # Relationships
    memberships = relationship(
        "UserOrg",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"


class UserOrg(BaseModel):
    """Membership of a user in an organization within one workspace."""

    __tablename__ = "user_orgs"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    org_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    workspace_id = Column(
        Integer,
        nullable=False
    )
    role = Column(
        SQLEnum(SystemRole, name="system_role", create_type=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=SystemRole.USER
    )

    # Relationships
    user = relationship(
        "User",
        back_populates="memberships"
    )
    organization = relationship(
        "Organization",
        back_populates="memberships"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "org_id",
            "workspace_id",
            name="uq_user_org_workspace"
        ),
    )

    def __repr__(self) -> str:
        return f"<UserOrg(user_id={self.user_id}, org_id={self.org_id}, role={self.role})>"
