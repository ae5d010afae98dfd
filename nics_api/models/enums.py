"""Enumerations for organization membership roles."""

from enum import Enum


class SystemRole(str, Enum):
    """Role a user holds within an organization.

    SUPER users may manage every incident in every workspace. ADMIN users
    may manage incidents owned by the organization they administer.
    """

    SUPER = "super"
    ADMIN = "admin"
    USER = "user"
    READ_ONLY = "readonly"

    def can_manage_incidents(self) -> bool:
        return self in (SystemRole.SUPER, SystemRole.ADMIN)
