"""Seed script for development data.

Creates:
- Organization hierarchy "NICS Dev" > "Region 1" > "Station 11"
- Super user and an admin of "Region 1" in workspace 1

Can be run multiple times safely (skips if exists).
"""
import asyncio
import os

from sqlalchemy import select

from nics_api.core.database import get_db
from nics_api.models.enums import SystemRole
from nics_api.models.organization import Organization, OrgParent
from nics_api.models.user import User, UserOrg

WORKSPACE_ID = int(os.environ.get("SEED_WORKSPACE_ID", "1"))

# (name, prefix, parent name)
ORGANIZATIONS = [
    ("NICS Dev", "DEV", None),
    ("Region 1", "R1", "NICS Dev"),
    ("Station 11", "S11", "Region 1"),
]

# (username, org name, role)
USERS = [
    (os.environ.get("SEED_SUPER_USER", "super@nics.local"), "NICS Dev", SystemRole.SUPER),
    (os.environ.get("SEED_ADMIN_USER", "admin@nics.local"), "Region 1", SystemRole.ADMIN),
]


async def _get_or_create_org(db, name: str, prefix: str) -> Organization:
    result = await db.execute(select(Organization).where(Organization.name == name))
    org = result.scalar_one_or_none()
    if org:
        print(f"✓ Organization '{name}' already exists (ID: {org.id})")
        return org
    org = Organization(name=name, prefix=prefix)
    db.add(org)
    await db.flush()
    print(f"✓ Created organization '{name}' (ID: {org.id})")
    return org


async def seed_data():
    """Seed development data."""
    print("Starting database seeding...")

    async for db in get_db():
        orgs: dict[str, Organization] = {}
        for name, prefix, parent_name in ORGANIZATIONS:
            org = await _get_or_create_org(db, name, prefix)
            orgs[name] = org
            if parent_name is None:
                continue
            parent = orgs[parent_name]
            existing = await db.get(OrgParent, (org.id, parent.id))
            if existing is None:
                db.add(OrgParent(org_id=org.id, parent_org_id=parent.id))
                print(f"✓ Linked '{name}' under '{parent_name}'")

        for username, org_name, role in USERS:
            result = await db.execute(select(User).where(User.username == username))
            user = result.scalar_one_or_none()
            if user:
                print(f"✓ User '{username}' already exists (ID: {user.id})")
                continue
            user = User(username=username, active=True)
            db.add(user)
            await db.flush()
            db.add(UserOrg(user_id=user.id, org_id=orgs[org_name].id, workspace_id=WORKSPACE_ID, role=role))
            print(f"✓ Created {role.value} user '{username}' in '{org_name}'")

        await db.commit()

    print("\n✓ Database seeding completed successfully!")
    print("\nSend requests with the header:")
    print(f"  X-Remote-User: {USERS[1][0]}")


if __name__ == "__main__":
    asyncio.run(seed_data())
