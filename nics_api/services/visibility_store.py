"""Incident-org mapping persistence."""
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from nics_api.core.exceptions import NotFoundError
from nics_api.core.visibility import IncidentRef
from nics_api.models.incident import Incident
from nics_api.models.incident_org import IncidentOrg


def incident_ref(incident: Incident) -> IncidentRef:
    return IncidentRef(
        incident_id=incident.id,
        workspace_id=incident.workspace_id,
        owner_org_id=incident.owner_org_id,
        name=incident.name,
        active=incident.active,
    )


class IncidentVisibilityStoreService:
    """Reads and writes ``incident_orgs`` rows for one database session.

    ``lock_incident`` takes a row lock on the incident (``SELECT ... FOR
    UPDATE``) that is held until ``save`` commits, serializing concurrent
    grant/revoke requests for the same incident.
    """

    def __init__(self, db: AsyncSession):
        """Initialize visibility store.

        Args:
            db: Database session
        """
        self.db = db

    async def lock_incident(self, incident_id: int) -> IncidentRef | None:
        result = await self.db.execute(
            select(Incident).where(Incident.id == incident_id).with_for_update()
        )
        incident = result.scalar_one_or_none()
        if incident is None:
            return None
        return incident_ref(incident)

    async def get_owning_org(self, incident_id: int) -> int:
        """Get the owning organization of an incident.

        Raises:
            NotFoundError: If the incident does not exist
        """
        result = await self.db.execute(
            select(Incident.owner_org_id).where(Incident.id == incident_id)
        )
        owner_org_id = result.scalar_one_or_none()
        if owner_org_id is None:
            raise NotFoundError(f"Incident {incident_id} not found")
        return owner_org_id

    async def get_mappings(self, incident_id: int) -> set[int]:
        result = await self.db.execute(
            select(IncidentOrg.org_id).where(IncidentOrg.incident_id == incident_id)
        )
        return set(result.scalars().all())

    async def list_mappings(self, incident_id: int) -> list[IncidentOrg]:
        """Get mapping rows for an incident, oldest first."""
        result = await self.db.execute(
            select(IncidentOrg)
            .where(IncidentOrg.incident_id == incident_id)
            .order_by(IncidentOrg.created_at, IncidentOrg.org_id)
        )
        return list(result.scalars().all())

    async def add_mapping(self, incident_id: int, org_id: int, user_id: int | None = None) -> None:
        self.db.add(IncidentOrg(incident_id=incident_id, org_id=org_id, user_id=user_id))
        await self.db.flush()

    async def remove_mapping(self, incident_id: int, org_id: int) -> None:
        await self.db.execute(
            delete(IncidentOrg)
            .where(IncidentOrg.incident_id == incident_id)
            .where(IncidentOrg.org_id == org_id)
        )

    async def save(self) -> None:
        await self.db.commit()
