"""Organization hierarchy queries."""
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nics_api.models.organization import Organization, OrgParent


class OrgHierarchyService:
    """Walks the ``org_parents`` graph.

    Traversal is breadth-first, one query per level, and tolerates cycles in
    bad data by never revisiting an org.
    """

    def __init__(self, db: AsyncSession):
        """Initialize org hierarchy service.

        Args:
            db: Database session
        """
        self.db = db

    async def _walk(self, start: Iterable[int], upward: bool) -> set[int]:
        if upward:
            source, target = OrgParent.org_id, OrgParent.parent_org_id
        else:
            source, target = OrgParent.parent_org_id, OrgParent.org_id

        origin = set(start)
        seen = set(origin)
        frontier = set(origin)
        while frontier:
            result = await self.db.execute(select(target).where(source.in_(frontier)))
            frontier = set(result.scalars().all()) - seen
            seen |= frontier
        return seen - origin

    async def get_parents(self, org_id: int) -> set[int]:
        """Get every ancestor of an organization.

        Args:
            org_id: Organization ID

        Returns:
            Ancestor org IDs up to the root(s), excluding ``org_id``
        """
        return await self._walk([org_id], upward=True)

    async def get_children(self, org_ids: Iterable[int]) -> set[int]:
        """Get every descendant of the given organizations.

        Args:
            org_ids: Organization IDs

        Returns:
            Descendant org IDs, excluding the given ones
        """
        return await self._walk(org_ids, upward=False)

    async def find_missing(self, org_ids: Iterable[int]) -> set[int]:
        wanted = set(org_ids)
        if not wanted:
            return set()
        result = await self.db.execute(
            select(Organization.id).where(Organization.id.in_(wanted))
        )
        return wanted - set(result.scalars().all())
