"""Incident service: incident creation, visibility queries and org access changes."""
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nics_api.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    UnknownUserError,
)
from nics_api.core.structured_logging import log_json
from nics_api.core.visibility import GrantResult, NotificationGateway, RevokeResult, is_visible
from nics_api.models.enums import SystemRole
from nics_api.models.incident import Incident
from nics_api.models.incident_org import IncidentOrg
from nics_api.models.organization import Organization
from nics_api.models.user import User, UserOrg
from nics_api.schemas.incident import CreateIncidentRequest
from nics_api.services.incident_notifier import IncidentNotifier, publish_all
from nics_api.services.org_hierarchy import OrgHierarchyService
from nics_api.services.visibility_reconciler import VisibilityReconciler
from nics_api.services.visibility_store import IncidentVisibilityStoreService, incident_ref

logger = logging.getLogger(__name__)


class IncidentService:
    """Service for incidents and their organization visibility restrictions."""

    def __init__(self, db: AsyncSession, gateway: NotificationGateway):
        """Initialize incident service.

        Args:
            db: Database session
            gateway: Message bus used for client notifications
        """
        self.db = db
        self.gateway = gateway
        self.notifier = IncidentNotifier()
        self.hierarchy = OrgHierarchyService(db)
        self.store = IncidentVisibilityStoreService(db)
        self.reconciler = VisibilityReconciler(
            hierarchy=self.hierarchy,
            store=self.store,
            gateway=gateway,
            notifier=self.notifier,
        )

    async def get_user(self, username: str) -> User:
        """Resolve the username forwarded by the auth proxy.

        Raises:
            UnknownUserError: If no active user has that username
        """
        result = await self.db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user is None or not user.active:
            raise UnknownUserError(f"User {username} not found")
        return user

    async def _memberships(self, user: User, workspace_id: int) -> list[UserOrg]:
        result = await self.db.execute(
            select(UserOrg)
            .where(UserOrg.user_id == user.id)
            .where(UserOrg.workspace_id == workspace_id)
        )
        return list(result.scalars().all())

    async def _viewer_org_ids(self, user: User, workspace_id: int) -> set[int] | None:
        """Orgs whose visibility the user shares, or None for super users (everything)."""
        memberships = await self._memberships(user, workspace_id)
        if any(m.role == SystemRole.SUPER for m in memberships):
            return None
        org_ids = {m.org_id for m in memberships}
        return org_ids | await self.hierarchy.get_children(org_ids)

    async def get_incident(self, workspace_id: int, incident_id: int) -> Incident:
        """Get incident by ID within a workspace.

        Raises:
            NotFoundError: If the incident does not exist in the workspace
        """
        result = await self.db.execute(
            select(Incident)
            .where(Incident.id == incident_id)
            .where(Incident.workspace_id == workspace_id)
        )
        incident = result.scalar_one_or_none()
        if incident is None:
            raise NotFoundError(f"Incident {incident_id} not found")
        return incident

    async def _get_visible_incident(self, workspace_id: int, incident_id: int, user: User) -> Incident:
        incident = await self.get_incident(workspace_id, incident_id)
        viewer_orgs = await self._viewer_org_ids(user, workspace_id)
        if viewer_orgs is None:
            return incident
        if not is_visible(await self.store.get_mappings(incident_id), viewer_orgs):
            # Restricted incidents are not acknowledged to outsiders
            raise NotFoundError(f"Incident {incident_id} not found")
        return incident

    async def _ensure_can_manage(self, incident: Incident, user: User) -> int | None:
        """Allow super users and admins of the owning org.

        Returns:
            The owning org ID when the user acts as its admin, else None

        Raises:
            PermissionDeniedError: If the user may not change the incident
        """
        memberships = await self._memberships(user, incident.workspace_id)
        if any(m.role == SystemRole.SUPER for m in memberships):
            return None
        for membership in memberships:
            if membership.org_id == incident.owner_org_id and membership.role.can_manage_incidents():
                return membership.org_id
        raise PermissionDeniedError(
            "User must be admin of org owning the incident to make changes"
        )

    async def create(
        self,
        workspace_id: int,
        request: CreateIncidentRequest,
        user: User,
    ) -> tuple[Incident, GrantResult | None]:
        """Create an incident, optionally restricted to a set of organizations.

        The creating org becomes the owner. When ``request.org_ids`` is given,
        the owner and every ancestor of the listed orgs are mapped as well, and
        the incident row commits together with its mappings.

        Raises:
            NotFoundError: If the owning org or a restricted-to org does not exist
            ConflictError: If the name is already used in the workspace
        """
        owner = await self.db.get(Organization, request.org_id)
        if owner is None:
            raise NotFoundError(f"Organization {request.org_id} not found")

        if request.org_ids:
            missing = await self.hierarchy.find_missing(request.org_ids)
            if missing:
                raise NotFoundError(
                    "Organization(s) not found",
                    details={"org_ids": sorted(missing)},
                )

        existing = await self.db.execute(
            select(Incident.id)
            .where(Incident.workspace_id == workspace_id)
            .where(Incident.name == request.name)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("An incident with this name already exists in the workspace")

        incident = Incident(
            workspace_id=workspace_id,
            name=request.name,
            description=request.description,
            owner_org_id=owner.id,
            created_by=user.id,
            active=True,
        )
        self.db.add(incident)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("An incident with this name already exists in the workspace") from exc
        await self.db.refresh(incident)

        if request.org_ids:
            try:
                # save() inside the grant commits the incident and its mappings together
                grant = await self.reconciler.grant_access(
                    incident.id,
                    request.org_ids,
                    requesting_org_id=owner.id,
                    requesting_user_id=user.id,
                )
            except Exception:
                await self.db.rollback()
                raise
        else:
            grant = None
            await self.db.commit()

        log_json(
            logger,
            logging.INFO,
            "incident_created",
            incident_id=incident.id,
            workspace_id=workspace_id,
            owner_org_id=owner.id,
            restricted=grant is not None,
        )

        if grant is None:
            await publish_all(self.gateway, [self.notifier.new_incident(incident_ref(incident))])
        return incident, grant

    async def list_visible(self, workspace_id: int, user: User, active: bool = True) -> list[Incident]:
        """List incidents in a workspace that the user's organizations can see."""
        query = (
            select(Incident)
            .where(Incident.workspace_id == workspace_id)
            .where(Incident.active.is_(active))
            .order_by(Incident.created_at.desc(), Incident.id.desc())
        )

        viewer_orgs = await self._viewer_org_ids(user, workspace_id)
        if viewer_orgs is not None:
            restricted = select(IncidentOrg.incident_id)
            shared = select(IncidentOrg.incident_id).where(IncidentOrg.org_id.in_(viewer_orgs))
            query = query.where(or_(Incident.id.not_in(restricted), Incident.id.in_(shared)))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_owner(self, workspace_id: int, incident_id: int, user: User) -> Organization:
        await self._get_visible_incident(workspace_id, incident_id, user)
        owner_org_id = await self.store.get_owning_org(incident_id)
        return await self.db.get(Organization, owner_org_id)

    async def list_orgs(self, workspace_id: int, incident_id: int, user: User) -> list[IncidentOrg]:
        await self._get_visible_incident(workspace_id, incident_id, user)
        return await self.store.list_mappings(incident_id)

    async def grant(
        self,
        workspace_id: int,
        incident_id: int,
        org_ids: list[int],
        user: User,
    ) -> GrantResult:
        incident = await self.get_incident(workspace_id, incident_id)
        acting_org_id = await self._ensure_can_manage(incident, user)
        return await self.reconciler.grant_access(
            incident_id,
            org_ids,
            requesting_org_id=acting_org_id,
            requesting_user_id=user.id,
        )

    async def revoke(
        self,
        workspace_id: int,
        incident_id: int,
        org_ids: list[int],
        user: User,
    ) -> RevokeResult:
        incident = await self.get_incident(workspace_id, incident_id)
        await self._ensure_can_manage(incident, user)
        return await self.reconciler.revoke_access(
            incident_id,
            org_ids,
            requesting_user_id=user.id,
        )
