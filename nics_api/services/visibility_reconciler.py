"""Reconciles incident-org visibility mappings against the org hierarchy."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from nics_api.core.exceptions import InvalidArgumentError, LockoutError, NotFoundError
from nics_api.core.metrics import observe_incident_org_changes
from nics_api.core.structured_logging import log_json
from nics_api.core.visibility import (
    GrantResult,
    IncidentRef,
    IncidentVisibilityStore,
    NotificationGateway,
    OrgHierarchy,
    RemovalRejection,
    RevokeResult,
    ValidationFailure,
    visibility_state,
)
from nics_api.services.incident_notifier import IncidentNotifier, publish_all

logger = logging.getLogger(__name__)


class VisibilityReconciler:
    """Applies grant/revoke requests to an incident's org mappings.

    Invariants kept for every incident:

    - if an org is mapped, all of its ancestor orgs are mapped
    - while any mapping exists, the owning org is mapped

    Changes are persisted through the store before anything is published;
    notification failures are logged and never undo a saved change.
    """

    def __init__(
        self,
        hierarchy: OrgHierarchy,
        store: IncidentVisibilityStore,
        gateway: NotificationGateway,
        notifier: IncidentNotifier | None = None,
    ):
        self.hierarchy = hierarchy
        self.store = store
        self.gateway = gateway
        self.notifier = notifier or IncidentNotifier()

    async def _lock(self, incident_id: int) -> IncidentRef:
        incident = await self.store.lock_incident(incident_id)
        if incident is None:
            raise NotFoundError(f"Incident {incident_id} not found")
        return incident

    async def grant_access(
        self,
        incident_id: int,
        requested_org_ids: Iterable[int],
        requesting_org_id: int | None = None,
        requesting_user_id: int | None = None,
    ) -> GrantResult:
        """Grant the requested orgs (plus the owner and all ancestors) visibility.

        Args:
            incident_id: Incident to restrict
            requested_org_ids: Orgs to grant; must not be empty
            requesting_org_id: Org the caller is acting for (logged only)
            requesting_user_id: User recorded on the new mappings

        Returns:
            GrantResult; ``added`` holds exactly the orgs that gained a mapping

        Raises:
            InvalidArgumentError: If no org ids were given
            NotFoundError: If the incident or any requested org does not exist
        """
        requested = set(requested_org_ids)
        if not requested:
            raise InvalidArgumentError("At least one organization must be specified")

        incident = await self._lock(incident_id)

        missing = await self.hierarchy.find_missing(requested)
        if missing:
            raise NotFoundError(
                "Organization(s) not found",
                details={"org_ids": sorted(missing)},
            )

        before = frozenset(await self.store.get_mappings(incident_id))

        # The owner is always kept, even when the caller left it out.
        target = requested | {incident.owner_org_id}
        for org_id in before | target:
            target |= await self.hierarchy.get_parents(org_id)

        added = frozenset(target - before)
        for org_id in sorted(added):
            await self.store.add_mapping(incident_id, org_id, requesting_user_id)
        await self.store.save()

        result = GrantResult(incident_id=incident_id, before=before, added=added)
        observe_incident_org_changes(added=len(added))
        log_json(
            logger,
            logging.INFO,
            "incident_access_granted",
            incident_id=incident_id,
            requested=requested,
            added=added,
            state=visibility_state(result.after).value,
            requesting_org_id=requesting_org_id,
            requesting_user_id=requesting_user_id,
        )

        await publish_all(self.gateway, self.notifier.for_grant(incident, result))
        return result

    async def revoke_access(
        self,
        incident_id: int,
        org_ids_to_remove: Iterable[int],
        requesting_user_id: int | None = None,
    ) -> RevokeResult:
        """Remove org mappings that can be removed without breaking the invariants.

        A parent org whose descendant keeps its mapping is skipped and reported
        in ``rejected``, as is any org that was not mapped to begin with.

        Raises:
            InvalidArgumentError: If no org ids were given
            NotFoundError: If the incident does not exist
            LockoutError: If the owning org would be removed while other
                mappings remain
        """
        requested = set(org_ids_to_remove)
        if not requested:
            raise InvalidArgumentError("At least one organization must be specified")

        incident = await self._lock(incident_id)
        before = frozenset(await self.store.get_mappings(incident_id))

        rejected = [
            ValidationFailure(org_id=org_id, reason=RemovalRejection.NOT_MAPPED)
            for org_id in sorted(requested - before)
        ]
        candidates = requested & before
        retained = before - candidates

        if incident.owner_org_id in candidates and retained:
            raise LockoutError(
                "This action would result in the owning organization being locked out",
                details={"owner_org_id": incident.owner_org_id},
            )

        removed: set[int] = set()
        for org_id in sorted(candidates):
            retained_children = (await self.hierarchy.get_children([org_id])) & retained
            if retained_children:
                rejected.append(
                    ValidationFailure(
                        org_id=org_id,
                        reason=RemovalRejection.PARENT_OF_RETAINED_ORG,
                        retained_children=frozenset(retained_children),
                    )
                )
                continue
            removed.add(org_id)

        for org_id in sorted(removed):
            await self.store.remove_mapping(incident_id, org_id)
        await self.store.save()

        result = RevokeResult(
            incident_id=incident_id,
            before=before,
            removed=frozenset(removed),
            rejected=tuple(rejected),
        )
        observe_incident_org_changes(removed=len(removed), rejected=len(rejected))
        for failure in rejected:
            log_json(
                logger,
                logging.WARNING,
                "incident_org_removal_rejected",
                incident_id=incident_id,
                org_id=failure.org_id,
                reason=failure.reason.value,
                retained_children=failure.retained_children,
            )
        log_json(
            logger,
            logging.INFO,
            "incident_access_revoked",
            incident_id=incident_id,
            requested=requested,
            removed=removed,
            state=visibility_state(result.after).value,
            requesting_user_id=requesting_user_id,
        )

        await publish_all(self.gateway, self.notifier.for_revoke(incident, result))
        return result
