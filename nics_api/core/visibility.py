"""Incident visibility domain types and collaborator contracts.

An incident with no org mappings is *unrestricted* and visible to the whole
workspace. Any mapping flips it to *restricted*: only mapped organizations
(and members of their child organizations) can see it.

The reconciler talks to its collaborators only through the protocols below,
so it can run against the SQL adapters in production and plain in-memory
fakes in tests.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class VisibilityState(str, Enum):
    UNRESTRICTED = "unrestricted"
    RESTRICTED = "restricted"


class RemovalRejection(str, Enum):
    """Why a single org removal was skipped during a revoke."""

    # The org is an ancestor of an org that keeps its mapping
    PARENT_OF_RETAINED_ORG = "parent_of_retained_org"
    NOT_MAPPED = "not_mapped"


@dataclass(frozen=True)
class IncidentRef:
    """Snapshot of the incident fields reconciliation and notification need."""

    incident_id: int
    workspace_id: int
    owner_org_id: int
    name: str = ""
    active: bool = True

    def to_message(self) -> dict[str, Any]:
        """Incident body as web clients expect it on the bus."""
        return {
            "incidentid": self.incident_id,
            "incidentname": self.name,
            "workspaceid": self.workspace_id,
            "orgid": self.owner_org_id,
            "active": self.active,
        }


@dataclass(frozen=True)
class ValidationFailure:
    """A requested org removal that was skipped; reported, never raised."""

    org_id: int
    reason: RemovalRejection
    retained_children: frozenset[int] = frozenset()

    @property
    def message(self) -> str:
        if self.reason is RemovalRejection.PARENT_OF_RETAINED_ORG:
            children = ", ".join(str(c) for c in sorted(self.retained_children))
            return (
                f"Organization {self.org_id} cannot be removed while child "
                f"organization(s) {children} are still secured to the incident"
            )
        return f"Organization {self.org_id} is not secured to the incident"


@dataclass(frozen=True)
class GrantResult:
    incident_id: int
    before: frozenset[int]
    added: frozenset[int]

    @property
    def after(self) -> frozenset[int]:
        return self.before | self.added


@dataclass(frozen=True)
class RevokeResult:
    incident_id: int
    before: frozenset[int]
    removed: frozenset[int]
    rejected: tuple[ValidationFailure, ...] = field(default_factory=tuple)

    @property
    def after(self) -> frozenset[int]:
        return self.before - self.removed

    @property
    def became_unrestricted(self) -> bool:
        return bool(self.before) and not self.after


def visibility_state(mapped_org_ids: Iterable[int]) -> VisibilityState:
    if any(True for _ in mapped_org_ids):
        return VisibilityState.RESTRICTED
    return VisibilityState.UNRESTRICTED


def is_visible(mapped_org_ids: Iterable[int], viewer_org_ids: Iterable[int]) -> bool:
    """Whether an incident with these mappings is visible to any of the viewer orgs.

    ``viewer_org_ids`` should already include the children of the user's own
    orgs, since membership of a parent org grants sight of what its children see.
    """
    mapped = set(mapped_org_ids)
    if not mapped:
        return True
    return not mapped.isdisjoint(viewer_org_ids)


class OrgHierarchy(Protocol):
    """Read-only access to the organization parent/child graph."""

    async def get_parents(self, org_id: int) -> set[int]:
        """All ancestors of ``org_id`` up to the roots (excluding itself)."""
        ...

    async def get_children(self, org_ids: Iterable[int]) -> set[int]:
        """All descendants of the given orgs (excluding the orgs themselves)."""
        ...

    async def find_missing(self, org_ids: Iterable[int]) -> set[int]:
        """The subset of ``org_ids`` that do not exist."""
        ...


class IncidentVisibilityStore(Protocol):
    """Persistence for incident-org mappings.

    Implementations must serialize mutations per incident: ``lock_incident``
    holds the incident until ``save`` (or the surrounding transaction) ends,
    so concurrent grant/revoke calls cannot interleave their
    read-modify-write sequences.
    """

    async def lock_incident(self, incident_id: int) -> IncidentRef | None:
        ...

    async def get_owning_org(self, incident_id: int) -> int:
        ...

    async def get_mappings(self, incident_id: int) -> set[int]:
        ...

    async def add_mapping(self, incident_id: int, org_id: int, user_id: int | None = None) -> None:
        ...

    async def remove_mapping(self, incident_id: int, org_id: int) -> None:
        ...

    async def save(self) -> None:
        """Make all pending mapping changes durable and release the incident lock."""
        ...


class NotificationGateway(Protocol):
    """Fire-and-forget publisher; no delivery acknowledgment is consumed.

    ``publish`` may block while the broker retries; callers run it in a
    worker thread.
    """

    def publish(self, topic: str, payload: Any) -> None:
        ...
