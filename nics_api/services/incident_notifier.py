"""Builds and publishes client notifications for incident visibility changes."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from starlette.concurrency import run_in_threadpool

from nics_api.core.config import Settings, get_settings
from nics_api.core.metrics import observe_notification
from nics_api.core.structured_logging import log_json
from nics_api.core.visibility import GrantResult, IncidentRef, NotificationGateway, RevokeResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    topic: str
    payload: Any
    kind: str


class IncidentNotifier:
    """Computes the notification fan-out for incident-org changes.

    Grant:
        - first restriction: every client in the workspace is told which orgs
          may still see the incident, so the others drop it
        - each newly mapped org is sent the incident to add
    Revoke:
        - last mapping removed: the incident is re-announced to the whole
          workspace as if new
        - otherwise each removed org is told to drop the incident; the payload
          lists the orgs that still have access so a client that belongs to
          several orgs can decide whether to keep it
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _org_added(self, incident: IncidentRef, org_id: int) -> Notification:
        return Notification(
            topic=self.settings.topic_incident_org_add.format(
                workspace_id=incident.workspace_id, org_id=org_id
            ),
            payload=incident.to_message(),
            kind="incident_org_add",
        )

    def _org_removed(self, incident: IncidentRef, org_id: int, remaining: Iterable[int]) -> Notification:
        return Notification(
            topic=self.settings.topic_incident_org_remove.format(
                workspace_id=incident.workspace_id, org_id=org_id
            ),
            payload={"incidentId": incident.incident_id, "orgIds": sorted(remaining)},
            kind="incident_org_remove",
        )

    def restricted(self, incident: IncidentRef, allowed_org_ids: Iterable[int]) -> Notification:
        return Notification(
            topic=self.settings.topic_incident_restricted.format(workspace_id=incident.workspace_id),
            payload={"incidentId": incident.incident_id, "orgIds": sorted(allowed_org_ids)},
            kind="incident_restricted",
        )

    def new_incident(self, incident: IncidentRef) -> Notification:
        return Notification(
            topic=self.settings.topic_new_incident.format(workspace_id=incident.workspace_id),
            payload=incident.to_message(),
            kind="new_incident",
        )

    def updated(self, incident: IncidentRef) -> Notification:
        return Notification(
            topic=self.settings.topic_incident_update.format(incident_id=incident.incident_id),
            payload=incident.to_message(),
            kind="incident_update",
        )

    def for_grant(self, incident: IncidentRef, result: GrantResult) -> list[Notification]:
        if not result.added:
            return []

        notifications: list[Notification] = []
        if not result.before:
            notifications.append(self.restricted(incident, result.after))
        notifications.extend(self._org_added(incident, org_id) for org_id in sorted(result.added))

        if self.settings.publish_incident_update_on_org_change:
            notifications.append(self.updated(incident))
        return notifications

    def for_revoke(self, incident: IncidentRef, result: RevokeResult) -> list[Notification]:
        if not result.removed:
            return []

        if result.became_unrestricted:
            notifications = [self.new_incident(incident)]
        else:
            notifications = [
                self._org_removed(incident, org_id, result.after)
                for org_id in sorted(result.removed)
            ]

        if self.settings.publish_incident_update_on_org_change:
            notifications.append(self.updated(incident))
        return notifications


async def publish_all(gateway: NotificationGateway, notifications: Iterable[Notification]) -> int:
    """Publish each notification independently.

    Gateway calls run in the worker thread pool; broker retries block the
    calling thread and must not stall the event loop.

    A failed publish is logged and counted; it never stops the remaining
    notifications and never propagates to the caller, whose changes are
    already committed.

    Returns:
        Number of notifications published successfully
    """
    sent = 0
    for notification in notifications:
        try:
            await run_in_threadpool(gateway.publish, notification.topic, notification.payload)
        except Exception as exc:
            observe_notification(notification.kind, ok=False)
            log_json(
                logger,
                logging.ERROR,
                "notification_publish_failed",
                topic=notification.topic,
                kind=notification.kind,
                error=str(exc),
                exception=exc.__class__.__name__,
            )
            continue
        observe_notification(notification.kind, ok=True)
        sent += 1
    return sent
