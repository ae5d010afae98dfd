"""Integration tests for incident-org visibility against PostgreSQL.

Org hierarchy (from the ``org_tree`` fixture)::

    state
    └── county
        ├── station_a
        └── station_b
    other
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nics_api.core.exceptions import NotFoundError
from nics_api.models.enums import SystemRole
from nics_api.models.incident import Incident
from nics_api.models.incident_org import IncidentOrg
from nics_api.models.organization import Organization
from nics_api.models.user import User
from nics_api.services.org_hierarchy import OrgHierarchyService
from nics_api.services.visibility_store import IncidentVisibilityStoreService

BASE = "/api/workspaces/1/incidents"


def headers(user: User) -> dict[str, str]:
    return {"X-Remote-User": user.username}


async def create_incident(
    client: AsyncClient,
    user: User,
    owner: Organization,
    org_ids: list[int] | None = None,
    name: str = "Creek Fire",
) -> dict:
    payload = {"name": name, "org_id": owner.id}
    if org_ids is not None:
        payload["org_ids"] = org_ids
    response = await client.post(BASE, json=payload, headers=headers(user))
    assert response.status_code == 201, response.text
    return response.json()


async def mapped_org_ids(db: AsyncSession, incident_id: int) -> set[int]:
    result = await db.execute(select(IncidentOrg.org_id).where(IncidentOrg.incident_id == incident_id))
    return set(result.scalars().all())


class TestOrgHierarchyService:
    @pytest.mark.asyncio
    async def test_get_parents_walks_to_root(self, db: AsyncSession, org_tree):
        service = OrgHierarchyService(db)

        parents = await service.get_parents(org_tree["station_a"].id)

        assert parents == {org_tree["county"].id, org_tree["state"].id}
        assert await service.get_parents(org_tree["state"].id) == set()

    @pytest.mark.asyncio
    async def test_get_children_includes_grandchildren(self, db: AsyncSession, org_tree):
        service = OrgHierarchyService(db)

        children = await service.get_children([org_tree["state"].id])

        assert children == {
            org_tree["county"].id,
            org_tree["station_a"].id,
            org_tree["station_b"].id,
        }

    @pytest.mark.asyncio
    async def test_find_missing(self, db: AsyncSession, org_tree):
        service = OrgHierarchyService(db)

        missing = await service.find_missing([org_tree["other"].id, 9999])

        assert missing == {9999}


class TestIncidentVisibilityStoreService:
    @pytest.mark.asyncio
    async def test_lock_unknown_incident_returns_none(self, db: AsyncSession, org_tree):
        store = IncidentVisibilityStoreService(db)

        assert await store.lock_incident(12345) is None

    @pytest.mark.asyncio
    async def test_get_owning_org_unknown_incident_raises(self, db: AsyncSession, org_tree):
        store = IncidentVisibilityStoreService(db)

        with pytest.raises(NotFoundError):
            await store.get_owning_org(12345)

    @pytest.mark.asyncio
    async def test_mappings_round_trip(self, db: AsyncSession, org_tree, county_admin):
        incident = Incident(
            workspace_id=1,
            name="Flood",
            owner_org_id=org_tree["county"].id,
            created_by=county_admin.id,
        )
        db.add(incident)
        await db.commit()
        store = IncidentVisibilityStoreService(db)

        ref = await store.lock_incident(incident.id)
        await store.add_mapping(incident.id, org_tree["county"].id, county_admin.id)
        await store.add_mapping(incident.id, org_tree["state"].id, county_admin.id)
        await store.remove_mapping(incident.id, org_tree["state"].id)
        await store.save()

        assert ref.owner_org_id == org_tree["county"].id
        assert ref.name == "Flood"
        assert await store.get_mappings(incident.id) == {org_tree["county"].id}
        assert await store.get_owning_org(incident.id) == org_tree["county"].id
        rows = await store.list_mappings(incident.id)
        assert [(r.org_id, r.user_id) for r in rows] == [(org_tree["county"].id, county_admin.id)]


@pytest.mark.asyncio
async def test_create_restricted_incident_maps_owner_and_ancestors(
    client: AsyncClient, db: AsyncSession, org_tree, county_admin, gateway
):
    data = await create_incident(client, county_admin, org_tree["county"], [org_tree["station_a"].id])

    expected = {org_tree["state"].id, org_tree["county"].id, org_tree["station_a"].id}
    assert set(data["org_ids"]) == expected
    assert await mapped_org_ids(db, data["incident"]["id"]) == expected
    assert gateway.topics[0] == "iweb.NICS.ws.1.incidentorg.remove"
    assert sorted(gateway.topics[1:]) == sorted(
        f"iweb.NICS.ws.1.incidentorg.{org_id}.add" for org_id in expected
    )


@pytest.mark.asyncio
async def test_create_unrestricted_incident_announces_new_incident(
    client: AsyncClient, org_tree, county_admin, gateway
):
    data = await create_incident(client, county_admin, org_tree["county"])

    assert data["org_ids"] == []
    assert gateway.topics == ["iweb.NICS.ws.1.newIncident"]
    assert gateway.published[0][1]["incidentid"] == data["incident"]["id"]


@pytest.mark.asyncio
async def test_create_restricted_to_unknown_org_leaves_no_incident(
    client: AsyncClient, db: AsyncSession, org_tree, county_admin, gateway
):
    response = await client.post(
        BASE,
        json={"name": "Creek Fire", "org_id": org_tree["county"].id, "org_ids": [9999]},
        headers=headers(county_admin),
    )

    assert response.status_code == 404
    result = await db.execute(select(Incident).where(Incident.name == "Creek Fire"))
    assert result.scalars().all() == []
    assert gateway.published == []

    # The name stays free for a corrected request
    await create_incident(client, county_admin, org_tree["county"], [org_tree["station_a"].id])


@pytest.mark.asyncio
async def test_create_duplicate_name_conflicts(client: AsyncClient, org_tree, county_admin):
    await create_incident(client, county_admin, org_tree["county"])

    response = await client.post(
        BASE, json={"name": "Creek Fire", "org_id": org_tree["county"].id}, headers=headers(county_admin)
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_grant_then_list_mappings(client: AsyncClient, org_tree, county_admin):
    incident = (await create_incident(client, county_admin, org_tree["county"]))["incident"]

    response = await client.post(
        f"{BASE}/orgs/{incident['id']}",
        json={"org_ids": [org_tree["station_b"].id]},
        headers=headers(county_admin),
    )

    assert response.status_code == 200
    assert response.json()["count"] == 3

    listing = await client.get(f"{BASE}/orgs/{incident['id']}", headers=headers(county_admin))
    assert listing.status_code == 200
    assert {m["org_id"] for m in listing.json()} == {
        org_tree["state"].id,
        org_tree["county"].id,
        org_tree["station_b"].id,
    }
    assert all(m["user_id"] == county_admin.id for m in listing.json())


@pytest.mark.asyncio
async def test_revoke_ancestor_of_retained_org_is_rejected(
    client: AsyncClient, db: AsyncSession, org_tree, county_admin, gateway
):
    incident = (
        await create_incident(client, county_admin, org_tree["county"], [org_tree["station_a"].id])
    )["incident"]
    published = len(gateway.published)

    response = await client.post(
        f"{BASE}/orgs/remove/{incident['id']}",
        json={"org_ids": [org_tree["state"].id]},
        headers=headers(county_admin),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["removed"] == []
    assert data["rejected"][0]["org_id"] == org_tree["state"].id
    assert data["rejected"][0]["reason"] == "parent_of_retained_org"
    assert org_tree["state"].id in await mapped_org_ids(db, incident["id"])
    assert len(gateway.published) == published


@pytest.mark.asyncio
async def test_revoke_down_to_unrestricted(
    client: AsyncClient, db: AsyncSession, org_tree, county_admin, gateway
):
    incident = (
        await create_incident(client, county_admin, org_tree["county"], [org_tree["station_a"].id])
    )["incident"]

    first = await client.post(
        f"{BASE}/orgs/remove/{incident['id']}",
        json={"org_ids": [org_tree["station_a"].id]},
        headers=headers(county_admin),
    )
    assert first.status_code == 200
    assert first.json()["removed"] == [org_tree["station_a"].id]
    assert gateway.topics[-1] == f"iweb.NICS.ws.1.incidentorg.{org_tree['station_a'].id}.remove"

    second = await client.post(
        f"{BASE}/orgs/remove/{incident['id']}",
        json={"org_ids": [org_tree["state"].id, org_tree["county"].id]},
        headers=headers(county_admin),
    )
    assert second.status_code == 200
    assert second.json()["unrestricted"] is True
    assert await mapped_org_ids(db, incident["id"]) == set()
    assert gateway.topics[-1] == "iweb.NICS.ws.1.newIncident"


@pytest.mark.asyncio
async def test_revoke_owner_while_others_remain_is_locked_out(
    client: AsyncClient, db: AsyncSession, org_tree, county_admin
):
    incident = (
        await create_incident(client, county_admin, org_tree["county"], [org_tree["station_a"].id])
    )["incident"]

    response = await client.post(
        f"{BASE}/orgs/remove/{incident['id']}",
        json={"org_ids": [org_tree["county"].id]},
        headers=headers(county_admin),
    )

    assert response.status_code == 412
    assert response.json()["error"] == "owning_org_lockout"
    assert org_tree["county"].id in await mapped_org_ids(db, incident["id"])


@pytest.mark.asyncio
async def test_only_owner_admin_or_super_can_change_visibility(
    client: AsyncClient, org_tree, county_admin, super_user, make_user
):
    incident = (await create_incident(client, county_admin, org_tree["county"]))["incident"]
    station_admin = await make_user("station.admin@nics.test", org_tree["station_a"], SystemRole.ADMIN)
    county_user = await make_user("county.user@nics.test", org_tree["county"], SystemRole.USER)
    body = {"org_ids": [org_tree["station_a"].id]}

    for user in (station_admin, county_user):
        response = await client.post(f"{BASE}/orgs/{incident['id']}", json=body, headers=headers(user))
        assert response.status_code == 403

    response = await client.post(f"{BASE}/orgs/{incident['id']}", json=body, headers=headers(super_user))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_restricted_incident_hidden_from_unmapped_orgs(
    client: AsyncClient, org_tree, county_admin, super_user, make_user
):
    restricted = (
        await create_incident(
            client, county_admin, org_tree["county"], [org_tree["station_a"].id], name="Restricted"
        )
    )["incident"]
    open_incident = (await create_incident(client, county_admin, org_tree["county"], name="Open"))["incident"]
    outsider = await make_user("other.user@nics.test", org_tree["other"])
    sibling = await make_user("station.b@nics.test", org_tree["station_b"])
    member = await make_user("station.a@nics.test", org_tree["station_a"])

    async def visible_ids(user: User) -> set[int]:
        response = await client.get(BASE, headers=headers(user))
        assert response.status_code == 200
        return {i["id"] for i in response.json()}

    assert await visible_ids(outsider) == {open_incident["id"]}
    assert await visible_ids(sibling) == {open_incident["id"]}
    assert await visible_ids(member) == {open_incident["id"], restricted["id"]}
    assert await visible_ids(super_user) == {open_incident["id"], restricted["id"]}

    hidden = await client.get(f"{BASE}/orgs/{restricted['id']}", headers=headers(outsider))
    assert hidden.status_code == 404

    owner = await client.get(f"{BASE}/owner/{restricted['id']}", headers=headers(member))
    assert owner.status_code == 200
    assert owner.json()["id"] == org_tree["county"].id


@pytest.mark.asyncio
async def test_unknown_user_is_rejected(client: AsyncClient, org_tree):
    response = await client.get(BASE, headers={"X-Remote-User": "ghost@nics.test"})

    assert response.status_code == 412
    assert response.json()["error"] == "unknown_user"
