"""API routes for incidents and incident-org visibility."""
from fastapi import APIRouter, Depends, Query, status

from nics_api.api.deps import get_incident_service, get_remote_username
from nics_api.schemas.incident import (
    CreateIncidentRequest,
    CreateIncidentResponse,
    GrantAccessResponse,
    IncidentOrgResponse,
    IncidentOrgsRequest,
    IncidentResponse,
    OrganizationResponse,
    RevokeAccessResponse,
)
from nics_api.services.incident_service import IncidentService

router = APIRouter()


@router.post(
    "/{workspace_id}/incidents",
    response_model=CreateIncidentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create incident",
    description="Create an incident owned by `org_id`, optionally restricted to `org_ids`.",
)
async def create_incident(
    workspace_id: int,
    request: CreateIncidentRequest,
    username: str = Depends(get_remote_username),
    service: IncidentService = Depends(get_incident_service),
):
    """Create a new incident.

    Raises:
        404: Owning organization or a restricted-to organization not found
        409: Incident name already used in the workspace
    """
    user = await service.get_user(username)
    incident, grant = await service.create(workspace_id, request, user)
    return CreateIncidentResponse(
        incident=IncidentResponse.model_validate(incident),
        org_ids=sorted(grant.after) if grant else [],
    )


@router.get(
    "/{workspace_id}/incidents",
    response_model=list[IncidentResponse],
    summary="List visible incidents",
)
async def list_incidents(
    workspace_id: int,
    active: bool = Query(True, description="List active (true) or archived (false) incidents"),
    username: str = Depends(get_remote_username),
    service: IncidentService = Depends(get_incident_service),
):
    """List incidents the requesting user's organizations can see."""
    user = await service.get_user(username)
    incidents = await service.list_visible(workspace_id, user, active=active)
    return [IncidentResponse.model_validate(i) for i in incidents]


@router.get(
    "/{workspace_id}/incidents/owner/{incident_id}",
    response_model=OrganizationResponse,
    summary="Get owning organization",
)
async def get_incident_owner(
    workspace_id: int,
    incident_id: int,
    username: str = Depends(get_remote_username),
    service: IncidentService = Depends(get_incident_service),
):
    user = await service.get_user(username)
    owner = await service.get_owner(workspace_id, incident_id, user)
    return OrganizationResponse.model_validate(owner)


@router.get(
    "/{workspace_id}/incidents/orgs/{incident_id}",
    response_model=list[IncidentOrgResponse],
    summary="List incident-org mappings",
    description="Organizations the incident is restricted to. An empty list means unrestricted.",
)
async def get_incident_orgs(
    workspace_id: int,
    incident_id: int,
    username: str = Depends(get_remote_username),
    service: IncidentService = Depends(get_incident_service),
):
    user = await service.get_user(username)
    mappings = await service.list_orgs(workspace_id, incident_id, user)
    return [IncidentOrgResponse.model_validate(m) for m in mappings]


@router.post(
    "/{workspace_id}/incidents/orgs/{incident_id}",
    response_model=GrantAccessResponse,
    summary="Restrict incident to organizations",
    description=(
        "Grant visibility to the given organizations. The owning organization and all "
        "parent organizations are added automatically. Requires admin of the owning org "
        "or super user."
    ),
)
async def post_incident_orgs(
    workspace_id: int,
    incident_id: int,
    request: IncidentOrgsRequest,
    username: str = Depends(get_remote_username),
    service: IncidentService = Depends(get_incident_service),
):
    """Grant incident visibility to organizations.

    Raises:
        400: No organizations given
        403: User may not change the incident
        404: Incident or organization not found
    """
    user = await service.get_user(username)
    result = await service.grant(workspace_id, incident_id, request.org_ids, user)
    return GrantAccessResponse.from_result(result)


@router.post(
    "/{workspace_id}/incidents/orgs/remove/{incident_id}",
    response_model=RevokeAccessResponse,
    summary="Remove organizations from incident",
    description=(
        "Revoke visibility from the given organizations. Parent organizations of orgs that "
        "keep access are skipped and listed under `rejected`. Removing every mapping makes "
        "the incident visible to the whole workspace again."
    ),
)
async def remove_incident_orgs(
    workspace_id: int,
    incident_id: int,
    request: IncidentOrgsRequest,
    username: str = Depends(get_remote_username),
    service: IncidentService = Depends(get_incident_service),
):
    """Revoke incident visibility from organizations.

    Raises:
        400: No organizations given
        403: User may not change the incident
        404: Incident not found
        412: Owning organization would be locked out
    """
    user = await service.get_user(username)
    result = await service.revoke(workspace_id, incident_id, request.org_ids, user)
    return RevokeAccessResponse.from_result(result)
