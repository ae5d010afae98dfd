"""Pydantic schemas for incident and incident-org endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nics_api.core.visibility import GrantResult, RevokeResult


class CreateIncidentRequest(BaseModel):
    """Request schema for creating an incident.

    ``org_id`` is the creating (owning) organization. When ``org_ids`` is
    given the incident starts out restricted to those organizations.
    """

    name: str = Field(..., min_length=1, max_length=255, description="Incident name, unique per workspace")
    org_id: int = Field(..., description="Owning organization")
    org_ids: list[int] | None = Field(None, description="Organizations to restrict visibility to")
    description: str | None = Field(None, max_length=1024)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        """Validate that name is not empty or whitespace only."""
        if not v or not v.strip():
            raise ValueError("Incident name cannot be empty")
        return v.strip()


class IncidentResponse(BaseModel):
    id: int
    workspace_id: int
    name: str
    owner_org_id: int
    description: str | None = None
    active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CreateIncidentResponse(BaseModel):
    incident: IncidentResponse
    org_ids: list[int] = Field(default_factory=list, description="Organizations the incident is restricted to")


class OrganizationResponse(BaseModel):
    id: int
    name: str
    prefix: str | None = None

    model_config = ConfigDict(from_attributes=True)


class IncidentOrgResponse(BaseModel):
    incident_id: int
    org_id: int
    user_id: int | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IncidentOrgsRequest(BaseModel):
    """Organizations to grant or revoke visibility for."""

    org_ids: list[int] = Field(..., description="Organization IDs")


class RejectedRemoval(BaseModel):
    org_id: int
    reason: str
    message: str
    retained_children: list[int] = Field(default_factory=list)


class GrantAccessResponse(BaseModel):
    incident_id: int
    added: list[int]
    org_ids: list[int] = Field(..., description="Organizations mapped after the change")
    count: int
    message: str

    @classmethod
    def from_result(cls, result: GrantResult) -> "GrantAccessResponse":
        return cls(
            incident_id=result.incident_id,
            added=sorted(result.added),
            org_ids=sorted(result.after),
            count=len(result.added),
            message=f"Successfully added {len(result.added)} IncidentOrg mappings.",
        )


class RevokeAccessResponse(BaseModel):
    incident_id: int
    removed: list[int]
    org_ids: list[int] = Field(..., description="Organizations mapped after the change")
    rejected: list[RejectedRemoval] = Field(default_factory=list)
    unrestricted: bool
    count: int
    message: str

    @classmethod
    def from_result(cls, result: RevokeResult) -> "RevokeAccessResponse":
        message = f"Successfully deleted {len(result.removed)} IncidentOrg mappings."
        if result.rejected and not result.removed:
            message = "No IncidentOrg mappings were deleted."
        return cls(
            incident_id=result.incident_id,
            removed=sorted(result.removed),
            org_ids=sorted(result.after),
            rejected=[
                RejectedRemoval(
                    org_id=failure.org_id,
                    reason=failure.reason.value,
                    message=failure.message,
                    retained_children=sorted(failure.retained_children),
                )
                for failure in result.rejected
            ],
            unrestricted=not result.after,
            count=len(result.removed),
            message=message,
        )
