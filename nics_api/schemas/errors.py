"""Error response schema."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Used for all error responses (4xx, 5xx) across the API.
    """

    error: str = Field(
        ...,
        description="Error type identifier",
        examples=["not_found", "owning_org_lockout", "permission_denied"]
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Incident 12 not found"]
    )
    details: Optional[dict] = Field(
        None,
        description="Additional error context",
        examples=[{"org_ids": [41, 42]}]
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "owning_org_lockout",
                    "message": "This action would result in the owning organization being locked out",
                    "details": {"owner_org_id": 1}
                },
                {
                    "error": "invalid_argument",
                    "message": "At least one organization must be specified"
                }
            ]
        }
    )
