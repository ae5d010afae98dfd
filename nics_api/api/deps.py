"""FastAPI dependencies for caller identity and services."""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from nics_api.core.config import get_settings
from nics_api.core.database import get_db
from nics_api.core.messaging import get_message_bus
from nics_api.services.incident_service import IncidentService


async def get_remote_username(request: Request) -> str:
    """Get the requesting username forwarded by the authenticating proxy.

    Args:
        request: Incoming request

    Returns:
        Username from the configured remote-user header

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    header = get_settings().remote_user_header
    username = (request.headers.get(header) or "").strip()
    if not username:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {header} header",
        )
    return username


async def get_incident_service(db: AsyncSession = Depends(get_db)) -> IncidentService:
    """Build the incident service for the request's database session."""
    return IncidentService(db, get_message_bus())
