"""FastAPI application entry point."""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nics_api.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from nics_api.api.routes import incidents, metrics
from nics_api.core.config import get_settings
from nics_api.core.exceptions import (
    ConflictError,
    IncidentAccessError,
    InvalidArgumentError,
    LockoutError,
    NotFoundError,
    PermissionDeniedError,
    UnknownUserError,
)
from nics_api.schemas.errors import ErrorResponse

settings = get_settings()
docs_enabled = settings.api_docs_enabled
if docs_enabled is None:
    docs_enabled = settings.environment != "production"

app = FastAPI(
    title="NICS Incident API",
    description="Incident and incident-organization visibility API",
    version="1.0.0",
    docs_url="/api/docs" if docs_enabled else None,
    redoc_url="/api/redoc" if docs_enabled else None,
    openapi_url="/api/openapi.json" if docs_enabled else None,
)

# Middleware configuration (order matters - applied in reverse order)
# 1. Request logging (outermost - logs all requests)
app.add_middleware(RequestLoggingMiddleware)

# 2. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

ERROR_STATUS: dict[type[IncidentAccessError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    LockoutError: status.HTTP_412_PRECONDITION_FAILED,
    UnknownUserError: status.HTTP_412_PRECONDITION_FAILED,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(IncidentAccessError)
async def incident_access_error_handler(request: Request, exc: IncidentAccessError) -> JSONResponse:
    """Render domain errors as ErrorResponse bodies."""
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = ErrorResponse(error=exc.error_code, message=exc.message, details=exc.details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


app.include_router(incidents.router, prefix="/api/workspaces", tags=["incidents"])
app.include_router(metrics.router, prefix="/api", tags=["metrics"])
