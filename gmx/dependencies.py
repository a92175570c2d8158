from fastapi import HTTPException, Request, status

from .core.maintenance_state import MaintenanceState


def get_state(request: Request) -> MaintenanceState:
    state = getattr(request.app.state, "maintenance", None)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Maintenance state is not initialized",
        )
    return state


def get_github_secret(request: Request) -> bytes:
    secret = getattr(request.app.state, "github_secret", None)
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook secret is not configured",
        )
    return secret
