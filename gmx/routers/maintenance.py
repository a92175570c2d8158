from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..core.maintenance_state import MaintenanceState
from ..dependencies import get_state
from ..schemas import MaintenanceStatus

router = APIRouter(prefix="/maintenance", tags=["maintenance"])

limiter = Limiter(key_func=get_remote_address)


@router.get("/status", response_model=MaintenanceStatus)
@limiter.limit("30/minute")
def get_maintenance_status(request: Request, state: MaintenanceState = Depends(get_state)):
    """Machines and sites currently in maintenance, with the issues holding them"""
    return MaintenanceStatus(**state.snapshot())
