"""Health endpoints."""
from fastapi import APIRouter, Depends

from ..dependencies import get_app_state
from ..schemas import HealthStatus
from ..state import AppState

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
def get_health(app_state: AppState = Depends(get_app_state)) -> HealthStatus:
    """Return service heartbeat information."""

    return HealthStatus(
        mirror=app_state.mirrors.active,
        proxy_registered=app_state.proxy_registry.current() is not None,
    )
