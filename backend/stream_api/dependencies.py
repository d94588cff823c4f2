"""FastAPI dependencies for the stream API."""
from fastapi import Depends, Request

from .services.proxy_service import ProxyService
from .services.source_service import SourceService
from .state import AppState
from .stores.mapping_store import MappingStore


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_source_service(app_state: AppState = Depends(get_app_state)) -> SourceService:
    """Return the source resolution service."""
    return app_state.source_service


def get_mapping_store(app_state: AppState = Depends(get_app_state)) -> MappingStore:
    return app_state.mapping_store


def get_proxy_service(app_state: AppState = Depends(get_app_state)) -> ProxyService:
    return app_state.proxy_service
