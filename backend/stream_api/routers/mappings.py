"""Provider mapping cache endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Response

from ..dependencies import get_app_state, get_source_service
from ..schemas import ProviderMappingModel
from ..services.source_service import SourceService
from ..state import AppState

router = APIRouter(prefix="/mappings", tags=["mappings"])


@router.get("/{catalogue_id}", response_model=ProviderMappingModel)
def get_mapping(
    catalogue_id: int,
    app_state: AppState = Depends(get_app_state),
) -> ProviderMappingModel:
    """Return the cached provider slug for a catalogue id."""

    mapping = app_state.mapping_store.describe(catalogue_id, app_state.source_service.provider_name)
    if mapping is None:
        raise HTTPException(status_code=404, detail=f"No mapping cached for {catalogue_id}")
    return mapping


@router.delete("/{catalogue_id}", status_code=204)
def clear_mapping(
    catalogue_id: int,
    source_service: SourceService = Depends(get_source_service),
) -> Response:
    """Forget the cached slug so the next request matches the title again."""

    source_service.clear_provider_mapping(catalogue_id)
    return Response(status_code=204)
