"""Episode source resolution endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ...provider.errors import NoMatchFoundError, StreamResolverError
from ..dependencies import get_app_state
from ..schemas import SourceRequest, StreamingInfoModel
from ..state import AppState

router = APIRouter(prefix="/sources", tags=["sources"])


@router.post("", response_model=StreamingInfoModel, summary="Resolve playable sources for an episode")
async def fetch_sources(
    payload: SourceRequest,
    request: Request,
    app_state: AppState = Depends(get_app_state),
) -> StreamingInfoModel:
    """Match the title, extract the episode and return proxied sources."""

    if app_state.proxy_base_url is None:
        app_state.publish_base_url(str(request.base_url))

    try:
        info = await app_state.source_service.fetch_episode_sources(
            payload.catalogue_id,
            payload.title,
            payload.alt_title,
            payload.episode,
            payload.audio_type,
        )
    except NoMatchFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StreamResolverError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return StreamingInfoModel.from_info(info)
