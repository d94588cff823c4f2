"""Local streaming proxy route."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ...provider.errors import PlaylistCorruptError, ProxyUnavailableError, UpstreamReplayError
from ..dependencies import get_app_state
from ..services.proxy_service import CORS_HEADERS, PROXY_ROUTE
from ..state import AppState

router = APIRouter(tags=["proxy"])


@router.get(PROXY_ROUTE, summary="Replay a media request through the browser session")
async def proxy_request(
    request: Request,
    url: str | None = Query(default=None, description="Absolute upstream URL to replay."),
    app_state: AppState = Depends(get_app_state),
) -> Response:
    if not url:
        raise HTTPException(status_code=400, detail="Missing url parameter", headers=CORS_HEADERS)

    if app_state.proxy_base_url is None:
        app_state.publish_base_url(str(request.base_url))

    try:
        proxied = await app_state.proxy_service.handle(url, app_state.to_proxy_url)
    except ProxyUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc), headers=CORS_HEADERS) from exc
    except (PlaylistCorruptError, UpstreamReplayError) as exc:
        raise HTTPException(status_code=502, detail=str(exc), headers=CORS_HEADERS) from exc

    return Response(
        content=proxied.body,
        status_code=proxied.status,
        media_type=proxied.content_type or None,
        headers=CORS_HEADERS,
    )


@router.options(PROXY_ROUTE, include_in_schema=False)
def proxy_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)
