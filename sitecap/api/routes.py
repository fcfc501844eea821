"""HTTP routes for captures, contexts, request history and metrics."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response

from ..errors import ConfigurationError
from .schemas import CaptureBody, ContextBody, ErrorResponse
from .service import CaptureService

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        400: {"model": ErrorResponse, "description": "Bad Request"},
        404: {"model": ErrorResponse, "description": "Not Found"},
        500: {"model": ErrorResponse, "description": "Capture Failed"},
        504: {"model": ErrorResponse, "description": "Capture Timed Out"},
    }
)


def get_capture_service(request: Request) -> CaptureService:
    """Dependency returning the application's capture service."""
    return request.app.state.capture_service


def _require_url(url: Optional[str]) -> str:
    if not url:
        raise ConfigurationError("missing 'url' parameter")
    return url


@router.get(
    "/",
    tags=["Capture"],
    summary="Screenshot a URL",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
async def screenshot(
    url: Optional[str] = Query(None, description="URL to capture"),
    viewport: Optional[str] = Query(None, description="Viewport as WxH"),
    resize: Optional[str] = Query(None, description="Resize specification"),
    timeout: Optional[str] = Query(None, description="Timeout in seconds"),
    wait: Optional[str] = Query(None, description="Post-load wait in seconds"),
    domains: Optional[str] = Query(None, description="Comma-separated domain allow-list"),
    full_height: Optional[bool] = Query(None, description="Capture the full page height"),
    service: CaptureService = Depends(get_capture_service),
):
    """Return the screenshot bytes with the image content type."""
    capture_request = service.quick_request(
        _require_url(url),
        viewport=viewport,
        resize=resize,
        timeout=timeout,
        wait=wait,
        domains=domains,
        full_height=full_height,
    )
    result = await service.capture(capture_request)
    return Response(content=result.screenshot, media_type=result.content_type)


@router.get(
    "/html",
    tags=["Capture"],
    summary="Rendered HTML of a URL",
    response_class=PlainTextResponse,
)
async def html(
    url: Optional[str] = Query(None, description="URL to capture"),
    viewport: Optional[str] = Query(None, description="Viewport as WxH"),
    timeout: Optional[str] = Query(None, description="Timeout in seconds"),
    wait: Optional[str] = Query(None, description="Post-load wait in seconds"),
    domains: Optional[str] = Query(None, description="Comma-separated domain allow-list"),
    service: CaptureService = Depends(get_capture_service),
):
    """Return the serialized DOM after load."""
    capture_request = service.quick_request(
        _require_url(url),
        viewport=viewport,
        timeout=timeout,
        wait=wait,
        domains=domains,
        full_height=False,
        capture_screenshot=False,
        capture_html=True,
    )
    result = await service.capture(capture_request)
    return PlainTextResponse(result.html or "")


@router.get("/metrics", tags=["System"], summary="Process metrics", response_class=PlainTextResponse)
async def metrics(service: CaptureService = Depends(get_capture_service)):
    return PlainTextResponse(service.metrics.render())


@router.post("/capture", tags=["Capture"], summary="Capture within a named context")
async def capture(
    body: CaptureBody,
    service: CaptureService = Depends(get_capture_service),
) -> Dict[str, Any]:
    """Run a capture with context defaults and return it as JSON.

    The run is stored in the request history and returned cookies are
    merged back into the context.
    """
    entry = await service.run_in_context(body)
    output = entry.response.to_json_output()
    output['id'] = entry.id
    output['context_name'] = entry.context_name
    output['duration'] = entry.duration_ms
    return output


@router.get("/requests/{request_id}", tags=["History"], summary="Stored capture")
async def get_request(
    request_id: str,
    include_html: bool = Query(False),
    include_network: bool = Query(False),
    include_console: bool = Query(False),
    service: CaptureService = Depends(get_capture_service),
) -> Dict[str, Any]:
    entry = service.get_history_entry(request_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"request not found: {request_id}")
    return entry.to_dict(include_html, include_network, include_console)


@router.get("/contexts", tags=["Contexts"], summary="List contexts")
async def list_contexts(service: CaptureService = Depends(get_capture_service)) -> Dict[str, Any]:
    return {'contexts': service.contexts.list()}


@router.put("/contexts/{name}", tags=["Contexts"], summary="Create or update a context")
async def put_context(
    name: str,
    body: ContextBody,
    service: CaptureService = Depends(get_capture_service),
) -> Dict[str, Any]:
    context = service.put_context(name, body)
    logger.info(f"Context configured: {name}")
    return {'name': context.name, **context.summary()}


@router.delete("/contexts/{name}", tags=["Contexts"], summary="Delete a context", status_code=204)
async def delete_context(name: str, service: CaptureService = Depends(get_capture_service)):
    service.delete_context(name)
    return Response(status_code=204)
