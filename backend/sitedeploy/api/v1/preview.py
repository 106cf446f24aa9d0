from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from ...services.preview import PreviewError, PreviewProxy
from ..deps import get_preview_proxy

router = APIRouter(prefix="/preview", tags=["Preview"])


@router.get("/{path:path}")
async def preview(path: str, proxy: PreviewProxy = Depends(get_preview_proxy)):
    """
    Stream a deployed file from the private bucket.

    Format: /preview/{storage_prefix}/{file}; directories serve index.html.
    """
    try:
        obj = await proxy.open(path)
    except PreviewError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    # Closes the upstream fetch once streaming stops, including on client disconnect
    return StreamingResponse(
        obj.response.aiter_bytes(),
        media_type=obj.content_type,
        background=BackgroundTask(obj.aclose),
    )
