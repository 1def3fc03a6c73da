import asyncio
import logging
from typing import Any, Awaitable

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from reel2canva.core.config import settings
from reel2canva.core.errors import PipelineError
from reel2canva.schemas.pipeline import ErrorResponse, RunResponse
from reel2canva.services import pipeline_service
from reel2canva.services.request_parser import parse_agent_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["run"])

# How often the handler checks whether the caller has gone away
DISCONNECT_POLL_SECONDS = 1.0


class ClientDisconnected(Exception):
    pass


def _error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=message).model_dump(),
    )


async def _run_until_disconnect(request: Request, work: Awaitable[Any]) -> Any:
    """Await ``work``, cancelling it if the HTTP client disconnects first."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


@router.post("/run", response_model=RunResponse, responses={400: {"model": ErrorResponse}})
async def run(request: Request):
    """Run the Reel → Canva pipeline and return the export details with the step log."""
    try:
        payload = await request.json()
    except ValueError:
        return _error("Request body must be valid JSON")

    try:
        parsed = parse_agent_request(payload)
        result = await _run_until_disconnect(
            request, pipeline_service.run_pipeline(parsed, settings)
        )
    except PipelineError as e:
        if e.logs:
            logger.info(f"Run failed after {len(e.logs)} step(s): {e.message}")
        return _error(e.message)
    except ClientDisconnected:
        logger.warning("Client disconnected, run abandoned")
        return _error("Client disconnected")
    except Exception as e:
        logger.error(f"Unexpected error in /api/run: {e}", exc_info=True)
        return _error("Unexpected server error")

    body = RunResponse(
        download_url=result.download_url,
        design_id=result.design_id,
        export_id=result.export_id,
        asset_id=result.asset_id,
        logs=result.logs,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=body.model_dump(mode="json", by_alias=True),
    )
