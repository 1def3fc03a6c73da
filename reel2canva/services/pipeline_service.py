import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from reel2canva.core.config import Settings
from reel2canva.core.errors import PipelineError
from reel2canva.schemas.pipeline import (
    AgentRequest,
    PipelineResult,
    ReelMetadata,
    RunConfig,
    StepName,
)
from reel2canva.services import canva_service, instagram_service
from reel2canva.services.pipeline_log import PipelineLog
from reel2canva.services.request_parser import resolve_run_config

logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Identifiers accumulated while a run moves through its steps."""

    config: RunConfig
    settings: Settings
    client: httpx.AsyncClient
    reel: Optional[ReelMetadata] = None
    video: bytes = b""
    content_type: str = "video/mp4"
    asset_id: Optional[str] = None
    design_id: Optional[str] = None
    page: Optional[str] = None
    export_id: Optional[str] = None
    download_url: Optional[str] = None


StepResult = tuple[str, dict]
StepHandler = Callable[[RunState], Awaitable[StepResult]]


async def _resolve(state: RunState) -> StepResult:
    reel = await instagram_service.resolve_reel(
        state.client,
        state.settings.INSTAGRAM_GRAPH_URL,
        state.config.reel_url,
        state.config.instagram_access_token,
    )
    state.reel = reel
    by = f" by {reel.author_name}" if reel.author_name else ""
    return f"Resolved reel {reel.media_id}{by}", {
        "mediaId": reel.media_id,
        "mediaType": reel.media_type,
        "mediaUrl": reel.media_url,
        "permalink": reel.permalink,
        "author": reel.author_name,
    }


async def _download(state: RunState) -> StepResult:
    state.video, state.content_type = await instagram_service.download_video(
        state.client,
        state.reel.media_url,
        state.config.instagram_access_token,
        state.settings.MAX_VIDEO_BYTES,
    )
    size = len(state.video)
    return f"Downloaded {size / (1024 * 1024):.1f} MB video", {
        "bytes": size,
        "contentType": state.content_type,
    }


async def _upload(state: RunState) -> StepResult:
    uploaded = await canva_service.upload_asset(
        state.client,
        state.settings.CANVA_API_URL,
        state.config.canva_access_token,
        state.video,
        f"instagram-reel-{state.reel.media_id}",
        timeout=state.settings.CANVA_JOB_TIMEOUT,
        interval=state.settings.EXPORT_POLL_INTERVAL,
    )
    state.asset_id = uploaded["asset_id"]
    # Canva has the bytes now
    state.video = b""
    return f"Uploaded video as Canva asset {state.asset_id}", {
        "assetId": state.asset_id,
        "jobId": uploaded["job_id"],
    }


async def _design(state: RunState) -> StepResult:
    cfg = state.config
    api_url = state.settings.CANVA_API_URL
    if cfg.canva_template_id:
        design = await canva_service.get_design(
            state.client, api_url, cfg.canva_access_token, cfg.canva_template_id
        )
        verb = "Opened"
    else:
        design = await canva_service.create_design(
            state.client,
            api_url,
            cfg.canva_access_token,
            cfg.design_title,
            state.settings.CANVA_DESIGN_TYPE,
            team_id=cfg.canva_team_id,
        )
        verb = "Created"
    state.design_id = design["id"]
    urls = design.get("urls") or {}
    return f"{verb} Canva design {state.design_id}", {
        "designId": state.design_id,
        "title": design.get("title", cfg.design_title),
        "editUrl": urls.get("edit_url"),
    }


async def _place(state: RunState) -> StepResult:
    cfg = state.config
    api_url = state.settings.CANVA_API_URL
    page = cfg.canva_page_id or await canva_service.first_page(
        state.client, api_url, cfg.canva_access_token, state.design_id
    )
    placed = await canva_service.place_video(
        state.client, api_url, cfg.canva_access_token, state.design_id, page, state.asset_id
    )
    state.page = page
    return f"Placed video on page {page}", {
        "designId": state.design_id,
        "page": page,
        "elementId": placed["element_id"],
        "assetId": state.asset_id,
    }


async def _export(state: RunState) -> StepResult:
    cfg = state.config
    exported = await canva_service.export_design(
        state.client,
        state.settings.CANVA_API_URL,
        cfg.canva_access_token,
        state.design_id,
        cfg.export_format,
        quality=state.settings.CANVA_EXPORT_QUALITY,
        page=state.page,
        timeout=state.settings.EXPORT_TIMEOUT,
        interval=state.settings.EXPORT_POLL_INTERVAL,
    )
    state.export_id = exported["export_id"]
    state.download_url = exported["download_url"]
    return f"Exported design as {cfg.export_format}", {
        "exportId": state.export_id,
        "downloadUrl": state.download_url,
        "format": cfg.export_format,
    }


STEPS: list[tuple[StepName, StepHandler]] = [
    (StepName.INSTAGRAM_RESOLVE, _resolve),
    (StepName.INSTAGRAM_DOWNLOAD, _download),
    (StepName.CANVA_UPLOAD, _upload),
    (StepName.CANVA_DESIGN, _design),
    (StepName.CANVA_PLACE_VIDEO, _place),
    (StepName.CANVA_EXPORT, _export),
]


async def _run_steps(state: RunState, log: PipelineLog) -> None:
    for step, handler in STEPS:
        try:
            message, meta = await handler(state)
        except PipelineError as e:
            log.error(step, e.message)
            e.logs = log.entries
            raise
        except Exception as e:
            logger.error(f"[{log.run_id}] {step.value} crashed: {e}", exc_info=True)
            log.error(step, f"Unexpected error during {step.value}")
            err = PipelineError(f"Unexpected error during {step.value}")
            err.logs = log.entries
            raise err from e
        log.success(step, message, meta)


async def run_pipeline(
    request: AgentRequest,
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> PipelineResult:
    """Run the Reel → Canva pipeline once.

    Steps:
    1. Resolve the Reel's media node on Instagram
    2. Download the video
    3. Upload it as a Canva asset
    4. Create (or open) the Canva design
    5. Place the video on a page
    6. Export the design and wait for the download URL

    Stops at the first failing step; resources already created on Canva are
    left in place.
    """
    config = resolve_run_config(request, settings)
    log = PipelineLog()
    logger.info(f"[{log.run_id}] Pipeline started for {config.reel_url}")

    if client is None:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, follow_redirects=True) as own_client:
            state = RunState(config=config, settings=settings, client=own_client)
            await _run_steps(state, log)
    else:
        state = RunState(config=config, settings=settings, client=client)
        await _run_steps(state, log)

    log.success(
        StepName.COMPLETE,
        "Pipeline complete! Export ready for download.",
        {
            "downloadUrl": state.download_url,
            "designId": state.design_id,
            "exportId": state.export_id,
            "assetId": state.asset_id,
        },
    )
    return PipelineResult(
        download_url=state.download_url,
        design_id=state.design_id,
        export_id=state.export_id,
        asset_id=state.asset_id,
        logs=log.entries,
    )
