import base64
import json
import logging
from typing import Optional

import httpx

from reel2canva.core.errors import ExternalServiceError, from_http_error
from reel2canva.services.job_poller import wait_for_job

logger = logging.getLogger(__name__)

SERVICE = "Canva"


def _headers(access_token: str) -> dict:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }


async def _request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    access_token: str,
    action: str,
    **kwargs,
) -> dict:
    headers = _headers(access_token)
    headers.update(kwargs.pop("headers", {}))
    try:
        response = await client.request(method, url, headers=headers, **kwargs)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as e:
        if isinstance(e, httpx.HTTPStatusError):
            logger.warning(f"Canva {action}: {e.response.status_code} - {e.response.text[:200]}")
        raise from_http_error(SERVICE, action, e) from e


def _job(data: dict, action: str) -> dict:
    job = data.get("job")
    if not isinstance(job, dict) or not job.get("id"):
        raise ExternalServiceError(SERVICE, f"Canva {action} returned no job")
    return job


async def upload_asset(
    client: httpx.AsyncClient,
    api_url: str,
    access_token: str,
    content: bytes,
    name: str,
    *,
    timeout: float,
    interval: float,
) -> dict:
    """Upload a video as a Canva asset and wait for the upload job.

    Step 1: POST /asset-uploads          -> job (in_progress)
    Step 2: GET  /asset-uploads/{job_id} -> job (success, asset)
    """
    name_b64 = base64.b64encode(name[:50].encode("utf-8")).decode("ascii")
    data = await _request(
        client,
        "POST",
        f"{api_url}/asset-uploads",
        access_token,
        "asset upload",
        content=content,
        headers={
            "Content-Type": "application/octet-stream",
            "Asset-Upload-Metadata": json.dumps({"name_base64": name_b64}),
        },
    )
    job = _job(data, "asset upload")
    job_id = job["id"]

    if job.get("status") != "success":
        async def fetch() -> dict:
            polled = await _request(
                client, "GET", f"{api_url}/asset-uploads/{job_id}", access_token, "asset upload status"
            )
            return _job(polled, "asset upload status")

        job = await wait_for_job(
            fetch, label=f"Canva asset upload {job_id}", timeout=timeout, interval=interval
        )

    asset = job.get("asset") or {}
    if not asset.get("id"):
        raise ExternalServiceError(SERVICE, f"Canva asset upload {job_id} finished without an asset")
    return {"asset_id": asset["id"], "job_id": job_id, "name": asset.get("name", name)}


async def get_design(client: httpx.AsyncClient, api_url: str, access_token: str, design_id: str) -> dict:
    """Open an existing design (used when a template design id is configured)."""
    data = await _request(client, "GET", f"{api_url}/designs/{design_id}", access_token, "design lookup")
    design = data.get("design") or {}
    if not design.get("id"):
        raise ExternalServiceError(SERVICE, f"Canva design {design_id} was not returned")
    return design


async def create_design(
    client: httpx.AsyncClient,
    api_url: str,
    access_token: str,
    title: str,
    design_type: str,
    team_id: Optional[str] = None,
) -> dict:
    payload: dict = {
        "design_type": {"type": "preset", "name": design_type},
        "title": title[:255],
    }
    if team_id:
        payload["team_id"] = team_id
    data = await _request(client, "POST", f"{api_url}/designs", access_token, "design creation", json=payload)
    design = data.get("design") or {}
    if not design.get("id"):
        raise ExternalServiceError(SERVICE, "Canva design creation returned no design id")
    return design


async def first_page(client: httpx.AsyncClient, api_url: str, access_token: str, design_id: str) -> str:
    """Return the index of the design's first page as a string."""
    data = await _request(
        client, "GET", f"{api_url}/designs/{design_id}/pages", access_token, "page lookup",
        params={"limit": 1},
    )
    items = data.get("items") or []
    if not items:
        raise ExternalServiceError(SERVICE, f"Canva design {design_id} has no pages")
    return str(items[0].get("index", 1))


async def place_video(
    client: httpx.AsyncClient,
    api_url: str,
    access_token: str,
    design_id: str,
    page: str,
    asset_id: str,
) -> dict:
    """Add the uploaded video to a page, filling it."""
    payload = {
        "type": "video",
        "asset_id": asset_id,
        "position": {"top": 0, "left": 0},
        "fill_page": True,
    }
    data = await _request(
        client,
        "POST",
        f"{api_url}/designs/{design_id}/pages/{page}/elements",
        access_token,
        "video placement",
        json=payload,
    )
    element = data.get("element") or {}
    return {"element_id": element.get("id"), "page": page}


async def export_design(
    client: httpx.AsyncClient,
    api_url: str,
    access_token: str,
    design_id: str,
    export_format: str,
    *,
    quality: str,
    page: Optional[str] = None,
    timeout: float,
    interval: float,
) -> dict:
    """Start an export job and wait for it. Returns {"export_id", "download_url", "urls"}.

    Step 1: POST /exports             -> job (in_progress)
    Step 2: GET  /exports/{export_id} -> job (success, urls)
    """
    fmt: dict = {"type": export_format}
    if export_format == "mp4":
        fmt["quality"] = quality
    if page and page.isdigit():
        fmt["pages"] = [int(page)]

    data = await _request(
        client,
        "POST",
        f"{api_url}/exports",
        access_token,
        "export",
        json={"design_id": design_id, "format": fmt},
    )
    job = _job(data, "export")
    export_id = job["id"]

    if job.get("status") != "success":
        async def fetch() -> dict:
            polled = await _request(client, "GET", f"{api_url}/exports/{export_id}", access_token, "export status")
            return _job(polled, "export status")

        job = await wait_for_job(fetch, label=f"Canva export {export_id}", timeout=timeout, interval=interval)

    urls = job.get("urls") or []
    if not urls:
        raise ExternalServiceError(SERVICE, f"Canva export {export_id} finished without a download URL")
    return {"export_id": export_id, "download_url": urls[0], "urls": urls}


async def check_access_token(client: httpx.AsyncClient, api_url: str, access_token: str) -> dict:
    """Check a token against Canva's current-user endpoint."""
    data = await _request(client, "GET", f"{api_url}/users/me", access_token, "token check")
    team_user = data.get("team_user") or {}
    return {
        "service": "canva",
        "status": "valid",
        "message": f"Canva token is valid (team {team_user.get('team_id', 'unknown')}).",
    }
