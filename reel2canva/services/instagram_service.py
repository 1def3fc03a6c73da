import logging
from typing import Optional

import httpx

from reel2canva.core.errors import ExternalServiceError, from_http_error
from reel2canva.schemas.pipeline import ReelMetadata

logger = logging.getLogger(__name__)

SERVICE = "Instagram"

MEDIA_FIELDS = "id,media_type,media_url,permalink,caption,timestamp,username"
VIDEO_MEDIA_TYPES = {"VIDEO", "REELS"}


def _auth_headers(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


async def _get_json(
    client: httpx.AsyncClient, url: str, access_token: str, action: str, params: Optional[dict] = None
) -> dict:
    try:
        response = await client.get(url, params=params, headers=_auth_headers(access_token))
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as e:
        if isinstance(e, httpx.HTTPStatusError):
            logger.warning(f"Instagram {action}: {e.response.status_code} - {e.response.text[:200]}")
        raise from_http_error(SERVICE, action, e) from e


async def resolve_reel(
    client: httpx.AsyncClient, graph_url: str, reel_url: str, access_token: str
) -> ReelMetadata:
    """Resolve a Reel URL to its media node.

    Step 1: GET /instagram_oembed?url=...  -> media_id, author, title
    Step 2: GET /{media_id}?fields=...     -> media_type, media_url, permalink
    """
    oembed = await _get_json(
        client,
        f"{graph_url}/instagram_oembed",
        access_token,
        "metadata lookup",
        params={"url": reel_url, "omitscript": "true"},
    )
    media_id = oembed.get("media_id")
    if not media_id:
        raise ExternalServiceError(SERVICE, f"Instagram returned no media id for {reel_url}")

    node = await _get_json(
        client,
        f"{graph_url}/{media_id}",
        access_token,
        "media lookup",
        params={"fields": MEDIA_FIELDS},
    )
    media_type = (node.get("media_type") or "").upper()
    if media_type not in VIDEO_MEDIA_TYPES:
        raise ExternalServiceError(
            SERVICE, f"Instagram media {media_id} is not a video (type: {media_type or 'unknown'})"
        )
    media_url = node.get("media_url")
    if not media_url:
        raise ExternalServiceError(SERVICE, f"Instagram media {media_id} has no downloadable URL")

    return ReelMetadata(
        media_id=str(node.get("id") or media_id),
        media_type=media_type,
        media_url=media_url,
        permalink=node.get("permalink") or reel_url,
        caption=node.get("caption"),
        author_name=oembed.get("author_name") or node.get("username"),
        title=oembed.get("title"),
    )


async def download_video(
    client: httpx.AsyncClient, media_url: str, access_token: str, max_bytes: int
) -> tuple[bytes, str]:
    """Download the Reel's video. Returns (body, content_type).

    The body is streamed so that oversized media is rejected without being
    held in memory in full.
    """
    chunks = []
    received = 0
    try:
        async with client.stream("GET", media_url, headers=_auth_headers(access_token)) as response:
            if response.is_error:
                await response.aread()
                response.raise_for_status()
            content_type = response.headers.get("content-type", "video/mp4").split(";")[0]
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise ExternalServiceError(
                        SERVICE, f"Reel video exceeds the {max_bytes} byte limit"
                    )
                chunks.append(chunk)
    except httpx.HTTPStatusError as e:
        logger.warning(f"Instagram download: {e.response.status_code} - {e.response.text[:200]}")
        raise from_http_error(SERVICE, "video download", e) from e
    except httpx.HTTPError as e:
        raise from_http_error(SERVICE, "video download", e) from e

    if not received:
        raise ExternalServiceError(SERVICE, "Instagram returned an empty video")
    return b"".join(chunks), content_type


async def check_access_token(client: httpx.AsyncClient, graph_url: str, access_token: str) -> dict:
    """Check a token against the Graph API's current-user node."""
    data = await _get_json(
        client, f"{graph_url}/me", access_token, "token check", params={"fields": "id,name"}
    )
    name = data.get("name") or data.get("username") or data.get("id", "")
    return {
        "service": "instagram",
        "status": "valid",
        "message": f"Instagram token is valid ({name}).",
    }
