import logging

import httpx
from fastapi import APIRouter, HTTPException, status

from reel2canva.core.config import TOKEN_MAP, settings
from reel2canva.core.errors import ExternalServiceError
from reel2canva.schemas.pipeline import EXPORT_FORMATS
from reel2canva.schemas.settings import SettingsResponse, TokenTestResponse
from reel2canva.services import canva_service, instagram_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("/", response_model=SettingsResponse)
def get_settings():
    """Return which default credentials and ids are configured, masked."""
    masked = settings.get_all_defaults_masked()
    return SettingsResponse(
        instagram=masked["instagram"],
        canva=masked["canva"],
        canva_team_id=masked["canva_team_id"],
        canva_template_id=masked["canva_template_id"],
        canva_page_id=masked["canva_page_id"],
        default_design_title=settings.DEFAULT_DESIGN_TITLE,
        export_formats=list(EXPORT_FORMATS),
    )


@router.post("/test/{service}", response_model=TokenTestResponse)
async def check_token(service: str):
    """Test a default access token by calling the provider's current-user endpoint."""
    if service not in TOKEN_MAP:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid service. Must be one of: {', '.join(TOKEN_MAP)}",
        )

    token = settings.get_token(service)
    if not token:
        return TokenTestResponse(
            service=service,
            status="invalid",
            message=f"{service} access token is not configured.",
        )

    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT) as client:
            if service == "instagram":
                result = await instagram_service.check_access_token(
                    client, settings.INSTAGRAM_GRAPH_URL, token
                )
            else:
                result = await canva_service.check_access_token(client, settings.CANVA_API_URL, token)
        return TokenTestResponse(**result)
    except ExternalServiceError as e:
        logger.warning(f"Token test failed for {service}: {e.message}")
        return TokenTestResponse(
            service=service,
            status="invalid",
            message=f"Token validation failed: {e.message}",
        )
