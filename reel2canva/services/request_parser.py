"""Turn an untyped request payload into an ``AgentRequest`` and a ``RunConfig``."""

from typing import Any

import pydantic

from reel2canva.core.config import Settings
from reel2canva.core.errors import ValidationError
from reel2canva.schemas.pipeline import EXPORT_FORMATS, AgentRequest, RunConfig


def _describe(error: dict) -> ValidationError:
    """Build a field-specific ValidationError from one pydantic error entry."""
    loc = error.get("loc") or ("request",)
    field = str(loc[0])
    kind = error.get("type", "")

    if kind == "missing" or error.get("input") is None:
        return ValidationError(field, f"{field} is required")
    if kind == "literal_error":
        return ValidationError(field, f"{field} must be one of: {', '.join(EXPORT_FORMATS)}")
    if kind == "string_type":
        return ValidationError(field, f"{field} must be a string")
    if kind == "value_error":
        return ValidationError(field, str(error["ctx"]["error"]))
    return ValidationError(field, f"{field} is invalid: {error.get('msg', '')}")


def parse_agent_request(payload: Any) -> AgentRequest:
    """Validate a decoded JSON body. Raises ValidationError on the first bad field."""
    if not isinstance(payload, dict):
        raise ValidationError("request", "Request body must be a JSON object")
    try:
        return AgentRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        raise _describe(e.errors()[0]) from None


def resolve_run_config(request: AgentRequest, settings: Settings) -> RunConfig:
    """Merge request overrides over the process-wide defaults.

    Both access tokens must be available after the merge; nothing is sent to
    either provider otherwise.
    """
    instagram_token = request.instagram_access_token or settings.INSTAGRAM_ACCESS_TOKEN
    canva_token = request.canva_access_token or settings.CANVA_ACCESS_TOKEN

    if not instagram_token:
        raise ValidationError(
            "instagramAccessToken",
            "instagramAccessToken is required (none configured on the server)",
        )
    if not canva_token:
        raise ValidationError(
            "canvaAccessToken",
            "canvaAccessToken is required (none configured on the server)",
        )

    return RunConfig(
        reel_url=request.reel_url,
        design_title=request.design_title or settings.DEFAULT_DESIGN_TITLE,
        instagram_access_token=instagram_token,
        canva_access_token=canva_token,
        canva_team_id=request.canva_team_id or settings.CANVA_TEAM_ID or None,
        canva_template_id=request.canva_template_id or settings.CANVA_TEMPLATE_ID or None,
        canva_page_id=request.canva_page_id or settings.CANVA_PAGE_ID or None,
        export_format=request.export_format or settings.DEFAULT_EXPORT_FORMAT,
    )
