import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ExportFormat = Literal["mp4", "gif", "mov"]
EXPORT_FORMATS = ("mp4", "gif", "mov")

INSTAGRAM_HOSTS = {"instagram.com", "instagr.am"}


class StepName(str, Enum):
    INSTAGRAM_RESOLVE = "instagram:resolve"
    INSTAGRAM_DOWNLOAD = "instagram:download"
    CANVA_UPLOAD = "canva:upload"
    CANVA_DESIGN = "canva:design"
    CANVA_PLACE_VIDEO = "canva:place-video"
    CANVA_EXPORT = "canva:export"
    COMPLETE = "complete"


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


def is_instagram_host(host: str) -> bool:
    host = host.lower().rstrip(".")
    return any(host == h or host.endswith("." + h) for h in INSTAGRAM_HOSTS)


class AgentRequest(BaseModel):
    """A validated run request. Wire keys are camelCase (``reelUrl``)."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    reel_url: str
    design_title: Optional[str] = None
    instagram_access_token: Optional[str] = None
    canva_access_token: Optional[str] = None
    canva_team_id: Optional[str] = None
    canva_template_id: Optional[str] = None
    canva_page_id: Optional[str] = None
    export_format: Optional[ExportFormat] = None

    @field_validator(
        "design_title",
        "instagram_access_token",
        "canva_access_token",
        "canva_team_id",
        "canva_template_id",
        "canva_page_id",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("export_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("reel_url", mode="before")
    @classmethod
    def _check_reel_url(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        value = value.strip()
        if not value:
            raise ValueError("reelUrl is required")
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("reelUrl must be a valid URL")
        if not is_instagram_host(parsed.hostname):
            raise ValueError("reelUrl must point to instagram.com")
        return value


class StepLog(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    step: StepName
    status: StepStatus
    message: str
    meta: Optional[dict[str, Any]] = None
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class PipelineResult(BaseModel):
    download_url: Optional[str] = None
    design_id: Optional[str] = None
    export_id: Optional[str] = None
    asset_id: Optional[str] = None
    logs: list[StepLog] = []


class RunConfig(BaseModel):
    """Request overrides merged over the process-wide defaults."""

    model_config = ConfigDict(frozen=True)

    reel_url: str
    design_title: str
    instagram_access_token: str
    canva_access_token: str
    canva_team_id: Optional[str] = None
    canva_template_id: Optional[str] = None
    canva_page_id: Optional[str] = None
    export_format: ExportFormat = "mp4"


class ReelMetadata(BaseModel):
    media_id: str
    media_type: str
    media_url: str
    permalink: Optional[str] = None
    caption: Optional[str] = None
    author_name: Optional[str] = None
    title: Optional[str] = None


class RunResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    success: bool = True
    download_url: Optional[str] = None
    design_id: Optional[str] = None
    export_id: Optional[str] = None
    asset_id: Optional[str] = None
    logs: list[StepLog] = []


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
