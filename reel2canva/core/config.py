from pydantic import field_validator
from pydantic_settings import BaseSettings

from reel2canva.schemas.pipeline import EXPORT_FORMATS


# service -> settings attribute holding its default access token
TOKEN_MAP = {
    "instagram": "INSTAGRAM_ACCESS_TOKEN",
    "canva": "CANVA_ACCESS_TOKEN",
}

# Default ids shown (masked) in the settings endpoint next to the tokens
ID_FIELDS = ("CANVA_TEAM_ID", "CANVA_TEMPLATE_ID", "CANVA_PAGE_ID")


def mask_value(value: str) -> str:
    """Mask a secret for display, keeping the first and last three characters."""
    if value and len(value) > 6:
        return value[:3] + "..." + value[-3:]
    if value:
        return "***"
    return ""


class Settings(BaseSettings):
    INSTAGRAM_ACCESS_TOKEN: str = ""
    INSTAGRAM_GRAPH_URL: str = "https://graph.facebook.com/v19.0"

    CANVA_ACCESS_TOKEN: str = ""
    CANVA_API_URL: str = "https://api.canva.com/rest/v1"
    CANVA_TEAM_ID: str = ""
    CANVA_TEMPLATE_ID: str = ""
    CANVA_PAGE_ID: str = ""
    CANVA_DESIGN_TYPE: str = "presentation"
    CANVA_EXPORT_QUALITY: str = "horizontal_1080p"

    DEFAULT_DESIGN_TITLE: str = "Instagram Reel"
    DEFAULT_EXPORT_FORMAT: str = "mp4"

    HTTP_TIMEOUT: float = 30.0
    EXPORT_TIMEOUT: float = 300.0
    EXPORT_POLL_INTERVAL: float = 3.0
    CANVA_JOB_TIMEOUT: float = 120.0
    MAX_VIDEO_BYTES: int = 250 * 1024 * 1024

    CORS_ORIGINS: str = "http://localhost:3000"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("DEFAULT_EXPORT_FORMAT")
    @classmethod
    def _check_export_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in EXPORT_FORMATS:
            raise ValueError(f"DEFAULT_EXPORT_FORMAT must be one of: {', '.join(EXPORT_FORMATS)}")
        return value

    def get_token(self, service: str) -> str:
        """Get the default access token for a provider, or "" if unknown."""
        attr = TOKEN_MAP.get(service, "")
        if not attr:
            return ""
        return getattr(self, attr, "")

    def get_all_defaults_masked(self) -> dict:
        """Return masked versions of the default credentials for the settings UI."""
        result = {}
        for service in TOKEN_MAP:
            token = self.get_token(service)
            result[service] = {
                "configured": bool(token),
                "masked_key": mask_value(token),
            }
        for attr in ID_FIELDS:
            value = getattr(self, attr, "")
            result[attr.lower()] = {
                "configured": bool(value),
                "masked_key": mask_value(value),
            }
        return result


settings = Settings()
