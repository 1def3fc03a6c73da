from pydantic import BaseModel


class CredentialStatus(BaseModel):
    configured: bool
    masked_key: str


class TokenTestResponse(BaseModel):
    service: str
    status: str  # "valid" or "invalid"
    message: str


class SettingsResponse(BaseModel):
    instagram: CredentialStatus
    canva: CredentialStatus
    canva_team_id: CredentialStatus
    canva_template_id: CredentialStatus
    canva_page_id: CredentialStatus
    default_design_title: str = "Instagram Reel"
    export_formats: list[str] = ["mp4", "gif", "mov"]
