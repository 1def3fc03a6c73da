"""Error taxonomy for the Reel → Canva pipeline.

Every failure the API reports is one of these; anything else is treated as
an unexpected internal error and reported with a generic message.
"""

from typing import Optional

import httpx


class PipelineError(Exception):
    """Base class. ``logs`` holds the step log accumulated before the failure."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.logs: list = []


class ValidationError(PipelineError):
    """Malformed or missing input field."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ExternalServiceError(PipelineError):
    """Non-2xx response or transport failure from Instagram or Canva."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class JobTimeoutError(PipelineError, TimeoutError):
    """A Canva async job (asset upload or export) did not finish in time."""


def _provider_message(response: httpx.Response) -> str:
    """Pull the human-readable error out of an Instagram or Canva error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        err = data.get("error")
        # Graph API: {"error": {"message": ...}}, Canva: {"code": ..., "message": ...}
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
        if data.get("message"):
            return str(data["message"])
    return response.text[:200]


def from_http_error(service: str, action: str, exc: httpx.HTTPError) -> ExternalServiceError:
    """Translate an httpx error raised while performing ``action`` on ``service``."""
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        detail = _provider_message(exc.response)
        return ExternalServiceError(
            service,
            f"{service} {action} failed: HTTP {status_code} - {detail}",
            status_code=status_code,
        )
    if isinstance(exc, httpx.TimeoutException):
        return ExternalServiceError(service, f"{service} {action} timed out")
    return ExternalServiceError(service, f"{service} {action} failed: {exc}")
