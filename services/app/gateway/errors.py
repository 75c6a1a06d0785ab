from __future__ import annotations

from typing import Optional

from fastapi.responses import JSONResponse

from .models import ErrorResponse


class GatewayError(RuntimeError):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GatewayError):
    status_code = 400


class RateLimitError(GatewayError):
    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message)


class ConfigurationError(GatewayError):
    status_code = 500

    def __init__(self, provider_label: str):
        super().__init__(f"{provider_label} API key not configured")
        self.provider_label = provider_label


class UpstreamError(GatewayError):
    status_code = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class StreamParseError(ValueError):
    """A single upstream stream frame could not be decoded."""


def error_response(exc: GatewayError) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=exc.message).model_dump(), status_code=exc.status_code)
