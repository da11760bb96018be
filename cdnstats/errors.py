# cdnstats/errors.py

from typing import Optional
from fastapi.responses import JSONResponse


class UpstreamError(Exception):
    """An upstream source could not be fetched"""


class MalformedUpstreamError(UpstreamError):
    """An upstream source answered with an unexpected shape"""


class PayloadTooLargeError(UpstreamError):
    """An upstream body exceeded the configured size bound"""


def error_response(exc: Exception, details: Optional[str] = None) -> JSONResponse:
    """Uniform 500 body for request-driven endpoints"""
    content = {"success": False, "error": str(exc)}
    if details:
        content["details"] = details
    return JSONResponse(status_code=500, content=content)
