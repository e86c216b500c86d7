"""
Pregrader API Schema Definitions

Envelopes for the /v1 routes of the pre-grading service. The body of a
successful analysis is CardReport.to_dict(); this module only wraps it.

ENVELOPE RULES:
- Every body carries 'api_version' so clients can detect contract changes
- Routes are versioned in the path (/v1/...); a breaking change means /v2
- New optional keys may appear in a v1 body at any time

OUTCOMES:
- A degraded analysis (some stage fell back to its neutral default) is a
  200 with the stage named under result.analysis.degradedStages
- A rejected upload or an unexpected crash is an ErrorResponse with a
  4xx/5xx status taken from HTTP_STATUS
"""

from dataclasses import dataclass, asdict
from typing import Optional
from enum import Enum


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ImageEncoding(str, Enum):
    """
    How an uploaded image is carried inside the JSON body.
    Only inline base64 is accepted; URLs are rejected.
    """
    BASE64 = "base64"


class ErrorCode(str, Enum):
    """
    Machine-readable reasons for a failed request.
    """
    # Upload validation (400)
    INVALID_REQUEST_FORMAT = "INVALID_REQUEST_FORMAT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_FIELD_VALUE = "INVALID_FIELD_VALUE"
    INVALID_IMAGE_FORMAT = "INVALID_IMAGE_FORMAT"
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"

    # Unknown route (404)
    NOT_FOUND = "NOT_FOUND"

    # X-API-Key checks (401)
    MISSING_API_KEY = "MISSING_API_KEY"
    INVALID_API_KEY = "INVALID_API_KEY"

    # Pipeline crash (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_STATUS = {
    ErrorCode.INVALID_REQUEST_FORMAT: 400,
    ErrorCode.MISSING_REQUIRED_FIELD: 400,
    ErrorCode.INVALID_FIELD_VALUE: 400,
    ErrorCode.INVALID_IMAGE_FORMAT: 400,
    ErrorCode.IMAGE_TOO_LARGE: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.MISSING_API_KEY: 401,
    ErrorCode.INVALID_API_KEY: 401,
    ErrorCode.INTERNAL_ERROR: 500,
}


# =============================================================================
# ENVELOPES
# =============================================================================

@dataclass(frozen=True)
class AnalyzeResponse:
    """
    Body of a 200 from POST /v1/analyze.
    """

    api_version: str

    request_id: str
    """sha256 prefix of the uploaded image bytes; identical uploads share it."""

    client_reference: Optional[str]
    """Caller's own correlation string, returned untouched."""

    result: dict
    """
    CardReport.to_dict(): analysis and grading always; quality, defects,
    enhanced, segmentation and backAnalysis when produced; previews when any
    preview PNG was written.
    """

    def to_dict(self) -> dict:
        body = {
            'api_version': self.api_version,
            'request_id': self.request_id,
            'result': self.result,
        }
        if self.client_reference is not None:
            body['client_reference'] = self.client_reference
        return body


@dataclass(frozen=True)
class ErrorDetail:
    """
    Which upload field was rejected, and why.
    """

    field: str
    issue: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ErrorResponse:
    """
    Body of every non-200 response.
    request_id is present once the upload bytes were decoded from base64.
    """

    api_version: str
    request_id: Optional[str]
    error_code: str
    error_message: str
    details: Optional[tuple[ErrorDetail, ...]] = None

    def to_dict(self) -> dict:
        body = {
            'api_version': self.api_version,
            'error_code': self.error_code,
            'error_message': self.error_message,
        }
        if self.request_id is not None:
            body['request_id'] = self.request_id
        if self.details:
            body['details'] = [d.to_dict() for d in self.details]
        return body
