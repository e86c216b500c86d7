"""Lambda entrypoint for the Pregrader REST API.

Implements a minimal surface without introducing a framework.

Routes:
- GET  /v1/health
- GET  /v1/guidelines
- POST /v1/analyze

Auth:
- API keys via X-API-Key header (optional in dev, enforced when
  PREGRADER_API_KEYS is configured)

Determinism:
- request_id is derived from the submitted image content.
- Pipeline output is a pure function of the pixels; preview paths embed the
  request_id.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from api.http import content_hash_bytes, decode_image_field, decode_json_body, get_header, response
from api.image_store import save_previews
from api.schemas import HTTP_STATUS, AnalyzeResponse, ErrorCode, ErrorDetail, ErrorResponse
from services.grading.errors import ImageDecodeError, ImageTooLargeError, InputError
from services.grading.grade import get_guidelines
from services.grading.pipeline import PipelineOptions, run_pipeline
from services.grading.raster import RasterImage


logger = logging.getLogger(__name__)

_API_VERSION = "1.0"


def _error(code: ErrorCode, message: str, request_id: Optional[str] = None,
           details: Optional[tuple[ErrorDetail, ...]] = None) -> dict[str, Any]:
    err = ErrorResponse(
        api_version=_API_VERSION,
        request_id=request_id,
        error_code=code.value,
        error_message=message,
        details=details,
    )
    return response(HTTP_STATUS[code], err.to_dict())


# -----------------------------------------------------------------------------
# Auth
# -----------------------------------------------------------------------------


def _configured_api_keys() -> tuple[str, ...]:
    raw = os.environ.get("PREGRADER_API_KEYS", "").strip()
    if not raw:
        return ()
    return tuple(k.strip() for k in raw.split(",") if k.strip())


def _check_api_key(event: dict[str, Any]) -> Optional[dict[str, Any]]:
    keys = _configured_api_keys()
    # If keys are configured, enforce. Otherwise, allow local/dev usage.
    if not keys:
        return None

    api_key = get_header(event, "x-api-key")
    if not api_key:
        return _error(ErrorCode.MISSING_API_KEY, "Missing API key. Provide X-API-Key header.")
    if api_key not in keys:
        return _error(ErrorCode.INVALID_API_KEY, "Invalid API key.")
    return None


# -----------------------------------------------------------------------------
# Routing
# -----------------------------------------------------------------------------


def _method(event: dict[str, Any]) -> str:
    # v2: requestContext.http.method
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    if isinstance(http, dict) and http.get("method"):
        return str(http.get("method")).upper()
    # v1: httpMethod
    if event.get("httpMethod"):
        return str(event.get("httpMethod")).upper()
    return ""


def _path(event: dict[str, Any]) -> str:
    # v2: rawPath
    if event.get("rawPath"):
        return str(event.get("rawPath"))
    # v1: path
    if event.get("path"):
        return str(event.get("path"))
    return "/"


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    method = _method(event)
    path = _path(event)

    if method == "GET" and path == "/v1/health":
        return response(200, {"ok": True, "api_version": _API_VERSION})

    auth_resp = _check_api_key(event)
    if auth_resp is not None:
        return auth_resp

    if method == "GET" and path == "/v1/guidelines":
        return response(200, {"api_version": _API_VERSION, "guidelines": get_guidelines()})

    if method == "POST" and path == "/v1/analyze":
        return _handle_analyze(event)

    return _error(ErrorCode.NOT_FOUND, f"Unsupported route: {method} {path}")


# -----------------------------------------------------------------------------
# Handlers
# -----------------------------------------------------------------------------


def _input_error(e: InputError) -> dict[str, Any]:
    try:
        code = ErrorCode(e.code)
    except ValueError:
        code = ErrorCode.INVALID_FIELD_VALUE
    details = (ErrorDetail(field=e.field, issue=str(e)),) if e.field else None
    return _error(code, str(e), details=details)


def _pipeline_options(payload: dict[str, Any]) -> PipelineOptions:
    options = payload.get("options")
    if options is None:
        return PipelineOptions.from_env()
    if not isinstance(options, dict):
        raise InputError("options must be a JSON object.", field="options")
    return PipelineOptions.from_env().with_overrides(options)


def _handle_analyze(event: dict[str, Any]) -> dict[str, Any]:
    try:
        payload = decode_json_body(event)
    except ValueError:
        # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors.
        return _error(ErrorCode.INVALID_REQUEST_FORMAT, "Invalid JSON body.")

    if not isinstance(payload, dict):
        return _error(ErrorCode.INVALID_REQUEST_FORMAT, "Request body must be a JSON object.")

    try:
        front_bytes = decode_image_field(payload, "front_image")
        back_bytes = decode_image_field(payload, "back_image", required=False)
        options = _pipeline_options(payload)
    except InputError as e:
        return _input_error(e)

    # Deterministic request_id based on image content.
    request_id = content_hash_bytes(front_bytes + (back_bytes or b""))[:24]

    try:
        front = RasterImage.decode(front_bytes)
        back = RasterImage.decode(back_bytes) if back_bytes is not None else None
    except ImageTooLargeError as e:
        return _error(ErrorCode.IMAGE_TOO_LARGE, str(e), request_id=request_id)
    except ImageDecodeError as e:
        return _error(ErrorCode.INVALID_IMAGE_FORMAT, str(e), request_id=request_id)

    try:
        report = run_pipeline(front, back, options)
        result = report.to_dict()
        previews = save_previews(report, request_id)
    except Exception:
        logger.exception("analyze %s failed", request_id)
        return _error(ErrorCode.INTERNAL_ERROR, "Analysis failed.", request_id=request_id)

    if previews:
        result["previews"] = previews

    client_reference = payload.get("client_reference")
    if client_reference is not None and not isinstance(client_reference, str):
        client_reference = None

    logger.info("analyze %s: %s", request_id, report.grading.overall_grade.value)

    resp = AnalyzeResponse(
        api_version=_API_VERSION,
        request_id=request_id,
        client_reference=client_reference,
        result=result,
    )
    return response(200, resp.to_dict())
