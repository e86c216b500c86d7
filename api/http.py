"""HTTP/Lambda helpers.

Goals:
- Keep responses deterministic (stable JSON serialization).
- Support both API Gateway REST (v1) and HTTP API (v2) event shapes.
- Validate uploaded images before any pixel work starts.

Request IDs are content hashes, so the same submission always maps to the
same ID.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from dataclasses import is_dataclass
from typing import Any, Optional

from api.schemas import ImageEncoding
from services.grading.errors import InputError


ALLOWED_MEDIA_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


def _normalise_headers(headers: Optional[dict[str, str]]) -> dict[str, str]:
    if not headers:
        return {}
    # API Gateway may provide mixed casing; normalise to lowercase.
    return {str(k).lower(): str(v) for k, v in headers.items() if v is not None}


def get_header(event: dict[str, Any], name: str) -> Optional[str]:
    headers = _normalise_headers(event.get("headers"))
    return headers.get(name.lower())


def stable_json_dumps(obj: Any) -> str:
    """Deterministic JSON: stable key order + no whitespace."""

    def default(o: Any) -> Any:
        if hasattr(o, "to_dict"):
            return o.to_dict()  # type: ignore[attr-defined]
        if is_dataclass(o):
            return o.__dict__
        if hasattr(o, "value"):
            # str/int enums
            return o.value  # type: ignore[attr-defined]
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serialisable")

    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=default)


def response(status_code: int, body: Any, headers: Optional[dict[str, str]] = None) -> dict[str, Any]:
    base_headers = {
        "content-type": "application/json; charset=utf-8",
    }
    if headers:
        base_headers.update({k.lower(): v for k, v in headers.items()})

    return {
        "statusCode": status_code,
        "headers": base_headers,
        "body": stable_json_dumps(body),
    }


def decode_json_body(event: dict[str, Any]) -> Any:
    raw = event.get("body")
    if raw is None:
        raise ValueError("missing body")

    if event.get("isBase64Encoded") is True:
        raw_bytes = base64.b64decode(raw)
        raw = raw_bytes.decode("utf-8")

    if not isinstance(raw, str):
        raise ValueError("invalid body type")

    return json.loads(raw)


def content_hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def max_image_bytes() -> int:
    raw = os.environ.get("PREGRADER_MAX_IMAGE_BYTES", "").strip()
    if not raw:
        return DEFAULT_MAX_IMAGE_BYTES
    try:
        return int(raw)
    except ValueError:
        return DEFAULT_MAX_IMAGE_BYTES


def decode_image_field(payload: dict[str, Any], name: str, required: bool = True) -> Optional[bytes]:
    """Validate ``payload[name]`` ({encoding, data, media_type}) and return the image bytes.

    Raises InputError with the matching ErrorCode value on any violation.
    Returns None when the field is absent and not required.
    """
    image = payload.get(name)
    if image is None and not required:
        return None
    if not isinstance(image, dict):
        raise InputError(f"Missing required field: {name}.", code="MISSING_REQUIRED_FIELD", field=name)

    if image.get("encoding") != ImageEncoding.BASE64.value:
        raise InputError(
            f"Only {name}.encoding='base64' is supported.",
            code="INVALID_FIELD_VALUE", field=f"{name}.encoding",
        )

    data = image.get("data")
    if not isinstance(data, str) or not data:
        raise InputError(
            f"Missing required field: {name}.data.",
            code="MISSING_REQUIRED_FIELD", field=f"{name}.data",
        )

    media_type = str(image.get("media_type") or "").strip().lower()
    if media_type not in ALLOWED_MEDIA_TYPES:
        raise InputError(
            f"{name}.media_type must be one of: {', '.join(ALLOWED_MEDIA_TYPES)}.",
            code="INVALID_IMAGE_FORMAT", field=f"{name}.media_type",
        )

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InputError(
            f"{name}.data must be valid base64.", code="INVALID_IMAGE_FORMAT", field=f"{name}.data",
        ) from e

    limit = max_image_bytes()
    if len(raw) > limit:
        raise InputError(
            f"{name} is {len(raw)} bytes; the limit is {limit}.",
            code="IMAGE_TOO_LARGE", field=name,
        )
    return raw
