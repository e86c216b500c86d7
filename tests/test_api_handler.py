import base64
import io
import json
import os

from PIL import Image

from api.handler import lambda_handler


def _make_png_b64(width: int = 64, height: int = 64) -> str:
    img = Image.new("RGB", (width, height), color=(128, 128, 128))
    # Put some simple dark pixels to make the content deterministic but non-empty.
    for x in range(10, 20):
        for y in range(10, 12):
            img.putpixel((x, y), (0, 0, 0))

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _post(payload, headers=None):
    return {
        "httpMethod": "POST",
        "path": "/v1/analyze",
        "headers": headers or {"content-type": "application/json"},
        "body": json.dumps(payload),
        "isBase64Encoded": False,
    }


def _front(data=None, media_type="image/png", encoding="base64"):
    return {"encoding": encoding, "data": data if data is not None else _make_png_b64(), "media_type": media_type}


def _fast_env(monkeypatch, tmp_path):
    monkeypatch.delenv("PREGRADER_API_KEYS", raising=False)
    monkeypatch.setenv("PREGRADER_EXPORT_DIR", str(tmp_path))
    monkeypatch.setenv("PREGRADER_ENHANCE", "0")
    monkeypatch.setenv("PREGRADER_MAX_WORKERS", "2")


def test_health_ok():
    event = {"httpMethod": "GET", "path": "/v1/health", "headers": {}}

    resp = lambda_handler(event, None)
    assert resp["statusCode"] == 200
    body = json.loads(resp["body"])
    assert body["ok"] is True


def test_health_supports_http_api_v2_events():
    event = {"rawPath": "/v1/health", "requestContext": {"http": {"method": "GET"}}}
    assert lambda_handler(event, None)["statusCode"] == 200


def test_guidelines(monkeypatch):
    monkeypatch.delenv("PREGRADER_API_KEYS", raising=False)
    resp = lambda_handler({"httpMethod": "GET", "path": "/v1/guidelines"}, None)
    assert resp["statusCode"] == 200
    body = json.loads(resp["body"])
    assert body["guidelines"]["grades"]["Mint"]["max"] == 9.4


def test_unknown_route(monkeypatch):
    monkeypatch.delenv("PREGRADER_API_KEYS", raising=False)
    resp = lambda_handler({"httpMethod": "DELETE", "path": "/v1/analyze"}, None)
    assert resp["statusCode"] == 404
    assert json.loads(resp["body"])["error_code"] == "NOT_FOUND"


def test_analyze_deterministic_response(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)

    event = _post({"front_image": _front(), "client_reference": "abc-123"})

    resp1 = lambda_handler(event, None)
    resp2 = lambda_handler(event, None)

    assert resp1["statusCode"] == 200
    assert resp1["body"] == resp2["body"], "Response body should be deterministic for same input"

    body = json.loads(resp1["body"])
    assert body["api_version"] == "1.0"
    assert body["client_reference"] == "abc-123"
    result = body["result"]
    assert result["analysis"]["dimensions"]["width"] == 64
    assert result["grading"]["overallGrade"]
    assert "enhanced" not in result


def test_analyze_writes_previews(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    monkeypatch.setenv("PREGRADER_ENHANCE", "1")

    resp = lambda_handler(_post({"front_image": _front(), "options": {"segment": False}}), None)
    assert resp["statusCode"] == 200
    result = json.loads(resp["body"])["result"]
    assert "segmentation" not in result
    paths = result["previews"]["enhanced"]
    assert set(paths) >= {"hdr", "sharpened"}
    assert all(os.path.exists(p) for p in paths.values())
    assert all(p.startswith(str(tmp_path)) for p in paths.values())


def test_analyze_rejects_invalid_json():
    event = {"httpMethod": "POST", "path": "/v1/analyze", "body": "{not json"}
    resp = lambda_handler(event, None)
    assert resp["statusCode"] == 400
    assert json.loads(resp["body"])["error_code"] == "INVALID_REQUEST_FORMAT"


def test_analyze_requires_front_image(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    resp = lambda_handler(_post({"back_image": _front()}), None)
    assert resp["statusCode"] == 400
    body = json.loads(resp["body"])
    assert body["error_code"] == "MISSING_REQUIRED_FIELD"
    assert body["details"][0]["field"] == "front_image"


def test_analyze_rejects_unsupported_media_type(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    resp = lambda_handler(_post({"front_image": _front(media_type="image/gif")}), None)
    assert resp["statusCode"] == 400
    assert json.loads(resp["body"])["error_code"] == "INVALID_IMAGE_FORMAT"


def test_analyze_rejects_url_encoding(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    resp = lambda_handler(_post({"front_image": _front(encoding="url")}), None)
    assert resp["statusCode"] == 400
    assert json.loads(resp["body"])["error_code"] == "INVALID_FIELD_VALUE"


def test_analyze_rejects_bad_base64(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    resp = lambda_handler(_post({"front_image": _front(data="***")}), None)
    assert resp["statusCode"] == 400
    assert json.loads(resp["body"])["error_code"] == "INVALID_IMAGE_FORMAT"


def test_analyze_rejects_oversized_image(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    monkeypatch.setenv("PREGRADER_MAX_IMAGE_BYTES", "10")
    resp = lambda_handler(_post({"front_image": _front()}), None)
    assert resp["statusCode"] == 400
    assert json.loads(resp["body"])["error_code"] == "IMAGE_TOO_LARGE"


def test_analyze_rejects_undecodable_image(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    garbage = base64.b64encode(b"not an image at all").decode("ascii")
    resp = lambda_handler(_post({"front_image": _front(data=garbage)}), None)
    assert resp["statusCode"] == 400
    body = json.loads(resp["body"])
    assert body["error_code"] == "INVALID_IMAGE_FORMAT"
    assert body["request_id"]


def test_api_key_required_when_configured(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    monkeypatch.setenv("PREGRADER_API_KEYS", "k1,k2")

    resp = lambda_handler(_post({"front_image": _front()}), None)
    assert resp["statusCode"] == 401
    assert json.loads(resp["body"])["error_code"] == "MISSING_API_KEY"

    resp = lambda_handler(_post({"front_image": _front()}, headers={"X-API-Key": "nope"}), None)
    assert resp["statusCode"] == 401
    assert json.loads(resp["body"])["error_code"] == "INVALID_API_KEY"

    resp = lambda_handler(_post({"front_image": _front()}, headers={"X-API-Key": "k2"}), None)
    assert resp["statusCode"] == 200


def test_pipeline_crash_is_internal_error(monkeypatch, tmp_path):
    import api.handler as handler_module

    _fast_env(monkeypatch, tmp_path)

    def _crash(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(handler_module, "run_pipeline", _crash)
    resp = lambda_handler(_post({"front_image": _front()}), None)
    assert resp["statusCode"] == 500
    body = json.loads(resp["body"])
    assert body["error_code"] == "INTERNAL_ERROR"
    assert body["request_id"]


def test_analyze_rejects_decompression_bomb(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    resp = lambda_handler(_post({"front_image": _front()}), None)
    assert resp["statusCode"] == 400
    body = json.loads(resp["body"])
    assert body["error_code"] == "IMAGE_TOO_LARGE"
    assert body["request_id"]


def test_analyze_rejects_non_boolean_option(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    resp = lambda_handler(_post({"front_image": _front(), "options": {"defects": "sometimes"}}), None)
    assert resp["statusCode"] == 400
    body = json.loads(resp["body"])
    assert body["error_code"] == "INVALID_FIELD_VALUE"
    assert body["details"][0]["field"] == "options.defects"


def test_analyze_string_false_disables_stage(monkeypatch, tmp_path):
    _fast_env(monkeypatch, tmp_path)
    resp = lambda_handler(_post({"front_image": _front(), "options": {"segment": "false"}}), None)
    assert resp["statusCode"] == 200
    assert "segmentation" not in json.loads(resp["body"])["result"]
