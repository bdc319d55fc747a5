from typing import Any

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError


KNOWN_ERROR_CODES = {
    "invalid_request",
    "parse_failed",
    "rate_limited",
    "timeout",
    "config_error",
    "empty_output",
    "provider_error",
    "not_found",
    "unknown",
}

RETRYABLE_ERROR_CODES = {
    "rate_limited",
    "timeout",
}

_STATUS_ERROR_CODES = {
    404: "not_found",
    405: "invalid_request",
    422: "invalid_request",
}


def normalize_error_code(value: Any) -> str:
    raw = str(value or "").strip().lower()
    if raw in KNOWN_ERROR_CODES:
        return raw
    return "unknown"


def _build_message(code: str, reason: str) -> str:
    message = " ".join(str(reason or "").split()).strip()
    if message:
        return message[:260]
    defaults = {
        "invalid_request": "Request validation failed",
        "parse_failed": "Model output could not be parsed as JSON",
        "rate_limited": "AI provider rate limited the request",
        "timeout": "AI request timed out",
        "config_error": "AI service configuration error",
        "empty_output": "AI returned empty content",
        "provider_error": "AI provider request failed",
        "not_found": "Resource not found",
        "unknown": "Request failed",
    }
    return defaults.get(code, "Request failed")


def build_structured_error_detail(
    *,
    error_code: str,
    message: str | None = None,
    retryable: bool | None = None,
    detail: Any = None,
) -> dict[str, Any]:
    code = normalize_error_code(error_code)
    message_text = " ".join(str(message or "").split()).strip()
    if not message_text:
        message_text = _build_message(code, "")
    if retryable is None:
        retryable = code in RETRYABLE_ERROR_CODES

    return {
        "error_code": code,
        "message": message_text[:260],
        "retryable": bool(retryable),
        "detail": detail if detail is not None else message_text,
    }


def build_http_error_payload(exc: HTTPException, trace_id: str) -> dict[str, Any]:
    detail = exc.detail

    if isinstance(detail, dict):
        code = normalize_error_code(detail.get("error_code"))
        if code == "unknown":
            code = _STATUS_ERROR_CODES.get(exc.status_code, "unknown")
        message = " ".join(str(detail.get("message") or "").split()).strip() or _build_message(code, "")
        retryable = bool(detail.get("retryable")) if "retryable" in detail else code in RETRYABLE_ERROR_CODES
        payload_detail = detail.get("detail", message)
    else:
        code = _STATUS_ERROR_CODES.get(exc.status_code, "unknown")
        message = _build_message(code, str(detail or ""))
        retryable = code in RETRYABLE_ERROR_CODES
        payload_detail = " ".join(str(detail or "").split()).strip() or message

    return {
        "error_code": code,
        "message": message[:260],
        "retryable": retryable,
        "trace_id": trace_id,
        "detail": payload_detail,
    }


def build_validation_error_payload(exc: RequestValidationError, trace_id: str) -> dict[str, Any]:
    errors = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        errors.append({"field": location, "message": str(item.get("msg") or "")})

    summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors[:3])
    return {
        "error_code": "invalid_request",
        "message": _build_message("invalid_request", summary),
        "retryable": False,
        "trace_id": trace_id,
        "detail": errors,
    }


def build_unexpected_error_payload(trace_id: str) -> dict[str, Any]:
    return {
        "error_code": "unknown",
        "message": "Unexpected server error",
        "retryable": False,
        "trace_id": trace_id,
        "detail": "unexpected_server_error",
    }
