import json
from typing import Any
from urllib import error, request


def post_json(url: str, payload: dict[str, Any], *, headers: dict[str, str], timeout_sec: int) -> dict[str, Any]:
    req = request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=timeout_sec) as response:
            body = response.read().decode("utf-8")
    except error.HTTPError as exc:  # pragma: no cover - network boundary
        detail = exc.read().decode("utf-8", errors="replace")[:200]
        raise RuntimeError(f"http_{exc.code}:{detail}") from exc

    decoded = json.loads(body)
    if not isinstance(decoded, dict):
        raise RuntimeError("provider_response_not_object")
    return decoded
