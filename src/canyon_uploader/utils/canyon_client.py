"""Canyon coverage service API helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import requests

from canyon_uploader.errors import CanyonHTTPError, CanyonRejectedError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_MAP_INIT_PATH = "/api/coverage/map/init"
_CLIENT_PATH = "/api/coverage/client"
_HTTP_SUCCESS_MIN = 200
_HTTP_SUCCESS_MAX = 300


@dataclass
class UploadResponse:
    """Decoded body of a map/init or client upload response."""

    success: bool
    build_hash: str | None = None
    scene_key: str | None = None
    message: str | None = None

    @classmethod
    def from_body(cls, body: Any) -> UploadResponse:
        if not isinstance(body, dict):
            return cls(success=False)

        def _optional_str(key: str) -> str | None:
            value = body.get(key)
            return None if value is None else str(value)

        return cls(
            success=bool(body.get("success")),
            build_hash=_optional_str("buildHash"),
            scene_key=_optional_str("sceneKey"),
            message=_optional_str("message"),
        )


def normalize_canyon_url(url: str) -> str:
    """Normalize and trim a configured Canyon base URL."""
    return url.strip().rstrip("/")


def build_map_init_url(canyon_url: str) -> str:
    """Build the coverage map initialization URL."""
    return f"{normalize_canyon_url(canyon_url)}{_MAP_INIT_PATH}"


def build_client_url(canyon_url: str) -> str:
    """Build the client coverage upload URL."""
    return f"{normalize_canyon_url(canyon_url)}{_CLIENT_PATH}"


def send_request(
    url: str,
    payload: Mapping[str, Any],
    token: str | None = None,
    *,
    timeout_seconds: float | None = None,
) -> Any:
    """POST *payload* as JSON and return the decoded response body.

    Raises:
        CanyonHTTPError: On a non-2xx status.
        ValueError: If a 2xx response body is not valid JSON.
    """
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    logger.debug("POST %s", url)
    response = requests.post(
        url,
        headers=headers,
        json=dict(payload),
        timeout=timeout_seconds,
    )
    if response.status_code < _HTTP_SUCCESS_MIN or response.status_code >= _HTTP_SUCCESS_MAX:
        raise CanyonHTTPError(response.status_code, response.reason or "", response.text)

    return response.json()


def _post_and_check(
    action: str,
    url: str,
    payload: Mapping[str, Any],
    token: str | None,
    timeout_seconds: float | None,
) -> UploadResponse:
    body = send_request(url, payload, token, timeout_seconds=timeout_seconds)
    result = UploadResponse.from_body(body)
    if not result.success:
        raise CanyonRejectedError(f"{action} failed: {result.message or 'Unknown error'}")
    return result


def post_map_init(
    canyon_url: str,
    payload: Mapping[str, Any],
    token: str | None = None,
    *,
    timeout_seconds: float | None = None,
) -> UploadResponse:
    """Register the full coverage map for a build."""
    return _post_and_check(
        "Map init", build_map_init_url(canyon_url), payload, token, timeout_seconds
    )


def post_client_coverage(
    canyon_url: str,
    payload: Mapping[str, Any],
    token: str | None = None,
    *,
    timeout_seconds: float | None = None,
) -> UploadResponse:
    """Attach stripped coverage to a scene. Call only after map/init succeeded."""
    return _post_and_check(
        "Client upload", build_client_url(canyon_url), payload, token, timeout_seconds
    )
