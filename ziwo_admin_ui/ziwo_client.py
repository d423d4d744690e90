"""HTTP client helpers for interacting with the Ziwo API."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional

import requests  # type: ignore[import-untyped]

from .config import platform_domain, request_timeout

logger = logging.getLogger(__name__)

_TENANT_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")


class ZiwoError(RuntimeError):
    """Base class for failures talking to the Ziwo API."""


class SessionInvalid(ZiwoError):
    """Raised when no usable tenant or access token is available."""

    def __init__(self, message: str = "Session is missing a tenant or access token"):
        super().__init__(message)


class ApiRequestFailed(ZiwoError):
    def __init__(self, status: int, resource_path: str, message: str = ""):
        self.status = status
        self.resource_path = resource_path
        text = message or f"Request to {resource_path} failed with HTTP {status}"
        super().__init__(text)


class ApiResponseMalformed(ZiwoError):
    def __init__(self, resource_path: str, message: str = ""):
        self.resource_path = resource_path
        super().__init__(message or f"Unexpected response from {resource_path}")


class NetworkUnreachable(ZiwoError):
    def __init__(self, url: str, reason: str = ""):
        self.url = url
        message = (
            f"Unable to connect to the Ziwo API at {url}. Check the tenant name and "
            "your network connection; a proxy may be required to reach the API."
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


def normalize_tenant_id(raw_tenant: Any) -> str:
    tenant = str(raw_tenant or "").strip()
    if not tenant:
        raise SessionInvalid("Tenant name is required")
    if not _TENANT_PATTERN.match(tenant):
        raise SessionInvalid(f"Invalid tenant name: {tenant!r}")
    return tenant


def api_base_url(tenant_id: Any, domain: Optional[str] = None) -> str:
    """Return the tenant-scoped API root, e.g. ``https://acme-api.aswat.co``."""
    tenant = normalize_tenant_id(tenant_id)
    return f"https://{tenant}-api.{domain or platform_domain()}"


def ziwo_headers(token: str) -> Dict[str, str]:
    return {"access_token": token, "Content-Type": "application/json"}


def _extract_error_details(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""

    if not isinstance(payload, Mapping):
        return ""

    details = []
    for key in ("message", "error"):
        value = payload.get(key)
        if isinstance(value, Mapping):
            value = value.get("message")
        if value is None:
            continue
        text = str(value).strip()
        if text and text not in details:
            details.append(text)
    return "; ".join(details)


def _status_message(response: requests.Response, resource_path: str) -> str:
    status_code = getattr(response, "status_code", 0)
    reason = getattr(response, "reason", "") or ""
    message = f"Request to {resource_path} failed: HTTP {status_code}"
    if reason:
        message = f"{message} {reason}"
    details = _extract_error_details(response)
    if details:
        message = f"{message} - {details}"
    return message


def _is_success(response: requests.Response) -> bool:
    return 200 <= int(response.status_code) < 300


def _decode_json(response: requests.Response, resource_path: str) -> Mapping[str, Any]:
    try:
        payload = response.json()
    except ValueError as error:
        raise ApiResponseMalformed(
            resource_path, f"Response from {resource_path} was not valid JSON"
        ) from error
    if not isinstance(payload, Mapping):
        raise ApiResponseMalformed(resource_path)
    return payload


def ziwo_get(
    url: str,
    token: str,
    resource_path: str,
    params: Optional[Mapping[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Mapping[str, Any]:
    """GET a Ziwo admin endpoint and return its ``{result, content, info}`` body."""
    logger.debug("GET %s params=%s", url, params)
    effective_timeout = timeout if timeout is not None else request_timeout()
    try:
        response = requests.get(
            url,
            headers=ziwo_headers(token),
            params=params or {},
            timeout=effective_timeout,
        )
    except (requests.ConnectionError, requests.Timeout) as error:
        raise NetworkUnreachable(url, type(error).__name__) from error

    if not _is_success(response):
        message = _status_message(response, resource_path)
        raise ApiRequestFailed(response.status_code, resource_path, message)

    payload = _decode_json(response, resource_path)
    if payload.get("result") is not True:
        raise ApiResponseMalformed(
            resource_path, f"Request to {resource_path} was not successful"
        )
    return payload


def ziwo_post_form(
    url: str,
    data: Mapping[str, str],
    resource_path: str,
    timeout: Optional[float] = None,
) -> Mapping[str, Any]:
    logger.debug("POST %s fields=%s", url, sorted(data))
    effective_timeout = timeout if timeout is not None else request_timeout()
    try:
        response = requests.post(
            url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=dict(data),
            timeout=effective_timeout,
        )
    except (requests.ConnectionError, requests.Timeout) as error:
        raise NetworkUnreachable(url, type(error).__name__) from error

    if not _is_success(response):
        message = _status_message(response, resource_path)
        raise ApiRequestFailed(
            response.status_code,
            resource_path,
            f"{message}. Please check your credentials.",
        )
    return _decode_json(response, resource_path)


__all__ = [
    "ApiRequestFailed",
    "ApiResponseMalformed",
    "NetworkUnreachable",
    "SessionInvalid",
    "ZiwoError",
    "api_base_url",
    "normalize_tenant_id",
    "ziwo_get",
    "ziwo_headers",
    "ziwo_post_form",
]
