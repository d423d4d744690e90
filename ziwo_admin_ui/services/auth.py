"""Authentication against a tenant's Ziwo API."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..ziwo_client import (
    ApiResponseMalformed,
    api_base_url,
    normalize_tenant_id,
    ziwo_post_form,
)
from .session import Credentials, Session

logger = logging.getLogger(__name__)

LOGIN_PATH = "auth/login"


def build_credentials(data: Mapping[str, Any]) -> Credentials:
    """Validate raw form input; raises ``ValueError`` naming the missing field."""
    tenant = str(data.get("tenant") or "").strip()
    username = str(data.get("username") or "").strip()
    password = str(data.get("password") or "")
    required = (("Tenant", tenant), ("Username", username), ("Password", password))
    for label, value in required:
        if not value:
            raise ValueError(f"{label} is required")
    return Credentials(tenant_id=tenant, username=username, password=password)


def login(credentials: Credentials) -> Session:
    tenant = normalize_tenant_id(credentials.tenant_id)
    url = f"{api_base_url(tenant)}/{LOGIN_PATH}"
    logger.info("Authenticating %s against %s", credentials.username, url)
    payload = ziwo_post_form(
        url,
        {"username": credentials.username, "password": credentials.password},
        LOGIN_PATH,
    )
    content = payload.get("content")
    token = content.get("access_token") if isinstance(content, Mapping) else None
    if not isinstance(token, str) or not token.strip():
        raise ApiResponseMalformed(
            LOGIN_PATH, "No access token received. Please check your credentials."
        )
    logger.info("Authenticated %s for tenant %s", credentials.username, tenant)
    return Session(tenant_id=tenant, username=credentials.username, token=token)


__all__ = ["LOGIN_PATH", "build_credentials", "login"]
