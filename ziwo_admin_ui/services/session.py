"""Login session value objects and their storage in the Flask session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from flask import session as flask_session

from ..config import SESSION_KEY
from ..ziwo_client import SessionInvalid, normalize_tenant_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    tenant_id: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(tenant_id={self.tenant_id!r}, username={self.username!r})"


@dataclass(frozen=True)
class Session:
    tenant_id: str
    username: str
    token: str

    def __repr__(self) -> str:
        return f"Session(tenant_id={self.tenant_id!r}, username={self.username!r})"

    def require(self) -> "Session":
        """Return ``self`` when it can authenticate requests, else raise."""
        if not str(self.token or "").strip():
            raise SessionInvalid("No access token available; please log in again")
        normalize_tenant_id(self.tenant_id)
        return self

    def to_dict(self) -> Dict[str, str]:
        return {
            "tenant_id": self.tenant_id,
            "username": self.username,
            "token": self.token,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Session":
        return cls(
            tenant_id=str(data.get("tenant_id") or ""),
            username=str(data.get("username") or ""),
            token=str(data.get("token") or ""),
        )


def store_session(session: Session) -> None:
    flask_session[SESSION_KEY] = session.to_dict()
    logger.info("Stored session for %s@%s", session.username, session.tenant_id)


def load_session() -> Optional[Session]:
    data = flask_session.get(SESSION_KEY)
    if not isinstance(data, Mapping):
        return None
    session = Session.from_mapping(data)
    if not session.token:
        return None
    return session


def clear_session() -> None:
    data = flask_session.pop(SESSION_KEY, None)
    if isinstance(data, Mapping):
        logger.info(
            "Cleared session for %s@%s", data.get("username"), data.get("tenant_id")
        )


__all__ = [
    "Credentials",
    "Session",
    "clear_session",
    "load_session",
    "store_session",
]
