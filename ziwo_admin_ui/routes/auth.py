"""Blueprint handling login and logout."""

from __future__ import annotations

import logging

from flask import Blueprint, redirect, render_template, request, url_for

from ..config import platform_domain
from ..services.auth import build_credentials, login
from ..services.session import clear_session, store_session
from ..ziwo_client import ApiRequestFailed, SessionInvalid, ZiwoError

bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)


def _login_error(message: str, status: int, tenant: str, username: str):
    return (
        render_template(
            "login.html",
            domain=platform_domain(),
            error=message,
            tenant=tenant,
            username=username,
        ),
        status,
    )


@bp.route("/login", methods=["POST"])
def login_submit():
    tenant = str(request.form.get("tenant") or "").strip()
    username = str(request.form.get("username") or "").strip()
    logger.info("POST /login tenant=%s username=%s", tenant, username)
    try:
        credentials = build_credentials(request.form)
        session = login(credentials)
    except (ValueError, SessionInvalid) as exc:
        logger.warning("POST /login rejected input: %s", exc)
        return _login_error(str(exc), 400, tenant, username)
    except ApiRequestFailed as exc:
        logger.warning("POST /login failed with HTTP %s", exc.status)
        status = 401 if exc.status in (400, 401, 403) else 502
        return _login_error(str(exc), status, tenant, username)
    except ZiwoError as exc:
        logger.warning("POST /login failed: %s", exc)
        return _login_error(str(exc), 502, tenant, username)

    store_session(session)
    return redirect(url_for("main.index"))


@bp.route("/logout", methods=["POST"])
def logout():
    clear_session()
    logger.info("POST /logout")
    return redirect(url_for("main.index"))
