"""Blueprint serving the login page and the dashboard."""

from __future__ import annotations

import logging

from flask import Blueprint, render_template

from ..config import platform_domain
from ..services.resources import RESOURCES
from ..services.session import load_session

bp = Blueprint("main", __name__)
logger = logging.getLogger(__name__)


@bp.route("/")
def index():
    session = load_session()
    if session is None:
        logger.info("GET / - rendering login form")
        return render_template("login.html", domain=platform_domain())
    logger.info("GET / - rendering dashboard for %s", session.tenant_id)
    return render_template(
        "dashboard.html", session=session, resources=list(RESOURCES.values())
    )
