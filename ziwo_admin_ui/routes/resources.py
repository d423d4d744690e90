"""Blueprint for browsing and exporting agents, queues and numbers."""

from __future__ import annotations

import io
import logging
from typing import Any

from flask import (
    Blueprint,
    abort,
    flash,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)

from ..config import DEFAULT_PAGE_SIZE
from ..services.resources import ResourceClient, ResourceConfig, get_resource
from ..services.session import clear_session, load_session
from ..ziwo_client import SessionInvalid, ZiwoError

bp = Blueprint("resources", __name__, url_prefix="/resources")
logger = logging.getLogger(__name__)


def _sanitize_page(value: Any) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return 1
    return max(parsed, 1)


def _resolve_resource(name: str) -> ResourceConfig:
    config = get_resource(name)
    if config is None:
        logger.warning("Unknown resource requested: %r", name)
        abort(404)
    return config


def _reauthenticate(error: SessionInvalid):
    logger.warning("Session rejected: %s", error)
    clear_session()
    flash(str(error))
    return redirect(url_for("main.index"))


def _render_page(config: ResourceConfig, session, **context):
    return render_template(
        "resource.html",
        resource=config,
        session=session,
        columns=config.column_names,
        page_size=DEFAULT_PAGE_SIZE,
        **context,
    )


@bp.route("/<name>")
def browse(name: str):
    config = _resolve_resource(name)
    session = load_session()
    if session is None:
        return redirect(url_for("main.index"))
    page = _sanitize_page(request.args.get("page", 1))
    logger.info(
        "GET /resources/%s page=%d tenant=%s", config.name, page, session.tenant_id
    )

    client = ResourceClient(config, session)
    try:
        response = client.fetch_page(page, DEFAULT_PAGE_SIZE)
    except SessionInvalid as exc:
        return _reauthenticate(exc)
    except ZiwoError as exc:
        logger.warning("GET /resources/%s failed: %s", config.name, exc)
        return _render_page(config, session, page=page, rows=[], error=str(exc)), 502

    rows = client.project_all(response.items)
    total = response.total_count
    has_next = len(response.items) >= DEFAULT_PAGE_SIZE
    if total is not None and total > 0 and page * DEFAULT_PAGE_SIZE >= total:
        has_next = False
    logger.info(
        "/resources/%s page %d returned %d rows (total=%s)",
        config.name,
        page,
        len(rows),
        total,
    )
    return _render_page(
        config,
        session,
        page=page,
        rows=rows,
        total=total,
        has_next=has_next,
    )


@bp.route("/<name>/export")
def export(name: str):
    config = _resolve_resource(name)
    session = load_session()
    if session is None:
        return redirect(url_for("main.index"))
    logger.info("GET /resources/%s/export tenant=%s", config.name, session.tenant_id)

    client = ResourceClient(config, session)
    try:
        csv_text = client.fetch_all_for_export()
    except SessionInvalid as exc:
        return _reauthenticate(exc)
    except ZiwoError as exc:
        logger.warning("GET /resources/%s/export failed: %s", config.name, exc)
        return _render_page(config, session, page=1, rows=[], error=str(exc)), 502

    mem = io.BytesIO(csv_text.encode("utf-8"))
    mem.seek(0)
    return send_file(  # type: ignore[arg-type]
        mem,
        mimetype="text/csv",
        as_attachment=True,
        download_name=client.export_filename(),
    )
