"""Blueprint for background export jobs and their progress."""

from __future__ import annotations

import io
import logging

from flask import Blueprint, jsonify, request, send_file, url_for

from ..services.export_jobs import ensure_export_job, get_export_job, job_snapshot
from ..services.resources import RESOURCES, ResourceClient, get_resource
from ..services.session import load_session
from ..ziwo_client import SessionInvalid

bp = Blueprint("exports", __name__, url_prefix="/api")
logger = logging.getLogger(__name__)


def _unauthorized():
    return jsonify({"error": "Not logged in"}), 401


def _owned_job(job_id: str):
    session = load_session()
    if session is None:
        return None, _unauthorized()
    job = get_export_job(job_id)
    if job is None or not job.belongs_to(session.tenant_id, session.username):
        return None, (jsonify({"error": "export job not found"}), 404)
    return job, None


@bp.route("/exports", methods=["POST"])
def api_start_export():
    session = load_session()
    if session is None:
        return _unauthorized()
    data = request.get_json(silent=True) or {}
    raw_resource = data.get("resource")
    config = get_resource(raw_resource)
    logger.info(
        "POST /api/exports resource=%r tenant=%s", raw_resource, session.tenant_id
    )
    if config is None:
        logger.warning("POST /api/exports unknown resource (raw=%r)", raw_resource)
        message = f"resource must be one of {', '.join(sorted(RESOURCES))}"
        return jsonify({"error": message}), 400

    try:
        job = ensure_export_job(ResourceClient(config, session))
    except SessionInvalid as exc:
        logger.warning("POST /api/exports rejected session: %s", exc)
        return jsonify({"error": str(exc)}), 401

    payload = {
        "jobId": job.job_id,
        "status": job.status,
        "pollUrl": url_for("exports.api_export_status", job_id=job.job_id),
    }
    status_code = 200 if job.status == "completed" else 202
    return jsonify(payload), status_code


@bp.route("/exports/<job_id>", methods=["GET"])
def api_export_status(job_id: str):
    job, error = _owned_job(job_id)
    if error is not None:
        return error
    payload = job_snapshot(job)
    if payload["status"] == "completed":
        payload["downloadUrl"] = url_for(
            "exports.api_export_download", job_id=job.job_id
        )
    return jsonify(payload)


@bp.route("/exports/<job_id>/download", methods=["GET"])
def api_export_download(job_id: str):
    job, error = _owned_job(job_id)
    if error is not None:
        return error
    snapshot = job_snapshot(job)
    if snapshot["status"] == "failed":
        return jsonify({"error": snapshot.get("error") or "export failed"}), 409
    if snapshot["status"] != "completed" or job.csv_text is None:
        return jsonify({"error": "export still running", "status": job.status}), 409

    logger.info("GET /api/exports/%s/download sending %s", job.job_id, job.filename)
    mem = io.BytesIO(job.csv_text.encode("utf-8"))
    mem.seek(0)
    return send_file(  # type: ignore[arg-type]
        mem, mimetype="text/csv", as_attachment=True, download_name=job.filename
    )
