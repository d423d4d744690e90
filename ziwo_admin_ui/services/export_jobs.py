"""Background export runs with pollable progress."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..config import EXPORT_JOB_TTL
from .pagination import ProgressEvent
from .resources import ResourceClient

logger = logging.getLogger(__name__)

ExportJobKey = Tuple[str, str, str]

ACTIVE_STATUSES = frozenset({"pending", "running"})


@dataclass
class ExportJob:
    job_id: str
    key: ExportJobKey
    client: ResourceClient
    filename: str
    status: str = "pending"
    items_so_far: int = 0
    estimated_total: int = 0
    current_page: int = 0
    csv_text: Optional[str] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @property
    def resource(self) -> str:
        return self.client.config.name

    def belongs_to(self, tenant_id: str, username: str) -> bool:
        return self.key[0] == tenant_id and self.key[1] == username

    def record_progress(self, event: ProgressEvent) -> None:
        with _EXPORT_JOB_LOCK:
            self.items_so_far = event.items_so_far
            self.estimated_total = event.estimated_total
            self.current_page = event.current_page


_EXPORT_JOB_LOCK = threading.RLock()
_EXPORT_JOBS: Dict[str, ExportJob] = {}
_EXPORT_JOBS_BY_KEY: Dict[ExportJobKey, ExportJob] = {}


def _job_key(client: ResourceClient) -> ExportJobKey:
    return (client.session.tenant_id, client.session.username, client.config.name)


def _cleanup_export_jobs_locked() -> None:
    now = time.time()
    expired: List[str] = []
    for job_id, job in _EXPORT_JOBS.items():
        if job.completed_at is not None and (now - job.completed_at) >= EXPORT_JOB_TTL:
            expired.append(job_id)
    for job_id in expired:
        job = _EXPORT_JOBS.pop(job_id)
        if _EXPORT_JOBS_BY_KEY.get(job.key) is job:
            _EXPORT_JOBS_BY_KEY.pop(job.key)


def get_export_job(job_id: str) -> Optional[ExportJob]:
    with _EXPORT_JOB_LOCK:
        _cleanup_export_jobs_locked()
        return _EXPORT_JOBS.get(job_id)


def ensure_export_job(client: ResourceClient) -> ExportJob:
    """Start an export for ``client`` unless one is already in flight.

    At most one pending or running job exists per tenant, user and resource;
    a second request while it runs returns the same job.
    """
    client.session.require()
    key = _job_key(client)
    with _EXPORT_JOB_LOCK:
        _cleanup_export_jobs_locked()
        existing = _EXPORT_JOBS_BY_KEY.get(key)
        if existing and existing.status in ACTIVE_STATUSES:
            logger.info(
                "Reusing export job %s for %s (status=%s)",
                existing.job_id,
                key,
                existing.status,
            )
            return existing
        job = ExportJob(
            job_id=str(uuid.uuid4()),
            key=key,
            client=client,
            filename=client.export_filename(),
        )
        _EXPORT_JOBS[job.job_id] = job
        _EXPORT_JOBS_BY_KEY[key] = job
    logger.info("Starting export job %s for %s", job.job_id, key)
    thread = threading.Thread(target=run_export_job, args=(job,), daemon=True)
    thread.start()
    return job


def run_export_job(job: ExportJob) -> None:
    with _EXPORT_JOB_LOCK:
        job.status = "running"
    try:
        csv_text = job.client.fetch_all_for_export(job.record_progress)
        with _EXPORT_JOB_LOCK:
            job.csv_text = csv_text
            job.status = "completed"
        logger.info(
            "Export job %s completed with %d %s",
            job.job_id,
            job.items_so_far,
            job.resource,
        )
    except Exception as exc:
        logger.exception("Export job %s failed", job.job_id)
        with _EXPORT_JOB_LOCK:
            job.csv_text = None
            job.status = "failed"
            job.error = str(exc)
    finally:
        with _EXPORT_JOB_LOCK:
            job.completed_at = time.time()


def job_snapshot(job: ExportJob) -> Dict[str, object]:
    with _EXPORT_JOB_LOCK:
        payload: Dict[str, object] = {
            "jobId": job.job_id,
            "resource": job.resource,
            "status": job.status,
            "itemsSoFar": job.items_so_far,
            "estimatedTotal": job.estimated_total,
            "currentPage": job.current_page,
            "filename": job.filename,
        }
        if job.completed_at is not None:
            payload["completedAt"] = job.completed_at
        if job.error:
            payload["error"] = job.error
    return payload


__all__ = [
    "ExportJob",
    "ensure_export_job",
    "get_export_job",
    "job_snapshot",
    "run_export_job",
]
