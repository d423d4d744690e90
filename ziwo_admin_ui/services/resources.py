"""Per-resource bindings of the paginated fetch and CSV export pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import DEFAULT_PAGE_SIZE
from ..ziwo_client import ApiResponseMalformed, api_base_url, ziwo_get
from .csv_export import encode_csv
from .pagination import PageResponse, ProgressCallback, RawRecord, fetch_all
from .projection import (
    AGENT_COLUMNS,
    NUMBER_COLUMNS,
    QUEUE_COLUMNS,
    Column,
    FlatRecord,
    column_names,
    project_all,
)
from .session import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceConfig:
    name: str
    label: str
    path: str
    columns: Tuple[Column, ...]
    limit_param: str = "limit"
    offset_param: str = "offset"

    @property
    def resource_path(self) -> str:
        return f"admin/{self.path}"

    @property
    def column_names(self) -> List[str]:
        return column_names(self.columns)


# Agents are served from the users endpoint, which pages with ``skip``.
AGENTS = ResourceConfig("agents", "Agents", "users", AGENT_COLUMNS, offset_param="skip")
QUEUES = ResourceConfig("queues", "Queues", "queues", QUEUE_COLUMNS)
NUMBERS = ResourceConfig("numbers", "Numbers", "numbers", NUMBER_COLUMNS)

RESOURCES: Dict[str, ResourceConfig] = {
    config.name: config for config in (AGENTS, QUEUES, NUMBERS)
}


def get_resource(name: Any) -> Optional[ResourceConfig]:
    return RESOURCES.get(str(name or "").strip().lower())


def _total_from_payload(payload: Mapping[str, Any]) -> Optional[int]:
    info = payload.get("info")
    if not isinstance(info, Mapping):
        return None
    total = info.get("total")
    if isinstance(total, bool) or not isinstance(total, int) or total < 0:
        return None
    return total


class ResourceClient:
    """Fetches one resource collection for a session and exports it as CSV.

    The client does not guard against overlapping ``fetch_all`` runs; callers
    that trigger exports from a UI must serialise them per resource.
    """

    def __init__(
        self,
        config: ResourceConfig,
        session: Session,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.config = config
        self.session = session
        self.page_size = page_size

    def endpoint(self) -> str:
        return f"{api_base_url(self.session.tenant_id)}/{self.config.resource_path}/"

    def fetch_page(self, page_index: int, page_size: int) -> PageResponse:
        session = self.session.require()
        offset = (page_index - 1) * page_size
        params = {
            self.config.limit_param: page_size,
            self.config.offset_param: offset,
        }
        payload = ziwo_get(
            self.endpoint(), session.token, self.config.resource_path, params
        )
        content = payload.get("content")
        if content is None:
            content = []
        if not isinstance(content, list):
            raise ApiResponseMalformed(
                self.config.resource_path,
                f"Response from {self.config.resource_path} has no record list",
            )
        return PageResponse(items=content, total_count=_total_from_payload(payload))

    def fetch_all(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> List[RawRecord]:
        self.session.require()
        return fetch_all(self.fetch_page, self.page_size, on_progress)

    def project_all(self, records: Sequence[RawRecord]) -> List[FlatRecord]:
        return project_all(records, self.config.columns)

    def to_csv(self, records: Sequence[RawRecord]) -> str:
        return encode_csv(self.project_all(records), self.config.column_names)

    def fetch_all_for_export(
        self, on_progress: Optional[ProgressCallback] = None
    ) -> str:
        self.session.require()
        logger.info(
            "Exporting %s for tenant %s (page_size=%d)",
            self.config.name,
            self.session.tenant_id,
            self.page_size,
        )
        records = self.fetch_all(on_progress)
        csv_text = self.to_csv(records)
        logger.info(
            "Exported %d %s for tenant %s",
            len(records),
            self.config.name,
            self.session.tenant_id,
        )
        return csv_text

    def export_filename(self, today: Optional[date] = None) -> str:
        day = (today or date.today()).isoformat()
        return f"{self.session.tenant_id}_{self.config.name}_{day}.csv"


__all__ = [
    "AGENTS",
    "NUMBERS",
    "QUEUES",
    "RESOURCES",
    "ResourceClient",
    "ResourceConfig",
    "get_resource",
]
