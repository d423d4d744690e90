"""Generic "fetch every page of a list endpoint" loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

RawRecord = Mapping[str, Any]


@dataclass(frozen=True)
class PageResponse:
    items: Sequence[RawRecord] = field(default_factory=tuple)
    total_count: Optional[int] = None


@dataclass(frozen=True)
class ProgressEvent:
    items_so_far: int
    estimated_total: int
    current_page: int


PageFetch = Callable[[int, int], PageResponse]
ProgressCallback = Callable[[ProgressEvent], None]


def fetch_all(
    page_fetch: PageFetch,
    page_size: int,
    on_progress: Optional[ProgressCallback] = None,
) -> List[RawRecord]:
    """Request pages 1, 2, ... until the collection is exhausted.

    The loop stops after a short page (fewer than ``page_size`` items) or once
    the accumulated count reaches a known, positive ``total_count``. A full
    page with no usable total always triggers one more request, so a
    collection whose size is an exact multiple of ``page_size`` costs one
    extra, empty page.

    Any exception raised by ``page_fetch`` propagates and the records gathered
    so far are dropped. ``on_progress`` receives raw counts only;
    ``estimated_total`` may be 0 and callers computing a percentage must
    guard against it.
    """
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size <= 0:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    accumulated: List[RawRecord] = []
    page_index = 1

    while True:
        response = page_fetch(page_index, page_size)
        items = list(response.items)
        accumulated.extend(items)

        total = response.total_count
        estimated_total = total if total is not None else len(accumulated)
        if on_progress is not None:
            on_progress(
                ProgressEvent(
                    items_so_far=len(accumulated),
                    estimated_total=estimated_total,
                    current_page=page_index,
                )
            )
        logger.debug(
            "Fetched page %d (%d items, %d so far, total=%s)",
            page_index,
            len(items),
            len(accumulated),
            total,
        )

        if len(items) < page_size:
            break
        if total is not None and total > 0 and len(accumulated) >= total:
            break
        page_index += 1

    return accumulated


__all__ = [
    "PageFetch",
    "PageResponse",
    "ProgressCallback",
    "ProgressEvent",
    "RawRecord",
    "fetch_all",
]
