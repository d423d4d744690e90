"""Flatten raw Ziwo records into export-ready rows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..config import datetime_format

DisplayValue = Union[str, int, float]
FlatRecord = Dict[str, DisplayValue]
Formatter = Callable[[Any], Optional[DisplayValue]]


def _is_empty_value(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _lookup(record: Mapping[str, Any], source: str) -> Any:
    current: Any = record
    for part in source.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def text(value: Any) -> Optional[DisplayValue]:
    if isinstance(value, bool):
        return yes_no(value)
    if isinstance(value, (str, int, float)):
        return value
    return None


def _parse_iso_datetime(value: str) -> Optional[datetime]:
    candidate = value.strip()
    if not candidate:
        return None
    if candidate.endswith("Z"):
        candidate = f"{candidate[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept ISO-8601 strings or epoch milliseconds."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        return _parse_iso_datetime(value)
    return None


def timestamp(value: Any) -> Optional[str]:
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone().strftime(datetime_format())


def count(value: Any) -> Optional[int]:
    if isinstance(value, (list, tuple)):
        return len(value)
    return None


def _person_name(person: Any) -> str:
    if isinstance(person, str):
        return person.strip()
    if not isinstance(person, Mapping):
        return ""
    parts = [
        str(person.get(key) or "").strip() for key in ("firstName", "lastName")
    ]
    name = " ".join(part for part in parts if part)
    if name:
        return name
    return str(person.get("username") or person.get("id") or "").strip()


def person_names(value: Any) -> Optional[str]:
    if not isinstance(value, (list, tuple)):
        return None
    names = [name for name in (_person_name(person) for person in value) if name]
    return ", ".join(names) or None


@dataclass(frozen=True)
class Column:
    name: str
    source: str
    formatter: Formatter = text
    default: DisplayValue = "-"


def project(record: Mapping[str, Any], columns: Sequence[Column]) -> FlatRecord:
    """Map one raw record onto ``columns``; missing values use each column's default."""
    flat: FlatRecord = {}
    for column in columns:
        value = _lookup(record, column.source)
        display = None if _is_empty_value(value) else column.formatter(value)
        if display is None or (isinstance(display, str) and not display.strip()):
            display = column.default
        flat[column.name] = display
    return flat


def project_all(
    records: Sequence[Mapping[str, Any]], columns: Sequence[Column]
) -> List[FlatRecord]:
    return [project(record, columns) for record in records]


def column_names(columns: Sequence[Column]) -> List[str]:
    return [column.name for column in columns]


AGENT_COLUMNS: Tuple[Column, ...] = (
    Column("Agent ID", "id"),
    Column("First Name", "firstName"),
    Column("Last Name", "lastName"),
    Column("Username", "username"),
    Column("Email", "username"),
    Column("Status", "status"),
    Column("Type", "type"),
    Column("Role ID", "roleId"),
    Column("CC Login", "ccLogin"),
    Column("Auto Answer", "autoAnswer", yes_no, "No"),
    Column("Wrap Up Time", "wrapUpTime"),
    Column("Contact Number", "contactNumber", default="N/A"),
    Column("Language", "languageCode", default="N/A"),
    Column("Country", "countryCode", default="N/A"),
    Column("Plan", "plan"),
    Column("Internal", "internal", yes_no, "No"),
    Column("Last Login", "lastLoginAt", timestamp, "Never"),
    Column("Created At", "createdAt", timestamp),
    Column("Updated At", "updatedAt", timestamp),
)

QUEUE_COLUMNS: Tuple[Column, ...] = (
    Column("Queue ID", "id"),
    Column("Queue Name", "name"),
    Column("Status", "status"),
    Column("Extension", "extension"),
    Column("Strategy", "strategyType"),
    Column("Priority", "priority"),
    Column("Max Wait Time", "maxWaitTime"),
    Column("Language", "language"),
    Column("Caller ID", "callerIDNumber"),
    Column("Agents Count", "agents", count, 0),
    Column("Agent Names", "agents", person_names, "None"),
    Column("Created At", "createdAt", timestamp),
    Column("Updated At", "updatedAt", timestamp),
)

NUMBER_COLUMNS: Tuple[Column, ...] = (
    Column("Number ID", "id"),
    Column("DID", "did"),
    Column("Type", "type"),
    Column("DID Called", "didCalled"),
    Column("DID Display", "didDisplay"),
    Column("Link Type", "linkType"),
    Column("Link Data", "linkData"),
    Column("Status", "status"),
    Column("Urgent Message", "urgentMessage", default="None"),
    Column("Beyond Timeslots Link Type", "beyondTimeslotsLinkType", default="None"),
    Column("Beyond Timeslots Link Data", "beyondTimeslotsLinkData", default="None"),
    Column("Timeslots", "timeslots", count, 0),
    Column("Storage Name", "storage.originalName", default="None"),
    Column("Storage Category", "storage.category", default="None"),
    Column("Created At", "createdAt", timestamp),
    Column("Updated At", "updatedAt", timestamp),
)


__all__ = [
    "AGENT_COLUMNS",
    "Column",
    "FlatRecord",
    "NUMBER_COLUMNS",
    "QUEUE_COLUMNS",
    "column_names",
    "count",
    "parse_timestamp",
    "person_names",
    "project",
    "project_all",
    "text",
    "timestamp",
    "yes_no",
]
