"""CSV serialisation for flattened resource records."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

CSV_LINE_TERMINATOR = "\n"

_QUOTE_TRIGGERS = (",", '"', "\r", "\n")


def _needs_quotes(cell: str) -> bool:
    return any(trigger in cell for trigger in _QUOTE_TRIGGERS)


def _format_cell(value: Any) -> str:
    cell = "" if value is None else str(value)
    if _needs_quotes(cell):
        return '"' + cell.replace('"', '""') + '"'
    return cell


def _format_row(values: Iterable[Any]) -> str:
    return ",".join(_format_cell(value) for value in values) + CSV_LINE_TERMINATOR


def encode_csv(records: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> str:
    """Render ``records`` as CSV text with ``columns`` as the header row.

    Cells containing a comma, a double quote, ``\\r`` or ``\\n`` are quoted and
    embedded quotes are doubled; all other cells, empty ones included, are
    written bare. Every row, the last one included, ends with ``\\n``. An
    empty ``records`` sequence yields ``""`` (no header either).
    """
    if not records:
        return ""

    lines = [_format_row(columns)]
    lines.extend(
        _format_row(record.get(name) for name in columns) for record in records
    )
    return "".join(lines)


__all__ = ["CSV_LINE_TERMINATOR", "encode_csv"]
