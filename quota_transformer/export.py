"""
Presentation and export helpers over a TransformResult.

Records handed out here are plain dicts keyed by column name and projected
onto the header list of the selected view.
"""

from __future__ import annotations

import html
import io
import re
from typing import Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from . import rules
from .models import ResultSummary, TransformedRow, TransformResult, View

_FILENAME_UNSAFE = re.compile(r"[\s/]")

_CELL_STYLE = "border: 1px solid #000; padding: 6px; text-align: center;"
_TABLE_STYLE = "border-collapse: collapse; font-family: 'Calibri Light', Calibri, sans-serif; font-size: 11pt;"


def headers_for(view: View) -> List[str]:
    if view is View.RDQUOTA:
        return [rules.RDQUOTA_COLUMN, *rules.FINAL_HEADERS]
    return list(rules.FINAL_HEADERS)


def to_record(row: TransformedRow, headers: Sequence[str]) -> Dict[str, str]:
    record = {}
    for header in headers:
        if header == rules.RDQUOTA_COLUMN:
            record[header] = row.original_id
        else:
            record[header] = row.column(header)
    return record


def to_records(rows: Sequence[TransformedRow], headers: Sequence[str]) -> List[Dict[str, str]]:
    return [to_record(row, headers) for row in rows]


def sorted_groups(result: TransformResult) -> Dict[str, List[TransformedRow]]:
    """Groups ordered by category name; rows inside keep source order."""
    return {name: result.groups[name] for name in sorted(result.groups, key=str.casefold)}


def summarize(result: TransformResult, view: View = View.DEFAULT) -> ResultSummary:
    return ResultSummary(
        rows=len(result.rows),
        categories=len(result.groups),
        columns=len(headers_for(view)),
    )


def to_markdown(headers: Sequence[str], records: Sequence[Dict[str, str]]) -> str:
    lines = [
        "| " + " | ".join(f"**{h}**" for h in headers) + " |",
        "|" + "|".join(":---:" for _ in headers) + "|",
    ]
    for record in records:
        lines.append("| " + " | ".join(record.get(h, "") for h in headers) + " |")
    return "\n".join(lines)


def to_html(headers: Sequence[str], records: Sequence[Dict[str, str]]) -> str:
    head = "".join(
        f'<th style="{_CELL_STYLE} font-weight: bold;">{html.escape(h)}</th>' for h in headers
    )
    body = "\n".join(
        "<tr>"
        + "".join(f'<td style="{_CELL_STYLE}">{html.escape(record.get(h, ""))}</td>' for h in headers)
        + "</tr>"
        for record in records
    )
    return (
        f'<table style="{_TABLE_STYLE}">\n'
        f"<thead>\n<tr>{head}</tr>\n</thead>\n"
        f"<tbody>\n{body}\n</tbody>\n"
        "</table>"
    )


def to_xlsx_bytes(headers: Sequence[str], records: Sequence[Dict[str, str]]) -> bytes:
    """Single-sheet workbook: header row, then one row per record, all cells text."""
    wb = Workbook()
    ws = wb.active
    ws.title = rules.SHEET_NAME

    rows = [list(headers)] + [[record.get(h) or "" for h in headers] for record in records]
    for r, values in enumerate(rows, start=1):
        for c, value in enumerate(values, start=1):
            cell = ws.cell(row=r, column=c)
            cell.value = ILLEGAL_CHARACTERS_RE.sub("", str(value))
            # a leading "=" would otherwise be stored as a formula
            cell.data_type = "s"

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_filename(view: View, category: str | None = None) -> str:
    if category is not None:
        return _FILENAME_UNSAFE.sub("_", category) + ".xlsx"
    if view is View.RDQUOTA:
        return rules.UNIFIED_RDQUOTA_FILENAME
    return rules.UNIFIED_FILENAME
