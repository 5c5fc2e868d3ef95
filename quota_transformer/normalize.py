"""
Core transformation pipeline.

Responsibilities:
- strip the Azure DevOps export banner
- delimiter detection + line splitting
- header index + schema classification (raw vs. pre-normalized)
- row transformation with value rewrites
- row filtering and grouping by request type

Every step is a pure function of its input; `transform_text` chains them.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from charset_normalizer import from_bytes

from . import rules
from .models import Delimiter, SchemaKind, TransformedRow, TransformResult

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")


class TransformError(ValueError):
    """Document-level failure. The message is meant for the end user."""


class EmptyInputError(TransformError):
    def __init__(self) -> None:
        super().__init__("Input data cannot be empty.")


class MissingHeaderRowError(TransformError):
    def __init__(self) -> None:
        super().__init__("Input must contain a header row and at least one data row.")


class MissingRequiredColumnError(TransformError):
    def __init__(self, column: str, alternatives: Sequence[str] = ()) -> None:
        self.column = column
        self.alternatives = tuple(alternatives)
        names = " or ".join(f'"{name}"' for name in (column, *self.alternatives))
        super().__init__(f"Missing required header column: {names}")


class NoValidRowsError(TransformError):
    def __init__(self) -> None:
        super().__init__("No valid data rows could be processed. Please check your input.")


def decode_bytes(raw: bytes) -> str:
    """
    Decode uploaded bytes to text.

    - Detect encoding best-effort via charset-normalizer.
    - A UTF-8 BOM is consumed rather than kept as a character.
    - If decode fails, try UTF-8, then the guess with replacement characters.
    """
    match = from_bytes(raw).best()
    decode_used = match.encoding if match is not None else "utf-8"

    if raw.startswith(b"\xef\xbb\xbf") and decode_used.lower().replace("-", "_") in ("utf_8", "utf8"):
        decode_used = "utf-8-sig"

    try:
        return raw.decode(decode_used)
    except (UnicodeDecodeError, LookupError):
        logger.warning("decode with %s failed, falling back to utf-8", decode_used)

    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode(decode_used, errors="replace")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_export_banner(text: str) -> str:
    """Drop line 0 when it is the DevOps query banner; otherwise return text unchanged."""
    if not text:
        return text

    lines = text.split("\n")
    first = lines[0].strip()
    is_banner = first.startswith(rules.BANNER_PREFIX) and all(
        marker in first for marker in rules.BANNER_MARKERS
    )
    if is_banner:
        logger.debug("stripped export banner line")
        return "\n".join(lines[1:])
    return text


def detect_delimiter(header_line: str) -> Delimiter:
    tabs = header_line.count("\t")
    commas = header_line.count(",")

    if tabs > commas and tabs > 0:
        return Delimiter.TAB
    if commas > 0:
        return Delimiter.COMMA
    return Delimiter.WHITESPACE


def split_line(line: str, delimiter: Delimiter) -> List[str]:
    """Split one line, trimming each field and removing literal double quotes."""
    if delimiter is Delimiter.TAB:
        parts = line.split("\t")
    elif delimiter is Delimiter.COMMA:
        parts = line.split(",")
    else:
        parts = _WHITESPACE_RUN.split(line)
    return [part.strip().replace('"', "").strip() for part in parts]


class HeaderIndex:
    """Column name -> position lookup built once from the header line."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = list(names)
        # later duplicates win
        self.positions: Dict[str, int] = {name: i for i, name in enumerate(self.names)}

    def __contains__(self, name: object) -> bool:
        return name in self.positions

    def get(self, values: Sequence[str], name: str) -> str:
        """Field value for `name`; "" when the column or the field is absent."""
        position = self.positions.get(name)
        if position is None or position >= len(values):
            return ""
        return values[position]

    def require(self, name: str) -> None:
        if name not in self.positions:
            raise MissingRequiredColumnError(name)

    def require_any(self, names: Sequence[str]) -> None:
        if not any(name in self.positions for name in names):
            raise MissingRequiredColumnError(names[0], names[1:])


def classify_schema(index: HeaderIndex) -> SchemaKind:
    if all(name in index for name in rules.FINAL_HEADERS):
        return SchemaKind.PRE_NORMALIZED
    return SchemaKind.RAW


def validate_raw_headers(index: HeaderIndex) -> None:
    index.require_any(rules.RAW_ID_ALIASES)
    for name in rules.REQUIRED_RAW_COLUMNS:
        index.require(name)


def clean_region(region: str) -> str:
    """Remove parenthesized abbreviations: "Brazil South (SB)" -> "Brazil South"."""
    if not region:
        return region
    return rules.REGION_ABBREVIATION.sub("", region).strip()


def rewrite_status(status: str, table: Optional[Dict[str, str]] = None) -> str:
    if table is None:
        table = rules.RAW_STATUS_REWRITES
    return table.get(status, status)


def rewrite_request_type(request_type: str) -> str:
    return rules.REQUEST_TYPE_REWRITES.get(request_type, request_type)


def derive_cores(request_type: str, cores: str) -> str:
    if request_type == rules.AZ_ENABLEMENT:
        return rules.NOT_APPLICABLE
    if cores == rules.UNKNOWN_CORES:
        return ""
    return cores


def transform_pre_normalized_row(values: Sequence[str], index: HeaderIndex, position: int) -> TransformedRow:
    def get(name: str) -> str:
        return index.get(values, name)

    return TransformedRow(
        subscription_id=get("Subscription ID"),
        request_type=get("Request Type"),
        vm_type=get("VM Type"),
        region=clean_region(get("Region")),
        zone=get("Zone"),
        cores=get("Cores"),
        status=rewrite_status(get("Status"), rules.PRE_NORMALIZED_STATUS_REWRITES),
        original_id=f"{rules.PRE_NORMALIZED_ID_PREFIX}{position}",
    )


def transform_raw_row(values: Sequence[str], index: HeaderIndex) -> TransformedRow:
    def get(name: str) -> str:
        return index.get(values, name)

    original_request_type = get("UTC Ticket")

    return TransformedRow(
        subscription_id=get("Subscription ID"),
        request_type=rewrite_request_type(original_request_type),
        vm_type=get("SKU"),
        region=clean_region(get("Region")),
        zone=get("Deployment Constraints") or rules.NOT_APPLICABLE,
        cores=derive_cores(original_request_type, get("Event ID")),
        status=rewrite_status(get("Reason"), rules.RAW_STATUS_REWRITES),
        original_id=get("RDQuota") or get("ID"),
    )


def is_effectively_empty(row: TransformedRow) -> bool:
    """Raw rows with a defaulted zone and no payload in the four key fields."""
    return row.zone == rules.NOT_APPLICABLE and not (
        row.subscription_id or row.vm_type or row.region or row.request_type
    )


def group_by_request_type(rows: Sequence[TransformedRow]) -> Dict[str, List[TransformedRow]]:
    groups: Dict[str, List[TransformedRow]] = {}
    for row in rows:
        groups.setdefault(row.request_type, []).append(row)
    return groups


def transform_text(text: str) -> TransformResult:
    """
    Run the whole pipeline over one text blob.

    Raises a TransformError subclass on any document-level failure;
    no partial output is ever returned.
    """
    cleaned = strip_export_banner(normalize_newlines(text or ""))
    if not cleaned.strip():
        raise EmptyInputError()

    lines = [line for line in cleaned.strip().split("\n") if line.strip()]
    if len(lines) < 2:
        raise MissingHeaderRowError()

    header_line, data_lines = lines[0], lines[1:]
    delimiter = detect_delimiter(header_line)
    index = HeaderIndex(split_line(header_line, delimiter))
    schema_kind = classify_schema(index)
    logger.debug("delimiter=%s schema=%s columns=%d", delimiter.value, schema_kind.value, len(index.names))

    if schema_kind is SchemaKind.PRE_NORMALIZED:
        rows = [
            transform_pre_normalized_row(split_line(line, delimiter), index, position)
            for position, line in enumerate(data_lines)
        ]
    else:
        validate_raw_headers(index)
        transformed = [transform_raw_row(split_line(line, delimiter), index) for line in data_lines]
        rows = [row for row in transformed if not is_effectively_empty(row)]
        dropped = len(transformed) - len(rows)
        if dropped:
            logger.debug("dropped %d empty raw rows", dropped)

    if not rows:
        raise NoValidRowsError()

    groups = group_by_request_type(rows)
    logger.info("transformed %d rows into %d categories", len(rows), len(groups))

    return TransformResult(
        rows=tuple(rows),
        groups=groups,
        schema_kind=schema_kind,
        delimiter=delimiter,
    )
