from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class Delimiter(str, Enum):
    COMMA = "comma"
    TAB = "tab"
    WHITESPACE = "whitespace"


class SchemaKind(str, Enum):
    RAW = "raw"
    PRE_NORMALIZED = "pre_normalized"


class View(str, Enum):
    DEFAULT = "default"
    RDQUOTA = "rdquota"


class TransformedRow(BaseModel):
    """One canonical record. Serializes with the published column names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subscription_id: str = Field(default="", alias="Subscription ID")
    request_type: str = Field(default="", alias="Request Type")
    vm_type: str = Field(default="", alias="VM Type")
    region: str = Field(default="", alias="Region")
    zone: str = Field(default="N/A", alias="Zone")
    cores: str = Field(default="", alias="Cores")
    status: str = Field(default="", alias="Status")
    original_id: str = Field(default="", alias="Original ID")

    def column(self, name: str) -> str:
        """Value for a published column name, or "" for unknown names."""
        field = _COLUMN_FIELDS.get(name)
        return getattr(self, field) if field else ""


_COLUMN_FIELDS = {
    info.alias: name for name, info in TransformedRow.model_fields.items()
}


class TransformResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    rows: Tuple[TransformedRow, ...]
    groups: Dict[str, List[TransformedRow]]
    schema_kind: SchemaKind
    delimiter: Delimiter


class TransformRequest(BaseModel):
    text: str
    view: View = View.DEFAULT


class ExportRequest(TransformRequest):
    category: Optional[str] = Field(default=None, examples=["Quota Increase"])


class ResultSummary(BaseModel):
    rows: int
    categories: int
    columns: int


class TransformResponse(BaseModel):
    headers: List[str]
    rows: List[Dict[str, str]]
    groups: Dict[str, List[Dict[str, str]]] = Field(default_factory=dict)
    schema_kind: SchemaKind
    delimiter: Delimiter
    summary: ResultSummary


class ClipboardResponse(BaseModel):
    markdown: str
    html: str


class HealthResponse(BaseModel):
    ok: bool = True
