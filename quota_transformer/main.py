import logging
import re
from typing import Dict, List, Tuple
from urllib.parse import quote

from fastapi import FastAPI, UploadFile, File, HTTPException
from fastapi.responses import Response

from . import rules
from .export import (
    export_filename,
    headers_for,
    sorted_groups,
    summarize,
    to_html,
    to_markdown,
    to_records,
    to_xlsx_bytes,
)
from .models import (
    ClipboardResponse,
    ExportRequest,
    HealthResponse,
    TransformRequest,
    TransformResponse,
    TransformResult,
    View,
)
from .normalize import TransformError, decode_bytes, transform_text

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_UNSAFE_HEADER_CHARS = re.compile(r'[^\x20-\x7e]|["\\]')

app = FastAPI(
    title="quota-transformer",
    description="Normalize quota request exports into a fixed schema grouped by request type",
    version="0.1.0",
)


def _run(text: str) -> TransformResult:
    try:
        return transform_text(text)
    except TransformError as e:
        logger.warning("transform rejected: %s", e)
        raise HTTPException(status_code=422, detail=str(e))


def _build_response(text: str, view: View) -> TransformResponse:
    result = _run(text)
    headers = headers_for(view)
    return TransformResponse(
        headers=headers,
        rows=to_records(result.rows, headers),
        groups={name: to_records(rows, headers) for name, rows in sorted_groups(result).items()},
        schema_kind=result.schema_kind,
        delimiter=result.delimiter,
        summary=summarize(result, view),
    )


def _export_records(req: ExportRequest) -> Tuple[List[str], List[Dict[str, str]]]:
    result = _run(req.text)
    headers = headers_for(req.view)
    if req.category is None:
        return headers, to_records(result.rows, headers)
    if req.category not in result.groups:
        raise HTTPException(status_code=404, detail=f"Unknown category: {req.category}")
    return headers, to_records(result.groups[req.category], headers)


def _content_disposition(filename: str) -> str:
    # header values must be latin-1; non-ASCII names go in filename*
    fallback = _UNSAFE_HEADER_CHARS.sub("_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@app.post("/transform", response_model=TransformResponse)
def transform(req: TransformRequest):
    return _build_response(req.text, req.view)


@app.post("/transform/upload", response_model=TransformResponse)
async def transform_upload(file: UploadFile = File(...), view: View = View.DEFAULT):
    if not (file.filename or "").lower().endswith(rules.ACCEPTED_SUFFIXES):
        raise HTTPException(status_code=422, detail="Only CSV, TSV and TXT files are supported")

    raw = await file.read()
    if len(raw) > rules.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    return _build_response(decode_bytes(raw), view)


@app.post("/export/clipboard", response_model=ClipboardResponse)
def export_clipboard(req: ExportRequest):
    headers, records = _export_records(req)
    return {"markdown": to_markdown(headers, records), "html": to_html(headers, records)}


@app.post("/export/xlsx")
def export_xlsx(req: ExportRequest):
    headers, records = _export_records(req)
    filename = export_filename(req.view, req.category)
    return Response(
        content=to_xlsx_bytes(headers, records),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": _content_disposition(filename)},
    )
