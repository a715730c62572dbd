from __future__ import annotations

import logging
import math
from typing import List, Literal

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Form, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import CompareRequest, FilterCriteriaModel, IngestRequest, IngestResponse
from merchant_metrics.aggregations import SortDirection, SortKey
from merchant_metrics.comparison import default_comparison_months
from merchant_metrics.config import get_settings
from merchant_metrics.data import prepare_context, read_batch
from merchant_metrics.export import comparison_export_frame, export_filename, to_csv_bytes, to_tsv_text, to_xlsx_bytes
from merchant_metrics.filters import FilterCriteria, agent_options, available_months, merchant_options, month_counts, normalize_filters
from merchant_metrics.metrics_compare import compute_compare
from merchant_metrics.metrics_detail import compute_detail
from merchant_metrics.metrics_overview import compute_overview
from merchant_metrics.models import ALL
from merchant_metrics.store import get_store


app = FastAPI(title="Merchant Metrics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _filters_from_model(model: FilterCriteriaModel, *, available: list[str]) -> FilterCriteria:
    settings = get_settings()
    raw = model.model_dump(exclude_none=True)
    return normalize_filters(
        raw,
        available_months=available,
        default_top_n=settings.top_n,
        default_bin_step=settings.bin_step,
    )


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/months")
def meta_months():
    try:
        dataset = get_store().snapshot()
        months = available_months(dataset)
        month_a, month_b = default_comparison_months(months)
        return _json({"months": months, "counts": month_counts(dataset), "default_compare": {"month_a": month_a, "month_b": month_b}})
    except Exception as exc:
        logger.exception("meta_months failed")
        return _error(exc)


@app.get("/meta/agents")
def meta_agents():
    try:
        return _json({"agents": agent_options(get_store().snapshot())})
    except Exception as exc:
        logger.exception("meta_agents failed")
        return _error(exc)


@app.get("/meta/merchants")
def meta_merchants(agent: str = Query(default=ALL)):
    try:
        return _json({"merchants": merchant_options(get_store().snapshot(), agent)})
    except Exception as exc:
        logger.exception("meta_merchants failed")
        return _error(exc)


@app.post("/ingest")
def ingest(request: IngestRequest):
    try:
        dataset, kept, dropped = get_store().ingest(request.records, request.mode, request.batch_month)
        body = IngestResponse(
            dataset_version=dataset.version,
            ingested=kept,
            dropped=dropped,
            total_rows=len(dataset),
            months=available_months(dataset),
            batch_month=request.batch_month,
        )
        logger.info("ingest %s: kept %d, dropped %d, version %d", request.mode, kept, dropped, dataset.version)
        return _json(body.model_dump())
    except Exception as exc:
        logger.exception("ingest failed")
        return _error(exc)


@app.post("/ingest/files")
def ingest_files(
    files: List[UploadFile] = File(...),
    batch_month: str = Form(default=""),
    mode: Literal["append", "replace"] = Form(default="append"),
):
    try:
        records, month = read_batch([(f.filename or "", f.file) for f in files], batch_month)
        dataset, kept, dropped = get_store().ingest(records, mode, month)
        body = IngestResponse(
            dataset_version=dataset.version,
            ingested=kept,
            dropped=dropped,
            total_rows=len(dataset),
            months=available_months(dataset),
            batch_month=month,
        )
        logger.info("ingest_files %s: %d files, kept %d, dropped %d", mode, len(files), kept, dropped)
        return _json(body.model_dump())
    except ValueError as exc:
        logger.warning("ingest_files rejected: %s", exc)
        return _error(exc, status_code=400)
    except Exception as exc:
        logger.exception("ingest_files failed")
        return _error(exc)


@app.post("/rows")
def rows(
    filters: FilterCriteriaModel,
    sort_key: Literal["month", "agent", "merchant", "open", "revenue", "ratio"] = Query(default="revenue"),
    direction: Literal["asc", "desc"] = Query(default="desc"),
):
    try:
        dataset = get_store().snapshot()
        f = _filters_from_model(filters, available=available_months(dataset))
        ctx = prepare_context(f, dataset)
        key: SortKey = sort_key
        order: SortDirection = direction
        return _json(compute_detail(f, ctx, sort_key=key, direction=order))
    except Exception as exc:
        logger.exception("rows failed")
        return _error(exc)


@app.post("/overview")
def overview(filters: FilterCriteriaModel):
    try:
        dataset = get_store().snapshot()
        f = _filters_from_model(filters, available=available_months(dataset))
        ctx = prepare_context(f, dataset)
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/compare")
def compare(request: CompareRequest):
    try:
        dataset = get_store().snapshot()
        f = _filters_from_model(request.filters, available=available_months(dataset))
        ctx = prepare_context(f, dataset)
        return _json(compute_compare(f, ctx, month_a=request.month_a, month_b=request.month_b, join_key=request.join_key))
    except Exception as exc:
        logger.exception("compare failed")
        return _error(exc)


@app.post("/export/compare")
def export_compare(request: CompareRequest, fmt: Literal["csv", "tsv", "xlsx"] = Query(default="csv")):
    dataset = get_store().snapshot()
    f = _filters_from_model(request.filters, available=available_months(dataset))
    ctx = prepare_context(f, dataset)
    payload = compute_compare(f, ctx, month_a=request.month_a, month_b=request.month_b, join_key=request.join_key)

    export_df = comparison_export_frame(payload["rows"], payload["month_a"], payload["month_b"])
    filename = export_filename(payload["month_a"], payload["month_b"], fmt)
    if fmt == "xlsx":
        content, media_type = to_xlsx_bytes(export_df), XLSX_MEDIA_TYPE
    elif fmt == "tsv":
        content, media_type = to_tsv_text(export_df).encode("utf-8"), "text/tab-separated-values"
    else:
        content, media_type = to_csv_bytes(export_df), "text/csv"
    return Response(content=content, media_type=media_type, headers={"Content-Disposition": f"attachment; filename={filename}"})
