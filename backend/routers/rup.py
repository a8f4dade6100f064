from __future__ import annotations

import re
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from constants import SEARCH_SATKER_LIMIT_DEFAULT
from errors import LoadingError, NotLoadedError, SatkerNotFoundError, ValidationError
from records import (
    compute_stats,
    describe_columns,
    filter_by_satker,
    list_distinct_satker,
    paginate,
    search_records,
    search_satker_by_partial,
)
from response_headers import build_data_headers, build_page_headers

PAGE_LIMIT_DEFAULT = 10
PAGE_LIMIT_MAX = 1000
_LIMIT_RE = re.compile(r"[0-9]+")


def _satker_limit(raw: Optional[str]) -> int:
    """Lenient limit: missing, non-numeric or below 1 falls back to the default."""
    text = (raw or "").strip()
    value = int(text) if _LIMIT_RE.fullmatch(text) else 0
    if value < 1:
        return SEARCH_SATKER_LIMIT_DEFAULT
    return min(value, PAGE_LIMIT_MAX)


def build_rup_router(*, service, logger):
    """RUP record endpoints. Handlers are sync so fetches run in the worker pool."""
    router = APIRouter()

    def _records_response(result, records, page: Optional[int], limit: Optional[int]):
        if page is None and limit is None:
            return JSONResponse(
                content=records,
                headers=build_data_headers(klpd=result.klpd, tahun=result.tahun, source=result.source),
            )
        p = page or 1
        lim = limit or PAGE_LIMIT_DEFAULT
        return JSONResponse(
            content=paginate(records, p, lim),
            headers=build_page_headers(
                klpd=result.klpd, tahun=result.tahun, source=result.source,
                total=len(records), page=p, limit=lim,
            ),
        )

    def _satker_response(result, kd_satker: str, page: Optional[int], limit: Optional[int]):
        if not kd_satker or not kd_satker.strip():
            raise ValidationError("Parameter kd_satker is required")
        filtered = filter_by_satker(result.records, kd_satker)
        logger.info(f"Found {len(filtered)} records for kd_satker {kd_satker} ({result.klpd}_{result.tahun})")
        if not filtered:
            raise SatkerNotFoundError(
                f"No data for kd_satker: {kd_satker} in KLPD: {result.klpd}, Tahun: {result.tahun}"
            )
        return _records_response(result, filtered, page, limit)

    @router.get("/api/rup/{kd_satker}")
    def api_rup_satker(
        kd_satker: str,
        klpd: Optional[str] = Query(None),
        tahun: Optional[str] = Query(None),
        page: Optional[int] = Query(None, ge=1),
        limit: Optional[int] = Query(None, ge=1, le=PAGE_LIMIT_MAX),
    ):
        result = service.records_for(klpd, tahun)
        return _satker_response(result, kd_satker, page, limit)

    @router.get("/api/rup")
    def api_rup(
        klpd: Optional[str] = Query(None),
        tahun: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        page: Optional[int] = Query(None, ge=1),
        limit: Optional[int] = Query(None, ge=1, le=PAGE_LIMIT_MAX),
    ):
        result = service.records_for(klpd, tahun)
        return _records_response(result, search_records(result.records, search), page, limit)

    @router.get("/api/{klpd}/{tahun}/rup/{kd_satker}")
    def api_klpd_tahun_rup_satker(
        klpd: str,
        tahun: str,
        kd_satker: str,
        page: Optional[int] = Query(None, ge=1),
        limit: Optional[int] = Query(None, ge=1, le=PAGE_LIMIT_MAX),
    ):
        logger.info(f"Fetching data for KLPD: {klpd}, Tahun: {tahun}, Satker: {kd_satker}")
        result = service.load(klpd, tahun)
        return _satker_response(result, kd_satker, page, limit)

    @router.get("/api/{klpd}/{tahun}/rup")
    def api_klpd_tahun_rup(
        klpd: str,
        tahun: str,
        search: Optional[str] = Query(None),
        page: Optional[int] = Query(None, ge=1),
        limit: Optional[int] = Query(None, ge=1, le=PAGE_LIMIT_MAX),
    ):
        result = service.load(klpd, tahun)
        return _records_response(result, search_records(result.records, search), page, limit)

    @router.get("/api/satker/list")
    def api_satker_list(klpd: Optional[str] = Query(None), tahun: Optional[str] = Query(None)):
        result = service.records_for(klpd, tahun)
        satkers = list_distinct_satker(result.records)
        logger.info(f"Found {len(satkers)} unique satkers in {len(result.records)} records")
        return satkers

    @router.get("/api/stats")
    def api_stats(klpd: Optional[str] = Query(None), tahun: Optional[str] = Query(None)):
        result = service.records_for(klpd, tahun)
        return compute_stats(result.records)

    @router.get("/api/columns")
    def api_columns(klpd: Optional[str] = Query(None), tahun: Optional[str] = Query(None)):
        result = service.records_for(klpd, tahun)
        if not result.records:
            return {"success": True, "message": "No data to describe columns", "data": []}
        return describe_columns(result.records)

    @router.get("/api/search-satker/{partial}")
    def api_search_satker(partial: str, limit: Optional[str] = Query(None)):
        try:
            result = service.current_records()
        except LoadingError as exc:
            raise NotLoadedError("Data not loaded yet") from exc
        return search_satker_by_partial(result.records, partial, _satker_limit(limit))

    return router
