from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from constants import DEBUG_SAMPLE_LIMIT_DEFAULT
from errors import RupError, ValidationError
from source_url import build_data_url
from validation import klpd_sample, validate_klpd, validate_tahun


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def build_core_router(*, service, settings, probe_fn, logger):
    """Status, validation, connectivity and selection endpoints."""
    router = APIRouter()

    def _validate_klpd(value):
        return validate_klpd(value, valid_klpd=settings.valid_klpd, policy=settings.klpd_policy)

    def _known_klpd() -> list[str]:
        return settings.valid_klpd or [row["kd_klpd"] for row in settings.klpd_reference]

    @router.get("/health")
    async def health():
        st = service.status()
        return {
            "success": True,
            "message": "RUP Satker API is running",
            "timestamp": _now_iso(),
            "data_loaded": st["is_loaded"],
            "data_loading": st["is_loading"],
            "data_stale": st["stale"],
            "total_records": st["record_count"],
            "current_url": st["url"],
            "current_klpd": st["klpd"],
            "current_tahun": st["tahun"],
            "last_error": st["last_error"],
            "cache_stats": st["cache"],
        }

    @router.get("/api/validate")
    async def api_validate(klpd: Optional[str] = Query(None), tahun: Optional[str] = Query(None)):
        if not klpd and not tahun:
            return JSONResponse(
                status_code=400,
                content={"success": False, "message": "Parameter klpd or tahun is required", "valid_klpd": _known_klpd()},
            )

        results = {}
        if klpd:
            results["klpd"] = {"input": klpd, **_validate_klpd(klpd).to_dict()}
        if tahun:
            results["tahun"] = {"input": tahun, **validate_tahun(tahun).to_dict()}

        all_valid = all(r["valid"] for r in results.values())
        return {
            "success": all_valid,
            "message": "All parameters are valid" if all_valid else "Some parameters are not valid",
            "results": results,
            "valid_klpd": klpd_sample(_known_klpd()),
            "total_valid_klpd": len(_known_klpd()),
        }

    @router.get("/api/test-connection")
    def api_test_connection(klpd: Optional[str] = Query(None), tahun: Optional[str] = Query(None)):
        st = service.status()
        test_klpd = klpd or st["klpd"]
        test_tahun = tahun or st["tahun"]

        klpd_v = _validate_klpd(test_klpd)
        if not klpd_v.valid:
            return JSONResponse(status_code=400, content={
                "success": False,
                "message": "KLPD parameter is not valid",
                "error": klpd_v.error,
                "input_klpd": test_klpd,
                "valid_klpd": klpd_sample(_known_klpd()),
            })
        tahun_v = validate_tahun(test_tahun)
        if not tahun_v.valid:
            return JSONResponse(status_code=400, content={
                "success": False,
                "message": "Tahun parameter is not valid",
                "error": tahun_v.error,
                "input_tahun": test_tahun,
            })

        try:
            probe = probe_fn(klpd_v.normalized, tahun_v.normalized)
        except RupError as exc:
            logger.error(f"Test connection failed: {exc.message}")
            return JSONResponse(status_code=500, content={
                "success": False,
                "message": "Connection failed",
                "url": build_data_url(
                    klpd_v.normalized, tahun_v.normalized,
                    override=settings.url_override, host=settings.source_host,
                ),
                "error": exc.message,
                "error_code": getattr(exc, "code", None),
                "error_status": getattr(exc, "status", None),
                "timestamp": _now_iso(),
            })

        return {
            "success": True,
            "message": "Connection succeeded",
            "url": probe.url,
            "klpd": {"input": test_klpd, "normalized": klpd_v.normalized, "changed": test_klpd != klpd_v.normalized},
            "tahun": {"input": test_tahun, "normalized": tahun_v.normalized, "changed": test_tahun != tahun_v.normalized},
            "status": probe.status,
            "headers": probe.headers,
            "response_time_ms": probe.response_time_ms,
            "timestamp": _now_iso(),
        }

    @router.get("/api/klpd/list")
    async def api_klpd_list():
        return settings.klpd_reference

    @router.get("/api/debug")
    async def api_debug(limit: int = Query(DEBUG_SAMPLE_LIMIT_DEFAULT, ge=0, le=100)):
        st = service.status()
        sample = service.sample(limit)
        first = service.sample(1)
        return {
            "success": True,
            "message": "Debug info",
            "debug": {
                "isDataLoaded": st["is_loaded"],
                "isLoading": st["is_loading"],
                "isStale": st["stale"],
                "totalRecords": st["record_count"],
                "dataUrl": st["url"],
                "klpd": st["klpd"],
                "tahun": st["tahun"],
                "loadedAt": st["loaded_at"],
                "lastError": st["last_error"],
                "sampleData": sample,
                "dataKeys": list(first[0].keys()) if first else [],
                "firstRecord": first[0] if first else None,
                "cacheStats": st["cache"],
                "cacheKeys": service.cache.keys(),
                "klpdPolicy": settings.klpd_policy,
            },
        }

    @router.get("/api/config")
    async def api_config():
        st = service.status()
        return {
            "success": True,
            "message": "Current configuration",
            "klpd": st["klpd"],
            "tahun": st["tahun"],
            "url": st["url"],
            "data_loaded": st["is_loaded"],
            "total_records": st["record_count"],
        }

    @router.post("/api/config")
    async def api_config_update(request: Request):
        try:
            body = await request.json()
        except Exception:
            raise HTTPException(400, "Invalid JSON")
        if not isinstance(body, dict):
            raise HTTPException(400, "Invalid JSON")

        klpd = body.get("klpd")
        tahun = body.get("tahun")
        if not klpd and not tahun:
            raise ValidationError("Parameter klpd or tahun is required")

        try:
            result = await run_in_threadpool(service.select, klpd, str(tahun) if tahun else None)
        except ValidationError:
            raise
        except RupError as exc:
            logger.error(f"Configuration change failed: {exc.message}")
            raise RupError(f"Failed to change configuration: {exc.message}") from exc

        return {
            "success": True,
            "message": f"Configuration changed to KLPD: {result.klpd}, Tahun: {result.tahun}",
            "klpd": result.klpd,
            "tahun": result.tahun,
            "total_records": len(result.records),
            "data_source": result.source,
            "timestamp": _now_iso(),
        }

    @router.post("/api/refresh")
    async def api_refresh():
        try:
            result = await run_in_threadpool(service.refresh)
        except RupError as exc:
            logger.error(f"Refresh failed: {exc.message}")
            raise RupError(f"Failed to refresh data: {exc.message}") from exc
        return {
            "success": True,
            "message": "Data refreshed",
            "total_records": len(result.records),
            "timestamp": _now_iso(),
        }

    return router
