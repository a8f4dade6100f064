"""Upstream RUP fetcher: validate, build URL, GET, parse and normalize.

The fetcher never touches the record cache; the orchestrator in
services/data_loader.py owns cache writes and stale fallback.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Optional

import requests

from constants import REQUIRED_FIELDS, USER_AGENT, WRAPPER_KEYS
from errors import (
    HttpError,
    NetworkError,
    ParseError,
    SchemaError,
    ValidationError,
    describe_http_status,
)
from settings import Settings
from source_url import build_data_url, check_url
from validation import validate_klpd, validate_tahun

logger = logging.getLogger("rup.fetcher")

_DNS_MARKERS = ("name or service not known", "nodename nor servname", "getaddrinfo", "nameresolutionerror", "no address associated")
_REFUSED_MARKERS = ("connection refused", "errno 111", "actively refused")


@dataclass
class ProbeResult:
    url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    response_time_ms: int = 0


def resolve_source(klpd: Any, tahun: Any, settings: Settings) -> tuple[str, str, str]:
    """Validate parameters and return (klpd, tahun, url), all normalized."""
    klpd_v = validate_klpd(klpd, valid_klpd=settings.valid_klpd, policy=settings.klpd_policy)
    if not klpd_v.valid:
        raise ValidationError(f"KLPD validation failed: {klpd_v.error}")
    tahun_v = validate_tahun(tahun)
    if not tahun_v.valid:
        raise ValidationError(f"Tahun validation failed: {tahun_v.error}")

    url = build_data_url(
        klpd_v.normalized,
        tahun_v.normalized,
        override=settings.url_override,
        host=settings.source_host,
    )
    return klpd_v.normalized, tahun_v.normalized, check_url(url)


def _network_error(exc: requests.RequestException) -> NetworkError:
    if isinstance(exc, requests.Timeout):
        return NetworkError("Timeout. The server did not respond within the allotted time", code="ETIMEDOUT")
    text = str(exc).lower()
    if isinstance(exc, requests.ConnectionError):
        if any(m in text for m in _DNS_MARKERS):
            return NetworkError("Domain not found. Check the internet connection or the URL", code="ENOTFOUND")
        if any(m in text for m in _REFUSED_MARKERS):
            return NetworkError("Connection refused. The server may be unavailable", code="ECONNREFUSED")
    return NetworkError(f"Network error: {exc}")


def normalize_payload(body: Any) -> List[Dict[str, Any]]:
    """Turn a raw body (text or parsed JSON) into a record list.

    Objects are unwrapped from the first of ``data``/``results``/``items``
    that holds a list. Array items that are not objects are dropped.
    """
    if body is None:
        raise SchemaError("Response data is empty or null")

    payload = body
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        if not payload.strip():
            raise SchemaError("Response data is empty or null")
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            logger.error("JSON parse failed: %s", exc)
            raise ParseError("Data could not be parsed as JSON") from exc

    if isinstance(payload, dict):
        for key in WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break

    if not isinstance(payload, list):
        if isinstance(payload, dict):
            logger.error("Unexpected data structure keys=%s", list(payload.keys())[:20])
        logger.error("Unexpected data sample: %s...", json.dumps(payload, default=str)[:200])
        raise SchemaError(f"Received data is not a valid JSON array. Data structure: {type(payload).__name__}")

    records = [r for r in payload if isinstance(r, dict)]
    if len(records) != len(payload):
        logger.warning("Dropped %d non-object items from data array", len(payload) - len(records))
    return records


def check_required_fields(records: List[Dict[str, Any]], klpd: str, tahun: str) -> None:
    """Soft schema check: log, never raise."""
    if not records:
        logger.warning("Empty data array for KLPD=%s tahun=%s", klpd, tahun)
        return
    first = records[0]
    if not isinstance(first, dict):
        logger.warning("First record is not an object: %s", type(first).__name__)
        return
    missing = [f for f in REQUIRED_FIELDS if f not in first]
    if missing:
        logger.warning("Missing fields in data: %s", missing)
        logger.warning("Available fields: %s", list(first.keys()))


def fetch_rup_records(
    klpd: Any,
    tahun: Any,
    *,
    settings: Settings,
    session: Optional[requests.Session] = None,
) -> List[Dict[str, Any]]:
    """Fetch and normalize the RUP record set for one KLPD/tahun."""
    klpd_n, tahun_n, url = resolve_source(klpd, tahun, settings)
    http = session or requests

    logger.info("Fetching RUP JSON from %s (KLPD=%s tahun=%s)", url, klpd_n, tahun_n)
    t0 = perf_counter()
    try:
        resp = http.get(
            url,
            timeout=settings.fetch_timeout_seconds,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )
    except requests.RequestException as exc:
        err = _network_error(exc)
        logger.error("Fetch failed url=%s code=%s err=%s", url, err.code, exc)
        raise err from exc
    logger.info("Request finished in %.0fms status=%s", (perf_counter() - t0) * 1000.0, resp.status_code)

    if resp.status_code != 200:
        reason = getattr(resp, "reason", None)
        raise HttpError(resp.status_code, describe_http_status(resp.status_code, klpd_n, tahun_n, url, reason), reason)

    content_type = resp.headers.get("content-type", "") or ""
    if "application/json" not in content_type and "text/plain" not in content_type:
        logger.warning("Content-Type is not JSON: %s", content_type)

    records = normalize_payload(resp.text)
    check_required_fields(records, klpd_n, tahun_n)

    if records:
        sample = list(dict.fromkeys(r.get("kd_satker") for r in records if isinstance(r, dict)))[:5]
        logger.info("Loaded %d records, sample kd_satker=%s", len(records), sample)
    return records


def probe_source(
    klpd: Any,
    tahun: Any,
    *,
    settings: Settings,
    session: Optional[requests.Session] = None,
) -> ProbeResult:
    """HEAD the source URL without loading it."""
    _, _, url = resolve_source(klpd, tahun, settings)
    http = session or requests

    logger.info("Testing connection to %s", url)
    t0 = perf_counter()
    try:
        resp = http.head(url, timeout=settings.probe_timeout_seconds, headers={"User-Agent": USER_AGENT})
    except requests.RequestException as exc:
        raise _network_error(exc) from exc
    elapsed_ms = int(round((perf_counter() - t0) * 1000.0))

    if resp.status_code >= 400:
        raise HttpError(resp.status_code, f"HTTP {resp.status_code}: {getattr(resp, 'reason', None) or 'Unknown error'}")

    return ProbeResult(url=url, status=resp.status_code, headers=dict(resp.headers), response_time_ms=elapsed_ms)
