"""Upstream RUP resource URL helpers."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from constants import SOURCE_DATASET, SOURCE_FORMATS, SOURCE_HOST_DEFAULT
from errors import UrlError


def build_data_url(
    klpd: str,
    tahun: str,
    *,
    override: Optional[str] = None,
    host: str = SOURCE_HOST_DEFAULT,
    fmt: str = "json",
) -> str:
    """Return the source URL for a (KLPD, tahun) pair.

    A configured override wins over everything else. Inputs are expected to
    be validated and normalized already.
    """
    if override:
        return override
    if fmt not in SOURCE_FORMATS:
        raise UrlError(f"Unsupported source format: {fmt}")
    return f"https://{host}/rup/{klpd}/{SOURCE_DATASET}/{tahun}/data.{fmt}"


def check_url(url: str) -> str:
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise UrlError(f"Invalid URL: {url}")
    return url
