"""Shared HTTP response header builders."""

from __future__ import annotations


def build_data_headers(*, klpd: str, tahun: str, source: str, extra: dict | None = None) -> dict:
    headers = {
        "X-Klpd": klpd,
        "X-Tahun": tahun,
        "X-Data-Source": source,
        "Access-Control-Expose-Headers": "X-Klpd, X-Tahun, X-Data-Source",
    }
    if extra:
        headers.update(extra)
        expose = [x.strip() for x in headers["Access-Control-Expose-Headers"].split(",") if x.strip()]
        for k in extra.keys():
            if k not in expose:
                expose.append(k)
        headers["Access-Control-Expose-Headers"] = ", ".join(expose)
    return headers


def build_page_headers(*, klpd: str, tahun: str, source: str, total: int, page: int, limit: int) -> dict:
    return build_data_headers(
        klpd=klpd,
        tahun=tahun,
        source=source,
        extra={"X-Total-Count": str(total), "X-Page": str(page), "X-Limit": str(limit)},
    )
