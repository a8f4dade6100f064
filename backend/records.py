"""Read-only operations over an in-memory RUP record set.

None of these mutate their input; filters return new lists and the
identity case of ``search_records`` returns the input list itself.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List, Optional

from constants import SEARCH_FIELDS, SEARCH_SATKER_LIMIT_DEFAULT, UNKNOWN_LABEL

Record = Dict[str, Any]

_SATKER_CODE_RE = re.compile(r"[0-9]+")


def parse_satker_code(value: Any) -> Optional[int]:
    """Canonical integer form of a satker code, or None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    return int(text) if _SATKER_CODE_RE.fullmatch(text) else None


def _satker_group_key(value: Any):
    code = parse_satker_code(value)
    return code if code is not None else value


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    return out if math.isfinite(out) else 0.0


def filter_by_satker(records: Iterable[Record], code: Any) -> List[Record]:
    """Records whose ``kd_satker`` numerically equals ``code``.

    A non-numeric ``code`` matches nothing.
    """
    wanted = parse_satker_code(code)
    if wanted is None:
        return []
    return [r for r in records if parse_satker_code(r.get("kd_satker")) == wanted]


def search_records(records: List[Record], term: Optional[str]) -> List[Record]:
    if not term:
        return records
    needle = term.lower()
    out = []
    for r in records:
        for f in SEARCH_FIELDS:
            v = r.get(f)
            if v is None or v == "":
                continue
            if needle in str(v).lower():
                out.append(r)
                break
    return out


def list_distinct_satker(records: Iterable[Record]) -> List[Record]:
    seen: Dict[Any, Record] = {}
    for r in records:
        kd = r.get("kd_satker")
        if kd is None or kd == "":
            continue
        key = _satker_group_key(kd)
        if key in seen:
            continue
        seen[key] = {
            "kd_satker": kd,
            "nama_satker": r.get("nama_satker") or UNKNOWN_LABEL,
            "nama_klpd": r.get("nama_klpd") or UNKNOWN_LABEL,
            "kd_klpd": r.get("kd_klpd") or UNKNOWN_LABEL,
        }
    return sorted(seen.values(), key=lambda row: str(row["kd_satker"]))


def compute_stats(records: List[Record]) -> Dict[str, Any]:
    """Counts, pagu total and per-jenis breakdown. Never raises."""
    satker = set()
    provinsi = set()
    total_pagu = 0.0
    breakdown: Dict[str, int] = {}
    for r in records:
        satker.add(_satker_group_key(r.get("kd_satker")))
        provinsi.add(r.get("provinsi"))
        total_pagu += _to_float(r.get("pagu"))
        jenis = r.get("jenis_pengadaan") or UNKNOWN_LABEL
        breakdown[jenis] = breakdown.get(jenis, 0) + 1
    return {
        "total_records": len(records),
        "total_satker": len(satker),
        "total_provinsi": len(provinsi),
        "total_pagu": total_pagu,
        "breakdown_jenis": breakdown,
    }


def search_satker_by_partial(
    records: Iterable[Record],
    partial: str,
    limit: int = SEARCH_SATKER_LIMIT_DEFAULT,
) -> List[Record]:
    groups: Dict[Any, Record] = {}
    for r in records:
        kd = r.get("kd_satker")
        if kd is None or partial not in str(kd):
            continue
        key = _satker_group_key(kd)
        row = groups.get(key)
        if row is None:
            row = groups[key] = {
                "kd_satker": kd,
                "nama_satker": r.get("nama_satker"),
                "nama_klpd": r.get("nama_klpd"),
                "count": 0,
            }
        row["count"] += 1
    return list(groups.values())[:max(0, limit)]


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def describe_columns(records: List[Record]) -> List[Dict[str, str]]:
    """Field names and value types sampled from the first record."""
    if not records:
        return []
    first = records[0]
    return [{"column_name": k, "column_type": _type_name(v)} for k, v in first.items()]


def paginate(records: List[Record], page: int, limit: int) -> List[Record]:
    page = max(1, int(page))
    limit = max(1, int(limit))
    offset = (page - 1) * limit
    return records[offset:offset + limit]
