#!/usr/bin/env python3
"""RUP Satker API smoke checks against a running backend.

Usage:
  python3 scripts/qa_smoke.py [--base http://127.0.0.1:3000]
"""

from __future__ import annotations

import argparse

import requests


def assert_ok(cond: bool, msg: str):
    if not cond:
        raise AssertionError(msg)


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--base", default="http://127.0.0.1:3000")
    args = ap.parse_args()
    base = args.base.rstrip("/")

    # 1) Core endpoints
    for ep in ("/health", "/api/config", "/api/klpd/list"):
        r = requests.get(base + ep, timeout=20)
        assert_ok(r.status_code == 200, f"{ep} returned {r.status_code}")

    health = requests.get(base + "/health", timeout=20).json()
    for k in ("data_loaded", "data_loading", "current_klpd", "current_tahun", "cache_stats"):
        assert_ok(k in health, f"/health missing {k}")

    # 2) Validation
    r = requests.get(base + "/api/validate", timeout=20)
    assert_ok(r.status_code == 400, f"/api/validate without params returned {r.status_code}")
    r = requests.get(base + "/api/validate", params={"klpd": "d197", "tahun": "2025"}, timeout=20)
    assert_ok(r.status_code == 200, f"/api/validate returned {r.status_code}")
    assert_ok(r.json()["results"]["klpd"]["normalized"] == "D197", "KLPD not normalized")

    # 3) Data endpoints (only meaningful once loaded)
    if health["data_loaded"]:
        st = requests.get(base + "/api/stats", timeout=30)
        assert_ok(st.status_code == 200, f"/api/stats returned {st.status_code}")
        for k in ("total_records", "total_satker", "total_provinsi", "total_pagu", "breakdown_jenis"):
            assert_ok(k in st.json(), f"/api/stats missing {k}")
        r = requests.get(base + "/api/rup", params={"page": 1, "limit": 5}, timeout=30)
        assert_ok(r.status_code == 200, f"/api/rup returned {r.status_code}")
        assert_ok("X-Total-Count" in r.headers, "/api/rup missing X-Total-Count")
        assert_ok(len(r.json()) <= 5, "/api/rup ignored limit")
    else:
        r = requests.get(base + "/api/stats", timeout=30)
        assert_ok(r.status_code in (202, 503), f"/api/stats before load returned {r.status_code}")

    # 4) Unknown endpoint
    r = requests.get(base + "/api/does/not/exist/here", timeout=20)
    assert_ok(r.status_code == 404, f"unknown endpoint returned {r.status_code}")

    print("PASS: RUP smoke checks passed")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as e:
        print(f"FAIL: {e}")
        raise
