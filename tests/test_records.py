"""Tests for backend/records.py: filters, search, listings and stats."""

from __future__ import annotations

import pytest

from constants import UNKNOWN_LABEL
from records import (
    compute_stats,
    describe_columns,
    filter_by_satker,
    list_distinct_satker,
    paginate,
    parse_satker_code,
    search_records,
    search_satker_by_partial,
)


def test_parse_satker_code():
    assert parse_satker_code(197) == 197
    assert parse_satker_code(" 197 ") == 197
    assert parse_satker_code(197.0) == 197
    assert parse_satker_code("D197") is None
    assert parse_satker_code(None) is None
    assert parse_satker_code(True) is None


def test_filter_by_satker_matches_numbers_and_numeric_strings(sample_records):
    out = filter_by_satker(sample_records, "197")
    assert len(out) == 2
    assert {type(r["kd_satker"]) for r in out} == {int, str}
    assert all(parse_satker_code(r["kd_satker"]) == 197 for r in out)


def test_filter_by_satker_int_input(sample_records):
    assert [r["nama_paket"] for r in filter_by_satker(sample_records, 198)] == ["Jasa Konsultansi Perencanaan"]


def test_filter_by_satker_non_numeric_matches_nothing(sample_records):
    assert filter_by_satker(sample_records, "abc") == []


@pytest.mark.parametrize("code", ["1_97", "\u0661\u0669\u0667", "+197", "19 7", "197.0"])
def test_filter_by_satker_requires_ascii_digits(code):
    assert filter_by_satker([{"kd_satker": 197}, {"kd_satker": "197"}], code) == []


@pytest.mark.parametrize("value", ["1_97", "\u0661\u0669\u0667", "-197"])
def test_parse_satker_code_rejects_non_ascii_forms(value):
    assert parse_satker_code(value) is None


def test_filter_by_satker_record_without_field():
    assert filter_by_satker([{"nama_satker": "x"}], "1") == []


def test_search_empty_term_is_identity(sample_records):
    assert search_records(sample_records, "") is sample_records
    assert search_records(sample_records, None) is sample_records


def test_search_case_insensitive_any_field(sample_records):
    assert len(search_records(sample_records, "LAPTOP")) == 1
    assert len(search_records(sample_records, "kalimantan")) == 3  # nama_klpd
    assert len(search_records(sample_records, "seleksi")) == 1  # metode_pengadaan
    assert len(search_records(sample_records, "19")) == 3  # numeric kd_satker stringified


def test_search_ignores_non_search_fields(sample_records):
    assert search_records(sample_records, "terumumkan") == []


def test_list_distinct_satker(sample_records):
    rows = list_distinct_satker(sample_records + [{"kd_satker": "", "nama_satker": "skip"}, {"kd_satker": "100"}])
    assert [str(r["kd_satker"]) for r in rows] == ["100", "197", "198"]
    assert rows[0]["nama_satker"] == UNKNOWN_LABEL
    assert rows[0]["kd_klpd"] == UNKNOWN_LABEL
    assert rows[1]["nama_satker"] == "Dinas Pendidikan Provinsi Kalimantan Barat"
    assert set(rows[1].keys()) == {"kd_satker", "nama_satker", "nama_klpd", "kd_klpd"}


def test_compute_stats_empty():
    assert compute_stats([]) == {
        "total_records": 0,
        "total_satker": 0,
        "total_provinsi": 0,
        "total_pagu": 0.0,
        "breakdown_jenis": {},
    }


def test_compute_stats_two_records_scenario():
    records = [
        {"kd_satker": 197, "pagu": "500000000", "provinsi": "Kalimantan Barat", "jenis_pengadaan": "Barang"},
        {"kd_satker": 198, "pagu": 250000000, "provinsi": "Kalimantan Barat", "jenis_pengadaan": "Barang"},
    ]
    st = compute_stats(records)
    assert st["total_records"] == 2
    assert st["total_satker"] == 2
    assert st["total_pagu"] == 750000000
    assert st["total_provinsi"] == 1
    assert st["breakdown_jenis"] == {"Barang": 2}


def test_compute_stats_tolerates_bad_pagu_and_missing_jenis(sample_records):
    st = compute_stats(sample_records)
    assert st["total_records"] == 3
    assert st["total_satker"] == 2  # 197 and "197" are one satker
    assert st["total_pagu"] == 750000000
    assert st["breakdown_jenis"][UNKNOWN_LABEL] == 1


def test_search_satker_by_partial_counts_and_limit(sample_records):
    rows = search_satker_by_partial(sample_records, "19")
    assert [(r["kd_satker"], r["count"]) for r in rows] == [(197, 2), ("198", 1)]
    assert len(search_satker_by_partial(sample_records, "19", limit=1)) == 1
    assert search_satker_by_partial(sample_records, "999") == []


def test_describe_columns(sample_records):
    cols = describe_columns(sample_records)
    by_name = {c["column_name"]: c["column_type"] for c in cols}
    assert by_name["kd_satker"] == "number"
    assert by_name["nama_satker"] == "string"
    assert by_name["pagu"] == "string"
    assert describe_columns([{"a": None, "b": True, "c": [1]}]) == [
        {"column_name": "a", "column_type": "null"},
        {"column_name": "b", "column_type": "boolean"},
        {"column_name": "c", "column_type": "object"},
    ]
    assert describe_columns([]) == []


def test_paginate():
    rows = list(range(25))
    assert paginate(rows, 1, 10) == list(range(10))
    assert paginate(rows, 3, 10) == [20, 21, 22, 23, 24]
    assert paginate(rows, 4, 10) == []
    assert paginate(rows, 0, 0) == [0]
