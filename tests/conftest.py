"""Shared pytest fixtures for RUP Satker tests."""

from __future__ import annotations

import os
import sys

import pytest
import requests

BACKEND_DIR = os.path.join(os.path.dirname(__file__), "..", "backend")
sys.path.insert(0, BACKEND_DIR)

RUP_BASE = os.environ.get("RUP_BASE", "http://127.0.0.1:3000")

from settings import Settings  # noqa: E402


def _reachable(url: str, timeout: float = 3.0) -> bool:
    try:
        r = requests.get(url + "/health", timeout=timeout)
        return r.status_code == 200
    except Exception:
        return False


@pytest.fixture(scope="session")
def rup_base():
    """URL of a running RUP backend. Skip session if not reachable."""
    if not _reachable(RUP_BASE):
        pytest.skip(f"RUP server not reachable at {RUP_BASE}; set RUP_BASE or start the backend.")
    return RUP_BASE


@pytest.fixture
def settings():
    return Settings(init_on_startup=False, init_delay_seconds=0.0)


@pytest.fixture
def sample_records():
    return [
        {
            "kd_satker": 197,
            "nama_satker": "Dinas Pendidikan Provinsi Kalimantan Barat",
            "kd_klpd": "D197",
            "nama_klpd": "Provinsi Kalimantan Barat",
            "provinsi": "Kalimantan Barat",
            "jenis_pengadaan": "Barang",
            "metode_pengadaan": "Tender",
            "nama_paket": "Pengadaan Alat Tulis Kantor",
            "pagu": "500000000",
        },
        {
            "kd_satker": "198",
            "nama_satker": "Dinas Kesehatan",
            "kd_klpd": "D197",
            "nama_klpd": "Provinsi Kalimantan Barat",
            "provinsi": "Kalimantan Barat",
            "jenis_pengadaan": "Jasa Konsultansi",
            "metode_pengadaan": "Seleksi",
            "nama_paket": "Jasa Konsultansi Perencanaan",
            "pagu": 250000000,
        },
        {
            "kd_satker": "197",
            "nama_satker": "Dinas Pendidikan Provinsi Kalimantan Barat",
            "kd_klpd": "D197",
            "nama_klpd": "Provinsi Kalimantan Barat",
            "provinsi": "Kalimantan Barat",
            "metode_pengadaan": "E-Purchasing",
            "nama_paket": "Belanja Laptop Sekolah",
            "pagu": "n/a",
            "status": "Terumumkan",
        },
    ]
