"""Shared constants for the RUP Satker backend.

Keep upstream source layout, validation bounds and frequently reused
defaults in one place.
"""

from __future__ import annotations

# Upstream source (S3 SIP PBJ)
SOURCE_HOST_DEFAULT: str = "s3-sip.pbj.my.id"
SOURCE_DATASET: str = "RUP-PaketPenyedia-Terumumkan"
SOURCE_FORMATS: tuple[str, ...] = ("json", "parquet")

DEFAULT_KLPD: str = "D197"
DEFAULT_TAHUN: str = "2025"

# Inclusive fiscal-year bounds
TAHUN_MIN: int = 2020
TAHUN_MAX: int = 2030

# How many valid KLPD codes to show in error messages
KLPD_SAMPLE_SIZE: int = 10

# KLPD membership policies
KLPD_POLICY_SCOPED: str = "scoped"
KLPD_POLICY_OPEN: str = "open"

# HTTP client
USER_AGENT: str = "RUP-API-Satker/1.0"
FETCH_TIMEOUT_SECONDS: float = 30.0
PROBE_TIMEOUT_SECONDS: float = 10.0

# Record cache
CACHE_TTL_SECONDS: int = 3600
CACHE_MAX_ITEMS: int = 0  # 0 = unbounded

# Startup retry
INIT_ATTEMPTS: int = 3
INIT_DELAY_SECONDS: float = 5.0

# Payload keys that may wrap the record array, in priority order
WRAPPER_KEYS: tuple[str, ...] = ("data", "results", "items")
REQUIRED_FIELDS: tuple[str, ...] = ("kd_satker",)

# Fields scanned by free-text search
SEARCH_FIELDS: tuple[str, ...] = (
    "kd_satker",
    "nama_satker",
    "nama_paket",
    "nama_klpd",
    "jenis_pengadaan",
    "metode_pengadaan",
)

UNKNOWN_LABEL: str = "Tidak Diketahui"

SEARCH_SATKER_LIMIT_DEFAULT: int = 10
DEBUG_SAMPLE_LIMIT_DEFAULT: int = 5
