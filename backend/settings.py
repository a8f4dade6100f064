"""Environment-driven settings for the RUP Satker backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

import yaml
from dotenv import load_dotenv

from constants import (
    CACHE_MAX_ITEMS,
    CACHE_TTL_SECONDS,
    DEFAULT_KLPD,
    DEFAULT_TAHUN,
    FETCH_TIMEOUT_SECONDS,
    INIT_ATTEMPTS,
    INIT_DELAY_SECONDS,
    KLPD_POLICY_OPEN,
    KLPD_POLICY_SCOPED,
    PROBE_TIMEOUT_SECONDS,
    SOURCE_HOST_DEFAULT,
)

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
KLPD_CONFIG_PATH = os.path.join(SCRIPT_DIR, "klpd_config.yaml")

load_dotenv()  # take environment variables from .env


def load_klpd_config(path: str = KLPD_CONFIG_PATH) -> dict:
    """Load the KLPD allow-list and reference list from YAML."""
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    allowed = [str(code).strip().upper() for code in cfg.get("allowed", [])]
    reference = [
        {"kd_klpd": str(row["kd_klpd"]).strip().upper(), "nama_klpd": str(row["nama_klpd"])}
        for row in cfg.get("reference", [])
    ]
    return {"allowed": allowed, "reference": reference}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    default_klpd: str = DEFAULT_KLPD
    default_tahun: str = DEFAULT_TAHUN
    url_override: Optional[str] = None
    source_host: str = SOURCE_HOST_DEFAULT
    klpd_policy: str = KLPD_POLICY_SCOPED
    valid_klpd: list[str] = field(default_factory=list)
    klpd_reference: list[dict] = field(default_factory=list)

    cache_ttl_seconds: int = CACHE_TTL_SECONDS
    cache_max_items: int = CACHE_MAX_ITEMS
    fetch_timeout_seconds: float = FETCH_TIMEOUT_SECONDS
    probe_timeout_seconds: float = PROBE_TIMEOUT_SECONDS

    init_attempts: int = INIT_ATTEMPTS
    init_delay_seconds: float = INIT_DELAY_SECONDS
    init_on_startup: bool = True
    port: int = 3000

    def __post_init__(self):
        if self.klpd_policy not in (KLPD_POLICY_SCOPED, KLPD_POLICY_OPEN):
            raise ValueError(f"Invalid KLPD policy: {self.klpd_policy}")
        if not self.valid_klpd and not self.klpd_reference:
            cfg = load_klpd_config()
            self.valid_klpd = cfg["allowed"]
            self.klpd_reference = cfg["reference"]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            default_klpd=os.environ.get("DEFAULT_KLPD", DEFAULT_KLPD),
            default_tahun=os.environ.get("DEFAULT_TAHUN", DEFAULT_TAHUN),
            url_override=os.environ.get("JSON_DATA_URL", "").strip() or None,
            source_host=os.environ.get("RUP_SOURCE_HOST", SOURCE_HOST_DEFAULT).strip() or SOURCE_HOST_DEFAULT,
            klpd_policy=os.environ.get("RUP_KLPD_POLICY", KLPD_POLICY_SCOPED).strip().lower(),
            cache_ttl_seconds=int(os.environ.get("RUP_CACHE_TTL_SECONDS", str(CACHE_TTL_SECONDS))),
            cache_max_items=int(os.environ.get("RUP_CACHE_MAX_ITEMS", str(CACHE_MAX_ITEMS))),
            fetch_timeout_seconds=float(os.environ.get("RUP_FETCH_TIMEOUT_SECONDS", str(FETCH_TIMEOUT_SECONDS))),
            probe_timeout_seconds=float(os.environ.get("RUP_PROBE_TIMEOUT_SECONDS", str(PROBE_TIMEOUT_SECONDS))),
            init_attempts=int(os.environ.get("RUP_INIT_ATTEMPTS", str(INIT_ATTEMPTS))),
            init_delay_seconds=float(os.environ.get("RUP_INIT_DELAY_SECONDS", str(INIT_DELAY_SECONDS))),
            init_on_startup=_env_bool("RUP_INIT_ON_STARTUP", True),
            port=int(os.environ.get("PORT", "3000")),
        )
