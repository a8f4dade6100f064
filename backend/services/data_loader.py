from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from cache_state import RecordCache, cache_key
from errors import LoadingError, NetworkError, NotLoadedError, ValidationError
from fetcher import fetch_rup_records
from services.app_state import SelectionState
from settings import Settings
from source_url import build_data_url
from validation import validate_klpd, validate_tahun

logger = logging.getLogger("rup.loader")

SOURCE_CACHE = "cache"
SOURCE_UPSTREAM = "upstream"
SOURCE_STALE = "stale"
SOURCE_CURRENT = "current"


@dataclass
class LoadResult:
    klpd: str
    tahun: str
    url: str
    records: List[Dict[str, Any]]
    source: str


@dataclass
class _Inflight:
    event: threading.Event = field(default_factory=threading.Event)
    records: Optional[List[Dict[str, Any]]] = None
    source: str = SOURCE_UPSTREAM
    error: Optional[BaseException] = None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class RupDataService:
    """Coordinates validation, cache lookup, upstream fetch and selection state.

    Fetches are single-flight per cache key: concurrent callers for the same
    KLPD/tahun wait for the first caller's result instead of hitting the
    upstream again. Parameterized reads never move the current selection;
    only ``select`` does (``refresh`` and ``initialize`` reload it in place).
    """

    def __init__(
        self,
        settings: Settings,
        cache: Optional[RecordCache] = None,
        fetch_fn: Optional[Callable[[str, str], List[Dict[str, Any]]]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.cache = cache if cache is not None else RecordCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_items=settings.cache_max_items,
        )
        self._fetch = fetch_fn or (lambda klpd, tahun: fetch_rup_records(klpd, tahun, settings=settings))
        self._sleep = sleep

        klpd, tahun = self._default_selection()
        self.state = SelectionState(
            klpd=klpd,
            tahun=tahun,
            url=build_data_url(klpd, tahun, override=settings.url_override, host=settings.source_host),
        )
        self._state_lock = threading.Lock()
        self._current_records: List[Dict[str, Any]] = []

        self._inflight: Dict[str, _Inflight] = {}
        self._inflight_lock = threading.Lock()

    def _default_selection(self) -> tuple[str, str]:
        klpd_v = validate_klpd(self.settings.default_klpd, valid_klpd=self.settings.valid_klpd, policy=self.settings.klpd_policy)
        tahun_v = validate_tahun(self.settings.default_tahun)
        # Invalid defaults are kept as given; the startup load reports them.
        klpd = klpd_v.normalized if klpd_v.valid else str(self.settings.default_klpd)
        tahun = tahun_v.normalized if tahun_v.valid else str(self.settings.default_tahun)
        return klpd, tahun

    # ── Parameters ────────────────────────────────────────────────────────────

    def normalize(self, klpd: Any, tahun: Any) -> tuple[str, str, str]:
        """Validate KLPD/tahun and return (klpd, tahun, url)."""
        klpd_v = validate_klpd(klpd, valid_klpd=self.settings.valid_klpd, policy=self.settings.klpd_policy)
        if not klpd_v.valid:
            raise ValidationError(klpd_v.error)
        tahun_v = validate_tahun(tahun)
        if not tahun_v.valid:
            raise ValidationError(tahun_v.error)
        url = build_data_url(
            klpd_v.normalized, tahun_v.normalized,
            override=self.settings.url_override, host=self.settings.source_host,
        )
        if (klpd, tahun) != (klpd_v.normalized, tahun_v.normalized):
            logger.debug("Parameters normalized from %s/%s to %s/%s", klpd, tahun, klpd_v.normalized, tahun_v.normalized)
        return klpd_v.normalized, tahun_v.normalized, url

    def is_current(self, klpd: str, tahun: str) -> bool:
        with self._state_lock:
            return self.state.klpd == klpd and self.state.tahun == tahun

    # ── Selection state transitions ──────────────────────────────────────────

    def _mark_loading(self, klpd: str, tahun: str) -> None:
        with self._state_lock:
            if (self.state.klpd, self.state.tahun) != (klpd, tahun):
                return
            self.state.is_loaded = False
            self.state.is_loading = True

    def _mark_loaded(self, klpd: str, tahun: str, records: List[Dict[str, Any]], *, stale: bool, error: Optional[str] = None) -> None:
        with self._state_lock:
            if (self.state.klpd, self.state.tahun) != (klpd, tahun):
                return
            self._current_records = records
            self.state.is_loading = False
            self.state.is_loaded = True
            self.state.record_count = len(records)
            self.state.stale = stale
            self.state.last_error = error
            self.state.loaded_at = _utc_now_iso()

    def _mark_failed(self, klpd: str, tahun: str, message: str) -> None:
        with self._state_lock:
            if (self.state.klpd, self.state.tahun) != (klpd, tahun):
                return
            self._current_records = []
            self.state.is_loading = False
            self.state.is_loaded = False
            self.state.record_count = 0
            self.state.stale = False
            self.state.last_error = message

    # ── Loading ──────────────────────────────────────────────────────────────

    def load(self, klpd: Any = None, tahun: Any = None, *, force: bool = False) -> LoadResult:
        """Return the record set for KLPD/tahun, from cache or upstream.

        Missing parameters default to the current selection. On upstream
        failure a stale cache entry is served when one exists.
        """
        with self._state_lock:
            klpd = klpd or self.state.klpd
            tahun = tahun or self.state.tahun
        k, t, url = self.normalize(klpd, tahun)
        key = cache_key(k, t)

        if force:
            self.cache.delete(key)
        else:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Using cached data for %s", key)
                self._mark_loaded(k, t, cached, stale=False)
                return LoadResult(k, t, url, cached, SOURCE_CACHE)

        records, source = self._fetch_singleflight(k, t, url, key)
        return LoadResult(k, t, url, records, source)

    def _fetch_singleflight(self, klpd: str, tahun: str, url: str, key: str) -> tuple[List[Dict[str, Any]], str]:
        owner = False
        with self._inflight_lock:
            flight = self._inflight.get(key)
            if flight is None:
                flight = _Inflight()
                self._inflight[key] = flight
                owner = True

        if not owner:
            logger.debug("Singleflight wait: %s", key)
            if not flight.event.wait(timeout=self.settings.fetch_timeout_seconds + 5.0):
                raise NetworkError(f"Timed out waiting for in-flight fetch of {key}")
            if flight.error is not None:
                raise flight.error
            return flight.records, flight.source

        try:
            flight.records, flight.source = self._fetch_owned(klpd, tahun, url, key)
            return flight.records, flight.source
        except BaseException as exc:
            flight.error = exc
            raise
        finally:
            with self._inflight_lock:
                self._inflight.pop(key, None)
            flight.event.set()

    def _fetch_owned(self, klpd: str, tahun: str, url: str, key: str) -> tuple[List[Dict[str, Any]], str]:
        self._mark_loading(klpd, tahun)
        logger.info("Loading new data for %s from %s", key, url)
        try:
            records = self._fetch(klpd, tahun)
        except Exception as exc:
            logger.error("Fetch failed for %s (%s): %s", key, url, exc)
            stale = self.cache.get_stale(key)
            if stale is not None:
                logger.warning("Serving stale cached data for %s after fetch failure", key)
                self._mark_loaded(klpd, tahun, stale, stale=True, error=str(exc))
                return stale, SOURCE_STALE
            self._mark_failed(klpd, tahun, str(exc))
            raise

        self.cache.set(key, records)
        self._mark_loaded(klpd, tahun, records, stale=False)
        logger.info("Data loaded for %s: %d records", key, len(records))
        return records, SOURCE_UPSTREAM

    # ── Current selection ────────────────────────────────────────────────────

    def current_records(self) -> LoadResult:
        """Record set of the current selection, gated by its load flags."""
        with self._state_lock:
            if self.state.is_loading:
                raise LoadingError("Data is loading, please try again in a moment")
            if not self.state.is_loaded:
                raise NotLoadedError("Data not loaded yet, please try again in a moment")
            return LoadResult(self.state.klpd, self.state.tahun, self.state.url, self._current_records, SOURCE_CURRENT)

    def records_for(self, klpd: Any = None, tahun: Any = None) -> LoadResult:
        """Explicit key when given, otherwise the current selection."""
        if klpd or tahun:
            return self.load(klpd, tahun)
        return self.current_records()

    def select(self, klpd: Any = None, tahun: Any = None) -> LoadResult:
        """Switch the current selection and force a reload for it."""
        if not klpd and not tahun:
            raise ValidationError("Parameter klpd or tahun is required")
        with self._state_lock:
            klpd = klpd or self.state.klpd
            tahun = tahun or self.state.tahun
        k, t, url = self.normalize(klpd, tahun)

        logger.info("Changing configuration: KLPD=%s tahun=%s", k, t)
        with self._state_lock:
            self.state.klpd = k
            self.state.tahun = t
            self.state.url = url
            self.state.is_loaded = False
            self.state.is_loading = True
            self.state.record_count = 0
            self.state.stale = False
            self._current_records = []
        return self._reload_selected(k, t)

    def refresh(self) -> LoadResult:
        """Drop the current key's cache entry and fetch it again."""
        with self._state_lock:
            klpd, tahun = self.state.klpd, self.state.tahun
            self.state.is_loaded = False
            self.state.is_loading = True
        logger.info("Manual refresh requested for %s", cache_key(klpd, tahun))
        return self._reload_selected(klpd, tahun)

    def _reload_selected(self, klpd: str, tahun: str) -> LoadResult:
        try:
            return self.load(klpd, tahun, force=True)
        except Exception as exc:
            # A waiter that timed out never reaches _mark_failed
            with self._state_lock:
                if (self.state.klpd, self.state.tahun) == (klpd, tahun) and self.state.is_loading:
                    self.state.is_loading = False
                    self.state.last_error = str(exc)
            raise

    def initialize(self, attempts: Optional[int] = None, delay: Optional[float] = None) -> bool:
        """Startup load of the current selection with fixed-delay retry.

        Returns False when every attempt failed; the service keeps running
        with ``is_loaded`` False.
        """
        attempts = attempts if attempts is not None else self.settings.init_attempts
        delay = delay if delay is not None else self.settings.init_delay_seconds
        for attempt in range(1, attempts + 1):
            try:
                logger.info("Initializing data (attempt %d/%d)", attempt, attempts)
                with self._state_lock:
                    klpd, tahun = self.state.klpd, self.state.tahun
                self.load(klpd, tahun)
                logger.info("Data initialized")
                return True
            except Exception as exc:
                logger.error("Initialization attempt %d failed: %s", attempt, exc)
                with self._state_lock:
                    self.state.last_error = str(exc)
                if attempt < attempts:
                    logger.info("Waiting %.0fs before the next attempt", delay)
                    self._sleep(delay)
        logger.error("All initialization attempts failed")
        logger.warning("Server keeps running; data will be loaded on the next request or refresh")
        return False

    # ── Introspection ────────────────────────────────────────────────────────

    def status(self) -> Dict[str, Any]:
        with self._state_lock:
            snap = self.state.snapshot()
        snap["cache"] = self.cache.stats()
        return snap

    def sample(self, limit: int) -> List[Dict[str, Any]]:
        with self._state_lock:
            return list(self._current_records[:max(0, limit)])
