from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class SelectionState:
    # active KLPD/tahun served by unparameterized reads
    klpd: str
    tahun: str
    url: str

    # load flags; never both True
    is_loading: bool = False
    is_loaded: bool = False

    record_count: int = 0
    stale: bool = False
    last_error: Optional[str] = None
    loaded_at: Optional[str] = None

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)
