"""KLPD / tahun parameter normalization and validation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from constants import KLPD_POLICY_OPEN, KLPD_POLICY_SCOPED, KLPD_SAMPLE_SIZE, TAHUN_MAX, TAHUN_MIN

_KLPD_CODE_RE = re.compile(r"^[A-Z0-9]+$")
_DIGITS_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    normalized: Optional[str]
    error: Optional[str]

    def to_dict(self) -> dict:
        return {"valid": self.valid, "normalized": self.normalized, "error": self.error}


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def klpd_sample(valid_klpd: Sequence[str]) -> list[str]:
    """Truncated allow-list for error messages and /api/validate."""
    sample = list(valid_klpd[:KLPD_SAMPLE_SIZE])
    if len(valid_klpd) > KLPD_SAMPLE_SIZE:
        sample.append("...")
    return sample


def validate_klpd(value: Any, *, valid_klpd: Sequence[str], policy: str = KLPD_POLICY_SCOPED) -> ValidationResult:
    """Uppercase/trim a KLPD code and check it against the active policy.

    ``scoped`` requires membership in ``valid_klpd``; ``open`` accepts any
    alphanumeric code.
    """
    if _is_blank(value):
        return ValidationResult(False, None, "KLPD must not be empty")

    normalized = str(value).strip().upper()

    if policy == KLPD_POLICY_OPEN:
        if not _KLPD_CODE_RE.match(normalized):
            return ValidationResult(
                False, normalized, f"KLPD '{normalized}' is not valid. KLPD codes are letters and digits only"
            )
        return ValidationResult(True, normalized, None)

    if normalized not in valid_klpd:
        return ValidationResult(
            False,
            normalized,
            f"KLPD '{normalized}' is not valid. Available KLPD: {', '.join(klpd_sample(valid_klpd))}",
        )
    return ValidationResult(True, normalized, None)


def validate_tahun(value: Any) -> ValidationResult:
    if _is_blank(value):
        return ValidationResult(False, None, "Tahun must not be empty")

    normalized = str(value).strip()
    # ASCII digits only; int() would also take "2_025" and non-Latin digits
    tahun = int(normalized) if _DIGITS_RE.fullmatch(normalized) else None

    if tahun is None or tahun < TAHUN_MIN or tahun > TAHUN_MAX:
        return ValidationResult(
            False, normalized, f"Tahun '{normalized}' is not valid. Tahun must be between {TAHUN_MIN}-{TAHUN_MAX}"
        )
    return ValidationResult(True, str(tahun), None)
