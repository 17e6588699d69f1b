"""
Verifier configuration.

Defaults are conservative: no solver time bound, no tracing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VerifierConfig:
    """
    Verifier behavior toggles.

    timeout_ms:  per-check Z3 time bound; None means unbounded. A check that
                 runs out of time is reported as UNKNOWN, never as proved.
    debug:       record an encoding trace and keep the SMT text of each VC.
    trace_max:   maximum number of trace records kept per VC.
    trace_tail:  number of trailing trace records attached to a result.
    include_smt: keep the SMT text of each VC even outside debug mode.
    """
    timeout_ms: Optional[int] = None
    debug: bool = False
    trace_max: int = 400
    trace_tail: int = 80
    include_smt: bool = False

    def __post_init__(self):
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.trace_max <= 0:
            raise ValueError(f"trace_max must be positive, got {self.trace_max}")
        if self.trace_tail <= 0:
            raise ValueError(f"trace_tail must be positive, got {self.trace_tail}")

    @property
    def keep_smt(self) -> bool:
        return self.debug or self.include_smt
