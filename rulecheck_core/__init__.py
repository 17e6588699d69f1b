"""rulecheck-core: Z3 discharge of verification conditions for a rules compiler."""

from .config import VerifierConfig
from .verification import VCChecker, VCResult, VCStatus, VerificationCondition, VCKind, solve_vcs

__version__ = "0.1.0"

__all__ = [
    "VerifierConfig",
    "VCChecker",
    "VCResult",
    "VCStatus",
    "VerificationCondition",
    "VCKind",
    "solve_vcs",
]
