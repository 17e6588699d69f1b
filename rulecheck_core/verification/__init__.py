from __future__ import annotations

from .checker import VCChecker, solve_vcs
from .conditions import (
    VCKind, VCStatus, VCResult, VerificationCondition,
    EncodingSuccess, EncodingFailure,
)
from .context import EncodingContext
from .encoder import Z3Encoder
from .errors import (
    EncodingError, UnsupportedConstructError, IllFormedTermError,
    ModelDecodeError, MissingMappingError,
)

__all__ = [
    "VCChecker",
    "solve_vcs",
    "VCKind",
    "VCStatus",
    "VCResult",
    "VerificationCondition",
    "EncodingSuccess",
    "EncodingFailure",
    "EncodingContext",
    "Z3Encoder",
    "EncodingError",
    "UnsupportedConstructError",
    "IllFormedTermError",
    "ModelDecodeError",
    "MissingMappingError",
]
