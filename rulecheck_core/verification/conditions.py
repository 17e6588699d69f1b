"""
Verification conditions and their outcomes.

VCs are produced by the upstream compiler and consumed read-only here:
each one is translated once, checked once, and reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

import z3

from ..language.ast import Term, Type, Var
from .context import EncodingContext


class VCKind(Enum):
    """What the guard of a VC is meant to establish"""
    NO_EMPTY_ERROR = "NoEmptyError"
    NO_OVERLAPPING_EXCEPTIONS = "NoOverlappingExceptions"


class VCStatus(Enum):
    PROVED = "PROVED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"
    TRANSLATION_FAILED = "TRANSLATION_FAILED"


@dataclass
class VerificationCondition:
    """
    A boolean obligation about one variable of one scope.

    `guard` must hold for all values of its free variables, whose types
    are given by `free_vars_typ` (in addition to the program's globals).
    """
    kind: VCKind
    scope: str
    variable: Var
    guard: Term
    free_vars_typ: Dict[Var, Type] = field(default_factory=dict)
    location: Optional[tuple] = None  # (line, column) of the variable definition

    @property
    def label(self) -> str:
        return f"[{self.scope}.{self.variable.name}]"

    def __repr__(self):
        return f"VC({self.kind.value} {self.label})"


@dataclass(frozen=True)
class EncodingSuccess:
    ctx: EncodingContext
    term: z3.BoolRef


@dataclass(frozen=True)
class EncodingFailure:
    message: str


EncodingOutcome = Union[EncodingSuccess, EncodingFailure]


@dataclass(frozen=True)
class VCResult:
    """Result of discharging one VC (stable, report-friendly)."""
    vc: VerificationCondition
    status: VCStatus
    message: str
    counterexample: Optional[str] = None
    model: Optional[Dict[str, str]] = None
    smt: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    @property
    def holds(self) -> bool:
        return self.status == VCStatus.PROVED

    def render(self) -> str:
        """Plain-text form: the message, then the counterexample if any."""
        if self.counterexample is None:
            return self.message
        return f"{self.message}\n{self.counterexample}"
