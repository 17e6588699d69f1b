"""
Verification Checker (Z3 Engine)

Discharges verification conditions produced by the rules compiler.

For every VC:
1) Encode its guard with a fresh `EncodingContext` (memo tables are never
   shared between VCs).
2) Assert the negation of the encoded guard on a fresh solver.
3) UNSAT means the guard holds for all inputs. SAT means it can fail, and
   the model is decoded into a counterexample in domain terms.

Design principles:
- Fail-closed: an unsupported construct is a translation failure, never an
  approximation, and never a proof.
- One VC's failure never aborts the batch.
- No presentation here: results are structured `VCResult` values that a
  reporter renders.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

import z3

from ..config import VerifierConfig
from ..language.ast import Program, Type, Var
from .conditions import (
    EncodingFailure, EncodingOutcome, EncodingSuccess, VCKind, VCResult, VCStatus,
    VerificationCondition,
)
from .context import EncodingContext
from .encoder import Z3Encoder
from .errors import EncodingError, IllFormedTermError, MissingMappingError
from .model import count_constants, decode_model

COUNTEREXAMPLE_HEADER = "The solver generated the following counterexample to explain the faulty behavior:"
NO_COUNTEREXAMPLE = "The solver did not manage to generate a counterexample to explain the faulty behavior."


def merge_variable_types(
    global_types: Mapping[Var, Type],
    free_types: Mapping[Var, Type],
) -> Dict[Var, Type]:
    """Variable table of one VC: program globals plus the VC's free variables."""
    clash = [v for v in free_types if v in global_types]
    if clash:
        names = ", ".join(sorted(v.name for v in clash))
        raise IllFormedTermError(f"[Z3 encoding]: A variable cannot be both free and bound ({names})")
    merged = dict(global_types)
    merged.update(free_types)
    return merged


class VCChecker:
    def __init__(self, config: Optional[VerifierConfig] = None):
        self.config = config or VerifierConfig()
        self.z3_ctx: Optional[z3.Context] = None
        self._trace: List[Dict[str, Any]] = []

    # -----------------------------
    # Public API
    # -----------------------------
    def solve_vcs(self, program: Program, vcs: Sequence[VerificationCondition]) -> List[VCResult]:
        """
        Main entry point: encode and check every VC, in order.

        One Z3 context is created per batch and shared by all checks; each
        check still gets its own solver, so assertions never leak between VCs.
        """
        self.z3_ctx = z3.Context(model=True, proof=False)
        results: List[VCResult] = []
        for vc in vcs:
            encoding = self.encode_vc(program, vc)
            results.append(self.check_vc(vc, encoding))
        return results

    def encode_vc(self, program: Program, vc: VerificationCondition) -> EncodingOutcome:
        """Translate the guard of `vc`; encoding errors become an `EncodingFailure`."""
        if self.z3_ctx is None:
            self.z3_ctx = z3.Context(model=True, proof=False)
        self._trace = []

        try:
            var_types = merge_variable_types(program.variable_types, vc.free_vars_typ)
            ctx = EncodingContext(z3_ctx=self.z3_ctx, decl_ctx=program.decl_ctx, var_types=var_types)
            encoder = Z3Encoder(ctx, debug=self.config.debug, trace_max=self.config.trace_max)
            try:
                term = encoder.translate_expr(vc.guard)
            finally:
                self._trace = encoder.trace

            if not z3.is_bool(term):
                raise IllFormedTermError(
                    f"[Z3 encoding] The guard of {vc.label} is not a boolean term (sort {term.sort()})",
                    vc.location,
                )
        except EncodingError as e:
            self._t("encode_failed", error=str(e))
            return EncodingFailure(str(e))

        self._t("encode_ok", symbols=sorted(ctx.z3vars))
        return EncodingSuccess(ctx, term)

    def check_vc(self, vc: VerificationCondition, encoding: EncodingOutcome) -> VCResult:
        if isinstance(encoding, EncodingFailure):
            return VCResult(
                vc=vc,
                status=VCStatus.TRANSLATION_FAILED,
                message=f"The translation to Z3 failed:\n{encoding.message}",
                meta=self._meta(),
            )

        ctx, term = encoding.ctx, encoding.term
        smt = term.sexpr() if self.config.keep_smt else None

        solver = z3.Solver(ctx=ctx.z3_ctx)
        if self.config.timeout_ms is not None:
            solver.set(timeout=self.config.timeout_ms)
        solver.add(z3.Not(term))
        res = solver.check()
        self._t("check", result=str(res))

        if res == z3.unsat:
            return VCResult(vc=vc, status=VCStatus.PROVED, message=self._positive_message(vc),
                            smt=smt, meta=self._meta())

        if res == z3.unknown:
            reason = solver.reason_unknown()
            return VCResult(
                vc=vc,
                status=VCStatus.UNKNOWN,
                message=f"{vc.label} The solver could not decide this condition ({reason})",
                smt=smt,
                meta=self._meta(reason_unknown=reason),
            )

        counterexample, decoded = self._counterexample(ctx, solver)
        return VCResult(
            vc=vc,
            status=VCStatus.FAILED,
            message=self._negative_message(vc),
            counterexample=counterexample,
            model=decoded,
            smt=smt,
            meta=self._meta(),
        )

    # -----------------------------
    # Helpers
    # -----------------------------
    def _counterexample(self, ctx: EncodingContext, solver: z3.Solver):
        try:
            model = solver.model()
        except z3.Z3Exception:
            model = None

        if model is None:
            return NO_COUNTEREXAMPLE, None
        # nothing to show if the negation holds without constraining any variable
        if count_constants(model) == 0:
            return None, None

        try:
            pairs = decode_model(ctx, model)
        except (MissingMappingError, IllFormedTermError) as e:
            self._t("decode_failed", error=str(e))
            return f"The counterexample could not be decoded:\n{e}", None

        text = "\n".join(f"{name} : {value}" for name, value in pairs)
        return f"{COUNTEREXAMPLE_HEADER}\n{text}", dict(pairs)

    def _positive_message(self, vc: VerificationCondition) -> str:
        if vc.kind == VCKind.NO_EMPTY_ERROR:
            return f"{vc.label} This variable never returns an empty error"
        return f"{vc.label} No two exceptions to ever overlap for this variable"

    def _negative_message(self, vc: VerificationCondition) -> str:
        if vc.kind == VCKind.NO_EMPTY_ERROR:
            msg = f"{vc.label} This variable might return an empty error:"
        else:
            msg = f"{vc.label} At least two exceptions overlap for this variable:"
        if vc.location:
            msg += f"\nLine {vc.location[0]}, Col {vc.location[1]}"
        return msg

    def _t(self, event: str, **data):
        if not self.config.debug:
            return
        self._trace.append({"event": event, **data})
        if len(self._trace) > self.config.trace_max:
            self._trace.pop(0)

    def _meta(self, **extra) -> Optional[Dict[str, Any]]:
        meta: Dict[str, Any] = dict(extra)
        if self.config.debug:
            meta["trace_tail"] = self._trace[-self.config.trace_tail:]
        return meta or None


def solve_vcs(
    program: Program,
    vcs: Sequence[VerificationCondition],
    config: Optional[VerifierConfig] = None,
) -> List[VCResult]:
    """One-shot helper: check `vcs` against `program` with a fresh checker."""
    return VCChecker(config).solve_vcs(program, vcs)
