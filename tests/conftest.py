from __future__ import annotations

from typing import Dict, Optional

import pytest
import z3

from rulecheck_core.language.ast import (
    Var, Type, TLit, TEnum, LiteralKind, DeclContext, Program,
    Term, EVar, ELit, EOp, EApp, EAbs, EMatch, EIfThenElse,
    LBool, LInt, Binop, Unop, BinaryOperator, UnaryOperator, OpKind,
)
from rulecheck_core.verification.conditions import VCKind, VerificationCondition
from rulecheck_core.verification.context import EncodingContext
from rulecheck_core.verification.encoder import Z3Encoder

INT = TLit(LiteralKind.INT)
BOOL = TLit(LiteralKind.BOOL)
MONEY = TLit(LiteralKind.MONEY)
DATE = TLit(LiteralKind.DATE)
STATUS = TEnum("Status")


@pytest.fixture(scope="session")
def status_decls() -> DeclContext:
    return DeclContext(enums={
        "Status": [("Active", INT), ("Inactive", INT)],
        "Wrapper": [("Wrap", STATUS), ("Amount", MONEY)],
    })


@pytest.fixture
def z3_ctx() -> z3.Context:
    return z3.Context(model=True, proof=False)


@pytest.fixture
def make_encoder(z3_ctx, status_decls):
    def _make(var_types: Optional[Dict[Var, Type]] = None, debug: bool = False) -> Z3Encoder:
        ctx = EncodingContext(z3_ctx=z3_ctx, decl_ctx=status_decls, var_types=dict(var_types or {}))
        return Z3Encoder(ctx, debug=debug)
    return _make


@pytest.fixture
def status_program(status_decls) -> Program:
    return Program(decl_ctx=status_decls, variable_types={})


# --- IR builders ---

def ev(v: Var) -> EVar:
    return EVar(v)


def lit_int(n: int) -> ELit:
    return ELit(LInt(n))


def lit_bool(b: bool) -> ELit:
    return ELit(LBool(b))


def binop(op: BinaryOperator, a: Term, b: Term, kind: Optional[OpKind] = OpKind.INT) -> EApp:
    return EApp(EOp(Binop(op, kind)), [a, b])


def eq(a: Term, b: Term) -> EApp:
    return binop(BinaryOperator.EQ, a, b, None)


def not_(a: Term) -> EApp:
    return EApp(EOp(Unop(UnaryOperator.NOT)), [a])


def implies(a: Term, b: Term) -> EIfThenElse:
    # if a then b else true
    return EIfThenElse(a, b, lit_bool(True))


def match_status(scrutinee: Term, active_body, inactive_body) -> EMatch:
    """`active_body`/`inactive_body` build the arm body from the payload term."""
    n_active = Var.fresh("n")
    n_inactive = Var.fresh("n")
    return EMatch(
        scrutinee,
        [
            EAbs([n_active], active_body(ev(n_active)), [INT]),
            EAbs([n_inactive], inactive_body(ev(n_inactive)), [INT]),
        ],
        "Status",
    )


def make_vc(
    guard: Term,
    free_vars_typ: Optional[Dict[Var, Type]] = None,
    kind: VCKind = VCKind.NO_EMPTY_ERROR,
    scope: str = "Benefits",
    variable: Optional[Var] = None,
    location: Optional[tuple] = None,
) -> VerificationCondition:
    return VerificationCondition(
        kind=kind,
        scope=scope,
        variable=variable or Var.fresh("amount"),
        guard=guard,
        free_vars_typ=dict(free_vars_typ or {}),
        location=location,
    )
