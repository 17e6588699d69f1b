"""
Rules IR -> Z3 encoder

Translates a verification condition, a boolean term of the rules IR, into
a Z3 expression.

Encoding choices:
- Bool is a Z3 Bool; integers, money (in cents) and dates (days since
  Jan 1, 1900) are all Z3 Ints.
- Every enum becomes a Z3 datatype with one constructor per variant; each
  constructor carries exactly one payload field named "<Ctor>!0".
- Functions are uninterpreted unary Z3 functions, declared once per VC.
- `if c then t else e` is encoded as (c ==> t) /\\ (not c ==> e) so that the
  branches may themselves be constraints.
- `match` is encoded as a conjunction of recognizer-guarded implications.

Anything outside this subset fails closed with an `EncodingError`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import z3

from ..language.ast import (
    Type, TLit, TTuple, TEnum, TArrow, TArray, TAny, LiteralKind,
    Lit, LBool, LInt, LRat, LMoney, LDate, LDuration, LUnit, LEmptyError,
    Var, Term, EVar, ELit, EOp, EApp, EAbs, EMatch, EIfThenElse,
    ETuple, ETupleAccess, EInj, EArray, EAssert, EDefault, EErrorOnEmpty,
    Unop, Binop, Ternop, Operator, OpKind, UnaryOperator, BinaryOperator,
    substitute, format_term,
)
from .context import EncodingContext, unique_name
from .errors import UnsupportedConstructError, IllFormedTermError, MissingMappingError
from .values import date_to_int


# Binary operators whose meaning does not depend on the kind tag
_KIND_AGNOSTIC = {
    BinaryOperator.AND, BinaryOperator.OR, BinaryOperator.XOR,
    BinaryOperator.EQ, BinaryOperator.NEQ,
}

# Kinds accepted by each numeric binary operator. Multiplication and
# division on money mix in decimals, which have no encoding.
_NUMERIC_KINDS = {
    BinaryOperator.ADD: {OpKind.INT, OpKind.MONEY, OpKind.DATE},
    BinaryOperator.SUB: {OpKind.INT, OpKind.MONEY, OpKind.DATE},
    BinaryOperator.MULT: {OpKind.INT},
    BinaryOperator.DIV: {OpKind.INT},
    BinaryOperator.LT: {OpKind.INT, OpKind.MONEY, OpKind.DATE},
    BinaryOperator.LTE: {OpKind.INT, OpKind.MONEY, OpKind.DATE},
    BinaryOperator.GT: {OpKind.INT, OpKind.MONEY, OpKind.DATE},
    BinaryOperator.GTE: {OpKind.INT, OpKind.MONEY, OpKind.DATE},
}

_UNSUPPORTED_TERMS = (
    ETuple, ETupleAccess, EInj, EArray, EAbs, EAssert, EOp, EDefault, EErrorOnEmpty,
)


class Z3Encoder:
    """
    Encodes the terms of one verification condition.

    All memoized Z3 objects (function declarations, datatype sorts) live in
    the `EncodingContext`, so two encoders never share declarations.
    """

    def __init__(self, ctx: EncodingContext, *, debug: bool = False, trace_max: int = 400):
        self.ctx = ctx
        self.debug = bool(debug)
        self._trace: List[Dict[str, Any]] = []
        self._trace_max = trace_max
        self._enums_in_progress: set = set()

    @property
    def trace(self) -> List[Dict[str, Any]]:
        return list(self._trace)

    def _t(self, event: str, **data):
        if not self.debug:
            return
        self._trace.append({"event": event, **data})
        if len(self._trace) > self._trace_max:
            self._trace.pop(0)

    @contextmanager
    def _z3_guard(self, what: str, location: Optional[tuple] = None) -> Iterator[None]:
        """Z3 rejects ill-sorted applications; report them as ill-formed terms."""
        try:
            yield
        except z3.Z3Exception as e:
            raise IllFormedTermError(f"[Z3 encoding] Ill-sorted {what}: {e}", location) from e

    # -----------------------------
    # Types
    # -----------------------------
    def translate_typ_lit(self, kind: LiteralKind) -> z3.SortRef:
        if kind == LiteralKind.BOOL:
            return z3.BoolSort(self.ctx.z3_ctx)
        if kind in (LiteralKind.INT, LiteralKind.MONEY, LiteralKind.DATE):
            return z3.IntSort(self.ctx.z3_ctx)
        raise UnsupportedConstructError(f"{kind.name} type")

    def translate_typ(self, typ: Type) -> z3.SortRef:
        if isinstance(typ, TLit):
            return self.translate_typ_lit(typ.kind)
        if isinstance(typ, TEnum):
            return self.find_or_create_enum(typ.enum)
        if isinstance(typ, (TTuple, TArrow, TArray, TAny)):
            raise UnsupportedConstructError(f"{typ.__class__.__name__} type")
        raise IllFormedTermError(f"[Z3 encoding] Unknown type node: {typ!r}")

    def find_or_create_enum(self, enum: str) -> z3.DatatypeSortRef:
        """
        Return the Z3 datatype for `enum`, creating it on first use.

        Each constructor gets a single accessor, "<Ctor>!0", whose sort is
        the translated payload type.
        """
        sort = self.ctx.datatypes.get(enum)
        if sort is not None:
            return sort

        ctors = self.ctx.decl_ctx.get_constructors(enum)
        if ctors is None:
            raise MissingMappingError(f"[Z3 encoding] Enum '{enum}' is not declared")
        if enum in self._enums_in_progress:
            raise UnsupportedConstructError(f"recursive enum {enum}")

        self._enums_in_progress.add(enum)
        try:
            datatype = z3.Datatype(enum, ctx=self.ctx.z3_ctx)
            for name, payload in ctors:
                datatype.declare(name, (f"{name}!0", self.translate_typ(payload)))
            with self._z3_guard(f"enum declaration {enum}"):
                sort = datatype.create()
        finally:
            self._enums_in_progress.discard(enum)

        self.ctx.add_z3enum(enum, sort)
        self._t("enum_create", enum=enum, constructors=[n for n, _ in ctors])
        return sort

    # -----------------------------
    # Literals
    # -----------------------------
    def translate_lit(self, lit: Lit, location: Optional[tuple] = None) -> z3.ExprRef:
        z3_ctx = self.ctx.z3_ctx
        if isinstance(lit, LBool):
            return z3.BoolVal(bool(lit.value), z3_ctx)
        if isinstance(lit, LInt):
            return z3.IntVal(int(lit.value), z3_ctx)
        if isinstance(lit, LMoney):
            return z3.IntVal(int(lit.cents), z3_ctx)
        if isinstance(lit, LDate):
            return z3.IntVal(date_to_int(lit.value), z3_ctx)
        if isinstance(lit, (LRat, LDuration, LUnit, LEmptyError)):
            raise UnsupportedConstructError(f"{lit.__class__.__name__} literals", location)
        raise IllFormedTermError(f"[Z3 encoding] Unknown literal: {lit!r}", location)

    # -----------------------------
    # Functions
    # -----------------------------
    def find_or_create_funcdecl(self, v: Var) -> z3.FuncDeclRef:
        fd = self.ctx.funcdecls.get(v)
        if fd is not None:
            return fd

        f_ty = self.ctx.type_of(v)
        if not isinstance(f_ty, TArrow):
            raise IllFormedTermError(
                f"[Z3 encoding] Ill-formed VC, a function application does not have a function type "
                f"('{v.name}' has type {f_ty!r})"
            )
        z3_t1 = self.translate_typ(f_ty.arg)
        z3_t2 = self.translate_typ(f_ty.ret)
        name = unique_name(v)
        fd = z3.Function(name, z3_t1, z3_t2)

        self.ctx.add_funcdecl(v, fd)
        self.ctx.add_z3var(name, v)
        self._t("funcdecl", name=name, domain=str(z3_t1), range=str(z3_t2))
        return fd

    # -----------------------------
    # Operators
    # -----------------------------
    def translate_op(self, op: Operator, args: List[Term], location: Optional[tuple] = None) -> z3.ExprRef:
        if isinstance(op, Ternop):
            self._check_arity(op, args, 3, "ternary", location)
            raise UnsupportedConstructError(f"ternary operator {op.op.name}", location)
        if isinstance(op, Binop):
            self._check_arity(op, args, 2, "binary", location)
            return self._translate_binop(op, args, location)
        if isinstance(op, Unop):
            self._check_arity(op, args, 1, "unary", location)
            return self._translate_unop(op, args[0], location)
        raise IllFormedTermError(f"[Z3 encoding] Unknown operator: {op!r}", location)

    def _check_arity(self, op: Operator, args: List[Term], expected: int, label: str, location):
        if len(args) != expected:
            shown = format_term(EApp(EOp(op), list(args)), self.ctx.decl_ctx)
            raise IllFormedTermError(f"[Z3 encoding] Ill-formed {label} operator application: {shown}", location)

    def _translate_binop(self, op: Binop, args: List[Term], location) -> z3.ExprRef:
        bop = op.op
        if bop not in _KIND_AGNOSTIC:
            allowed = _NUMERIC_KINDS.get(bop)
            if allowed is None:
                raise UnsupportedConstructError(f"application of binary operator {bop.name}", location)
            if op.kind not in allowed:
                kind = op.kind.name if op.kind else "untagged"
                raise UnsupportedConstructError(
                    f"application of binary operator {bop.name} on {kind} operands", location
                )

        e1 = self.translate_expr(args[0])
        e2 = self.translate_expr(args[1])
        self._t("binop", op=bop.name, kind=op.kind.name if op.kind else None,
                left_sort=str(e1.sort()), right_sort=str(e2.sort()))

        if bop in (BinaryOperator.AND, BinaryOperator.OR, BinaryOperator.XOR):
            self._require_bool(bop.name, location, e1, e2)
            if bop == BinaryOperator.AND:
                return z3.And(e1, e2)
            if bop == BinaryOperator.OR:
                return z3.Or(e1, e2)
            return z3.Xor(e1, e2)

        if bop in (BinaryOperator.EQ, BinaryOperator.NEQ):
            if e1.sort() != e2.sort():
                raise IllFormedTermError(
                    f"[Z3 encoding] sort mismatch in {bop.name}: left_sort={e1.sort()} right_sort={e2.sort()}",
                    location,
                )
            if bop == BinaryOperator.EQ:
                return e1 == e2
            return z3.Not(e1 == e2)

        self._require_arith(bop.name, location, e1, e2)
        if bop == BinaryOperator.ADD: return e1 + e2
        if bop == BinaryOperator.SUB: return e1 - e2
        if bop == BinaryOperator.MULT: return e1 * e2
        if bop == BinaryOperator.DIV: return e1 / e2
        if bop == BinaryOperator.LT: return e1 < e2
        if bop == BinaryOperator.LTE: return e1 <= e2
        if bop == BinaryOperator.GT: return e1 > e2
        return e1 >= e2

    def _translate_unop(self, op: Unop, arg: Term, location) -> z3.ExprRef:
        uop = op.op
        if uop == UnaryOperator.NOT:
            e = self.translate_expr(arg)
            self._require_bool(uop.name, location, e)
            return z3.Not(e)
        if uop == UnaryOperator.LOG:
            # logging has no logical content
            return self.translate_expr(arg)
        raise UnsupportedConstructError(f"application of unary operator {uop.name}", location)

    def _require_bool(self, what: str, location, *exprs: z3.ExprRef):
        for e in exprs:
            if not z3.is_bool(e):
                raise IllFormedTermError(
                    f"[Z3 encoding] Non-boolean operand in '{what}': sort={e.sort()}", location
                )

    def _require_arith(self, what: str, location, *exprs: z3.ExprRef):
        for e in exprs:
            if not z3.is_arith(e):
                raise IllFormedTermError(
                    f"[Z3 encoding] Non-numeric operand in numeric operation '{what}': sort={e.sort()}", location
                )

    # -----------------------------
    # Terms
    # -----------------------------
    def translate_expr(self, term: Term) -> z3.ExprRef:
        loc = getattr(term, "location", None)

        if isinstance(term, EVar):
            return self._translate_var(term.var)

        if isinstance(term, ELit):
            return self.translate_lit(term.lit, loc)

        if isinstance(term, EApp):
            head = term.head
            if isinstance(head, EOp):
                return self.translate_op(head.op, term.args, loc)
            if isinstance(head, EVar):
                fd = self.find_or_create_funcdecl(head.var)
                if len(term.args) != 1:
                    raise IllFormedTermError(
                        f"[Z3 encoding] Function '{head.var.name}' applied to {len(term.args)} arguments, "
                        f"only unary functions are supported",
                        loc,
                    )
                z3_arg = self.translate_expr(term.args[0])
                with self._z3_guard(f"application of '{head.var.name}'", loc):
                    return fd(z3_arg)
            raise IllFormedTermError(
                "[Z3 encoding] EApp node: function calls should only include operators or function names",
                loc,
            )

        if isinstance(term, EIfThenElse):
            z3_if = self.translate_expr(term.cond)
            z3_then = self.translate_expr(term.then)
            z3_else = self.translate_expr(term.else_)
            with self._z3_guard("if-then-else", loc):
                return z3.And(z3.Implies(z3_if, z3_then), z3.Implies(z3.Not(z3_if), z3_else))

        if isinstance(term, EMatch):
            return self._translate_match(term)

        if isinstance(term, _UNSUPPORTED_TERMS):
            raise UnsupportedConstructError(term.__class__.__name__, loc)

        raise IllFormedTermError(f"[Z3 encoding] Unknown term node: {term.__class__.__name__}", loc)

    def _translate_var(self, v: Var) -> z3.ExprRef:
        proj = self.ctx.lookup_match_subst(v)
        if proj is not None:
            # a payload bound by an enclosing match arm, not a true variable
            return proj

        typ = self.ctx.type_of(v)
        sort = self.translate_typ(typ)
        name = unique_name(v)
        self.ctx.add_z3var(name, v)
        self._t("var_ref", name=name, sort=str(sort))
        return z3.Const(name, sort)

    def _translate_match(self, term: EMatch) -> z3.ExprRef:
        loc = term.location
        sort = self.find_or_create_enum(term.enum)
        head = self.translate_expr(term.arg)

        n = sort.num_constructors()
        if len(term.arms) != n:
            raise IllFormedTermError(
                f"[Z3 encoding] Match on '{term.enum}' has {len(term.arms)} arms for {n} constructors", loc
            )

        with self._z3_guard(f"match on '{term.enum}'", loc):
            bodies = [
                self._translate_match_arm(head, arm, sort.accessor(i, 0))
                for i, arm in enumerate(term.arms)
            ]
            # is_Ci(arg) ==> body_i, for every constructor
            implications = [
                z3.Implies(sort.recognizer(i)(head), body)
                for i, body in enumerate(bodies)
            ]
        self._t("match", enum=term.enum, arms=n)
        return z3.And(*implications)

    def _translate_match_arm(self, head: z3.ExprRef, arm: Term, accessor: z3.FuncDeclRef) -> z3.ExprRef:
        if not isinstance(arm, EAbs) or len(arm.params) != 1:
            raise IllFormedTermError(
                "[Z3 encoding] Arms branches inside VCs should be lambdas of one argument",
                getattr(arm, "location", None),
            )

        fresh_v = Var.fresh("arm!tmp")
        body = substitute(arm.body, arm.params[0], EVar(fresh_v))
        proj = accessor(head)
        with self.ctx.match_binding(fresh_v, proj):
            return self.translate_expr(body)
