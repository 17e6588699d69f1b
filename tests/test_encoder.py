from __future__ import annotations

from datetime import date
from fractions import Fraction

import pytest
import z3

from rulecheck_core.language.ast import (
    Var, TLit, TTuple, TEnum, TArrow, TArray, TAny, LiteralKind, DeclContext,
    EVar, ELit, EOp, EApp, EAbs, EMatch, EIfThenElse,
    ETuple, ETupleAccess, EInj, EArray, EAssert, EDefault, EErrorOnEmpty,
    LBool, LInt, LRat, LMoney, LDate, LDuration, LUnit, LEmptyError,
    Binop, Unop, Ternop, BinaryOperator, UnaryOperator, TernaryOperator, OpKind,
)
from rulecheck_core.verification.context import EncodingContext, unique_name
from rulecheck_core.verification.encoder import Z3Encoder
from rulecheck_core.verification.errors import (
    UnsupportedConstructError, IllFormedTermError, MissingMappingError,
)
from tests.conftest import (
    INT, BOOL, MONEY, DATE, STATUS,
    ev, lit_int, lit_bool, binop, eq, not_, match_status,
)


# -----------------------------
# Types
# -----------------------------

def test_literal_types_map_to_z3_sorts(make_encoder, z3_ctx):
    enc = make_encoder()
    assert enc.translate_typ(BOOL) == z3.BoolSort(z3_ctx)
    assert enc.translate_typ(INT) == z3.IntSort(z3_ctx)
    assert enc.translate_typ(MONEY) == z3.IntSort(z3_ctx)
    assert enc.translate_typ(DATE) == z3.IntSort(z3_ctx)


@pytest.mark.parametrize("typ", [
    TLit(LiteralKind.UNIT),
    TLit(LiteralKind.RAT),
    TLit(LiteralKind.DURATION),
    TTuple((TLit(LiteralKind.INT), TLit(LiteralKind.BOOL))),
    TArrow(TLit(LiteralKind.INT), TLit(LiteralKind.INT)),
    TArray(TLit(LiteralKind.INT)),
    TAny(),
])
def test_unencodable_types_are_rejected(make_encoder, typ):
    with pytest.raises(UnsupportedConstructError):
        make_encoder().translate_typ(typ)


def test_enum_sort_has_one_constructor_per_variant(make_encoder):
    sort = make_encoder().find_or_create_enum("Status")
    assert sort.num_constructors() == 2
    assert sort.constructor(0).name() == "Active"
    assert sort.constructor(1).name() == "Inactive"
    assert sort.accessor(0, 0).name() == "Active!0"
    assert sort.accessor(1, 0).name() == "Inactive!0"


def test_enum_sort_is_memoized_by_identity(make_encoder):
    s = Var.fresh("s")
    enc = make_encoder({s: STATUS})

    enc.translate_expr(match_status(ev(s), lambda n: binop(BinaryOperator.GT, n, lit_int(0)),
                                    lambda n: eq(n, lit_int(0))))
    first = enc.ctx.datatypes["Status"]

    enc.translate_expr(match_status(ev(s), lambda n: eq(n, lit_int(1)), lambda n: lit_bool(True)))

    assert enc.ctx.datatypes["Status"] is first
    assert enc.find_or_create_enum("Status") is first
    assert enc.translate_typ(STATUS) is first


def test_nested_enum_reuses_payload_sort(make_encoder):
    enc = make_encoder()
    wrapper = enc.find_or_create_enum("Wrapper")
    status = enc.ctx.datatypes["Status"]

    assert wrapper.accessor(0, 0).range() == status
    assert enc.find_or_create_enum("Status") is status


def test_undeclared_enum_is_an_internal_fault(make_encoder):
    with pytest.raises(MissingMappingError):
        make_encoder().find_or_create_enum("Nope")


def test_recursive_enum_is_rejected(z3_ctx):
    decls = DeclContext(enums={"Chain": [("End", TLit(LiteralKind.INT)), ("Link", TEnum("Chain"))]})
    enc = Z3Encoder(EncodingContext(z3_ctx=z3_ctx, decl_ctx=decls, var_types={}))
    with pytest.raises(UnsupportedConstructError):
        enc.find_or_create_enum("Chain")
    assert "Chain" not in enc.ctx.datatypes


# -----------------------------
# Literals
# -----------------------------

def test_literals(make_encoder):
    enc = make_encoder()
    assert z3.is_true(enc.translate_lit(LBool(True)))
    assert z3.is_false(enc.translate_lit(LBool(False)))
    assert enc.translate_lit(LInt(-42)).as_long() == -42
    assert enc.translate_lit(LMoney(-1999)).as_long() == -1999
    assert enc.translate_lit(LDate(date(1900, 1, 2))).as_long() == 1
    assert enc.translate_lit(LDate(date(1899, 12, 31))).as_long() == -1


@pytest.mark.parametrize("lit", [
    LRat(Fraction(1, 3)), LDuration(3), LUnit(), LEmptyError(),
])
def test_unencodable_literals_are_rejected(make_encoder, lit):
    with pytest.raises(UnsupportedConstructError) as excinfo:
        make_encoder().translate_expr(ELit(lit))
    assert lit.__class__.__name__ in str(excinfo.value)


# -----------------------------
# Variables and functions
# -----------------------------

def test_variable_becomes_uniquely_named_constant(make_encoder):
    x = Var.fresh("x")
    enc = make_encoder({x: INT})
    const = enc.translate_expr(ev(x))

    assert str(const) == f"x_{x.uid}"
    assert const.sort() == z3.IntSort(enc.ctx.z3_ctx)
    assert enc.ctx.z3vars[unique_name(x)] == x


def test_homonymous_variables_do_not_collide(make_encoder):
    x1, x2 = Var.fresh("x"), Var.fresh("x")
    enc = make_encoder({x1: INT, x2: INT})
    assert not enc.translate_expr(ev(x1)).eq(enc.translate_expr(ev(x2)))
    assert len(enc.ctx.z3vars) == 2


def test_untyped_variable_is_an_internal_fault(make_encoder):
    with pytest.raises(MissingMappingError):
        make_encoder().translate_expr(ev(Var.fresh("ghost")))


def test_function_declaration_is_memoized(make_encoder):
    f = Var.fresh("f")
    x, y = Var.fresh("x"), Var.fresh("y")
    enc = make_encoder({f: TArrow(INT, INT), x: INT, y: INT})

    term = eq(EApp(ev(f), [ev(x)]), EApp(ev(f), [ev(y)]))
    enc.translate_expr(term)

    assert len(enc.ctx.funcdecls) == 1
    fd = enc.ctx.funcdecls[f]
    assert enc.find_or_create_funcdecl(f) is fd
    assert fd.arity() == 1
    assert fd.name() == unique_name(f)
    assert enc.ctx.z3vars[unique_name(f)] == f


def test_function_without_arrow_type_is_ill_formed(make_encoder):
    f, x = Var.fresh("f"), Var.fresh("x")
    enc = make_encoder({f: INT, x: INT})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(EApp(ev(f), [ev(x)]))


def test_function_with_two_arguments_is_ill_formed(make_encoder):
    f, x = Var.fresh("f"), Var.fresh("x")
    enc = make_encoder({f: TArrow(INT, INT), x: INT})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(EApp(ev(f), [ev(x), ev(x)]))


def test_function_argument_of_wrong_sort_is_ill_formed(make_encoder):
    f, s = Var.fresh("f"), Var.fresh("s")
    enc = make_encoder({f: TArrow(INT, INT), s: STATUS})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(EApp(ev(f), [ev(s)]))


def test_application_head_must_be_operator_or_function(make_encoder):
    with pytest.raises(IllFormedTermError):
        make_encoder().translate_expr(EApp(lit_int(1), [lit_int(2)]))


# -----------------------------
# Operators
# -----------------------------

@pytest.mark.parametrize("op", [
    BinaryOperator.ADD, BinaryOperator.SUB, BinaryOperator.LT,
    BinaryOperator.LTE, BinaryOperator.GT, BinaryOperator.GTE,
])
@pytest.mark.parametrize("kind", [OpKind.INT, OpKind.MONEY, OpKind.DATE])
def test_numeric_operators_on_integer_encoded_kinds(make_encoder, op, kind):
    term = make_encoder().translate_expr(binop(op, lit_int(1), lit_int(2), kind))
    assert z3.is_expr(term)


@pytest.mark.parametrize("op", [BinaryOperator.MULT, BinaryOperator.DIV])
def test_mult_and_div_on_integers(make_encoder, op):
    term = make_encoder().translate_expr(binop(op, lit_int(6), lit_int(3)))
    assert z3.is_arith(term)


@pytest.mark.parametrize("op, kind", [
    (BinaryOperator.MULT, OpKind.MONEY),
    (BinaryOperator.DIV, OpKind.MONEY),
    (BinaryOperator.ADD, OpKind.RAT),
    (BinaryOperator.LT, OpKind.RAT),
    (BinaryOperator.GTE, None),
    (BinaryOperator.MAP, None),
    (BinaryOperator.CONCAT, None),
    (BinaryOperator.FILTER, None),
])
def test_unsupported_binary_operators(make_encoder, op, kind):
    with pytest.raises(UnsupportedConstructError) as excinfo:
        make_encoder().translate_expr(binop(op, lit_int(1), lit_int(2), kind))
    assert op.name in str(excinfo.value)


def test_boolean_connectives(make_encoder):
    a, b = Var.fresh("a"), Var.fresh("b")
    enc = make_encoder({a: BOOL, b: BOOL})
    assert z3.is_and(enc.translate_expr(binop(BinaryOperator.AND, ev(a), ev(b), None)))
    assert z3.is_or(enc.translate_expr(binop(BinaryOperator.OR, ev(a), ev(b), None)))
    assert z3.is_app_of(enc.translate_expr(binop(BinaryOperator.XOR, ev(a), ev(b), None)), z3.Z3_OP_XOR)
    assert z3.is_not(enc.translate_expr(not_(ev(a))))


def test_eq_and_neq_are_kind_agnostic(make_encoder):
    s1, s2 = Var.fresh("s1"), Var.fresh("s2")
    enc = make_encoder({s1: STATUS, s2: STATUS})
    assert z3.is_eq(enc.translate_expr(eq(ev(s1), ev(s2))))
    neq = enc.translate_expr(binop(BinaryOperator.NEQ, ev(s1), ev(s2), OpKind.MONEY))
    assert z3.is_not(neq) and z3.is_eq(neq.arg(0))


def test_ill_sorted_operands_are_ill_formed(make_encoder):
    a, x = Var.fresh("a"), Var.fresh("x")
    enc = make_encoder({a: BOOL, x: INT})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(binop(BinaryOperator.AND, ev(x), ev(a), None))
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(binop(BinaryOperator.ADD, ev(a), ev(x)))
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(eq(ev(a), ev(x)))
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(not_(ev(x)))


def test_log_is_the_identity(make_encoder):
    a = Var.fresh("a")
    enc = make_encoder({a: BOOL})
    logged = enc.translate_expr(EApp(EOp(Unop(UnaryOperator.LOG)), [ev(a)]))
    assert logged.eq(enc.translate_expr(ev(a)))


@pytest.mark.parametrize("uop", [
    UnaryOperator.NEGATE, UnaryOperator.LENGTH, UnaryOperator.INT_TO_RAT,
    UnaryOperator.GET_DAY, UnaryOperator.GET_MONTH, UnaryOperator.GET_YEAR,
])
def test_unsupported_unary_operators(make_encoder, uop):
    with pytest.raises(UnsupportedConstructError) as excinfo:
        make_encoder().translate_expr(EApp(EOp(Unop(uop, OpKind.INT)), [lit_int(1)]))
    assert uop.name in str(excinfo.value)


def test_operator_arity_is_checked(make_encoder):
    enc = make_encoder()
    with pytest.raises(IllFormedTermError, match="binary"):
        enc.translate_expr(EApp(EOp(Binop(BinaryOperator.ADD, OpKind.INT)), [lit_int(1)]))
    with pytest.raises(IllFormedTermError, match="unary"):
        enc.translate_expr(EApp(EOp(Unop(UnaryOperator.NOT)), [lit_bool(True), lit_bool(False)]))
    with pytest.raises(IllFormedTermError, match="ternary"):
        enc.translate_expr(EApp(EOp(Ternop(TernaryOperator.FOLD)), [lit_int(1)]))


def test_ternary_operators_are_unsupported(make_encoder):
    with pytest.raises(UnsupportedConstructError):
        make_encoder().translate_expr(
            EApp(EOp(Ternop(TernaryOperator.FOLD)), [lit_int(1), lit_int(2), lit_int(3)])
        )


# -----------------------------
# Conditionals and matches
# -----------------------------

def test_if_then_else_is_a_pair_of_implications(make_encoder):
    c, t, e = Var.fresh("c"), Var.fresh("t"), Var.fresh("e")
    enc = make_encoder({c: BOOL, t: BOOL, e: BOOL})
    term = enc.translate_expr(EIfThenElse(ev(c), ev(t), ev(e)))

    assert z3.is_and(term) and term.num_args() == 2
    assert z3.is_implies(term.arg(0)) and z3.is_implies(term.arg(1))

    expected = z3.And(z3.Implies(enc.translate_expr(ev(c)), enc.translate_expr(ev(t))),
                      z3.Implies(z3.Not(enc.translate_expr(ev(c))), enc.translate_expr(ev(e))))
    solver = z3.Solver(ctx=enc.ctx.z3_ctx)
    solver.add(term != expected)
    assert solver.check() == z3.unsat


def test_match_is_a_conjunction_of_guarded_arms(make_encoder):
    s = Var.fresh("s")
    enc = make_encoder({s: STATUS})
    term = enc.translate_expr(match_status(
        ev(s),
        lambda n: binop(BinaryOperator.GT, n, lit_int(0)),
        lambda n: eq(n, lit_int(0)),
    ))

    assert z3.is_and(term) and term.num_args() == 2
    assert all(z3.is_implies(term.arg(i)) for i in range(2))
    assert enc.ctx.match_substs == {}

    sort = enc.ctx.datatypes["Status"]
    solver = z3.Solver(ctx=enc.ctx.z3_ctx)
    solver.add(term, enc.translate_expr(ev(s)) == sort.constructor(0)(z3.IntVal(-1, enc.ctx.z3_ctx)))
    assert solver.check() == z3.unsat


def test_nested_match_on_payload(make_encoder):
    w = Var.fresh("w")
    enc = make_encoder({w: TEnum("Wrapper")})
    inner_var, amount_var = Var.fresh("st"), Var.fresh("m")
    inner_match = match_status(ev(inner_var), lambda n: binop(BinaryOperator.GTE, n, lit_int(0)),
                               lambda n: lit_bool(True))
    term = EMatch(
        ev(w),
        [
            EAbs([inner_var], inner_match, [STATUS]),
            EAbs([amount_var], binop(BinaryOperator.GT, ev(amount_var), ELit(LMoney(0)), OpKind.MONEY), [MONEY]),
        ],
        "Wrapper",
    )
    z3_term = enc.translate_expr(term)
    assert z3.is_bool(z3_term)
    assert enc.ctx.match_substs == {}
    assert set(enc.ctx.datatypes) == {"Wrapper", "Status"}


def test_match_arm_must_be_a_unary_lambda(make_encoder):
    s = Var.fresh("s")
    enc = make_encoder({s: STATUS})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(EMatch(ev(s), [lit_bool(True), lit_bool(True)], "Status"))

    a, b = Var.fresh("a"), Var.fresh("b")
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(EMatch(ev(s), [EAbs([a, b], lit_bool(True)), EAbs([a], lit_bool(True))], "Status"))


def test_match_arm_count_must_match_constructors(make_encoder):
    s, n = Var.fresh("s"), Var.fresh("n")
    enc = make_encoder({s: STATUS})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(EMatch(ev(s), [EAbs([n], lit_bool(True))], "Status"))


def test_match_scrutinee_of_wrong_sort_is_ill_formed(make_encoder):
    x = Var.fresh("x")
    enc = make_encoder({x: INT})
    with pytest.raises(IllFormedTermError):
        enc.translate_expr(match_status(ev(x), lambda n: lit_bool(True), lambda n: lit_bool(True)))


# -----------------------------
# Rejected constructs
# -----------------------------

@pytest.mark.parametrize("term, name", [
    (ETuple([ELit(LInt(1)), ELit(LInt(2))]), "ETuple"),
    (ETupleAccess(ETuple([ELit(LInt(1))]), 0), "ETupleAccess"),
    (EInj(ELit(LInt(1)), 0, "Status"), "EInj"),
    (EArray([ELit(LInt(1))]), "EArray"),
    (EAbs([Var.fresh("x")], ELit(LBool(True))), "EAbs"),
    (EAssert(ELit(LBool(True))), "EAssert"),
    (EOp(Binop(BinaryOperator.ADD, OpKind.INT)), "EOp"),
    (EDefault([], ELit(LBool(True)), ELit(LInt(1))), "EDefault"),
    (EErrorOnEmpty(ELit(LInt(1))), "EErrorOnEmpty"),
])
def test_unsupported_terms_are_rejected(make_encoder, term, name):
    with pytest.raises(UnsupportedConstructError) as excinfo:
        make_encoder().translate_expr(term)
    assert excinfo.value.construct == name


def test_unsupported_construct_carries_location(make_encoder):
    with pytest.raises(UnsupportedConstructError) as excinfo:
        make_encoder().translate_expr(EArray([], location=(12, 4)))
    assert excinfo.value.location == (12, 4)
    assert str(excinfo.value).startswith("Line 12, Col 4: ")


def test_debug_trace_is_recorded_and_bounded(z3_ctx, status_decls):
    x = Var.fresh("x")
    ctx = EncodingContext(z3_ctx=z3_ctx, decl_ctx=status_decls, var_types={x: INT})
    enc = Z3Encoder(ctx, debug=True, trace_max=3)
    term = lit_int(0)
    for _ in range(5):
        term = binop(BinaryOperator.ADD, term, ev(x))
    enc.translate_expr(term)

    assert len(enc.trace) == 3
    assert all("event" in rec for rec in enc.trace)

    quiet = Z3Encoder(EncodingContext(z3_ctx=z3_ctx, decl_ctx=status_decls, var_types={x: INT}))
    quiet.translate_expr(term)
    assert quiet.trace == []
