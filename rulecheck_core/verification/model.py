"""
Z3 model -> domain values

The encoding is lossy (dates and money become plain integers), so model
values are decoded according to the *domain* type of the variable they
stand for, never according to the Z3 value alone.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

import z3

from ..language.ast import (
    Type, TLit, TTuple, TEnum, TArrow, TArray, TAny, LiteralKind, Var,
)
from .context import EncodingContext
from .errors import ModelDecodeError, IllFormedTermError, MissingMappingError
from .values import money_to_string, nb_days_to_date, parse_z3_int


def _parse_int(value: z3.ExprRef, what: str) -> int:
    try:
        return parse_z3_int(str(value))
    except ValueError:
        raise ModelDecodeError(f"[Z3 model]: Expected an integer {what} value, got '{value}'") from None


def print_model_lit(kind: LiteralKind, value: z3.ExprRef) -> str:
    if kind in (LiteralKind.BOOL, LiteralKind.INT):
        return str(value)
    if kind == LiteralKind.MONEY:
        # the model gives an amount of cents
        return money_to_string(_parse_int(value, "money"))
    if kind == LiteralKind.DATE:
        # the model gives a number of days since the base day
        nb = _parse_int(value, "date")
        try:
            return nb_days_to_date(nb).isoformat()
        except OverflowError:
            raise ModelDecodeError(f"[Z3 model]: Day offset {nb} is outside the calendar range") from None
    raise ModelDecodeError(f"[Z3 model]: Pretty-printing of {kind.name} literals not supported")


def print_typed_value(ctx: EncodingContext, typ: Type, value: z3.ExprRef) -> str:
    if isinstance(typ, TLit):
        return print_model_lit(typ.kind, value)

    if isinstance(typ, TEnum):
        args = value.num_args() if z3.is_app(value) else 0
        if args == 0:
            # last, non-chained constructor
            return str(value)
        if args > 1:
            raise IllFormedTermError(f"[Z3 model] Ill-formed term, an enum has more than one argument: {value}")

        ctor = value.decl().name()
        payload_ty = ctx.decl_ctx.get_payload_type(typ.enum, ctor)
        if payload_ty is None:
            raise MissingMappingError(f"[Z3 model]: '{ctor}' is not a constructor of enum '{typ.enum}'")
        return f"{ctor} ({print_typed_value(ctx, payload_ty, value.arg(0))})"

    if isinstance(typ, (TTuple, TArrow, TArray, TAny)):
        raise ModelDecodeError(f"[Z3 model]: Pretty-printing of {typ.__class__.__name__} not supported")
    raise ModelDecodeError(f"[Z3 model]: Unknown type {typ!r}")


def print_model_value(ctx: EncodingContext, v: Var, value: z3.ExprRef) -> str:
    """Render the model value of `v` according to its domain type."""
    return print_typed_value(ctx, ctx.type_of(v), value)


def model_to_dict(ctx: EncodingContext, model: z3.ModelRef) -> Dict[str, str]:
    return dict(decode_model(ctx, model))


def print_model(ctx: EncodingContext, model: z3.ModelRef) -> str:
    """
    Pretty-print a counterexample, one "name : value" line per constant.

    Function interpretations are not printed. A value of a type that cannot
    be rendered is reported on its own line instead of aborting the whole
    counterexample.
    """
    return "\n".join(f"{name} : {text}" for name, text in decode_model(ctx, model))


def count_constants(model: z3.ModelRef) -> int:
    return sum(1 for d in model.decls() if d.arity() == 0)


def decode_model(ctx: EncodingContext, model: z3.ModelRef) -> List[Tuple[str, str]]:
    """Decoded (name, value) pairs for the constants of `model`, sorted by name."""
    lines: List[Tuple[str, str, str]] = []
    for d in model.decls():
        if d.arity() != 0:
            continue
        symbol = d.name()
        v = ctx.lookup_var(symbol)
        value = model.get_interp(d)
        if value is None:
            raise MissingMappingError(f"[Z3 model]: Variable '{v.name}' does not have an associated Z3 solution")
        try:
            text = print_model_value(ctx, v, value)
        except ModelDecodeError as e:
            text = f"<unprintable: {e.message}>"
        lines.append((v.name, symbol, text))

    lines.sort(key=lambda item: (item[0], item[1]))
    names = [name for name, _, _ in lines]
    # homonyms are told apart by their solver symbol
    return [
        (symbol if names.count(name) > 1 else name, text)
        for name, symbol, text in lines
    ]
