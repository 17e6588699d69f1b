from __future__ import annotations

from .ast import (
    Var, Type, TLit, TTuple, TEnum, TArrow, TArray, TAny, LiteralKind,
    Term, EVar, ELit, EOp, EApp, EAbs, EMatch, EIfThenElse,
    DeclContext, Program, substitute, format_term,
)

__all__ = [
    "Var",
    "Type",
    "TLit",
    "TTuple",
    "TEnum",
    "TArrow",
    "TArray",
    "TAny",
    "LiteralKind",
    "Term",
    "EVar",
    "ELit",
    "EOp",
    "EApp",
    "EAbs",
    "EMatch",
    "EIfThenElse",
    "DeclContext",
    "Program",
    "substitute",
    "format_term",
]
