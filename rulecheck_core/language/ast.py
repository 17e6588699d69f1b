"""
Intermediate Representation (IR) for rules verification conditions

Defines the typed functional IR the upstream compiler hands to the
verifier: domain types, literals, operators and terms, plus the
declaration context describing enumerations.
"""

import itertools
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import date
from enum import Enum
from fractions import Fraction
from typing import Dict, List, Optional, Tuple, Union


# ============================================================================
# BASE NODE
# ============================================================================

@dataclass(kw_only=True)
class IRNode:
    """
    Base class for all IR terms.

    Attributes:
        location: Source location (line, column) for error reporting
    """
    location: Optional[tuple] = None  # (line, column)

    def __repr__(self):
        return f"{self.__class__.__name__}(...)"


# ============================================================================
# VARIABLES
# ============================================================================

_uids = itertools.count(1)


@dataclass(frozen=True)
class Var:
    """
    A bound or free variable.

    Two variables with the same human name are distinct as long as their
    uid differs; `Var.fresh` hands out process-unique uids.
    """
    name: str
    uid: int

    @classmethod
    def fresh(cls, name: str) -> "Var":
        return cls(name, next(_uids))

    def __repr__(self):
        return f"Var({self.name}#{self.uid})"


# ============================================================================
# TYPES
# ============================================================================

class LiteralKind(Enum):
    """Primitive types of the rules language"""
    BOOL = "bool"
    UNIT = "unit"
    INT = "integer"
    RAT = "decimal"
    MONEY = "money"
    DATE = "date"
    DURATION = "duration"


@dataclass(frozen=True)
class Type:
    """Base class for domain types"""
    pass


@dataclass(frozen=True)
class TLit(Type):
    kind: LiteralKind

    def __repr__(self):
        return self.kind.value


@dataclass(frozen=True)
class TTuple(Type):
    items: Tuple[Type, ...]

    def __repr__(self):
        return "(" + " * ".join(repr(t) for t in self.items) + ")"


@dataclass(frozen=True)
class TEnum(Type):
    enum: str

    def __repr__(self):
        return self.enum


@dataclass(frozen=True)
class TArrow(Type):
    arg: Type
    ret: Type

    def __repr__(self):
        return f"({self.arg!r} -> {self.ret!r})"


@dataclass(frozen=True)
class TArray(Type):
    item: Type

    def __repr__(self):
        return f"collection {self.item!r}"


@dataclass(frozen=True)
class TAny(Type):
    def __repr__(self):
        return "any"


# ============================================================================
# LITERALS
# ============================================================================

@dataclass(frozen=True)
class Lit:
    """Base class for literal values"""
    pass


@dataclass(frozen=True)
class LBool(Lit):
    value: bool


@dataclass(frozen=True)
class LInt(Lit):
    value: int


@dataclass(frozen=True)
class LRat(Lit):
    value: Fraction


@dataclass(frozen=True)
class LMoney(Lit):
    """Money amount, stored as an integer number of cents"""
    cents: int


@dataclass(frozen=True)
class LDate(Lit):
    value: date


@dataclass(frozen=True)
class LDuration(Lit):
    days: int


@dataclass(frozen=True)
class LUnit(Lit):
    pass


@dataclass(frozen=True)
class LEmptyError(Lit):
    """The "no applicable definition" marker"""
    pass


# ============================================================================
# OPERATORS (Enums)
# ============================================================================

class OpKind(Enum):
    """Kind tag carried by numeric operators"""
    INT = "integer"
    MONEY = "money"
    DATE = "date"
    RAT = "decimal"


class UnaryOperator(Enum):
    NOT = "not"
    NEGATE = "-"
    LOG = "log"
    LENGTH = "length"
    INT_TO_RAT = "int_to_rat"
    GET_DAY = "get_day"
    GET_MONTH = "get_month"
    GET_YEAR = "get_year"


class BinaryOperator(Enum):
    AND = "&&"
    OR = "||"
    XOR = "xor"
    ADD = "+"
    SUB = "-"
    MULT = "*"
    DIV = "/"
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    EQ = "="
    NEQ = "!="
    MAP = "map"
    CONCAT = "++"
    FILTER = "filter"


class TernaryOperator(Enum):
    FOLD = "fold"


@dataclass(frozen=True)
class Unop:
    op: UnaryOperator
    kind: Optional[OpKind] = None

    def __repr__(self):
        return _op_symbol(self.op, self.kind)


@dataclass(frozen=True)
class Binop:
    op: BinaryOperator
    kind: Optional[OpKind] = None

    def __repr__(self):
        return _op_symbol(self.op, self.kind)


@dataclass(frozen=True)
class Ternop:
    op: TernaryOperator

    def __repr__(self):
        return self.op.value


Operator = Union[Unop, Binop, Ternop]


def _op_symbol(op: Enum, kind: Optional[OpKind]) -> str:
    if kind is None or kind == OpKind.INT:
        return op.value
    suffix = {OpKind.MONEY: "$", OpKind.DATE: "@", OpKind.RAT: "."}[kind]
    return f"{op.value}{suffix}"


# ============================================================================
# TERMS
# ============================================================================

@dataclass
class Term(IRNode):
    """Base class for terms"""
    pass


@dataclass
class EVar(Term):
    var: Var

    def __repr__(self):
        return f"EVar({self.var.name})"


@dataclass
class ELit(Term):
    lit: Lit

    def __repr__(self):
        return f"ELit({self.lit})"


@dataclass
class EOp(Term):
    op: Operator

    def __repr__(self):
        return f"EOp({self.op!r})"


@dataclass
class EApp(Term):
    """Application of an operator or of a named function"""
    head: Term
    args: List[Term] = field(default_factory=list)

    def __repr__(self):
        return f"EApp({self.head!r}, {len(self.args)} args)"


@dataclass
class EAbs(Term):
    """Lambda abstraction; only meaningful as a match arm"""
    params: List[Var]
    body: Term
    param_types: List[Type] = field(default_factory=list)

    def __repr__(self):
        return f"EAbs({', '.join(p.name for p in self.params)})"


@dataclass
class EMatch(Term):
    """Pattern match on an enum value; one arm per constructor, in order"""
    arg: Term
    arms: List[Term]
    enum: str

    def __repr__(self):
        return f"EMatch({self.enum}, {len(self.arms)} arms)"


@dataclass
class EIfThenElse(Term):
    cond: Term
    then: Term
    else_: Term

    def __repr__(self):
        return "EIfThenElse(...)"


@dataclass
class ETuple(Term):
    items: List[Term] = field(default_factory=list)


@dataclass
class ETupleAccess(Term):
    tuple: Term
    index: int


@dataclass
class EInj(Term):
    """Injection of a payload into an enum constructor"""
    term: Term
    index: int
    enum: str


@dataclass
class EArray(Term):
    items: List[Term] = field(default_factory=list)


@dataclass
class EAssert(Term):
    term: Term


@dataclass
class EDefault(Term):
    exceptions: List[Term]
    just: Term
    cons: Term


@dataclass
class EErrorOnEmpty(Term):
    term: Term


# ============================================================================
# DECLARATIONS
# ============================================================================

@dataclass
class DeclContext:
    """
    Declarations of the source program.

    enums maps an enum name to its constructors, in declaration order,
    each with its payload type.
    """
    enums: Dict[str, List[Tuple[str, Type]]] = field(default_factory=dict)

    def get_constructors(self, enum: str) -> Optional[List[Tuple[str, Type]]]:
        return self.enums.get(enum)

    def get_payload_type(self, enum: str, constructor: str) -> Optional[Type]:
        for name, ty in self.enums.get(enum, []):
            if name == constructor:
                return ty
        return None


@dataclass
class Program:
    """What the verifier needs to know about the compiled program"""
    decl_ctx: DeclContext = field(default_factory=DeclContext)
    variable_types: Dict[Var, Type] = field(default_factory=dict)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def substitute(term: Term, var: Var, replacement: Term) -> Term:
    """
    Replace free occurrences of `var` in `term` by `replacement`.

    Abstractions binding `var` shadow it. Untouched subtrees are shared
    with the input, changed ones are rebuilt with `dataclasses.replace`.
    """
    if isinstance(term, EVar):
        return replacement if term.var == var else term
    if isinstance(term, EAbs) and var in term.params:
        return term
    if not is_dataclass(term):
        return term

    changes = {}
    for f in fields(term):
        if f.name == "location":
            continue
        attr = getattr(term, f.name)

        if isinstance(attr, Term):
            new = substitute(attr, var, replacement)
            if new is not attr:
                changes[f.name] = new
        elif isinstance(attr, list) and any(isinstance(x, Term) for x in attr):
            new_items = [
                substitute(x, var, replacement) if isinstance(x, Term) else x
                for x in attr
            ]
            if any(a is not b for a, b in zip(new_items, attr)):
                changes[f.name] = new_items

    return replace(term, **changes) if changes else term


def format_typ(typ: Type) -> str:
    return repr(typ)


def format_lit(lit: Lit) -> str:
    if isinstance(lit, LBool):
        return "true" if lit.value else "false"
    if isinstance(lit, LInt):
        return str(lit.value)
    if isinstance(lit, LRat):
        return str(lit.value)
    if isinstance(lit, LMoney):
        sign = "-" if lit.cents < 0 else ""
        units, cents = divmod(abs(lit.cents), 100)
        return f"${sign}{units}.{cents:02d}"
    if isinstance(lit, LDate):
        return f"|{lit.value.isoformat()}|"
    if isinstance(lit, LDuration):
        return f"{lit.days} day"
    if isinstance(lit, LUnit):
        return "()"
    if isinstance(lit, LEmptyError):
        return "∅"
    return repr(lit)


def format_term(term: Term, decl_ctx: Optional[DeclContext] = None) -> str:
    """
    Render a term on a single line, for debugging and reports.

    With a declaration context, match arms are labelled with their
    constructor names.
    """
    def fmt(t: Term) -> str:
        if isinstance(t, EVar):
            return t.var.name
        if isinstance(t, ELit):
            return format_lit(t.lit)
        if isinstance(t, EOp):
            return repr(t.op)
        if isinstance(t, EApp):
            if isinstance(t.head, EOp) and isinstance(t.head.op, Binop) and len(t.args) == 2:
                return f"({fmt(t.args[0])} {t.head.op!r} {fmt(t.args[1])})"
            return "(" + " ".join([fmt(t.head)] + [fmt(a) for a in t.args]) + ")"
        if isinstance(t, EAbs):
            params = " ".join(p.name for p in t.params)
            return f"(λ {params} -> {fmt(t.body)})"
        if isinstance(t, EMatch):
            ctors = (decl_ctx.get_constructors(t.enum) if decl_ctx else None) or []
            arms = []
            for i, arm in enumerate(t.arms):
                label = ctors[i][0] if i < len(ctors) else f"#{i}"
                if isinstance(arm, EAbs) and len(arm.params) == 1:
                    arms.append(f"| {label} {arm.params[0].name} -> {fmt(arm.body)}")
                else:
                    arms.append(f"| {label} -> {fmt(arm)}")
            return f"(match {fmt(t.arg)} with {' '.join(arms)})"
        if isinstance(t, EIfThenElse):
            return f"(if {fmt(t.cond)} then {fmt(t.then)} else {fmt(t.else_)})"
        if isinstance(t, ETuple):
            return "(" + ", ".join(fmt(x) for x in t.items) + ")"
        if isinstance(t, ETupleAccess):
            return f"{fmt(t.tuple)}.{t.index}"
        if isinstance(t, EInj):
            return f"{t.enum}#{t.index} {fmt(t.term)}"
        if isinstance(t, EArray):
            return "[" + "; ".join(fmt(x) for x in t.items) + "]"
        if isinstance(t, EAssert):
            return f"assert {fmt(t.term)}"
        if isinstance(t, EDefault):
            excs = ", ".join(fmt(x) for x in t.exceptions)
            return f"⟨{excs} | {fmt(t.just)} ⊢ {fmt(t.cons)}⟩"
        if isinstance(t, EErrorOnEmpty):
            return f"error_empty {fmt(t.term)}"
        return repr(t)

    return fmt(term)
