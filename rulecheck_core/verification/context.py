"""
Encoding context threaded through the translation of one verification
condition.

`decl_ctx` and `var_types` are computed before translation starts and are
never modified. The other tables grow while the translation discovers
functions, enums and match arms. A context belongs to exactly one VC;
it is never shared between two translations.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping, Optional

import z3

from ..language.ast import DeclContext, Type, Var
from .errors import MissingMappingError


def unique_name(v: Var) -> str:
    """Solver symbol for `v`: human name plus uid, so homonyms never collide."""
    return f"{v.name}_{v.uid}"


@dataclass
class EncodingContext:
    z3_ctx: z3.Context
    decl_ctx: DeclContext
    var_types: Mapping[Var, Type]

    # function variable -> Z3 declaration, each function declared once
    funcdecls: Dict[Var, z3.FuncDeclRef] = field(default_factory=dict)
    # Z3 symbol name -> source variable, for reading models back
    z3vars: Dict[str, Var] = field(default_factory=dict)
    # enum name -> Z3 datatype sort
    datatypes: Dict[str, z3.DatatypeSortRef] = field(default_factory=dict)
    # synthetic match variable -> accessor applied to the scrutinee
    match_substs: Dict[Var, z3.ExprRef] = field(default_factory=dict)

    def type_of(self, v: Var) -> Type:
        try:
            return self.var_types[v]
        except KeyError:
            raise MissingMappingError(f"[Z3 encoding] No type recorded for variable '{v.name}'") from None

    def add_funcdecl(self, v: Var, fd: z3.FuncDeclRef):
        if v in self.funcdecls and self.funcdecls[v] is not fd:
            raise MissingMappingError(f"[Z3 encoding] Function '{v.name}' declared twice")
        self.funcdecls[v] = fd

    def add_z3var(self, name: str, v: Var):
        known = self.z3vars.get(name)
        if known is not None and known != v:
            raise MissingMappingError(f"[Z3 encoding] Symbol '{name}' already stands for '{known.name}'")
        self.z3vars[name] = v

    def add_z3enum(self, enum: str, sort: z3.DatatypeSortRef):
        if enum in self.datatypes and self.datatypes[enum] is not sort:
            raise MissingMappingError(f"[Z3 encoding] Enum '{enum}' declared twice")
        self.datatypes[enum] = sort

    def lookup_match_subst(self, v: Var) -> Optional[z3.ExprRef]:
        return self.match_substs.get(v)

    @contextmanager
    def match_binding(self, v: Var, proj: z3.ExprRef) -> Iterator[None]:
        """Bind `v` to `proj` for the translation of one match arm."""
        previous = self.match_substs.get(v)
        self.match_substs[v] = proj
        try:
            yield
        finally:
            if previous is None:
                del self.match_substs[v]
            else:
                self.match_substs[v] = previous

    def lookup_var(self, name: str) -> Var:
        try:
            return self.z3vars[name]
        except KeyError:
            raise MissingMappingError(
                f"[Z3 model]: Symbol '{name}' does not correspond to any encoded variable"
            ) from None
