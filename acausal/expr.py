"""
Expression tree representation for the acausal modeling DSL.

This module contains the core Expr class and ExprKind enum that form
the abstract syntax tree for symbolic expressions.

The expression tree is backend-agnostic: the modeling core only builds
and rewrites trees, and `acausal.backends.casadi` compiles them.

================================================================================
DESIGN PRINCIPLES
================================================================================

1. ACAUSAL: Components declare equations between expressions, never assignments.
2. TYPE SAFETY: Public functions use beartype for runtime type checking.
3. SELF-CONTAINED: No compute library (CasADi) in the modeling core.
4. IMMUTABILITY: Expression nodes are frozen; rewrites build new trees.

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, Set, Tuple

import numpy as np
from beartype import beartype


class ExprKind(Enum):
    """Kinds of expression nodes."""

    # Leaf nodes
    VARIABLE = auto()  # Named variable (state, param, input, ...)
    DERIVATIVE = auto()  # der(x)
    CONSTANT = auto()  # Numeric constant
    TIME = auto()  # Independent variable

    # Arithmetic
    NEG = auto()
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    POW = auto()

    # Relational
    LT = auto()
    LE = auto()
    GT = auto()
    GE = auto()
    EQ = auto()  # x == y outside an @equations block
    NE = auto()

    # Conditional
    IF_THEN_ELSE = auto()

    # Math functions
    SIN = auto()
    COS = auto()
    TAN = auto()
    ATAN = auto()
    ATAN2 = auto()
    SQRT = auto()
    EXP = auto()
    LOG = auto()
    ABS = auto()
    TANH = auto()
    MIN = auto()
    MAX = auto()


_BINARY_SYMBOLS = {
    ExprKind.ADD: "+",
    ExprKind.SUB: "-",
    ExprKind.MUL: "*",
    ExprKind.DIV: "/",
    ExprKind.POW: "**",
    ExprKind.LT: "<",
    ExprKind.LE: "<=",
    ExprKind.GT: ">",
    ExprKind.GE: ">=",
    ExprKind.EQ: "==",
    ExprKind.NE: "!=",
}


@dataclass(frozen=True)
class Expr:
    """
    Immutable expression tree node.

    Leaves are variables (by qualified name), derivatives of variables,
    numeric constants and the time variable. Everything else is an
    operator node with children.
    """

    kind: ExprKind
    children: Tuple["Expr", ...] = ()
    name: Optional[str] = None  # For VARIABLE, DERIVATIVE
    value: Optional[float] = None  # For CONSTANT

    def __repr__(self) -> str:
        if self.kind == ExprKind.VARIABLE:
            return f"{self.name}"
        if self.kind == ExprKind.DERIVATIVE:
            return f"der({self.name})"
        if self.kind == ExprKind.CONSTANT:
            return f"{self.value}"
        if self.kind == ExprKind.TIME:
            return "time"
        if self.kind == ExprKind.NEG:
            return f"(-{self.children[0]})"
        if self.kind in _BINARY_SYMBOLS:
            return f"({self.children[0]} {_BINARY_SYMBOLS[self.kind]} {self.children[1]})"
        if self.kind == ExprKind.IF_THEN_ELSE:
            return f"(if {self.children[0]} then {self.children[1]} else {self.children[2]})"
        args = ", ".join(repr(c) for c in self.children)
        return f"{self.kind.name.lower()}({args})"

    # Arithmetic operators - return new Expr nodes
    def __add__(self, other: Any) -> "Expr":
        return Expr(ExprKind.ADD, (self, to_expr(other)))

    def __radd__(self, other: Any) -> "Expr":
        return Expr(ExprKind.ADD, (to_expr(other), self))

    def __sub__(self, other: Any) -> "Expr":
        return Expr(ExprKind.SUB, (self, to_expr(other)))

    def __rsub__(self, other: Any) -> "Expr":
        return Expr(ExprKind.SUB, (to_expr(other), self))

    def __mul__(self, other: Any) -> "Expr":
        return Expr(ExprKind.MUL, (self, to_expr(other)))

    def __rmul__(self, other: Any) -> "Expr":
        return Expr(ExprKind.MUL, (to_expr(other), self))

    def __truediv__(self, other: Any) -> "Expr":
        return Expr(ExprKind.DIV, (self, to_expr(other)))

    def __rtruediv__(self, other: Any) -> "Expr":
        return Expr(ExprKind.DIV, (to_expr(other), self))

    def __pow__(self, other: Any) -> "Expr":
        return Expr(ExprKind.POW, (self, to_expr(other)))

    def __rpow__(self, other: Any) -> "Expr":
        return Expr(ExprKind.POW, (to_expr(other), self))

    def __neg__(self) -> "Expr":
        return Expr(ExprKind.NEG, (self,))

    def __pos__(self) -> "Expr":
        return self

    # Relational operators - return Boolean Expr
    def __lt__(self, other: Any) -> "Expr":
        return Expr(ExprKind.LT, (self, to_expr(other)))

    def __le__(self, other: Any) -> "Expr":
        return Expr(ExprKind.LE, (self, to_expr(other)))

    def __gt__(self, other: Any) -> "Expr":
        return Expr(ExprKind.GT, (self, to_expr(other)))

    def __ge__(self, other: Any) -> "Expr":
        return Expr(ExprKind.GE, (self, to_expr(other)))

    def __eq__(self, other: Any) -> Any:  # type: ignore[override]
        """Equation registration inside @equations, comparison Expr otherwise."""
        return register_or_compare(self, other)

    def __ne__(self, other: Any) -> "Expr":  # type: ignore[override]
        return Expr(ExprKind.NE, (self, to_expr(other)))

    def __hash__(self) -> int:
        """Hash based on kind, children, name and value.

        Required because we override __eq__.
        """
        return hash((self.kind, self.children, self.name, self.value))


def register_or_compare(lhs: Any, rhs: Any) -> Any:
    """
    Shared implementation of `==` for all symbolic objects.

    Inside an @equations block the comparison registers `lhs == rhs` as an
    equation and returns None. Outside, it builds an EQ comparison node.
    """
    from acausal.context import get_current_equation_context
    from acausal.equations import Equation

    lhs_expr = to_expr(lhs)
    rhs_expr = to_expr(rhs)
    ctx = get_current_equation_context()
    if ctx is not None:
        ctx.add_equation(Equation(lhs=lhs_expr, rhs=rhs_expr))
        return None
    return Expr(ExprKind.EQ, (lhs_expr, rhs_expr))


ZERO = Expr(ExprKind.CONSTANT, value=0.0)
TIME = Expr(ExprKind.TIME)


@beartype
def constant(value: float) -> Expr:
    """Constant node."""
    return Expr(ExprKind.CONSTANT, value=float(value))


@beartype
def variable(name: str) -> Expr:
    """Variable node for a qualified name."""
    return Expr(ExprKind.VARIABLE, name=name)


@beartype
def derivative(name: str) -> Expr:
    """Derivative node der(name)."""
    return Expr(ExprKind.DERIVATIVE, name=name)


@beartype
def to_expr(x: Any) -> Expr:
    """Convert various types to Expr."""
    if isinstance(x, Expr):
        return x
    # Import here to avoid circular imports
    from acausal.variables import DerivativeExpr, SymbolicVar, TimeVar

    if isinstance(x, (SymbolicVar, DerivativeExpr, TimeVar)):
        return x._expr
    if isinstance(x, bool):
        raise TypeError("Cannot convert bool to Expr")
    if isinstance(x, (int, float, np.integer, np.floating)):
        return Expr(ExprKind.CONSTANT, value=float(x))
    if isinstance(x, np.ndarray) and x.size == 1:
        return Expr(ExprKind.CONSTANT, value=float(x.flat[0]))
    raise TypeError(f"Cannot convert {type(x)} to Expr")


@beartype
def find_variables(expr: Expr) -> Set[str]:
    """Find all variable names referenced in an expression (not derivatives)."""
    result: Set[str] = set()
    if expr.kind == ExprKind.VARIABLE and expr.name:
        result.add(expr.name)
    for child in expr.children:
        result.update(find_variables(child))
    return result


@beartype
def find_derivatives(expr: Expr) -> Set[str]:
    """
    Find all variable names whose derivative (der) appears in an expression.

    This is used for automatic state detection: if der(x) appears anywhere
    in the equations, then x is a state variable.
    """
    result: Set[str] = set()
    if expr.kind == ExprKind.DERIVATIVE and expr.name:
        result.add(expr.name)
    for child in expr.children:
        result.update(find_derivatives(child))
    return result


@beartype
def depends_on_time(expr: Expr) -> bool:
    """True if the time variable appears in the expression."""
    if expr.kind == ExprKind.TIME:
        return True
    return any(depends_on_time(c) for c in expr.children)


def prefix_expr(expr: Expr, prefix: str) -> Expr:
    """
    Create a new Expr with all variable names prefixed.

    This is used when flattening submodels to give all variables
    their fully qualified names (e.g., 'x' -> 'spring.x').
    """
    if not prefix:
        return expr
    return rename_expr(expr, lambda name: f"{prefix}.{name}")


def rename_expr(expr: Expr, rename: Callable[[str], str]) -> Expr:
    """Apply `rename` to every variable and derivative name in the tree."""
    if expr.kind in (ExprKind.VARIABLE, ExprKind.DERIVATIVE):
        return Expr(kind=expr.kind, name=rename(expr.name))
    if not expr.children:
        return expr
    return Expr(
        kind=expr.kind,
        name=expr.name,
        value=expr.value,
        children=tuple(rename_expr(c, rename) for c in expr.children),
    )


def substitute(
    expr: Expr,
    variables: Dict[str, Expr],
    derivatives: Optional[Dict[str, Expr]] = None,
) -> Expr:
    """
    Replace variable (and optionally derivative) leaves by expressions.

    Leaves whose names are not in the mappings are kept as-is.
    """
    derivatives = derivatives or {}
    if expr.kind == ExprKind.VARIABLE:
        return variables.get(expr.name, expr)
    if expr.kind == ExprKind.DERIVATIVE:
        return derivatives.get(expr.name, expr)
    if not expr.children:
        return expr
    return Expr(
        kind=expr.kind,
        name=expr.name,
        value=expr.value,
        children=tuple(substitute(c, variables, derivatives) for c in expr.children),
    )


def linear_terms(expr: Expr) -> Optional[Tuple[Dict[str, float], float]]:
    """
    Decompose an affine expression into ({variable: coefficient}, offset).

    Only sums, differences, negation and multiplication/division by
    constants are understood. Anything else returns None.
    """
    if expr.kind == ExprKind.CONSTANT:
        return {}, float(expr.value)
    if expr.kind == ExprKind.VARIABLE:
        return {expr.name: 1.0}, 0.0
    if expr.kind == ExprKind.NEG:
        inner = linear_terms(expr.children[0])
        if inner is None:
            return None
        return {k: -v for k, v in inner[0].items()}, -inner[1]
    if expr.kind in (ExprKind.ADD, ExprKind.SUB):
        left = linear_terms(expr.children[0])
        right = linear_terms(expr.children[1])
        if left is None or right is None:
            return None
        sign = 1.0 if expr.kind == ExprKind.ADD else -1.0
        terms = dict(left[0])
        for k, v in right[0].items():
            terms[k] = terms.get(k, 0.0) + sign * v
        return {k: v for k, v in terms.items() if v != 0.0}, left[1] + sign * right[1]
    if expr.kind == ExprKind.MUL:
        a, b = expr.children
        if b.kind == ExprKind.CONSTANT:
            a, b = b, a
        if a.kind != ExprKind.CONSTANT:
            return None
        inner = linear_terms(b)
        if inner is None:
            return None
        scale = float(a.value)
        return {k: scale * v for k, v in inner[0].items() if scale * v != 0.0}, scale * inner[1]
    if expr.kind == ExprKind.DIV and expr.children[1].kind == ExprKind.CONSTANT:
        inner = linear_terms(expr.children[0])
        if inner is None or expr.children[1].value == 0.0:
            return None
        scale = 1.0 / float(expr.children[1].value)
        return {k: scale * v for k, v in inner[0].items()}, scale * inner[1]
    return None
