"""
Operators and math functions for the acausal modeling DSL.

- der(): time derivative of a variable or of a linear combination of variables
- Math functions that work with both Python floats and symbolic expressions
- if_then_else(): conditional expression

Numeric inputs return Python floats so that parameter arithmetic in
component definitions stays numeric. Symbolic inputs return Expr nodes.
"""

from __future__ import annotations

import math
from typing import Any, Union

from beartype import beartype

from acausal.expr import Expr, ExprKind, to_expr
from acausal.variables import DerivativeExpr, SymbolicVar, TimeVar


def _to_symbolic(x: Any) -> Union[Expr, float]:
    """Convert to Expr or return float for numeric values."""
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return float(x)
    if isinstance(x, (SymbolicVar, DerivativeExpr, TimeVar, Expr)):
        return to_expr(x)
    raise TypeError(f"Cannot convert {type(x)} to symbolic expression")


@beartype
def der(x: Union[SymbolicVar, Expr]) -> Union[DerivativeExpr, Expr]:
    """
    Return the time derivative of a variable.

    Works on plain variables and on sums, differences, negations and
    constant multiples of variables, so relative quantities can be
    differentiated directly:

        @equations
        def _(m):
            der(m.phi) == m.w
            m.w_rel == der(m.flange_b.phi - m.flange_a.phi)

    Raises
    ------
    TypeError
        If the expression contains anything der() cannot distribute over.
    """
    if isinstance(x, SymbolicVar):
        return DerivativeExpr(x.name)
    return _der_expr(x)


def _der_expr(expr: Expr) -> Expr:
    if expr.kind == ExprKind.VARIABLE:
        return Expr(ExprKind.DERIVATIVE, name=expr.name)
    if expr.kind == ExprKind.CONSTANT:
        return Expr(ExprKind.CONSTANT, value=0.0)
    if expr.kind == ExprKind.NEG:
        return Expr(ExprKind.NEG, (_der_expr(expr.children[0]),))
    if expr.kind in (ExprKind.ADD, ExprKind.SUB):
        return Expr(expr.kind, tuple(_der_expr(c) for c in expr.children))
    if expr.kind == ExprKind.MUL:
        a, b = expr.children
        if a.kind == ExprKind.CONSTANT:
            return Expr(ExprKind.MUL, (a, _der_expr(b)))
        if b.kind == ExprKind.CONSTANT:
            return Expr(ExprKind.MUL, (_der_expr(a), b))
    raise TypeError(f"der() only distributes over sums and constant multiples, got {expr!r}")


def _apply(kind: ExprKind, numeric: Any, x: Any) -> Union[Expr, float]:
    val = _to_symbolic(x)
    if isinstance(val, float):
        return numeric(val)
    return Expr(kind, (val,))


@beartype
def sin(x: Any) -> Union[Expr, float]:
    """
    Sine function.

    Returns
    -------
    Expr or float
        Expr node for symbolic inputs, Python float for numeric inputs.
    """
    return _apply(ExprKind.SIN, math.sin, x)


@beartype
def cos(x: Any) -> Union[Expr, float]:
    """Cosine function."""
    return _apply(ExprKind.COS, math.cos, x)


@beartype
def tan(x: Any) -> Union[Expr, float]:
    """Tangent function."""
    return _apply(ExprKind.TAN, math.tan, x)


@beartype
def atan(x: Any) -> Union[Expr, float]:
    """Arctangent function."""
    return _apply(ExprKind.ATAN, math.atan, x)


@beartype
def sqrt(x: Any) -> Union[Expr, float]:
    """Square root."""
    return _apply(ExprKind.SQRT, math.sqrt, x)


@beartype
def exp(x: Any) -> Union[Expr, float]:
    """Exponential function."""
    return _apply(ExprKind.EXP, math.exp, x)


@beartype
def log(x: Any) -> Union[Expr, float]:
    """Natural logarithm."""
    return _apply(ExprKind.LOG, math.log, x)


@beartype
def tanh(x: Any) -> Union[Expr, float]:
    """Hyperbolic tangent."""
    return _apply(ExprKind.TANH, math.tanh, x)


@beartype
def abs_(x: Any) -> Union[Expr, float]:
    """Absolute value."""
    return _apply(ExprKind.ABS, abs, x)


@beartype
def atan2(y: Any, x: Any) -> Union[Expr, float]:
    """Two-argument arctangent."""
    a, b = _to_symbolic(y), _to_symbolic(x)
    if isinstance(a, float) and isinstance(b, float):
        return math.atan2(a, b)
    return Expr(ExprKind.ATAN2, (to_expr(a), to_expr(b)))


@beartype
def min_(a: Any, b: Any) -> Union[Expr, float]:
    """Minimum of two values."""
    x, y = _to_symbolic(a), _to_symbolic(b)
    if isinstance(x, float) and isinstance(y, float):
        return min(x, y)
    return Expr(ExprKind.MIN, (to_expr(x), to_expr(y)))


@beartype
def max_(a: Any, b: Any) -> Union[Expr, float]:
    """Maximum of two values."""
    x, y = _to_symbolic(a), _to_symbolic(b)
    if isinstance(x, float) and isinstance(y, float):
        return max(x, y)
    return Expr(ExprKind.MAX, (to_expr(x), to_expr(y)))


@beartype
def if_then_else(condition: Any, then_expr: Any, else_expr: Any) -> Expr:
    """
    Conditional expression: if condition then then_expr else else_expr.

    Conditions are built with the relational operators (<, <=, >, >=).
    Do not use == for the condition inside an @equations block, it
    registers an equation instead of building a comparison.
    """
    return Expr(ExprKind.IF_THEN_ELSE, (to_expr(condition), to_expr(then_expr), to_expr(else_expr)))
