"""
Symbolic variable wrappers for the acausal modeling DSL.

This module contains user-facing symbolic variable types:
- SymbolicVar: Main variable proxy for building equations
- DerivativeExpr: Represents der(x)
- TimeVar: Represents the independent variable of one model instance
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from acausal.expr import Expr, ExprKind, register_or_compare, to_expr
from acausal.types import Var

if TYPE_CHECKING:
    from acausal.instance import ModelInstance


class _Arithmetic:
    """Arithmetic and relational operators shared by the symbolic proxies."""

    _expr: Expr

    def __add__(self, other: Any) -> Expr:
        return self._expr + other

    def __radd__(self, other: Any) -> Expr:
        return to_expr(other) + self._expr

    def __sub__(self, other: Any) -> Expr:
        return self._expr - other

    def __rsub__(self, other: Any) -> Expr:
        return to_expr(other) - self._expr

    def __mul__(self, other: Any) -> Expr:
        return self._expr * other

    def __rmul__(self, other: Any) -> Expr:
        return to_expr(other) * self._expr

    def __truediv__(self, other: Any) -> Expr:
        return self._expr / other

    def __rtruediv__(self, other: Any) -> Expr:
        return to_expr(other) / self._expr

    def __pow__(self, other: Any) -> Expr:
        return self._expr**other

    def __neg__(self) -> Expr:
        return -self._expr

    def __pos__(self) -> Expr:
        return self._expr

    def __lt__(self, other: Any) -> Expr:
        return self._expr < other

    def __le__(self, other: Any) -> Expr:
        return self._expr <= other

    def __gt__(self, other: Any) -> Expr:
        return self._expr > other

    def __ge__(self, other: Any) -> Expr:
        return self._expr >= other

    def __eq__(self, other: Any) -> Any:  # type: ignore[override]
        """Capture equation inside @equations, comparison expression otherwise."""
        return register_or_compare(self._expr, other)

    def __ne__(self, other: Any) -> Expr:  # type: ignore[override]
        return self._expr != other

    def __hash__(self) -> int:
        return hash(self._expr)


class SymbolicVar(_Arithmetic):
    """
    Symbolic variable proxy for building equations.

    Wraps an Expr and supports arithmetic operations. This is the
    user-facing object accessed via m.x in equations. The name is
    qualified relative to the model instance that created it, e.g.
    'P.output.u' when reached through a submodel.
    """

    def __init__(self, name: str, var: Var, model: Optional["ModelInstance"] = None):
        self._name = name
        self._var = var
        self._model = model
        self._expr = Expr(ExprKind.VARIABLE, name=name)

    @property
    def name(self) -> str:
        """Qualified variable name (key into FlatSystem and SimulationResult)."""
        return self._name

    @property
    def var(self) -> Var:
        """The declaration this proxy was created from."""
        return self._var

    def __repr__(self) -> str:
        return self._name


class DerivativeExpr(_Arithmetic):
    """Represents der(x) for a scalar variable."""

    def __init__(self, var_name: str):
        self._var_name = var_name
        self._expr = Expr(ExprKind.DERIVATIVE, name=var_name)

    def __repr__(self) -> str:
        return f"der({self._var_name})"


class TimeVar(_Arithmetic):
    """Independent variable, one per model instance (`m.time`)."""

    def __init__(self) -> None:
        self._expr = Expr(ExprKind.TIME)

    def __repr__(self) -> str:
        return "time"
