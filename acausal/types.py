"""
Variable declarations for the acausal modeling DSL.

A `Var` is the declaration record produced by `var()`/`Real()` inside a
component class. It carries no symbolic state of its own; the instance
machinery wraps it in a `SymbolicVar` when a component is instantiated.

Variable Classification
=======================

Variables are classified from their flags and from equation usage:

1. **parameter** (parameter=True): constant during simulation and linearization
2. **input** (input=True): signal provided from outside the component
3. **output** (output=True): signal computed by the component
4. **flow** (flow=True): sum-to-zero semantics at connection points
5. **state**: variable whose der() appears in the flattened equations (automatic)
6. **algebraic**: everything else (automatic)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Dict, Optional, Type, Union

Number = Union[float, int]


class VarKind(Enum):
    """Classification of a flattened variable."""

    PARAMETER = auto()
    STATE = auto()
    ALGEBRAIC = auto()
    INPUT = auto()


@dataclass
class Var:
    """
    Declaration of a scalar model variable.

    Parameters
    ----------
    default : float, optional
        Parameter value, or start value when `start` is not given.
    start : float, optional
        Initial value / initial guess for states and algebraic variables.
    unit : str, optional
        Physical unit, informational only.
    desc : str
        Human readable description.
    parameter, input, output, flow : bool
        Variability, causality and connector prefixes.
    protected : bool
        Internal variable of a block (exempt from the input/output rule).
    """

    default: Optional[Number] = None
    start: Optional[Number] = None
    unit: Optional[str] = None
    desc: str = ""
    parameter: bool = False
    input: bool = False
    output: bool = False
    flow: bool = False
    protected: bool = False
    name: Optional[str] = None

    def __repr__(self) -> str:
        flags = [f for f in ("parameter", "input", "output", "flow") if getattr(self, f)]
        flag_str = f", {', '.join(flags)}" if flags else ""
        return f"Var({self.name!r}{flag_str})"

    def get_initial_value(self) -> Optional[float]:
        """Start value if given, else default, else None."""
        if self.start is not None:
            return float(self.start)
        if self.default is not None:
            return float(self.default)
        return None

    def renamed(self, name: str) -> "Var":
        """Copy of this declaration under a qualified name."""
        return replace(self, name=name)

    def with_value(self, value: Number) -> "Var":
        """Copy with an overridden value (parameter value or start value)."""
        if self.parameter:
            return replace(self, default=value)
        return replace(self, start=value)


@dataclass
class SubmodelField:
    """Declaration of a child component created by `submodel()`."""

    model_class: Type[Any]
    overrides: Dict[str, Any] = field(default_factory=dict)
    name: Optional[str] = None

    def __repr__(self) -> str:
        return f"submodel({getattr(self.model_class, '__name__', self.model_class)})"
