"""
FlatSystem - Backend-agnostic representation of a flattened model.

This is the output of the connection-expansion pass and the input of
simplification, linearization and simulation.

================================================================================
DESIGN PRINCIPLES
================================================================================

1. FLAT NAMES: Every variable is keyed by its dotted qualified name ('P.x').
2. NO CASADI: The flat system only holds expression trees.
3. DERIVED CLASSIFICATION: States, algebraics and parameters are computed
   from the variable flags and the equations, never stored twice.

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

from acausal.equations import Equation
from acausal.expr import Expr, find_derivatives, find_variables
from acausal.types import Var, VarKind


@dataclass
class FlatSystem:
    """
    Flattened equation system.

    Variable Classification
    -----------------------
    - parameter=True → parameter (constant, value in `defaults`)
    - listed in `input_names` → input (free, injected by analysis)
    - der(var) in equations → state
    - otherwise → algebraic

    The `input`/`output` flags of component variables are causality
    prefixes only. A RealInput that is connected gets its value from the
    connection equations and is an ordinary algebraic variable.

    DAE Form
    --------
    Equations are kept as `lhs == rhs` and read as the implicit residual
    0 = lhs - rhs = F(xdot, x, z, u, p, t).
    """

    name: str
    variables: Dict[str, Var]
    equations: List[Equation]

    # Parameter values and start values, by qualified name
    defaults: Dict[str, float] = field(default_factory=dict)

    # Ports exposed by analysis (injected variables), in request order
    input_names: List[str] = field(default_factory=list)
    output_names: List[str] = field(default_factory=list)

    # Variables removed by simplification: name -> expression in the remaining ones
    observed: Dict[str, Expr] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"FlatSystem({self.name!r}, {len(self.equations)} equations, "
            f"{len(self.state_names)} states, {len(self.algebraic_names)} algebraics, "
            f"{len(self.parameter_names)} parameters)"
        )

    def _derivative_names(self) -> set:
        result: set = set()
        for eq in self.equations:
            result |= find_derivatives(eq.lhs)
            result |= find_derivatives(eq.rhs)
        return result

    def _referenced_names(self) -> set:
        result: set = set()
        for eq in self.equations:
            result |= find_variables(eq.lhs)
            result |= find_variables(eq.rhs)
        return result

    @property
    def parameter_names(self) -> List[str]:
        return [n for n, v in self.variables.items() if v.parameter]

    @property
    def state_names(self) -> List[str]:
        """Variables whose derivative appears in the equations."""
        ders = self._derivative_names()
        inputs = set(self.input_names)
        return [n for n, v in self.variables.items() if n in ders and not v.parameter and n not in inputs]

    @property
    def algebraic_names(self) -> List[str]:
        ders = self._derivative_names()
        inputs = set(self.input_names)
        return [
            n for n, v in self.variables.items() if n not in ders and not v.parameter and n not in inputs
        ]

    @property
    def unknown_names(self) -> List[str]:
        """States followed by algebraic variables."""
        return self.state_names + self.algebraic_names

    @property
    def parameter_values(self) -> Dict[str, float]:
        return {n: self.defaults[n] for n in self.parameter_names if n in self.defaults}

    def kind_of(self, name: str) -> VarKind:
        """Classify one variable of the system."""
        if name not in self.variables:
            raise KeyError(f"'{name}' is not a variable of {self.name!r}")
        if self.variables[name].parameter:
            return VarKind.PARAMETER
        if name in self.input_names:
            return VarKind.INPUT
        if name in self._derivative_names():
            return VarKind.STATE
        return VarKind.ALGEBRAIC

    def unused_names(self) -> List[str]:
        """Non-parameter variables that no equation references."""
        used = self._referenced_names() | self._derivative_names()
        return [n for n, v in self.variables.items() if not v.parameter and n not in used]

    def copy(self, **changes: Any) -> "FlatSystem":
        """Shallow copy with fields replaced, containers duplicated."""
        base = replace(
            self,
            variables=dict(self.variables),
            equations=list(self.equations),
            defaults=dict(self.defaults),
            input_names=list(self.input_names),
            output_names=list(self.output_names),
            observed=dict(self.observed),
        )
        return replace(base, **changes)
