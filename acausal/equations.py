"""
Equation-level intermediate representation for the acausal modeling DSL.

An @equations method produces a list of nodes of three kinds:

- Equation: lhs == rhs
- Connection: connect(a, b, ...) between physical or signal connectors
- AnalysisPoint: connect(output, name, input) with a named loop-break marker

Connections and analysis points are markers. They are resolved into
ordinary equations by the expansion pass in `acausal.connections`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from acausal.expr import Expr, prefix_expr

# Name of the signal variable carried by RealInput/RealOutput connectors
SIGNAL = "u"


@dataclass(frozen=True, eq=False)
class Equation:
    """
    Represents an equation: lhs == rhs.

    Immutable representation of a model equation. Equations are compared
    by identity; use `repr` to compare their content.
    """

    lhs: Expr
    rhs: Expr

    def __repr__(self) -> str:
        return f"Eq({self.lhs} == {self.rhs})"

    def _prefix_names(self, prefix: str) -> "Equation":
        """Create a new equation with all variable names prefixed."""
        if not prefix:
            return self
        return Equation(lhs=prefix_expr(self.lhs, prefix), rhs=prefix_expr(self.rhs, prefix))


@dataclass(frozen=True)
class ConnectorRef:
    """
    Reference to a connector instance.

    `path` is the dotted path relative to the model whose equations made
    the connection ('P.output' or, for an outside connector, 'err_input').
    Equality only looks at the path.
    """

    path: str
    connector: Any = field(default=None, compare=False, repr=False)

    @property
    def depth(self) -> int:
        return self.path.count(".") + 1

    @property
    def is_outside(self) -> bool:
        """True for a connector of the declaring model itself."""
        return self.depth == 1

    def variable(self, local: str = SIGNAL) -> str:
        """Dotted name of one of the connector's variables."""
        return f"{self.path}.{local}"

    def variable_names(self) -> Tuple[str, ...]:
        return tuple(self.connector._metadata.variables)

    def flow_names(self) -> Tuple[str, ...]:
        return tuple(n for n, v in self.connector._metadata.variables.items() if v.flow)

    def potential_names(self) -> Tuple[str, ...]:
        return tuple(
            n for n, v in self.connector._metadata.variables.items() if not (v.flow or v.parameter)
        )

    def causality(self) -> Optional[str]:
        """'input' or 'output' for signal connectors, None for physical ones."""
        signal = self.connector._metadata.variables.get(SIGNAL)
        if signal is None:
            return None
        if signal.input:
            return "input"
        if signal.output:
            return "output"
        return None


@dataclass(frozen=True, eq=False)
class Connection:
    """Marker for connect(a, b, ...) between compatible connectors."""

    connectors: Tuple[ConnectorRef, ...]

    def __repr__(self) -> str:
        return f"connect({', '.join(c.path for c in self.connectors)})"


@dataclass(frozen=True)
class AnalysisPoint:
    """
    Named marker for a location where a signal loop may be broken.

    `output` references the upstream connector (a RealOutput, the producer)
    and `input` the downstream connector (a RealInput, the consumer). Two
    points are equal when they reference the same (output, input) pair,
    whatever their names.

    An AnalysisPoint created from a name alone is unbound; connect() returns
    a bound copy that takes part in the model's equations.
    """

    name: str = field(compare=False)
    output: Optional[ConnectorRef] = None
    input: Optional[ConnectorRef] = None

    def __repr__(self) -> str:
        if self.output is None or self.input is None:
            return f"AnalysisPoint({self.name!r})"
        return f"AnalysisPoint({self.name!r}: {self.output.path} -> {self.input.path})"

    @property
    def is_bound(self) -> bool:
        return self.output is not None and self.input is not None

    def output_signal(self) -> str:
        """Name of the upstream signal variable, local to the declaring model."""
        return self.output.variable()

    def input_signal(self) -> str:
        """Name of the downstream signal variable, local to the declaring model."""
        return self.input.variable()


EquationNode = Union[Equation, Connection, AnalysisPoint]
