"""
Equation context and connect() for the acausal modeling DSL.

This module provides the infrastructure for collecting equations:
- EquationContext: Thread-local context for collecting equations via side-effects
- @equations decorator: Mark methods as equation blocks
- connect(): Connection statements, with or without an analysis point
"""

from __future__ import annotations

import threading
import warnings
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Union

from beartype import beartype

from acausal.equations import SIGNAL, AnalysisPoint, Connection, ConnectorRef, EquationNode
from acausal.instance import SubmodelProxy

if TYPE_CHECKING:
    from acausal.instance import ModelInstance


class CausalityWarning(UserWarning):
    """A connection through an analysis point looks like it runs backwards."""


# Thread-local storage for equation context stack
_equation_context = threading.local()


class EquationContext:
    """
    Context for collecting equations via side effects.

    When active, expressions using == (like `der(m.x) == m.y`) register
    themselves as equations instead of returning comparison expressions:

        @equations
        def _(m):
            der(m.x) == (m.k * m.input.u - m.x) / m.T
            m.output.u == m.x
    """

    def __init__(self) -> None:
        self.equations: List[EquationNode] = []

    def add_equation(self, eq: EquationNode) -> None:
        """Add an equation or connection marker to the current context."""
        self.equations.append(eq)


def get_current_equation_context() -> Optional[EquationContext]:
    """Get the current equation context, or None if not in an @equations block."""
    stack = getattr(_equation_context, "stack", None)
    if not stack:
        return None
    return stack[-1]


def push_equation_context() -> EquationContext:
    """Push a new equation context onto the stack."""
    if not hasattr(_equation_context, "stack"):
        _equation_context.stack = []
    ctx = EquationContext()
    _equation_context.stack.append(ctx)
    return ctx


def pop_equation_context() -> EquationContext:
    """Pop the current equation context from the stack."""
    return _equation_context.stack.pop()


# Marker attribute for @equations decorated methods
_EQUATIONS_MARKER = "_acausal_equations_method"


def equations(func: Callable) -> Callable:
    """
    Decorator to mark a method as an equations block.

    Methods decorated with @equations use side-effect based equation capture.
    Write equations and connections as statements:

        @equations
        def _(m):
            connect(m.P.output, m.C.input)
            connect(m.C.output, "plant_input", m.P.input)

    Every class in a component's MRO may contribute @equations methods.
    Give each method in one class body a distinct name.
    """
    setattr(func, _EQUATIONS_MARKER, True)
    return func


def is_equations_method(func: Any) -> bool:
    """Check if a function is marked as an @equations method."""
    return getattr(func, _EQUATIONS_MARKER, False)


def execute_equations_method(func: Callable, model_instance: "ModelInstance") -> List[EquationNode]:
    """
    Execute an @equations method and collect equations via context.

    Parameters
    ----------
    func : Callable
        The @equations decorated method
    model_instance : ModelInstance
        The model instance to pass to the method

    Returns
    -------
    List[EquationNode]
        The collected equations, connections and analysis points
    """
    ctx = push_equation_context()
    try:
        func(model_instance)
    finally:
        pop_equation_context()
    return ctx.equations


def _connector_ref(proxy: SubmodelProxy, position: str) -> ConnectorRef:
    if not proxy._instance._metadata.is_connector:
        raise TypeError(
            f"connect() {position} argument '{proxy._name}' is a "
            f"{type(proxy._instance).__name__}, not a connector"
        )
    return ConnectorRef(path=proxy._name, connector=proxy._instance)


def _warn_causality(ref: ConnectorRef, position: str, found: str) -> None:
    warnings.warn(
        f"The {position} argument to a connection with an analysis point was a "
        f"{found} connector ('{ref.path}'). This is supported in order to handle inverse "
        f"models, but may not be what you intended. For a forward (causal) model, swap the "
        f"first and third arguments to connect(). Silence this message with verbose=False.",
        CausalityWarning,
        stacklevel=4,
    )


@beartype
def connect(*args: Union[SubmodelProxy, str, AnalysisPoint], verbose: bool = True) -> None:
    """
    Connect connectors, generating connection equations on flattening.

    Two forms are accepted inside an @equations block:

    - ``connect(a, b, ...)``: potential variables are equated and flow
      variables sum to zero (Modelica connection semantics).
    - ``connect(output, point, input)``: a causal signal connection through
      an analysis point. ``point`` is a name or an unbound AnalysisPoint.
      ``output`` should be a RealOutput and ``input`` a RealInput; the
      reverse raises a CausalityWarning when ``verbose`` is True.

    Raises
    ------
    RuntimeError
        If called outside an @equations block.
    TypeError
        If an argument is not a connector or connectors are incompatible.
    """
    ctx = get_current_equation_context()
    if ctx is None:
        raise RuntimeError("connect() can only be used inside an @equations block")

    if len(args) == 3 and isinstance(args[1], (str, AnalysisPoint)):
        first, point, third = args
        if not isinstance(first, SubmodelProxy) or not isinstance(third, SubmodelProxy):
            raise TypeError("connect(output, point, input) expects connectors around the point")
        output = _connector_ref(first, "first")
        input_ = _connector_ref(third, "third")
        if output.causality() is None or input_.causality() is None:
            raise TypeError(
                f"Analysis points need signal connectors with a '{SIGNAL}' variable, got "
                f"'{output.path}' and '{input_.path}'"
            )
        if verbose and output.causality() == "input":
            _warn_causality(output, "first", "RealInput")
        if verbose and input_.causality() == "output":
            _warn_causality(input_, "third", "RealOutput")
        if isinstance(point, str):
            point = AnalysisPoint(name=point)
        ctx.add_equation(replace(point, output=output, input=input_))
        return

    if len(args) < 2:
        raise TypeError("connect() needs at least two connectors")
    refs = []
    for i, arg in enumerate(args):
        if not isinstance(arg, SubmodelProxy):
            raise TypeError(
                f"connect() argument {i + 1} must be a connector, got {type(arg).__name__}; "
                f"analysis points go between exactly two connectors"
            )
        refs.append(_connector_ref(arg, f"#{i + 1}"))

    names = set(refs[0].variable_names())
    for ref in refs[1:]:
        if set(ref.variable_names()) != names:
            raise TypeError(
                f"Incompatible connectors '{refs[0].path}' and '{ref.path}': "
                f"{sorted(names)} vs {sorted(ref.variable_names())}"
            )
    ctx.add_equation(Connection(connectors=tuple(refs)))
