"""
acausal - acausal component modeling with analysis-point linearization.

Components are Python classes with equations written as `lhs == rhs`
inside @equations methods. Components are composed with connect(), and
signal connections may be named analysis points, which the
linearization entry points can break, open or inject disturbances into.

================================================================================
DESIGN PRINCIPLES
================================================================================

1. ACAUSAL: Equations, not assignments. Causality is decided when the
   flattened system is compiled.
2. TYPE SAFETY: Public functions use beartype for runtime type checking.
3. SELF-CONTAINED CORE: Only acausal.backends, acausal.linearization and
   acausal.simulation import CasADi.
4. NON-DESTRUCTIVE ANALYSIS: Analysis transformations build new flat
   systems; model instances are never mutated.

================================================================================

Example
-------
>>> from acausal import connect, equations, model, submodel
>>> from acausal.blocks import FirstOrder, Gain
>>> from acausal.analysis_points import get_sensitivity
>>>
>>> @model
... class Loop:
...     P = submodel(FirstOrder, k=1.0, T=1.0)
...     C = submodel(Gain, k=-1.0)
...
...     @equations
...     def _(m):
...         connect(m.P.output, m.C.input)
...         connect(m.C.output, "plant_input", m.P.input)
>>>
>>> S, _ = get_sensitivity(Loop(), "plant_input")
>>> S.A
array([[-2.]])
"""

from acausal.analysis_points import (
    get_comp_sensitivity,
    get_looptransfer,
    get_sensitivity,
    linearize_between,
    open_loop,
)
from acausal.connections import (
    AnalysisPointNotFoundError,
    ExpansionResult,
    PointMatch,
    expand_connections,
    find_analysis_point,
    find_analysis_points,
    flatten,
)
from acausal.context import CausalityWarning, connect, equations
from acausal.decorators import Real, block, connector, model, submodel, var
from acausal.equations import AnalysisPoint, Connection, ConnectorRef, Equation
from acausal.expr import Expr, ExprKind
from acausal.flat_model import FlatSystem
from acausal.instance import ModelInstance
from acausal.linearization import LinearizationError, StateSpace, linearize
from acausal.operators import (
    abs_,
    atan,
    atan2,
    cos,
    der,
    exp,
    if_then_else,
    log,
    max_,
    min_,
    sin,
    sqrt,
    tan,
    tanh,
)
from acausal.simplify import simplify
from acausal.simulation import SimulationError, SimulationResult, simulate
from acausal.structure import StructuralError, check_structure
from acausal.types import Var
from acausal.variables import DerivativeExpr, SymbolicVar, TimeVar

__version__ = "0.1.0"

__all__ = [
    # Declarations
    "model",
    "block",
    "connector",
    "var",
    "Real",
    "submodel",
    "equations",
    "connect",
    "CausalityWarning",
    # Operators
    "der",
    "sin",
    "cos",
    "tan",
    "atan",
    "atan2",
    "sqrt",
    "exp",
    "log",
    "tanh",
    "abs_",
    "min_",
    "max_",
    "if_then_else",
    # IR
    "Var",
    "Expr",
    "ExprKind",
    "Equation",
    "Connection",
    "ConnectorRef",
    "AnalysisPoint",
    "ModelInstance",
    "SymbolicVar",
    "DerivativeExpr",
    "TimeVar",
    "FlatSystem",
    # Flattening
    "expand_connections",
    "flatten",
    "ExpansionResult",
    "PointMatch",
    "find_analysis_point",
    "find_analysis_points",
    "AnalysisPointNotFoundError",
    "simplify",
    "check_structure",
    "StructuralError",
    # Analysis
    "linearize",
    "StateSpace",
    "LinearizationError",
    "get_sensitivity",
    "get_comp_sensitivity",
    "get_looptransfer",
    "open_loop",
    "linearize_between",
    # Simulation
    "simulate",
    "SimulationResult",
    "SimulationError",
]
