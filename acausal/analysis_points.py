"""
Analysis points: named loop-break markers and the transfer functions
that can be measured at them.

An analysis point is declared with a three-argument connect():

    @equations
    def _(m):
        connect(m.P.output, m.C.input)
        connect(m.C.output, "plant_input", m.P.input)

Flattened normally, the point is just the signal tie
`P.input.u == C.output.u`. The functions in this module flatten the
model with selected points rewritten and linearize the result:

================  ================================  ==============  ==============
Function          Point becomes                     Input           Output
================  ================================  ==============  ==============
get_sensitivity   in.u == out.u + d                 d               in.u
get_comp_sens.    in.u + d == out.u                 d               out.u
get_looptransfer  (removed)                         in.u            out.u
open_loop         in.u == u, y == out.u             u               y
loop openings     in.u == 0
================  ================================  ==============  ==============

`out` is the upstream RealOutput and `in` the downstream RealInput. The
injected variables are named `d_<point>`, `u_<point>` and `y_<point>`
and live in the namespace of the model that declared the point.

Points in subsystems are addressed by their qualified name: point
`plant_input` declared in subsystem `inner` is `"inner_plant_input"`.

A point cannot be analyzed and opened in the same call. Naming it in
both `names` and `loop_openings` raises ValueError; the analyzed point
does not silently take precedence.

Sign convention
---------------
The loop transfer is returned exactly as measured around the loop, so
it includes the controller's sign. For a negative-feedback loop built
with a gain of -1 it equals P*C; the conventional loop gain is its
negation (use `-L`).
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from beartype import beartype

from acausal.connections import (
    AnalysisPointNotFoundError,
    PointMatch,
    expand_connections,
    find_analysis_point,
    find_analysis_points,
    qualified_point_name,
    qualified_variable_name,
)
from acausal.equations import AnalysisPoint, Equation
from acausal.expr import ZERO, variable
from acausal.flat_model import FlatSystem
from acausal.instance import ModelInstance
from acausal.linearization import StateSpace, linearize
from acausal.types import Var
from acausal.variables import SymbolicVar

__all__ = [
    "AnalysisPointNotFoundError",
    "find_analysis_point",
    "find_analysis_points",
    "get_comp_sensitivity",
    "get_looptransfer",
    "get_sensitivity",
    "linearize_between",
    "open_loop",
]

PointName = Union[str, AnalysisPoint]
PointNames = Union[str, AnalysisPoint, Sequence[PointName]]
SystemModifier = Callable[[FlatSystem], FlatSystem]
Replacement = Tuple[List[Equation], Dict[str, Var]]


def _as_list(names: PointNames) -> List[str]:
    """Normalize one name, one point or a sequence of them to a list of names."""
    if isinstance(names, (str, AnalysisPoint)):
        names = [names]
    return [n.name if isinstance(n, AnalysisPoint) else n for n in names]


def _resolve(sys: ModelInstance, names: Sequence[str]) -> List[PointMatch]:
    result = []
    for name in names:
        match = find_analysis_point(sys, name)
        if match is None:
            available = sorted({m.qualified_name for m in find_analysis_points(sys)})
            raise AnalysisPointNotFoundError(
                f"Analysis point '{name}' not found in '{sys.name}'. Available: {available}"
            )
        result.append(match)
    return result


def _signals(point: AnalysisPoint):
    """Local (output.u, input.u) expressions of a bound point."""
    return variable(point.output_signal()), variable(point.input_signal())


def _injected() -> Var:
    return Var(default=0.0)


def _opening(point: AnalysisPoint) -> Replacement:
    _, in_u = _signals(point)
    return [Equation(lhs=in_u, rhs=ZERO)], {}


def _expand(
    sys: ModelInstance,
    replacements: Dict[str, Callable[[AnalysisPoint], Replacement]],
    system_modifier: Optional[SystemModifier],
) -> Tuple[FlatSystem, Dict[str, PointMatch]]:
    """Flatten with the points named in `replacements` rewritten."""

    def find(point: AnalysisPoint, namespace: Tuple[str, ...]) -> bool:
        return qualified_point_name(point, namespace) in replacements

    def replace(point: AnalysisPoint, namespace: Tuple[str, ...]) -> Replacement:
        return replacements[qualified_point_name(point, namespace)](point)

    result = expand_connections(sys, find=find, replace=replace, require_match=bool(replacements))
    system = result.system
    if system_modifier is not None:
        system = system_modifier(system)
        if not isinstance(system, FlatSystem):
            raise TypeError(f"system_modifier must return a FlatSystem, got {type(system).__name__}")
    return system, {m.qualified_name: m for m in result.matches}


def _check_disjoint(targets: Sequence[str], openings: Sequence[str]) -> None:
    overlap = sorted(set(targets) & set(openings))
    if overlap:
        raise ValueError(f"Analysis points {overlap} cannot be both analyzed and opened")


def _signal_name(match: PointMatch, which: str) -> str:
    point = match.point
    local = point.output_signal() if which == "output" else point.input_signal()
    return qualified_variable_name(local, match.namespace)


def _sensitivity_like(
    sys: ModelInstance,
    names: PointNames,
    loop_openings: Sequence[PointName],
    system_modifier: Optional[SystemModifier],
    op: Optional[Mapping[str, float]],
    build: Callable[[AnalysisPoint], Replacement],
    input_of: Callable[[PointMatch], str],
    output_of: Callable[[PointMatch], str],
) -> Tuple[StateSpace, FlatSystem]:
    targets = [m.qualified_name for m in _resolve(sys, _as_list(names))]
    openings = [m.qualified_name for m in _resolve(sys, _as_list(loop_openings))] if loop_openings else []
    _check_disjoint(targets, openings)

    replacements: Dict[str, Callable[[AnalysisPoint], Replacement]] = {n: _opening for n in openings}
    replacements.update({n: build for n in targets})
    system, matches = _expand(sys, replacements, system_modifier)

    inputs = [input_of(matches[n]) for n in targets]
    outputs = [output_of(matches[n]) for n in targets]
    system = system.copy(input_names=inputs, output_names=outputs)
    return linearize(system, inputs, outputs, op=op)


@beartype
def get_sensitivity(
    sys: ModelInstance,
    names: PointNames,
    loop_openings: Sequence[PointName] = (),
    system_modifier: Optional[SystemModifier] = None,
    op: Optional[Mapping[str, float]] = None,
) -> Tuple[StateSpace, FlatSystem]:
    """
    Sensitivity function S = (I - L)⁻¹ at the named point(s).

    A disturbance `d_<point>` is added to the signal entering the
    downstream input; the output is that input's value.

    Parameters
    ----------
    sys : ModelInstance
        Root of the model hierarchy
    names : str, AnalysisPoint or sequence
        Point(s) to analyze; several points give a MIMO result ordered
        as requested
    loop_openings : sequence
        Other points to break (downstream input set to zero)
    system_modifier : callable, optional
        Applied to the expanded FlatSystem before linearization
    op : mapping, optional
        Operating-point overrides by qualified name

    Returns
    -------
    (StateSpace, FlatSystem)

    Raises
    ------
    AnalysisPointNotFoundError
        If a name matches no point
    ValueError
        If a qualified name matches two distinct points, or a point is
        both analyzed and listed in `loop_openings`. Such a request is
        rejected instead of letting the analyzed point override the
        opening.
    """

    def build(point: AnalysisPoint) -> Replacement:
        out_u, in_u = _signals(point)
        d = f"d_{point.name}"
        return [Equation(lhs=in_u, rhs=out_u + variable(d))], {d: _injected()}

    return _sensitivity_like(
        sys,
        names,
        loop_openings,
        system_modifier,
        op,
        build,
        input_of=lambda m: m.variables[0],
        output_of=lambda m: _signal_name(m, "input"),
    )


@beartype
def get_comp_sensitivity(
    sys: ModelInstance,
    names: PointNames,
    loop_openings: Sequence[PointName] = (),
    system_modifier: Optional[SystemModifier] = None,
    op: Optional[Mapping[str, float]] = None,
) -> Tuple[StateSpace, FlatSystem]:
    """
    Complementary sensitivity T = -(I - L)⁻¹ L at the named point(s).

    The disturbance `d_<point>` is subtracted from the downstream input
    side (`in.u + d == out.u`) and the upstream output is measured, so
    that S + T = I. Arguments and errors as for get_sensitivity().
    """

    def build(point: AnalysisPoint) -> Replacement:
        out_u, in_u = _signals(point)
        d = f"d_{point.name}"
        return [Equation(lhs=in_u + variable(d), rhs=out_u)], {d: _injected()}

    return _sensitivity_like(
        sys,
        names,
        loop_openings,
        system_modifier,
        op,
        build,
        input_of=lambda m: m.variables[0],
        output_of=lambda m: _signal_name(m, "output"),
    )


@beartype
def get_looptransfer(
    sys: ModelInstance,
    names: PointNames,
    loop_openings: Sequence[PointName] = (),
    system_modifier: Optional[SystemModifier] = None,
    op: Optional[Mapping[str, float]] = None,
) -> Tuple[StateSpace, FlatSystem]:
    """
    Loop transfer L at the named point(s).

    The point is cut: the downstream input becomes the linearization
    input and the upstream output the linearization output. The result
    carries the controller's sign (see module docs). Arguments and
    errors as for get_sensitivity().
    """

    def build(point: AnalysisPoint) -> Replacement:
        return [Equation(lhs=ZERO, rhs=ZERO)], {}

    return _sensitivity_like(
        sys,
        names,
        loop_openings,
        system_modifier,
        op,
        build,
        input_of=lambda m: _signal_name(m, "input"),
        output_of=lambda m: _signal_name(m, "output"),
    )


@beartype
def open_loop(
    sys: ModelInstance,
    name: PointName,
    ground_input: bool = False,
    system_modifier: Optional[SystemModifier] = None,
) -> FlatSystem:
    """
    Break the loop at one point and expose both sides as ports.

    The downstream input is driven by a new input `u_<point>` (or tied
    to zero with `ground_input=True`) and the upstream output is exposed
    as `y_<point>`. The returned system lists the new ports in its
    `input_names` and `output_names`, ready for linearize().

    Raises
    ------
    AnalysisPointNotFoundError
        If the name matches no point
    """
    (match,) = _resolve(sys, _as_list(name))

    def build(point: AnalysisPoint) -> Replacement:
        out_u, in_u = _signals(point)
        u, y = f"u_{point.name}", f"y_{point.name}"
        measure = Equation(lhs=variable(y), rhs=out_u)
        if ground_input:
            return [Equation(lhs=in_u, rhs=ZERO), measure], {y: _injected()}
        return [Equation(lhs=in_u, rhs=variable(u)), measure], {u: _injected(), y: _injected()}

    system, matches = _expand(sys, {match.qualified_name: build}, system_modifier)
    injected = matches[match.qualified_name].variables
    y_name = qualified_variable_name(f"y_{match.point.name}", match.namespace)
    return system.copy(
        input_names=[n for n in injected if n != y_name],
        output_names=[y_name],
    )


@beartype
def linearize_between(
    sys: ModelInstance,
    input_names: PointNames,
    output_names: Union[PointNames, SymbolicVar, Sequence[Union[PointName, SymbolicVar]]],
    loop_openings: Sequence[PointName] = (),
    system_modifier: Optional[SystemModifier] = None,
    op: Optional[Mapping[str, float]] = None,
) -> Tuple[StateSpace, FlatSystem]:
    """
    Linearize from input point(s) to output point(s) or variables.

    At an input point the downstream input receives `out.u + u_<point>`
    (just `u_<point>` if the point is also a loop opening). At an output
    point `y_<point> == out.u` is exposed while the signal still flows
    (`in.u == out.u`, or `in.u == 0` if the point is a loop opening).
    Outputs may also be symbolic variables taken from `sys`.

    Returns
    -------
    (StateSpace, FlatSystem)

    Raises
    ------
    AnalysisPointNotFoundError
        If a name matches no point
    """
    if isinstance(output_names, (str, AnalysisPoint, SymbolicVar)):
        output_names = [output_names]
    in_points = _resolve(sys, _as_list(input_names))
    out_specs = list(output_names)
    out_points = _resolve(sys, [_as_list(o)[0] for o in out_specs if not isinstance(o, SymbolicVar)])
    openings = {m.qualified_name for m in _resolve(sys, _as_list(loop_openings))} if loop_openings else set()

    in_set = {m.qualified_name for m in in_points}
    out_set = {m.qualified_name for m in out_points}

    def make_build(qualified: str) -> Callable[[AnalysisPoint], Replacement]:
        is_input = qualified in in_set
        is_output = qualified in out_set
        is_open = qualified in openings

        def build(point: AnalysisPoint) -> Replacement:
            out_u, in_u = _signals(point)
            equations: List[Equation] = []
            new_vars: Dict[str, Var] = {}
            if is_input:
                u = f"u_{point.name}"
                new_vars[u] = _injected()
                rhs = variable(u) if is_open else out_u + variable(u)
                equations.append(Equation(lhs=in_u, rhs=rhs))
            elif is_open:
                equations.append(Equation(lhs=in_u, rhs=ZERO))
            else:
                equations.append(Equation(lhs=in_u, rhs=out_u))
            if is_output:
                y = f"y_{point.name}"
                new_vars[y] = _injected()
                equations.append(Equation(lhs=variable(y), rhs=out_u))
            return equations, new_vars

        return build

    replacements = {q: make_build(q) for q in in_set | out_set | openings}
    system, matches = _expand(sys, replacements, system_modifier)

    def injected_name(match: PointMatch, prefix: str) -> str:
        return qualified_variable_name(f"{prefix}_{match.point.name}", match.namespace)

    inputs = [injected_name(matches[m.qualified_name], "u") for m in in_points]
    outputs: List[str] = []
    out_iter = iter(out_points)
    for spec in out_specs:
        if isinstance(spec, SymbolicVar):
            outputs.append(spec.name)
        else:
            outputs.append(injected_name(matches[next(out_iter).qualified_name], "y"))

    system = system.copy(input_names=inputs, output_names=outputs)
    return linearize(system, inputs, outputs, op=op)
