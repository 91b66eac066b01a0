"""
Connection expansion and flattening for the acausal modeling DSL.

Walks a model instance hierarchy depth-first and turns it into a single
FlatSystem:

- ordinary equations are qualified with the enclosing namespace
- connect(a, b, ...) statements become Modelica connection-set equations
  (potentials equal, flows sum to zero)
- analysis points are either replaced through a caller-supplied callback
  or reduced to the plain signal tie `input.u == output.u`

Names
-----
The root instance's name is not part of the namespace. A variable in
subsystem `inner` declared locally as `P.input.u` is qualified as
`inner.P.input.u`. An analysis point `plant_input` declared in `inner`
is looked up as `inner_plant_input`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from beartype import beartype

from acausal.equations import AnalysisPoint, Connection, ConnectorRef, Equation
from acausal.expr import ZERO, Expr, ExprKind, variable
from acausal.flat_model import FlatSystem
from acausal.instance import ModelInstance
from acausal.types import Var

Namespace = Tuple[str, ...]
FindFn = Callable[[AnalysisPoint, Namespace], bool]
ReplaceFn = Callable[[AnalysisPoint, Namespace], Tuple[List[Equation], Dict[str, Var]]]


class AnalysisPointNotFoundError(LookupError):
    """No analysis point in the model matched the requested name."""


@beartype
def qualified_point_name(point: AnalysisPoint, namespace: Namespace) -> str:
    """Lookup name of an analysis point declared in `namespace`."""
    return "_".join(namespace + (point.name,))


@beartype
def qualified_variable_name(local: str, namespace: Namespace) -> str:
    """Flat name of a variable declared with `local` name in `namespace`."""
    return ".".join(namespace + (local,))


@dataclass(frozen=True)
class PointMatch:
    """One analysis point found (and possibly replaced) during expansion."""

    point: AnalysisPoint
    namespace: Namespace
    qualified_name: str
    variables: Tuple[str, ...] = ()  # qualified names of injected variables


@dataclass
class ExpansionResult:
    """Output of expand_connections()."""

    system: FlatSystem
    matches: List[PointMatch] = field(default_factory=list)


# Connection-set node: (qualified connector path, is outside connector)
_Node = Tuple[str, bool]


class _ConnectionSets:
    """Union-find over connector nodes, preserving first-seen order."""

    def __init__(self) -> None:
        self._parent: Dict[_Node, _Node] = {}
        self.refs: Dict[_Node, ConnectorRef] = {}

    def add(self, node: _Node, ref: ConnectorRef) -> None:
        if node not in self._parent:
            self._parent[node] = node
            self.refs[node] = ref

    def find(self, node: _Node) -> _Node:
        while self._parent[node] != node:
            self._parent[node] = self._parent[self._parent[node]]
            node = self._parent[node]
        return node

    def union(self, a: _Node, b: _Node) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self._parent[rb] = ra

    def groups(self) -> List[List[_Node]]:
        result: Dict[_Node, List[_Node]] = {}
        for node in self._parent:
            result.setdefault(self.find(node), []).append(node)
        return list(result.values())


class _Expander:
    """Accumulates the flat system while walking the hierarchy."""

    def __init__(self, find: Optional[FindFn], replace: Optional[ReplaceFn]):
        self.find = find
        self.replace = replace
        self.variables: Dict[str, Var] = {}
        self.defaults: Dict[str, float] = {}
        self.equations: List[Equation] = []
        self.matches: List[PointMatch] = []
        self.sets = _ConnectionSets()
        self.flow_connectors: Dict[str, ConnectorRef] = {}

    def add_variable(self, name: str, v: Var) -> None:
        if name in self.variables:
            raise ValueError(f"Duplicate variable '{name}' while flattening")
        self.variables[name] = v.renamed(name)
        value = v.get_initial_value()
        if value is not None:
            self.defaults[name] = value

    def walk(self, instance: ModelInstance, namespace: Namespace) -> None:
        prefix = ".".join(namespace)

        for local, v in instance.declared_variables().items():
            self.add_variable(qualified_variable_name(local, namespace), v)

        md = instance._metadata
        if md.is_connector and any(v.flow for v in md.variables.values()):
            self.flow_connectors[prefix] = ConnectorRef(path=prefix, connector=instance)

        for node in instance.get_equations():
            if isinstance(node, Equation):
                self.equations.append(node._prefix_names(prefix))
            elif isinstance(node, Connection):
                self._add_connection(node, namespace)
            elif isinstance(node, AnalysisPoint):
                self._add_analysis_point(node, namespace)
            else:
                raise TypeError(f"Unexpected equation node {node!r} in '{instance.name}'")

        for name, child in instance._submodels.items():
            self.walk(child, namespace + (name,))

    def _add_connection(self, conn: Connection, namespace: Namespace) -> None:
        nodes = []
        for ref in conn.connectors:
            path = qualified_variable_name(ref.path, namespace)
            node = (path, ref.is_outside)
            self.sets.add(node, ConnectorRef(path=path, connector=ref.connector))
            nodes.append(node)
        for node in nodes[1:]:
            self.sets.union(nodes[0], node)

    def _add_analysis_point(self, point: AnalysisPoint, namespace: Namespace) -> None:
        prefix = ".".join(namespace)
        qualified = qualified_point_name(point, namespace)
        if self.find is not None and self.find(point, namespace):
            if self.replace is None:
                raise ValueError("expand_connections() needs `replace` together with `find`")
            equations, new_variables = self.replace(point, namespace)
            injected = []
            for local, v in new_variables.items():
                name = qualified_variable_name(local, namespace)
                self.add_variable(name, v)
                injected.append(name)
            self.equations.extend(eq._prefix_names(prefix) for eq in equations)
            self.matches.append(PointMatch(point, namespace, qualified, tuple(injected)))
        else:
            tie = Equation(lhs=variable(point.input_signal()), rhs=variable(point.output_signal()))
            self.equations.append(tie._prefix_names(prefix))

    def connection_equations(self) -> List[Equation]:
        """Potential equalities, flow balances and zero flows of unconnected connectors."""
        result: List[Equation] = []
        connected_inside = set()
        for group in self.sets.groups():
            refs = [self.sets.refs[node] for node in group]
            for node in group:
                if not node[1]:
                    connected_inside.add(node[0])

            for pname in refs[0].potential_names():
                for prev, ref in zip(refs, refs[1:]):
                    result.append(Equation(lhs=variable(prev.variable(pname)), rhs=variable(ref.variable(pname))))

            for fname in refs[0].flow_names():
                total: Optional[Expr] = None
                for node, ref in zip(group, refs):
                    term = variable(ref.variable(fname))
                    outside = node[1]
                    if total is None:
                        total = Expr(ExprKind.NEG, (term,)) if outside else term
                    elif outside:
                        total = total - term
                    else:
                        total = total + term
                result.append(Equation(lhs=total, rhs=ZERO))

        for path, ref in self.flow_connectors.items():
            if path in connected_inside:
                continue
            for fname in ref.flow_names():
                result.append(Equation(lhs=variable(ref.variable(fname)), rhs=ZERO))
        return result


@beartype
def expand_connections(
    instance: ModelInstance,
    find: Optional[FindFn] = None,
    replace: Optional[ReplaceFn] = None,
    require_match: bool = True,
) -> ExpansionResult:
    """
    Flatten `instance`, replacing the analysis points selected by `find`.

    Parameters
    ----------
    instance : ModelInstance
        Root of the model hierarchy
    find : callable, optional
        find(point, namespace) -> bool selects points to replace
    replace : callable, optional
        replace(point, namespace) -> (equations, new_variables), both in the
        local names of the model that declared the point. Each is qualified
        with the namespace once.
    require_match : bool
        Raise if `find` matched nothing

    Returns
    -------
    ExpansionResult
        The flat system and one PointMatch per replaced point, in
        traversal order

    Raises
    ------
    AnalysisPointNotFoundError
        If require_match is set and no point matched
    """
    expander = _Expander(find, replace)
    expander.walk(instance, ())

    if require_match and not expander.matches:
        raise AnalysisPointNotFoundError(f"No analysis point in '{instance.name}' matched the request")

    for match in expander.matches:
        for name in match.variables:
            expander.defaults.setdefault(name, 0.0)
    system = FlatSystem(
        name=instance.name,
        variables=expander.variables,
        equations=expander.equations + expander.connection_equations(),
        defaults=expander.defaults,
    )
    return ExpansionResult(system=system, matches=expander.matches)


@beartype
def flatten(instance: ModelInstance) -> FlatSystem:
    """Flatten a model; every analysis point becomes a plain signal tie."""
    return expand_connections(instance, find=None, replace=None, require_match=False).system


def _collect_points(instance: ModelInstance, namespace: Namespace, out: List[PointMatch]) -> None:
    for node in instance.get_equations():
        if isinstance(node, AnalysisPoint):
            out.append(PointMatch(node, namespace, qualified_point_name(node, namespace)))
    for name, child in instance._submodels.items():
        _collect_points(child, namespace + (name,), out)


@beartype
def find_analysis_points(instance: ModelInstance) -> List[PointMatch]:
    """Every analysis point in the hierarchy with its qualified name, in traversal order."""
    out: List[PointMatch] = []
    _collect_points(instance, (), out)
    return out


@beartype
def find_analysis_point(instance: ModelInstance, name: str) -> Optional[PointMatch]:
    """
    Look up one analysis point by qualified name.

    Returns None if no point has that name.

    Raises
    ------
    ValueError
        If two distinct points share the qualified name
    """
    found: List[PointMatch] = []
    for match in find_analysis_points(instance):
        if match.qualified_name != name:
            continue
        if any(m.point == match.point and m.namespace == match.namespace for m in found):
            continue
        found.append(match)
    if len(found) > 1:
        raise ValueError(
            f"Analysis point name '{name}' is ambiguous: "
            + ", ".join(repr(m.point) for m in found)
        )
    return found[0] if found else None
