"""
Structural analysis of flattened systems.

Before anything numeric happens, the equation system is checked for
structural regularity:

1. Build incidence structure (bipartite graph: equations <-> unknowns),
   where the unknowns are der(x) for each state x and every algebraic
   variable
2. Find a maximum matching using augmenting paths
3. Report equations or unknowns left unmatched

A square system with a perfect matching is structurally non-singular
and index one at most, which is all the Jacobian-based linearization
and the IDAS simulation need.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set

from beartype import beartype

from acausal.equations import Equation
from acausal.expr import Expr, ExprKind
from acausal.flat_model import FlatSystem


class StructuralError(ValueError):
    """The equation system is not square or is structurally singular."""


def _incidence_names(expr: Expr) -> Set[str]:
    """Variables and derivatives (as 'der_<name>') in an expression."""
    result: Set[str] = set()
    if expr.kind == ExprKind.VARIABLE and expr.name:
        result.add(expr.name)
    elif expr.kind == ExprKind.DERIVATIVE and expr.name:
        result.add(f"der_{expr.name}")
    for child in expr.children:
        result.update(_incidence_names(child))
    return result


@dataclass
class Matching:
    """Result of matching equations to unknowns."""

    unknowns: List[str]
    equation_to_unknown: Dict[int, str] = field(default_factory=dict)
    unmatched_equations: List[int] = field(default_factory=list)
    unmatched_unknowns: List[str] = field(default_factory=list)

    @property
    def is_perfect(self) -> bool:
        return not self.unmatched_equations and not self.unmatched_unknowns


@beartype
def match_equations(equations: Sequence[Equation], unknowns: Sequence[str]) -> Matching:
    """Maximum matching of equations to unknowns using augmenting paths."""
    unknown_to_idx = {u: i for i, u in enumerate(unknowns)}
    incidence: List[List[int]] = []
    for eq in equations:
        names = _incidence_names(eq.lhs) | _incidence_names(eq.rhs)
        incidence.append(sorted(unknown_to_idx[n] for n in names if n in unknown_to_idx))

    n_eq = len(equations)
    matching: List[int] = [-1] * n_eq
    var_matched: List[int] = [-1] * len(unknowns)

    def find_augmenting_path(eq: int, visited: Set[int]) -> bool:
        """Try to find an augmenting path starting from equation eq."""
        for var in incidence[eq]:
            if var in visited:
                continue
            visited.add(var)
            if var_matched[var] == -1 or find_augmenting_path(var_matched[var], visited):
                matching[eq] = var
                var_matched[var] = eq
                return True
        return False

    for eq in range(n_eq):
        find_augmenting_path(eq, set())

    return Matching(
        unknowns=list(unknowns),
        equation_to_unknown={i: unknowns[m] for i, m in enumerate(matching) if m != -1},
        unmatched_equations=[i for i in range(n_eq) if matching[i] == -1],
        unmatched_unknowns=[unknowns[i] for i, e in enumerate(var_matched) if e == -1],
    )


@beartype
def check_structure(system: FlatSystem) -> Matching:
    """
    Check that `system` is square and structurally non-singular.

    The unknowns are der(x) for every state and every algebraic variable;
    inputs and parameters are known.

    Raises
    ------
    StructuralError
        Naming the unmatched equations and unknowns
    """
    unknowns = [f"der_{x}" for x in system.state_names] + system.algebraic_names
    n_eq = len(system.equations)
    result = match_equations(system.equations, unknowns)

    if n_eq != len(unknowns) or not result.is_perfect:
        lines = [f"System '{system.name}' has {n_eq} equations and {len(unknowns)} unknowns"]
        if result.unmatched_equations:
            lines.append("Unmatched equations:")
            lines.extend(f"  {system.equations[i]!r}" for i in result.unmatched_equations)
        if result.unmatched_unknowns:
            lines.append("Unmatched unknowns:")
            lines.extend(f"  {u}" for u in result.unmatched_unknowns)
        raise StructuralError("\n".join(lines))
    return result
