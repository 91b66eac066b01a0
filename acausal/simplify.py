"""
Structural simplification of flattened systems.

Connection expansion produces many trivial equations (`a == b` between
connector variables, `0 == 0` from opened loops, `x == 0` for unconnected
flows). This pass removes them before the numeric stages:

1. Tautologies such as `0 == 0` are dropped.
2. Aliases `a == ±b + c`, with c a constant or parameter offset, eliminate
   one of the two variables.
3. Bindings `v == f(parameters)` eliminate `v`; der(v) becomes 0.

Every eliminated variable is recorded in `FlatSystem.observed` as an
expression of the remaining ones, so results can still be reported for it.

Parameters, inputs, analysis outputs and names listed in `keep` are
never eliminated.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from beartype import beartype

from acausal.equations import Equation
from acausal.expr import (
    ZERO,
    Expr,
    ExprKind,
    constant,
    depends_on_time,
    derivative,
    find_derivatives,
    find_variables,
    linear_terms,
    substitute,
    variable,
)
from acausal.flat_model import FlatSystem

# Coefficient tolerance for recognizing aliases
ALIAS_TOL = 1e-12


def _is_tautology(eq: Equation) -> bool:
    if repr(eq.lhs) == repr(eq.rhs):
        return True
    if eq.lhs.kind == ExprKind.CONSTANT and eq.rhs.kind == ExprKind.CONSTANT:
        return float(eq.lhs.value) == float(eq.rhs.value)
    return False


def _derivative_names(equations: List[Equation]) -> Set[str]:
    result: Set[str] = set()
    for eq in equations:
        result |= find_derivatives(eq.lhs) | find_derivatives(eq.rhs)
    return result


def _scaled(coef: float, name: str) -> Expr:
    if abs(coef - 1.0) < ALIAS_TOL:
        return variable(name)
    if abs(coef + 1.0) < ALIAS_TOL:
        return Expr(ExprKind.NEG, (variable(name),))
    return constant(coef) * variable(name)


def _alias(
    eq: Equation, protected: Set[str], parameters: Set[str], ders: Set[str]
) -> Optional[Tuple[str, Expr, Optional[Expr]]]:
    """
    (eliminated, replacement, derivative replacement) for `a == ±b + c`, else None.

    The offset c may be a constant or an affine expression of parameters,
    so a rigid offset such as `flange_b.s == s + L/2` is an alias as well.
    Its derivative is `der(a) == ±der(b)`.
    """
    terms = linear_terms(eq.lhs - eq.rhs)
    if terms is None:
        return None
    coefs, offset = terms
    unknowns = [n for n in coefs if n not in parameters]
    if len(unknowns) != 2:
        return None
    a, b = unknowns
    ca, cb = coefs[a], coefs[b]
    if abs(abs(ca) - 1.0) > ALIAS_TOL or abs(abs(cb) - 1.0) > ALIAS_TOL:
        return None

    candidates = [n for n in (a, b) if n not in protected]
    if not candidates:
        return None
    # Prefer a variable without derivative, then the deeper (connector) name
    candidates.sort(key=lambda n: (n in ders, -n.count(".")))
    elim = candidates[0]
    kept = b if elim == a else a
    c_elim, c_kept = coefs[elim], coefs[kept]
    ratio = -c_kept / c_elim

    replacement = _scaled(ratio, kept)
    shift = _offset(coefs, offset, parameters, -1.0 / c_elim)
    if shift is not None:
        replacement = replacement + shift
    return elim, replacement, _der_scaled(ratio, kept)


def _offset(coefs: Dict[str, float], offset: float, parameters: Set[str], scale: float) -> Optional[Expr]:
    """scale * (offset + parameter terms), or None when there is none."""
    result: Optional[Expr] = None
    if abs(offset) > ALIAS_TOL:
        result = constant(scale * offset)
    for n in sorted(set(coefs) & parameters):
        term = _scaled(scale * coefs[n], n)
        result = term if result is None else result + term
    return result


def _der_scaled(coef: float, name: str) -> Expr:
    if abs(coef - 1.0) < ALIAS_TOL:
        return derivative(name)
    return Expr(ExprKind.NEG, (derivative(name),))


def _binding(
    eq: Equation, protected: Set[str], parameters: Set[str]
) -> Optional[Tuple[str, Expr, Optional[Expr]]]:
    """(eliminated, value expression, ZERO) for `v == f(parameters)`, else None."""

    def is_constant_expr(expr: Expr) -> bool:
        return (
            not find_derivatives(expr)
            and not depends_on_time(expr)
            and find_variables(expr) <= parameters
        )

    for lhs, rhs in ((eq.lhs, eq.rhs), (eq.rhs, eq.lhs)):
        if lhs.kind == ExprKind.VARIABLE and lhs.name not in protected and lhs.name not in parameters:
            if is_constant_expr(rhs):
                return lhs.name, rhs, ZERO

    # Single unknown appearing linearly: c*v + sum(params) + offset == 0
    terms = linear_terms(eq.lhs - eq.rhs)
    if terms is None:
        return None
    coefs, offset = terms
    unknown = [n for n in coefs if n not in parameters]
    if len(unknown) != 1 or unknown[0] in protected:
        return None
    name = unknown[0]
    rest: Expr = constant(offset)
    for n, c in coefs.items():
        if n != name:
            rest = rest + constant(c) * variable(n)
    if not coefs[name]:
        return None
    value = Expr(ExprKind.NEG, (rest,)) / constant(coefs[name])
    if set(coefs) == {name} and abs(offset) < ALIAS_TOL:
        value = ZERO
    return name, value, ZERO


def _apply(
    equations: List[Equation],
    observed: Dict[str, Expr],
    name: str,
    value: Expr,
    der_value: Optional[Expr],
) -> Tuple[List[Equation], Dict[str, Expr]]:
    var_map = {name: value}
    der_map = {name: der_value} if der_value is not None else {}
    new_equations = [
        Equation(lhs=substitute(eq.lhs, var_map, der_map), rhs=substitute(eq.rhs, var_map, der_map))
        for eq in equations
    ]
    new_observed = {k: substitute(v, var_map, der_map) for k, v in observed.items()}
    new_observed[name] = value
    return new_equations, new_observed


@beartype
def simplify(system: FlatSystem, keep: Iterable[str] = ()) -> FlatSystem:
    """
    Remove trivial equations and alias variables.

    Parameters
    ----------
    system : FlatSystem
        Flattened system (not modified)
    keep : iterable of str
        Qualified names that must survive

    Returns
    -------
    FlatSystem
        Simplified copy with eliminated variables in `observed`
    """
    parameters = set(system.parameter_names)
    protected = set(keep) | set(system.input_names) | set(system.output_names) | parameters
    equations = list(system.equations)
    observed = dict(system.observed)
    variables = dict(system.variables)
    defaults = dict(system.defaults)

    changed = True
    while changed:
        changed = False
        ders = _derivative_names(equations)
        for i, eq in enumerate(equations):
            if _is_tautology(eq):
                del equations[i]
                changed = True
                break

            elimination = _alias(eq, protected, parameters, ders) or _binding(eq, protected, parameters)
            if elimination is None:
                continue
            name, value, der_value = elimination
            if name not in variables:
                continue

            # Carry a start value over to the surviving alias
            if value.kind in (ExprKind.VARIABLE, ExprKind.NEG) and name in defaults:
                survivor = value if value.kind == ExprKind.VARIABLE else value.children[0]
                if survivor.kind == ExprKind.VARIABLE and survivor.name not in defaults:
                    sign = 1.0 if value.kind == ExprKind.VARIABLE else -1.0
                    defaults[survivor.name] = sign * defaults[name]

            del equations[i]
            equations, observed = _apply(equations, observed, name, value, der_value)
            del variables[name]
            defaults.pop(name, None)
            changed = True
            break

    return system.copy(variables=variables, equations=equations, defaults=defaults, observed=observed)
