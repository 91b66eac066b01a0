"""
CasADi backend for the acausal modeling DSL.

Compiles a simplified FlatSystem into CasADi SX functions of the implicit
DAE residual

    0 = F(xdot, x, z, u, p, t)

and of named output expressions

    y = H(x, z, u, p, t)

Both the linearization and the simulation drivers work on the compiled
functions; nothing outside this module imports casadi symbols directly
from the flat system.

================================================================================
CasADi SX
================================================================================

All variables are scalars, so SX (scalar symbolic expressions) is used
throughout. Jacobian sparsity is exact and evaluation is cheap for the
small systems produced by component models.

================================================================================
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import casadi as ca
import numpy as np
from beartype import beartype

from acausal.expr import Expr, ExprKind
from acausal.flat_model import FlatSystem

# =============================================================================
# Expression Conversion - Dispatch Table
# =============================================================================


def _make_expr_handlers():
    """Create dispatch table for expression conversion.

    This is the single source of truth for converting Expr to CasADi.
    """
    unary_math = {
        ExprKind.NEG: lambda c, e: -c(e.children[0]),
        ExprKind.SIN: lambda c, e: ca.sin(c(e.children[0])),
        ExprKind.COS: lambda c, e: ca.cos(c(e.children[0])),
        ExprKind.TAN: lambda c, e: ca.tan(c(e.children[0])),
        ExprKind.ATAN: lambda c, e: ca.atan(c(e.children[0])),
        ExprKind.SQRT: lambda c, e: ca.sqrt(c(e.children[0])),
        ExprKind.EXP: lambda c, e: ca.exp(c(e.children[0])),
        ExprKind.LOG: lambda c, e: ca.log(c(e.children[0])),
        ExprKind.ABS: lambda c, e: ca.fabs(c(e.children[0])),
        ExprKind.TANH: lambda c, e: ca.tanh(c(e.children[0])),
    }

    binary_math = {
        ExprKind.ADD: lambda c, e: c(e.children[0]) + c(e.children[1]),
        ExprKind.SUB: lambda c, e: c(e.children[0]) - c(e.children[1]),
        ExprKind.MUL: lambda c, e: c(e.children[0]) * c(e.children[1]),
        ExprKind.DIV: lambda c, e: c(e.children[0]) / c(e.children[1]),
        ExprKind.POW: lambda c, e: c(e.children[0]) ** c(e.children[1]),
        ExprKind.ATAN2: lambda c, e: ca.atan2(c(e.children[0]), c(e.children[1])),
        ExprKind.MIN: lambda c, e: ca.fmin(c(e.children[0]), c(e.children[1])),
        ExprKind.MAX: lambda c, e: ca.fmax(c(e.children[0]), c(e.children[1])),
    }

    relational = {
        ExprKind.LT: lambda c, e: c(e.children[0]) < c(e.children[1]),
        ExprKind.LE: lambda c, e: c(e.children[0]) <= c(e.children[1]),
        ExprKind.GT: lambda c, e: c(e.children[0]) > c(e.children[1]),
        ExprKind.GE: lambda c, e: c(e.children[0]) >= c(e.children[1]),
        ExprKind.EQ: lambda c, e: c(e.children[0]) == c(e.children[1]),
        ExprKind.NE: lambda c, e: c(e.children[0]) != c(e.children[1]),
    }

    ternary = {
        ExprKind.IF_THEN_ELSE: lambda c, e: ca.if_else(c(e.children[0]), c(e.children[1]), c(e.children[2])),
    }

    return {**unary_math, **binary_math, **relational, **ternary}


# Global dispatch table
_EXPR_HANDLERS = _make_expr_handlers()


def _vec(values: List[ca.SX]) -> ca.SX:
    return ca.vertcat(*values) if values else ca.SX(0, 1)


class CasadiDAE:
    """
    Implicit DAE residual and outputs of a simplified FlatSystem.

    Parameters
    ----------
    system : FlatSystem
        Simplified system; its `input_names` are the free inputs
    outputs : sequence of str
        Names for H; any variable of the system or of `system.observed`

    Attributes
    ----------
    state_names, algebraic_names, input_names, param_names : list of str
        Ordering of the x, z, u and p vectors
    xdot, x, z, u, p, t : ca.SX
        Symbolic vectors (t is the absolute time)
    residual : ca.SX
        F stacked over the equations
    outputs : ca.SX
        H stacked over the requested outputs
    """

    def __init__(self, system: FlatSystem, outputs: Sequence[str] = ()):
        self.system = system
        self.state_names = system.state_names
        self.algebraic_names = system.algebraic_names
        self.input_names = list(system.input_names)
        self.param_names = system.parameter_names
        self.output_names = list(outputs)

        self.x_syms = {n: ca.SX.sym(n) for n in self.state_names}
        self.xdot_syms = {n: ca.SX.sym(f"der_{n}") for n in self.state_names}
        self.z_syms = {n: ca.SX.sym(n) for n in self.algebraic_names}
        self.u_syms = {n: ca.SX.sym(n) for n in self.input_names}
        self.p_syms = {n: ca.SX.sym(n) for n in self.param_names}
        self.t = ca.SX.sym("t")

        self.base_syms: Dict[str, ca.SX] = {**self.x_syms, **self.z_syms, **self.u_syms, **self.p_syms}
        self.compiled_observed: Dict[str, ca.SX] = {}

        self.xdot = _vec(list(self.xdot_syms.values()))
        self.x = _vec(list(self.x_syms.values()))
        self.z = _vec(list(self.z_syms.values()))
        self.u = _vec(list(self.u_syms.values()))
        self.p = _vec(list(self.p_syms.values()))

        self.residual = _vec([self.expr_to_casadi(eq.lhs - eq.rhs) for eq in system.equations])
        self.outputs = _vec([self.variable_to_casadi(n) for n in self.output_names])

    @property
    def nx(self) -> int:
        return len(self.state_names)

    @property
    def nz(self) -> int:
        return len(self.algebraic_names)

    @property
    def nu(self) -> int:
        return len(self.input_names)

    def variable_to_casadi(self, name: str) -> ca.SX:
        """Symbol or observed expression for a variable name."""
        if name in self.base_syms:
            return self.base_syms[name]
        if name in self.system.observed:
            if name not in self.compiled_observed:
                self.compiled_observed[name] = self.expr_to_casadi(self.system.observed[name])
            return self.compiled_observed[name]
        raise ValueError(f"Unknown variable: {name}")

    def expr_to_casadi(self, expr: Expr) -> ca.SX:
        """
        Convert an Expr tree to a CasADi expression.

        Handles variable lookup (with observed substitution), derivative
        nodes, constants and time, and everything else via the dispatch
        table.
        """
        if expr.kind == ExprKind.VARIABLE:
            return self.variable_to_casadi(expr.name)

        if expr.kind == ExprKind.DERIVATIVE:
            if expr.name in self.xdot_syms:
                return self.xdot_syms[expr.name]
            raise ValueError(f"Unknown derivative variable: {expr.name}")

        if expr.kind == ExprKind.CONSTANT:
            return ca.SX(expr.value)

        if expr.kind == ExprKind.TIME:
            return self.t

        handler = _EXPR_HANDLERS.get(expr.kind)
        if handler:
            return handler(self.expr_to_casadi, expr)

        raise ValueError(f"Unsupported expression kind: {expr.kind}")

    def numeric_vectors(self, values: Dict[str, float]) -> Dict[str, np.ndarray]:
        """Split a name -> value mapping into x, z, u and p vectors (missing values are 0)."""

        def pick(names: List[str]) -> np.ndarray:
            return np.array([float(values.get(n, 0.0)) for n in names], dtype=float)

        return {
            "x": pick(self.state_names),
            "z": pick(self.algebraic_names),
            "u": pick(self.input_names),
            "p": pick(self.param_names),
        }

    def residual_function(self) -> ca.Function:
        """F(xdot, x, z, u, p, t)."""
        return ca.Function(
            "F",
            [self.xdot, self.x, self.z, self.u, self.p, self.t],
            [self.residual],
            ["xdot", "x", "z", "u", "p", "t"],
            ["res"],
        )

    def output_function(self) -> ca.Function:
        """H(x, z, u, p, t)."""
        return ca.Function(
            "H",
            [self.x, self.z, self.u, self.p, self.t],
            [self.outputs],
            ["x", "z", "u", "p", "t"],
            ["y"],
        )

    def jacobian_function(self) -> ca.Function:
        """Jacobians of F with respect to xdot, x, z, u and of H with respect to x, z, u."""
        F, H = self.residual, self.outputs
        return ca.Function(
            "J",
            [self.xdot, self.x, self.z, self.u, self.p, self.t],
            [
                ca.jacobian(F, self.xdot),
                ca.jacobian(F, self.x),
                ca.jacobian(F, self.z),
                ca.jacobian(F, self.u),
                ca.jacobian(H, self.x),
                ca.jacobian(H, self.z),
                ca.jacobian(H, self.u),
            ],
            ["xdot", "x", "z", "u", "p", "t"],
            ["F_xdot", "F_x", "F_z", "F_u", "H_x", "H_z", "H_u"],
        )

    def solve_consistent(
        self,
        x: np.ndarray,
        u: np.ndarray,
        p: np.ndarray,
        t: float,
        guess: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Solve F(xdot, x, z, u, p, t) = 0 for w = (xdot, z) with Newton's method.

        Returns
        -------
        np.ndarray
            w = [xdot; z]

        Raises
        ------
        RuntimeError
            Propagated from the CasADi rootfinder when Newton fails, or
            raised here when the iteration ends on a non-finite value
        """
        n_w = self.nx + self.nz
        if n_w == 0:
            return np.zeros(0)
        w = ca.SX.sym("w", n_w)
        prm = ca.vertcat(self.x, self.u, self.p, self.t)
        res = ca.substitute(self.residual, ca.vertcat(self.xdot, self.z), w)
        g = ca.Function("g", [w, prm], [res])
        rf = ca.rootfinder("consistent", "newton", g, {"error_on_fail": True})
        w0 = np.zeros(n_w) if guess is None else np.asarray(guess, dtype=float)
        prm_val = np.concatenate([x, u, p, [t]])
        w_sol = np.array(rf(w0, prm_val)).flatten()
        if not np.all(np.isfinite(w_sol)):
            raise RuntimeError(f"Newton iteration for consistent values diverged: {w_sol}")
        return w_sol


@beartype
def compile_system(system: FlatSystem, outputs: Sequence[str] = ()) -> CasadiDAE:
    """Compile a simplified FlatSystem into CasADi functions."""
    return CasadiDAE(system, outputs)
