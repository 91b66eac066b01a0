"""
Linearization of flattened DAE systems.

Provides tools for:
- Solving a consistent operating point of 0 = F(xdot, x, z, u, p, t)
- Linearizing the implicit DAE around it into a state-space model
- Working with the result (frequency response, poles, structural
  minimal realization)

Notes
-----
Around an operating point the residual is expanded to first order:

    0 = F_xdot δxdot + F_x δx + F_z δz + F_u δu

With M = [F_xdot F_z] non-singular (index one), the unknowns
w = (δxdot, δz) follow from

    [A B; Zx Zu] = -M⁻¹ [F_x F_u]

and the outputs y = H(x, z, u) give

    C = H_x + H_z Zx
    D = H_u + H_z Zu
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

import control
import numpy as np
from beartype import beartype
from scipy import linalg

from acausal.backends.casadi import compile_system
from acausal.flat_model import FlatSystem
from acausal.simplify import simplify
from acausal.structure import check_structure

# Maximum residual norm accepted at the operating point
OP_RESIDUAL_TOL = 1e-8


class LinearizationError(RuntimeError):
    """The operating point could not be solved or the DAE is not index one."""


@dataclass(frozen=True, eq=False)
class StateSpace:
    """
    Continuous-time linear state-space model.

        δxdot = A δx + B δu
        δy    = C δx + D δu
    """

    A: np.ndarray
    B: np.ndarray
    C: np.ndarray
    D: np.ndarray
    state_names: Tuple[str, ...] = ()
    input_names: Tuple[str, ...] = ()
    output_names: Tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"StateSpace(nx={self.nx}, nu={self.nu}, ny={self.ny})"

    @property
    def nx(self) -> int:
        return self.A.shape[0]

    @property
    def nu(self) -> int:
        return self.B.shape[1]

    @property
    def ny(self) -> int:
        return self.C.shape[0]

    def __neg__(self) -> "StateSpace":
        """Negated output map: -G(s)."""
        return replace(self, C=-self.C, D=-self.D)

    def to_control(self) -> control.StateSpace:
        """Return the model as a python-control state-space system."""
        return control.ss(self.A, self.B, self.C, self.D)

    def evaluate(self, s: complex) -> np.ndarray:
        """Transfer matrix G(s) = C (sI - A)⁻¹ B + D, shape (ny, nu)."""
        return self.to_control().horner(s)[:, :, 0]

    def freqresp(self, w: Union[Sequence[float], np.ndarray]) -> np.ndarray:
        """Frequency response at angular frequencies w, shape (len(w), ny, nu)."""
        resp = self.to_control().horner(1j * np.atleast_1d(np.asarray(w, dtype=float)))
        return np.moveaxis(resp, -1, 0)

    def poles(self) -> np.ndarray:
        """Eigenvalues of A."""
        if self.nx == 0:
            return np.zeros(0, dtype=complex)
        return self.to_control().poles()

    def sminreal(self, atol: float = 0.0) -> "StateSpace":
        """
        Remove states that are structurally unreachable or unobservable.

        Reachability follows the nonzero pattern of B and A from the
        inputs; observability follows C and A backwards from the outputs.
        Entries with magnitude <= atol count as zero.
        """
        a_nz = np.abs(self.A) > atol
        reachable = set(np.flatnonzero((np.abs(self.B) > atol).any(axis=1)))
        stack = list(reachable)
        while stack:
            j = stack.pop()
            for i in np.flatnonzero(a_nz[:, j]):
                if i not in reachable:
                    reachable.add(i)
                    stack.append(i)

        observable = set(np.flatnonzero((np.abs(self.C) > atol).any(axis=0)))
        stack = list(observable)
        while stack:
            i = stack.pop()
            for j in np.flatnonzero(a_nz[i, :]):
                if j not in observable:
                    observable.add(j)
                    stack.append(j)

        keep = sorted(int(i) for i in reachable & observable)
        return StateSpace(
            A=self.A[np.ix_(keep, keep)],
            B=self.B[keep, :],
            C=self.C[:, keep],
            D=self.D,
            state_names=tuple(self.state_names[i] for i in keep),
            input_names=self.input_names,
            output_names=self.output_names,
        )


@beartype
def operating_values(system: FlatSystem, op: Optional[Mapping[str, float]] = None) -> Dict[str, float]:
    """Defaults of `system` overridden by `op`; unknown names raise ValueError."""
    values = dict(system.defaults)
    for name, value in (op or {}).items():
        if name not in system.variables and name not in system.observed:
            raise ValueError(f"Operating point names unknown variable '{name}'")
        values[name] = float(value)
    return values


@beartype
def linearize(
    system: FlatSystem,
    inputs: Sequence[str],
    outputs: Sequence[str],
    op: Optional[Mapping[str, float]] = None,
    t: float = 0.0,
) -> Tuple[StateSpace, FlatSystem]:
    """
    Linearize a flattened system between named inputs and outputs.

    Parameters
    ----------
    system : FlatSystem
        Flattened system
    inputs : sequence of str
        Qualified names of the variables treated as inputs
    outputs : sequence of str
        Qualified names of the output variables
    op : mapping, optional
        Operating-point overrides for states, inputs and parameters
        (also used as initial guesses for algebraic variables)
    t : float
        Time of the operating point

    Returns
    -------
    (StateSpace, FlatSystem)
        The linear model and the simplified system it was computed from

    Raises
    ------
    ValueError
        If an input or output is not a variable of the system
    StructuralError
        If the system is not square or structurally singular
    LinearizationError
        If the operating point cannot be solved or the DAE is of high index
    """
    for name in inputs:
        if name not in system.variables:
            raise ValueError(f"Linearization input '{name}' is not a variable of {system.name!r}")
    for name in outputs:
        if name not in system.variables and name not in system.observed:
            raise ValueError(f"Linearization output '{name}' is not a variable of {system.name!r}")

    op = dict(op or {})
    values = operating_values(system, op)
    keep = list(inputs) + list(outputs) + [n for n in op if n in system.variables]
    simplified = simplify(
        system.copy(input_names=list(inputs), output_names=list(outputs)),
        keep=keep,
    )
    check_structure(simplified)

    dae = compile_system(simplified, outputs)
    vec = dae.numeric_vectors(values)
    x0, u0, p0 = vec["x"], vec["u"], vec["p"]

    try:
        w = dae.solve_consistent(x0, u0, p0, t, guess=np.concatenate([np.zeros(dae.nx), vec["z"]]))
    except RuntimeError as exc:
        raise LinearizationError(f"Could not solve the operating point of {system.name!r}") from exc
    xdot0, z0 = w[: dae.nx], w[dae.nx :]

    residual = np.array(dae.residual_function()(xdot0, x0, z0, u0, p0, t)).flatten()
    if not np.all(np.isfinite(residual)):
        raise LinearizationError(f"Operating point residual of {system.name!r} is not finite: {residual}")
    if residual.size and np.max(np.abs(residual)) > OP_RESIDUAL_TOL:
        raise LinearizationError(
            f"Operating point residual {np.max(np.abs(residual)):.3g} exceeds {OP_RESIDUAL_TOL:g}"
        )

    jac = dae.jacobian_function()(xdot=xdot0, x=x0, z=z0, u=u0, p=p0, t=t)
    F_xdot, F_x, F_z, F_u, H_x, H_z, H_u = (
        np.array(jac[k], dtype=float).reshape(shape)
        for k, shape in (
            ("F_xdot", (dae.nx + dae.nz, dae.nx)),
            ("F_x", (dae.nx + dae.nz, dae.nx)),
            ("F_z", (dae.nx + dae.nz, dae.nz)),
            ("F_u", (dae.nx + dae.nz, dae.nu)),
            ("H_x", (len(outputs), dae.nx)),
            ("H_z", (len(outputs), dae.nz)),
            ("H_u", (len(outputs), dae.nu)),
        )
    )

    n_w = dae.nx + dae.nz
    M = np.hstack([F_xdot, F_z])
    rhs = np.hstack([F_x, F_u])
    if n_w:
        if np.linalg.matrix_rank(M) < n_w:
            raise LinearizationError(
                f"Jacobian [F_xdot F_z] of {system.name!r} is singular; the DAE is not index one"
            )
        try:
            S = -linalg.solve(M, rhs)
        except linalg.LinAlgError as exc:
            raise LinearizationError(f"Could not solve the linearized DAE of {system.name!r}") from exc
    else:
        S = np.zeros((0, dae.nx + dae.nu))

    nx = dae.nx
    A, B = S[:nx, :nx], S[:nx, nx:]
    Zx, Zu = S[nx:, :nx], S[nx:, nx:]
    C = H_x + H_z @ Zx
    D = H_u + H_z @ Zu

    ss = StateSpace(
        A=A,
        B=B,
        C=C,
        D=D,
        state_names=tuple(dae.state_names),
        input_names=tuple(inputs),
        output_names=tuple(outputs),
    )
    return ss, simplified
