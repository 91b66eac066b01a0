"""
Simulation of flattened DAE systems with CasADi IDAS.

The implicit residual 0 = F(xdot, x, z, u, p, t) is handed to IDAS as a
semi-explicit DAE by treating xdot as additional algebraic variables:

    dx/dt = w_xdot
    0     = F(w_xdot, x, w_z, u, p, t)

Inputs are held constant over each output interval (zero-order hold).
Consistent initial values of (xdot, z) come from the same Newton
rootfinder used by linearization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import casadi as ca
import numpy as np
from beartype import beartype

from acausal.backends.casadi import compile_system
from acausal.flat_model import FlatSystem
from acausal.simplify import simplify
from acausal.structure import check_structure

InputSignal = Union[float, int, Callable[[float], float]]


class SimulationError(RuntimeError):
    """Consistent initialization or integration failed."""


@dataclass
class SimulationResult:
    """
    Result of a simulation.

    Trajectories are accessed by qualified variable name, including
    variables removed by simplification:

    >>> res = simulate(flatten(Loop()), t_final=1.0)  # doctest: +SKIP
    >>> res["P.output.u"]                             # doctest: +SKIP
    """

    # Time vector
    t: np.ndarray

    # Trajectory data: name -> array
    values: Dict[str, np.ndarray] = field(default_factory=dict)

    model_name: str = ""
    state_names: List[str] = field(default_factory=list)

    def __getitem__(self, key: Any) -> np.ndarray:
        """Get trajectory by name or by symbolic variable (m.P.x)."""
        name = key if isinstance(key, str) else getattr(key, "name", None)
        if name == "t":
            return self.t
        if name not in self.values:
            raise KeyError(f"No trajectory named '{key}'. Available: {self.available_names}")
        return self.values[name]

    def __contains__(self, key: str) -> bool:
        return key in self.values

    @property
    def available_names(self) -> List[str]:
        """List all available trajectory names."""
        return list(self.values.keys())

    @property
    def states(self) -> Dict[str, np.ndarray]:
        """State trajectories as a dict."""
        return {name: self.values[name] for name in self.state_names}


def _input_value(signal: InputSignal, t: float) -> float:
    if callable(signal):
        return float(signal(t))
    return float(signal)


@beartype
def simulate(
    system: FlatSystem,
    t_final: float,
    dt: float = 0.01,
    inputs: Optional[Mapping[str, InputSignal]] = None,
    x0: Optional[Mapping[str, float]] = None,
    rtol: float = 1e-8,
    atol: float = 1e-10,
) -> SimulationResult:
    """
    Simulate a flattened system from t = 0 to t_final.

    Parameters
    ----------
    system : FlatSystem
        Flattened system
    t_final : float
        End time
    dt : float
        Output interval (and input hold interval)
    inputs : mapping, optional
        Values or functions of time for free inputs. The system's own
        `input_names` default to their start values when not given.
    x0 : mapping, optional
        Initial values for states (start value overrides)
    rtol, atol : float
        IDAS tolerances

    Returns
    -------
    SimulationResult

    Raises
    ------
    StructuralError
        If the system is not square or structurally singular
    SimulationError
        If initialization or integration fails
    """
    if dt <= 0.0 or t_final <= 0.0:
        raise ValueError("simulate() needs positive t_final and dt")
    inputs = dict(inputs or {})
    for name in inputs:
        if name not in system.variables:
            raise ValueError(f"Input '{name}' is not a variable of {system.name!r}")

    input_names = list(system.input_names) + [n for n in inputs if n not in system.input_names]
    report = [n for n in system.variables if not system.variables[n].parameter]
    report += [n for n in system.observed if n not in report]

    simplified = simplify(system.copy(input_names=input_names), keep=list(x0 or {}))
    check_structure(simplified)
    dae = compile_system(simplified, report)

    values = dict(simplified.defaults)
    values.update({k: float(v) for k, v in (x0 or {}).items()})
    vec = dae.numeric_vectors(values)
    x, z_guess, p = vec["x"], vec["z"], vec["p"]
    default_u = vec["u"]

    def u_at(t: float) -> np.ndarray:
        return np.array(
            [_input_value(inputs[n], t) if n in inputs else default_u[i] for i, n in enumerate(dae.input_names)],
            dtype=float,
        )

    t_grid = np.arange(0.0, t_final + 0.5 * dt, dt)
    try:
        w = dae.solve_consistent(x, u_at(0.0), p, 0.0, guess=np.concatenate([np.zeros(dae.nx), z_guess]))
    except RuntimeError as exc:
        raise SimulationError(f"Consistent initialization of {system.name!r} failed") from exc

    h = dae.output_function()
    nx = dae.nx

    integ = None
    if nx > 0:
        # Local time tau with the interval start as parameter
        tau = ca.SX.sym("tau")
        t_start = ca.SX.sym("t_start")
        w_sym = ca.SX.sym("w", nx + dae.nz)
        res = ca.substitute(
            dae.residual,
            ca.vertcat(dae.xdot, dae.z, dae.t),
            ca.vertcat(w_sym, tau + t_start),
        )
        idas_dae = {
            "x": dae.x,
            "z": w_sym,
            "t": tau,
            "p": ca.vertcat(dae.u, dae.p, t_start),
            "ode": w_sym[:nx],
            "alg": res,
        }
        integ = ca.integrator("sim", "idas", idas_dae, 0.0, dt, {"abstol": atol, "reltol": rtol})

    rows = []
    for k, tk in enumerate(t_grid):
        uk = u_at(tk)
        if k > 0:
            try:
                if integ is not None:
                    u_prev = u_at(t_grid[k - 1])
                    out = integ(x0=x, z0=w, p=np.concatenate([u_prev, p, [t_grid[k - 1]]]))
                    x = np.array(out["xf"]).flatten()
                    w = np.array(out["zf"]).flatten()
                w = dae.solve_consistent(x, uk, p, float(tk), guess=w)
            except RuntimeError as exc:
                raise SimulationError(f"Integration of {system.name!r} failed at t={tk:g}") from exc
        z = w[nx:]
        rows.append(np.array(h(x, z, uk, p, float(tk))).flatten())

    data = np.array(rows).reshape(len(t_grid), len(report))
    return SimulationResult(
        t=t_grid,
        values={name: data[:, i] for i, name in enumerate(report)},
        model_name=system.name,
        state_names=list(dae.state_names),
    )
