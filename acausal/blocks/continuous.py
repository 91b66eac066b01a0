"""
Continuous linear blocks.

All blocks read `input.u` and write `output.u`. Transfer functions:

- Integrator:  k / s
- Derivative:  k s / (T s + 1)   (filtered derivative)
- FirstOrder:  k / (T s + 1)
- SecondOrder: k w² / (s² + 2 d w s + w²)
- PID:         k (1 + 1/(Ti s) + (s/Td) / (s/Nd + 1))
"""

from functools import lru_cache
from typing import Any

from beartype import beartype

from acausal.blocks.interfaces import SISO, RealInput, RealOutput
from acausal.blocks.math import Add, Add3, Gain
from acausal.context import connect, equations
from acausal.decorators import block, model, submodel, var
from acausal.operators import der


@block
class Integrator(SISO):
    """Outputs y = ∫ k u dt."""

    k = var(1.0, parameter=True, desc="Gain")
    x = var(0.0, protected=True, desc="Integrator state")

    @equations
    def _(m):
        der(m.x) == m.k * m.input.u
        m.output.u == m.x


@block
class Derivative(SISO):
    """
    Approximate derivative of the input.

    The filter time constant T bounds the high-frequency gain at k/T.
    """

    k = var(1.0, parameter=True, desc="Gain")
    T = var(10.0, parameter=True, desc="Filter time constant")
    x = var(0.0, protected=True, desc="Filter state")

    @equations
    def _(m):
        der(m.x) == (m.input.u - m.x) / m.T
        m.output.u == (m.k / m.T) * (m.input.u - m.x)


@block
class FirstOrder(SISO):
    """First order filter with gain k and time constant T."""

    k = var(1.0, parameter=True, desc="Gain")
    T = var(1.0, parameter=True, desc="Time constant")
    x = var(0.0, protected=True)

    @equations
    def _(m):
        der(m.x) == (m.k * m.input.u - m.x) / m.T
        m.output.u == m.x


@block
class SecondOrder(SISO):
    """
    Second order filter with gain k, bandwidth w and relative damping d.

    d = 1/√2 is a Butterworth filter of order 2 (maximally flat).
    """

    k = var(1.0, parameter=True, desc="Gain")
    w = var(1.0, parameter=True, unit="rad/s", desc="Bandwidth (angular frequency)")
    d = var(1.0, parameter=True, desc="Relative damping")
    x = var(0.0, protected=True)
    xd = var(0.0, protected=True)

    @equations
    def _(m):
        der(m.x) == m.xd
        der(m.xd) == m.w * (m.w * (m.k * m.input.u - m.x) - 2 * m.d * m.xd)
        m.output.u == m.x


@lru_cache(maxsize=None)
@beartype
def pid(with_integral: bool = True, with_derivative: bool = True) -> Any:
    """
    PID controller class composed of Gain, Integrator, Derivative and an adder.

    The control error and the integral and derivative paths are summed
    and the sum is multiplied by k:

        gain = Gain(k)
        integrator = Integrator(k=1/Ti)
        derivative = Derivative(k=1/Td, T=1/Nd)

    Disabled paths are left out entirely, so `pid(with_derivative=False)`
    is a PI controller with one state. The child parameters are derived
    from k, Ti, Td and Nd when the controller is instantiated.
    """
    n_paths = 1 + int(with_integral) + int(with_derivative)

    class _PID:
        err_input = submodel(RealInput)
        ctr_output = submodel(RealOutput)
        k = var(1.0, parameter=True, desc="Gain")
        Ti = var(1.0, parameter=True, desc="Integral time constant")
        Td = var(1.0, parameter=True, desc="Derivative time constant")
        Nd = var(10.0, parameter=True, desc="Derivative filter ratio")

        gain = submodel(Gain, k=lambda p: p.k)
        if n_paths == 3:
            add = submodel(Add3)
        elif n_paths == 2:
            add = submodel(Add)
        if with_integral:
            integrator = submodel(Integrator, k=lambda p: 1.0 / p.Ti)
        if with_derivative:
            derivative = submodel(Derivative, k=lambda p: 1.0 / p.Td, T=lambda p: 1.0 / p.Nd)

        @equations
        def _(m):
            if n_paths == 1:
                connect(m.err_input, m.gain.input)
            else:
                adder = [m.add.input1, m.add.input2] + ([m.add.input3] if n_paths == 3 else [])
                connect(m.err_input, adder[0])
                connect(m.add.output, m.gain.input)
                paths = []
                if with_integral:
                    connect(m.err_input, m.integrator.input)
                    paths.append(m.integrator.output)
                if with_derivative:
                    connect(m.err_input, m.derivative.input)
                    paths.append(m.derivative.output)
                for path, port in zip(paths, adder[1:]):
                    connect(path, port)
            connect(m.gain.output, m.ctr_output)

    _PID.__name__ = _PID.__qualname__ = {
        (True, True): "PID",
        (True, False): "PI",
        (False, True): "PD",
        (False, False): "P",
    }[(with_integral, with_derivative)]
    return model(_PID)


PID = pid()
