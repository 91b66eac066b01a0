"""
One-dimensional rotational mechanical components.

Sign convention: a positive cut torque `tau` on a flange acts on the
component the flange belongs to. Connected flanges share the angle and
their torques sum to zero.
"""

from functools import lru_cache
from typing import Any

from beartype import beartype

from acausal.blocks.interfaces import RealInput, RealOutput
from acausal.context import equations
from acausal.decorators import connector, model, submodel, var
from acausal.operators import der


@connector
class Flange:
    """1D rotational flange of a shaft."""

    phi = var(0.0, unit="rad", desc="Absolute rotation angle")
    tau = var(0.0, unit="N.m", flow=True, desc="Cut torque")


class PartialCompliant:
    """Two flanges connected by a massless compliant element."""

    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    phi_rel = var(0.0, unit="rad", desc="Relative rotation angle")
    tau = var(0.0, unit="N.m", desc="Torque between flanges")

    @equations
    def _compliant(m):
        m.phi_rel == m.flange_b.phi - m.flange_a.phi
        m.flange_b.tau == m.tau
        m.flange_a.tau == -m.tau


@model
class Fixed:
    """Flange fixed in housing at a given angle."""

    flange = submodel(Flange)
    phi0 = var(0.0, parameter=True, unit="rad", desc="Fixed offset angle of housing")

    @equations
    def _(m):
        m.flange.phi == m.phi0


@model
class Inertia:
    """1D rotational component with inertia."""

    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    J = var(1.0, parameter=True, unit="kg.m2", desc="Moment of inertia")
    phi = var(0.0, unit="rad")
    w = var(0.0, unit="rad/s")
    a = var(0.0, unit="rad/s2")

    @equations
    def _(m):
        m.phi == m.flange_a.phi
        m.phi == m.flange_b.phi
        der(m.phi) == m.w
        der(m.w) == m.a
        m.J * m.a == m.flange_a.tau + m.flange_b.tau


@model
class Spring(PartialCompliant):
    """Linear 1D rotational spring."""

    c = var(1.0e5, parameter=True, unit="N.m/rad", desc="Spring constant")
    phi_rel0 = var(0.0, parameter=True, unit="rad", desc="Unstretched spring angle")

    @equations
    def _(m):
        m.tau == m.c * (m.phi_rel - m.phi_rel0)


@model
class Damper(PartialCompliant):
    """
    Linear 1D rotational damper.

    The relative speed is the derivative of the flange angles, so a
    damper between two inertias adds no state of its own.
    """

    d = var(0.0, parameter=True, unit="N.m.s/rad", desc="Damping constant")
    w_rel = var(0.0, unit="rad/s", desc="Relative angular velocity")

    @equations
    def _(m):
        m.w_rel == der(m.flange_b.phi - m.flange_a.phi)
        m.tau == m.d * m.w_rel


@model
class IdealGear:
    """Ideal gear without inertia, grounded housing. ratio = flange_a.phi/flange_b.phi."""

    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    ratio = var(1.0, parameter=True, desc="Transmission ratio")

    @equations
    def _(m):
        m.flange_a.phi == m.ratio * m.flange_b.phi
        0 == m.ratio * m.flange_a.tau + m.flange_b.tau


@lru_cache(maxsize=None)
@beartype
def torque(use_support: bool = False) -> Any:
    """
    Torque source class driven by the signal `tau`.

    With use_support=True the reaction torque acts on a `support` flange,
    otherwise the housing is implicitly grounded.
    """

    class _Torque:
        flange = submodel(Flange)
        tau = submodel(RealInput)
        phi_support = var(0.0, unit="rad", desc="Absolute angle of support flange")
        if use_support:
            support = submodel(Flange)

        @equations
        def _(m):
            m.flange.tau == -m.tau.u
            if use_support:
                m.support.phi == m.phi_support
                m.support.tau == -m.flange.tau
            else:
                m.phi_support == 0

    _Torque.__name__ = _Torque.__qualname__ = "TorqueWithSupport" if use_support else "Torque"
    return model(_Torque)


Torque = torque()


@model
class AngleSensor:
    """Ideal sensor to measure the absolute flange angle."""

    flange = submodel(Flange)
    phi = submodel(RealOutput)

    @equations
    def _(m):
        m.phi.u == m.flange.phi
        m.flange.tau == 0


@model
class SpeedSensor:
    """Ideal sensor to measure the absolute flange angular velocity."""

    flange = submodel(Flange)
    w = submodel(RealOutput)

    @equations
    def _(m):
        m.w.u == der(m.flange.phi)
        m.flange.tau == 0


@model
class TorqueSensor:
    """Ideal sensor to measure the torque between two flanges (= flange_a.tau)."""

    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    tau = submodel(RealOutput)

    @equations
    def _(m):
        m.flange_a.phi == m.flange_b.phi
        m.tau.u == m.flange_a.tau
        m.flange_a.tau + m.flange_b.tau == 0
