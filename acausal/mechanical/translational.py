"""
One-dimensional translational mechanical components.

Flanges carry the absolute position `s` and the cut force `f`. A
positive force on a flange acts on the component the flange belongs to.
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
    """1D translational flange."""

    s = var(0.0, unit="m", desc="Absolute position")
    f = var(0.0, unit="N", flow=True, desc="Cut force")


class PartialCompliant:
    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    s_rel = var(0.0, unit="m", desc="Relative distance")
    f = var(0.0, unit="N", desc="Force between flanges")

    @equations
    def _compliant(m):
        m.s_rel == m.flange_b.s - m.flange_a.s
        m.flange_b.f == m.f
        m.flange_a.f == -m.f


@model
class Fixed:
    """Flange fixed in housing at a given position."""

    flange = submodel(Flange)
    s0 = var(0.0, parameter=True, unit="m")

    @equations
    def _(m):
        m.flange.s == m.s0


@model
class Mass:
    """Sliding mass with inertia, length L centered between the flanges."""

    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    m = var(1.0, parameter=True, unit="kg", desc="Mass")
    L = var(0.0, parameter=True, unit="m", desc="Length")
    s = var(0.0, unit="m", desc="Position of the center")
    v = var(0.0, unit="m/s")
    a = var(0.0, unit="m/s2")

    @equations
    def _(m):
        m.flange_a.s == m.s - m.L / 2
        m.flange_b.s == m.s + m.L / 2
        der(m.s) == m.v
        der(m.v) == m.a
        m.m * m.a == m.flange_a.f + m.flange_b.f


@model
class Spring(PartialCompliant):
    """Linear 1D translational spring."""

    c = var(1.0, parameter=True, unit="N/m", desc="Spring constant")
    s_rel0 = var(0.0, parameter=True, unit="m", desc="Unstretched spring length")

    @equations
    def _(m):
        m.f == m.c * (m.s_rel - m.s_rel0)


@model
class Damper(PartialCompliant):
    """Linear 1D translational damper."""

    d = var(0.0, parameter=True, unit="N.s/m", desc="Damping constant")
    v_rel = var(0.0, unit="m/s")

    @equations
    def _(m):
        m.v_rel == der(m.flange_b.s - m.flange_a.s)
        m.f == m.d * m.v_rel


@lru_cache(maxsize=None)
@beartype
def force(use_support: bool = False) -> Any:
    """Force source class driven by the signal `f`, optionally with a support flange."""

    class _Force:
        flange = submodel(Flange)
        f = submodel(RealInput)
        s_support = var(0.0, unit="m")
        if use_support:
            support = submodel(Flange)

        @equations
        def _(m):
            m.flange.f == -m.f.u
            if use_support:
                m.support.s == m.s_support
                m.support.f == -m.flange.f
            else:
                m.s_support == 0

    _Force.__name__ = _Force.__qualname__ = "ForceWithSupport" if use_support else "Force"
    return model(_Force)


Force = force()


@model
class PositionSensor:
    """Ideal sensor to measure the absolute position."""

    flange = submodel(Flange)
    s = submodel(RealOutput)

    @equations
    def _(m):
        m.s.u == m.flange.s
        m.flange.f == 0


@model
class ForceSensor:
    """Ideal sensor to measure the force between two flanges (= flange_a.f)."""

    flange_a = submodel(Flange)
    flange_b = submodel(Flange)
    f = submodel(RealOutput)

    @equations
    def _(m):
        m.flange_a.s == m.flange_b.s
        m.f.u == m.flange_a.f
        m.flange_a.f + m.flange_b.f == 0
