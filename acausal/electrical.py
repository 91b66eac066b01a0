"""
Analog electrical components.

Pins carry the potential `v` and the current `i` flowing into the
component. Two-pin components extend the OnePort partial.
"""

from acausal.blocks.interfaces import RealInput, RealOutput
from acausal.context import equations
from acausal.decorators import connector, model, submodel, var
from acausal.operators import der


@connector
class Pin:
    """Electrical pin."""

    v = var(0.0, unit="V", desc="Potential at the pin")
    i = var(0.0, unit="A", flow=True, desc="Current flowing into the pin")


class OnePort:
    """Component with two pins, v = p.v - n.v and i flowing from p to n."""

    p = submodel(Pin)
    n = submodel(Pin)
    v = var(0.0, unit="V")
    i = var(0.0, unit="A")

    @equations
    def _one_port(m):
        m.v == m.p.v - m.n.v
        0 == m.p.i + m.n.i
        m.i == m.p.i


@model
class Ground:
    """Ground node with zero potential."""

    g = submodel(Pin)

    @equations
    def _(m):
        m.g.v == 0


@model
class Resistor(OnePort):
    """Ideal linear resistor."""

    R = var(1.0, parameter=True, unit="Ohm", desc="Resistance")

    @equations
    def _(m):
        m.v == m.R * m.i


@model
class Capacitor(OnePort):
    """Ideal linear capacitor."""

    C = var(1.0, parameter=True, unit="F", desc="Capacitance")

    @equations
    def _(m):
        der(m.v) == m.i / m.C


@model
class Inductor(OnePort):
    """Ideal linear inductor."""

    L = var(1.0, parameter=True, unit="H", desc="Inductance")

    @equations
    def _(m):
        der(m.i) == m.v / m.L


@model
class ConstantVoltage(OnePort):
    """Source for constant voltage."""

    V = var(1.0, parameter=True, unit="V")

    @equations
    def _(m):
        m.v == m.V


@model
class Voltage(OnePort):
    """Voltage source driven by the signal V."""

    V = submodel(RealInput)

    @equations
    def _(m):
        m.v == m.V.u


@model
class VoltageSensor:
    """Ideal voltmeter, draws no current."""

    p = submodel(Pin)
    n = submodel(Pin)
    v = submodel(RealOutput)

    @equations
    def _(m):
        m.p.i == 0
        m.n.i == 0
        m.v.u == m.p.v - m.n.v


@model
class CurrentSensor:
    """Ideal ammeter, no voltage drop."""

    p = submodel(Pin)
    n = submodel(Pin)
    i = submodel(RealOutput)

    @equations
    def _(m):
        m.p.v == m.n.v
        m.i.u == m.p.i
        m.i.u == -m.n.i
