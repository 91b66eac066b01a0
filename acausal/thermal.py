"""
Lumped heat transfer components.

Heat ports carry the temperature `T` and the heat flow `Q_flow` into
the component.
"""

from acausal.blocks.interfaces import RealInput, RealOutput
from acausal.context import equations
from acausal.decorators import connector, model, submodel, var
from acausal.operators import der


@connector
class HeatPort:
    """Thermal port for 1D heat transfer."""

    T = var(273.15, unit="K", desc="Port temperature")
    Q_flow = var(0.0, unit="W", flow=True, desc="Heat flow rate into the component")


@model
class HeatCapacitor:
    """Lumped thermal element storing heat."""

    port = submodel(HeatPort)
    C = var(1.0, parameter=True, unit="J/K", desc="Heat capacity")
    T = var(273.15, unit="K")

    @equations
    def _(m):
        m.T == m.port.T
        der(m.T) == m.port.Q_flow / m.C


@model
class ThermalConductor:
    """Lumped thermal element transporting heat without storing it."""

    port_a = submodel(HeatPort)
    port_b = submodel(HeatPort)
    G = var(1.0, parameter=True, unit="W/K", desc="Thermal conductance")
    dT = var(0.0, unit="K")
    Q_flow = var(0.0, unit="W")

    @equations
    def _(m):
        m.dT == m.port_a.T - m.port_b.T
        m.port_a.Q_flow == m.Q_flow
        m.port_b.Q_flow == -m.Q_flow
        m.Q_flow == m.G * m.dT


@model
class FixedTemperature:
    """Fixed temperature boundary condition."""

    port = submodel(HeatPort)
    T = var(293.15, parameter=True, unit="K")

    @equations
    def _(m):
        m.port.T == m.T


@model
class PrescribedHeatFlow:
    """Heat flow into the port given by the signal Q_flow."""

    port = submodel(HeatPort)
    Q_flow = submodel(RealInput)

    @equations
    def _(m):
        m.port.Q_flow == -m.Q_flow.u


@model
class TemperatureSensor:
    """Absolute temperature sensor."""

    port = submodel(HeatPort)
    T = submodel(RealOutput)

    @equations
    def _(m):
        m.T.u == m.port.T
        m.port.Q_flow == 0
