"""
Signal sources.

Sources have a single RealOutput `output` and use the instance's time
variable (`m.time`) directly.
"""

import math

from acausal.blocks.interfaces import RealOutput
from acausal.context import equations
from acausal.decorators import block, submodel, var
from acausal.operators import if_then_else, sin


@block
class Constant:
    """Generate constant signal."""

    output = submodel(RealOutput)
    k = var(1.0, parameter=True, desc="Constant output value")

    @equations
    def _(m):
        m.output.u == m.k


@block
class Step:
    """Generate step signal: offset before start_time, offset + height after."""

    output = submodel(RealOutput)
    height = var(1.0, parameter=True)
    offset = var(0.0, parameter=True)
    start_time = var(0.0, parameter=True, unit="s")

    @equations
    def _(m):
        m.output.u == m.offset + if_then_else(m.time >= m.start_time, m.height, 0.0)


@block
class Sine:
    """Generate sine signal, offset + amplitude*sin(2π f (t - start_time) + phase)."""

    output = submodel(RealOutput)
    frequency = var(1.0, parameter=True, unit="Hz")
    amplitude = var(1.0, parameter=True)
    phase = var(0.0, parameter=True, unit="rad")
    offset = var(0.0, parameter=True)
    start_time = var(0.0, parameter=True, unit="s")

    @equations
    def _(m):
        wave = m.amplitude * sin(2 * math.pi * m.frequency * (m.time - m.start_time) + m.phase)
        m.output.u == m.offset + if_then_else(m.time < m.start_time, 0.0, wave)
