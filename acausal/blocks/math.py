"""
Algebraic signal blocks: gains, sums and products.
"""

from acausal.blocks.interfaces import MISO2, SISO, RealInput
from acausal.context import equations
from acausal.decorators import block, submodel, var


@block
class Gain(SISO):
    """Output the product of a gain value with the input signal."""

    k = var(1.0, parameter=True, desc="Gain")

    @equations
    def _(m):
        m.output.u == m.k * m.input.u


@block
class Add(MISO2):
    """Output the sum of the two inputs, y = k1*u1 + k2*u2."""

    k1 = var(1.0, parameter=True)
    k2 = var(1.0, parameter=True)

    @equations
    def _(m):
        m.output.u == m.k1 * m.input1.u + m.k2 * m.input2.u


@block
class Add3(MISO2):
    """Output the sum of the three inputs, y = k1*u1 + k2*u2 + k3*u3."""

    input3 = submodel(RealInput)
    k1 = var(1.0, parameter=True)
    k2 = var(1.0, parameter=True)
    k3 = var(1.0, parameter=True)

    @equations
    def _(m):
        m.output.u == m.k1 * m.input1.u + m.k2 * m.input2.u + m.k3 * m.input3.u


@block
class Product(MISO2):
    """Output the product of the two inputs."""

    @equations
    def _(m):
        m.output.u == m.input1.u * m.input2.u
