"""
Signal connectors and partial blocks.

RealInput and RealOutput carry a single signal `u`. They have no flow
variable, so connecting them only equates the signal, and they are the
only connectors accepted on either side of an analysis point.
"""

from acausal.decorators import connector, submodel, var


@connector
class RealInput:
    """Connector with one input signal."""

    u = var(0.0, input=True)


@connector
class RealOutput:
    """Connector with one output signal."""

    u = var(0.0, output=True)


class SISO:
    """Partial block with one input connector and one output connector."""

    input = submodel(RealInput)
    output = submodel(RealOutput)


class MISO2:
    """Partial block with two input connectors and one output connector."""

    input1 = submodel(RealInput)
    input2 = submodel(RealInput)
    output = submodel(RealOutput)
