"""
Signal-flow block library.

- interfaces: RealInput, RealOutput connectors and SISO/MISO2 partials
- math: Gain, Add, Add3, Product
- continuous: Integrator, Derivative, FirstOrder, SecondOrder, PID
- sources: Constant, Step, Sine
"""

from acausal.blocks.continuous import PID, Derivative, FirstOrder, Integrator, SecondOrder, pid
from acausal.blocks.interfaces import MISO2, SISO, RealInput, RealOutput
from acausal.blocks.math import Add, Add3, Gain, Product
from acausal.blocks.sources import Constant, Sine, Step

__all__ = [
    # Interfaces
    "RealInput",
    "RealOutput",
    "SISO",
    "MISO2",
    # Math
    "Gain",
    "Add",
    "Add3",
    "Product",
    # Continuous
    "Integrator",
    "Derivative",
    "FirstOrder",
    "SecondOrder",
    "pid",
    "PID",
    # Sources
    "Constant",
    "Step",
    "Sine",
]
