"""
Compute backends for the acausal modeling DSL.

Backends compile FlatSystem representations into executable functions
for linearization and simulation.

Available backends:
- casadi: CasADi SX residual, output and Jacobian functions, Newton
  rootfinder for consistent initialization, IDAS for integration
"""

from acausal.backends.casadi import CasadiDAE, compile_system

__all__ = [
    "CasadiDAE",
    "compile_system",
]
