"""
One-dimensional mechanical components.

- rotational: flanges carry an angle `phi` and a cut torque `tau`
- translational: flanges carry a position `s` and a cut force `f`
"""

from acausal.mechanical import rotational, translational

__all__ = ["rotational", "translational"]
