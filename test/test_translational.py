"""
Tests for acausal.mechanical.translational.
"""

import pytest


def _driven_mass(m_value=2.0, d=None):
    from acausal import connect, equations, model, submodel
    from acausal.mechanical.translational import Damper, Fixed, Force, Mass, PositionSensor

    @model
    class Driven:
        source = submodel(Force)
        mass = submodel(Mass, m=m_value)
        sensor = submodel(PositionSensor)
        if d is not None:
            fixed = submodel(Fixed)
            damper = submodel(Damper, d=d)

        @equations
        def _(m):
            connect(m.source.flange, m.mass.flange_a)
            connect(m.mass.flange_b, m.sensor.flange)
            if d is not None:
                connect(m.fixed.flange, m.damper.flange_a)
                connect(m.damper.flange_b, m.mass.flange_a)

    return Driven()


def _position_response(inst):
    from acausal import flatten, linearize

    ss, _ = linearize(flatten(inst), ["source.f.u"], ["sensor.s.u"])
    return ss


class TestMass:
    """Force-driven mass."""

    def test_free_mass(self) -> None:
        ss = _position_response(_driven_mass(m_value=2.0))
        assert ss.nx == 2
        assert ss.evaluate(1j)[0, 0] == pytest.approx(-0.5)

    def test_damped_mass(self) -> None:
        ss = _position_response(_driven_mass(m_value=1.0, d=2.0))
        s = 1j
        assert ss.evaluate(s)[0, 0] == pytest.approx(1.0 / (s * s + 2.0 * s))

    def test_length_offsets_flanges(self) -> None:
        from acausal import connect, equations, flatten, model, simulate, submodel
        from acausal.mechanical.translational import Force, Mass, PositionSensor

        @model
        class Rod:
            source = submodel(Force)
            mass = submodel(Mass, L=1.0)
            sensor = submodel(PositionSensor)

            @equations
            def _(m):
                connect(m.source.flange, m.mass.flange_a)
                connect(m.mass.flange_b, m.sensor.flange)

        res = simulate(flatten(Rod()), t_final=0.1, dt=0.1, inputs={"source.f.u": 0.0})
        assert res["sensor.s.u"][0] == pytest.approx(0.5)
        assert res["mass.flange_a.s"][0] == pytest.approx(-0.5)


class TestMassSpring:
    """Mass on a spring to a fixed point."""

    def test_oscillation(self) -> None:
        import numpy as np

        from acausal import connect, equations, flatten, model, simulate, submodel
        from acausal.mechanical.translational import Fixed, Mass, Spring

        @model
        class MassSpring:
            fixed = submodel(Fixed)
            spring = submodel(Spring, c=1.0)
            mass = submodel(Mass, m=1.0)

            @equations
            def _(m):
                connect(m.fixed.flange, m.spring.flange_a)
                connect(m.spring.flange_b, m.mass.flange_a)

        res = simulate(flatten(MassSpring()), t_final=2.0, dt=0.1, x0={"mass.s": 1.0})
        np.testing.assert_allclose(res["mass.s"], np.cos(res.t), atol=1e-4)
        assert res["spring.f"][0] == pytest.approx(1.0)


class TestSensorsAndSources:
    """Force sensor and the force() class factory."""

    def test_force_sensor(self) -> None:
        from acausal import connect, equations, flatten, linearize, model, submodel
        from acausal.mechanical.translational import Force, ForceSensor, Mass

        @model
        class Measured:
            source = submodel(Force)
            sensor = submodel(ForceSensor)
            mass = submodel(Mass)

            @equations
            def _(m):
                connect(m.source.flange, m.sensor.flange_a)
                connect(m.sensor.flange_b, m.mass.flange_a)

        ss, _ = linearize(flatten(Measured()), ["source.f.u"], ["sensor.f.u"])
        assert ss.evaluate(2j)[0, 0] == pytest.approx(1.0)

    def test_force_variants(self) -> None:
        from acausal.mechanical.translational import Force, force

        assert force() is Force
        assert force(use_support=True).__name__ == "ForceWithSupport"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
