"""
Tests for acausal.electrical.
"""

import pytest


def _rc():
    from acausal import connect, equations, model, submodel
    from acausal.electrical import Capacitor, ConstantVoltage, Ground, Resistor

    @model
    class RC:
        src = submodel(ConstantVoltage, V=1.0)
        R = submodel(Resistor, R=1.0)
        cap = submodel(Capacitor, C=1.0)
        gnd = submodel(Ground)

        @equations
        def _(m):
            connect(m.src.p, m.R.p)
            connect(m.R.n, m.cap.p)
            connect(m.cap.n, m.src.n, m.gnd.g)

    return RC()


class TestRCCircuit:
    """Capacitor charged through a resistor."""

    def test_charging(self) -> None:
        import numpy as np

        from acausal import flatten, simulate

        res = simulate(flatten(_rc()), t_final=2.0, dt=0.1)
        np.testing.assert_allclose(res["cap.v"], 1.0 - np.exp(-res.t), atol=1e-5)
        np.testing.assert_allclose(res["R.i"], np.exp(-res.t), atol=1e-5)

    def test_state(self) -> None:
        from acausal import flatten, simplify

        assert simplify(flatten(_rc())).state_names == ["cap.v"]


class TestSeriesRL:
    """Voltage-driven RL loop measured with the sensors."""

    def _circuit(self):
        from acausal import connect, equations, model, submodel
        from acausal.electrical import CurrentSensor, Ground, Inductor, Resistor, Voltage, VoltageSensor

        @model
        class RL:
            src = submodel(Voltage)
            amp = submodel(CurrentSensor)
            R = submodel(Resistor, R=1.0)
            ind = submodel(Inductor, L=2.0)
            volt = submodel(VoltageSensor)
            gnd = submodel(Ground)

            @equations
            def _(m):
                connect(m.src.p, m.amp.p)
                connect(m.amp.n, m.R.p)
                connect(m.R.n, m.ind.p, m.volt.p)
                connect(m.ind.n, m.src.n, m.volt.n, m.gnd.g)

        return RL()

    def test_current(self) -> None:
        from acausal import flatten, linearize

        ss, _ = linearize(flatten(self._circuit()), ["src.V.u"], ["amp.i.u"])
        assert ss.nx == 1
        assert ss.evaluate(1j)[0, 0] == pytest.approx(1.0 / (1.0 + 2.0j))

    def test_inductor_voltage(self) -> None:
        from acausal import flatten, linearize

        ss, _ = linearize(flatten(self._circuit()), ["src.V.u"], ["volt.v.u"])
        s = 1j
        assert ss.evaluate(s)[0, 0] == pytest.approx(2.0 * s / (2.0 * s + 1.0))

    def test_driven_simulation(self) -> None:
        import numpy as np

        from acausal import flatten, simulate

        res = simulate(flatten(self._circuit()), t_final=1.0, dt=0.1, inputs={"src.V.u": 1.0})
        np.testing.assert_allclose(res["ind.i"], 1.0 - np.exp(-res.t / 2.0), atol=1e-5)


class TestOnePort:
    """Shared two-pin equations."""

    def test_current_conservation(self) -> None:
        from acausal.electrical import Inductor

        reprs = {repr(eq) for eq in Inductor().get_equations()}
        assert "Eq((p.i + n.i) == 0.0)" in reprs
        assert "Eq(der(i) == (v / L))" in reprs


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
