"""
Tests for acausal.thermal.
"""

import pytest


def _cooling(with_heater: bool = False):
    from acausal import connect, equations, model, submodel
    from acausal.thermal import (
        FixedTemperature,
        HeatCapacitor,
        PrescribedHeatFlow,
        TemperatureSensor,
        ThermalConductor,
    )

    @model
    class Cooling:
        body = submodel(HeatCapacitor, C=1.0, T=300.0)
        wall = submodel(ThermalConductor, G=1.0)
        ambient = submodel(FixedTemperature, T=200.0)
        sensor = submodel(TemperatureSensor)
        if with_heater:
            heater = submodel(PrescribedHeatFlow)

        @equations
        def _(m):
            connect(m.body.port, m.wall.port_a, m.sensor.port)
            connect(m.wall.port_b, m.ambient.port)
            if with_heater:
                connect(m.heater.port, m.body.port)

    return Cooling()


class TestCooling:
    """Heat capacitor relaxing to a fixed ambient temperature."""

    def test_exponential_decay(self) -> None:
        import numpy as np

        from acausal import flatten, simulate

        res = simulate(flatten(_cooling()), t_final=2.0, dt=0.1)
        np.testing.assert_allclose(res["body.T"], 200.0 + 100.0 * np.exp(-res.t), rtol=1e-6)
        np.testing.assert_allclose(res["sensor.T.u"], res["body.T"])

    def test_heat_flow_leaves_body(self) -> None:
        from acausal import flatten, simulate

        res = simulate(flatten(_cooling()), t_final=0.1, dt=0.1)
        assert res["wall.Q_flow"][0] == pytest.approx(100.0)
        assert res["body.port.Q_flow"][0] == pytest.approx(-100.0)


class TestHeater:
    """Prescribed heat flow into the body."""

    def test_transfer_function(self) -> None:
        from acausal import flatten, linearize

        ss, _ = linearize(flatten(_cooling(with_heater=True)), ["heater.Q_flow.u"], ["sensor.T.u"])
        assert ss.nx == 1
        s = 2j
        assert ss.evaluate(s)[0, 0] == pytest.approx(1.0 / (s + 1.0))

    def test_steady_state(self) -> None:
        from acausal import flatten, simulate

        res = simulate(flatten(_cooling(with_heater=True)), t_final=20.0, dt=1.0, inputs={"heater.Q_flow.u": 50.0})
        assert res["body.T"][-1] == pytest.approx(250.0, rel=1e-5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
