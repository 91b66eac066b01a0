"""
Tests for acausal.analysis_points.

Covers: sensitivity, complementary sensitivity, loop transfer, open_loop,
linearize_between, loop openings, nested points and the lookup errors.

The loop under test is a first-order plant P = 1/(s+1) closed with a
gain of -1, so L = -1/(s+1), S = (s+1)/(s+2) and T = 1/(s+2).
"""

import pytest


def _loop(with_output_point: bool = False):
    from acausal import connect, equations, model, submodel
    from acausal.blocks import FirstOrder, Gain

    @model
    class Loop:
        P = submodel(FirstOrder, k=1.0, T=1.0)
        C = submodel(Gain, k=-1.0)

        @equations
        def _(m):
            if with_output_point:
                connect(m.P.output, "plant_output", m.C.input)
            else:
                connect(m.P.output, m.C.input)
            connect(m.C.output, "plant_input", m.P.input)

    return Loop()


def _nested():
    from acausal import connect, equations, model, submodel
    from acausal.blocks import Add, Constant, FirstOrder, Gain

    @model
    class Inner:
        P = submodel(FirstOrder, k=1.0, T=1.0)
        C = submodel(Gain, k=1.0)
        add = submodel(Add, k2=-1.0)

        @equations
        def _(m):
            connect(m.P.output, "plant_output", m.add.input2)
            connect(m.add.output, m.C.input)
            connect(m.C.output, "plant_input", m.P.input)

    @model
    class Outer:
        r = submodel(Constant, k=1.0)
        F = submodel(FirstOrder, k=1.0, T=3.0)
        inner = submodel(Inner)

        @equations
        def _(m):
            connect(m.r.output, m.F.input)
            connect(m.F.output, m.inner.add.input1)

    return Outer()


def _twin():
    from acausal import connect, equations, model, submodel
    from acausal.blocks import FirstOrder, Gain

    @model
    class Inner:
        P = submodel(FirstOrder, k=1.0, T=1.0)
        C = submodel(Gain, k=-1.0)

        @equations
        def _(m):
            connect(m.P.output, m.C.input)
            connect(m.C.output, "plant_input", m.P.input)

    @model
    class Twin:
        a = submodel(Inner)
        b = submodel(Inner)

    return Twin()


def _siso(ss):
    """(A, B*C, D) of a first-order SISO model."""
    assert ss.nx == 1
    return ss.A[0, 0], ss.B[0, 0] * ss.C[0, 0], ss.D[0, 0]


class TestSensitivity:
    """Test get_sensitivity()."""

    def test_simple_loop(self) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_loop(), "plant_input")
        assert _siso(ss) == pytest.approx((-2.0, -1.0, 1.0))
        assert ss.input_names == ("d_plant_input",)
        assert ss.output_names == ("P.input.u",)

    def test_frequency_response(self) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_loop(), "plant_input")
        assert ss.evaluate(1j)[0, 0] == pytest.approx((1 + 1j) / (2 + 1j))

    def test_input_and_output_points_agree(self) -> None:
        import numpy as np

        from acausal import get_sensitivity

        loop = _loop(with_output_point=True)
        s_in, _ = get_sensitivity(loop, "plant_input")
        s_out, _ = get_sensitivity(loop, "plant_output")
        w = np.logspace(-2, 2, 7)
        np.testing.assert_allclose(s_in.freqresp(w), s_out.freqresp(w), atol=1e-10)

    def test_mimo_order(self) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_loop(with_output_point=True), ["plant_output", "plant_input"])
        assert (ss.nu, ss.ny) == (2, 2)
        assert ss.input_names == ("d_plant_output", "d_plant_input")

    def test_with_loop_opening(self) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_loop(with_output_point=True), "plant_input", loop_openings=["plant_output"])
        reduced = ss.sminreal()
        assert reduced.nx == 0
        assert reduced.D[0, 0] == pytest.approx(1.0)

    def test_point_object_resolved_by_name(self) -> None:
        from acausal import AnalysisPoint, get_sensitivity

        loop = _loop()
        (point,) = [e for e in loop.get_equations() if isinstance(e, AnalysisPoint)]
        ss, _ = get_sensitivity(loop, point)
        assert _siso(ss) == pytest.approx((-2.0, -1.0, 1.0))

    def test_operating_point_override(self) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_loop(), "plant_input", op={"P.T": 0.5})
        assert ss.A[0, 0] == pytest.approx(-4.0)

    def test_system_modifier(self) -> None:
        from acausal import get_sensitivity

        def slower(flat):
            return flat.copy(defaults={**flat.defaults, "P.T": 0.5})

        ss, _ = get_sensitivity(_loop(), "plant_input", system_modifier=slower)
        assert ss.A[0, 0] == pytest.approx(-4.0)

    def test_system_modifier_must_return_system(self) -> None:
        from acausal import get_sensitivity

        with pytest.raises(TypeError, match="must return a FlatSystem"):
            get_sensitivity(_loop(), "plant_input", system_modifier=lambda flat: None)


class TestNestedPoints:
    """Points declared inside subsystems."""

    @pytest.mark.parametrize("name", ["inner_plant_input", "inner_plant_output"])
    def test_nested_sensitivity(self, name) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_nested(), name)
        reduced = ss.sminreal()
        assert _siso(reduced) == pytest.approx((-2.0, -1.0, 1.0))

    def test_injected_variable_namespaced(self) -> None:
        from acausal import get_sensitivity

        ss, system = get_sensitivity(_nested(), "inner_plant_input")
        assert ss.input_names == ("inner.d_plant_input",)
        assert "inner.d_plant_input" in system.variables

    def test_identical_subsystems_stay_separate(self) -> None:
        from acausal import get_sensitivity

        ss, system = get_sensitivity(_twin(), "a_plant_input")
        assert ss.input_names == ("a.d_plant_input",)
        assert ss.output_names == ("a.P.input.u",)
        assert "b.d_plant_input" not in system.variables
        # The untouched copy keeps its own closed loop, decoupled from the disturbance
        assert ss.nx == 2
        assert _siso(ss.sminreal()) == pytest.approx((-2.0, -1.0, 1.0))

    def test_second_copy_addressed_by_its_own_name(self) -> None:
        from acausal import get_sensitivity

        ss, _ = get_sensitivity(_twin(), "b_plant_input")
        assert ss.input_names == ("b.d_plant_input",)
        assert set(ss.state_names) == {"a.P.x", "b.P.x"}
        assert _siso(ss.sminreal()) == pytest.approx((-2.0, -1.0, 1.0))
        assert ss.sminreal().state_names == ("b.P.x",)

    def test_local_name_does_not_match(self) -> None:
        from acausal import AnalysisPointNotFoundError, get_sensitivity

        with pytest.raises(AnalysisPointNotFoundError, match="inner_plant_input"):
            get_sensitivity(_nested(), "plant_input")


class TestComplementarySensitivity:
    """Test get_comp_sensitivity()."""

    def test_simple_loop(self) -> None:
        from acausal import get_comp_sensitivity

        ss, _ = get_comp_sensitivity(_loop(), "plant_input")
        assert _siso(ss) == pytest.approx((-2.0, 1.0, 0.0))
        assert ss.output_names == ("C.output.u",)

    def test_sum_with_sensitivity_is_identity(self) -> None:
        from acausal import get_comp_sensitivity, get_sensitivity

        s, _ = get_sensitivity(_loop(), "plant_input")
        t, _ = get_comp_sensitivity(_loop(), "plant_input")
        for w in (0.0, 0.5, 3.0):
            assert (s.evaluate(1j * w) + t.evaluate(1j * w))[0, 0] == pytest.approx(1.0)


class TestLoopTransfer:
    """Test get_looptransfer()."""

    def test_simple_loop(self) -> None:
        from acausal import get_looptransfer

        ss, _ = get_looptransfer(_loop(), "plant_input")
        assert _siso(ss) == pytest.approx((-1.0, -1.0, 0.0))
        assert ss.input_names == ("P.input.u",)
        assert ss.output_names == ("C.output.u",)

    def test_sensitivity_relation(self) -> None:
        from acausal import get_looptransfer, get_sensitivity

        l_ss, _ = get_looptransfer(_loop(), "plant_input")
        s_ss, _ = get_sensitivity(_loop(), "plant_input")
        s = 0.7j
        assert s_ss.evaluate(s)[0, 0] == pytest.approx(1.0 / (1.0 - l_ss.evaluate(s)[0, 0]))


class TestOpenLoop:
    """Test open_loop()."""

    def test_ports(self) -> None:
        from acausal import linearize, open_loop

        system = open_loop(_loop(), "plant_input")
        assert system.input_names == ["u_plant_input"]
        assert system.output_names == ["y_plant_input"]
        ss, _ = linearize(system, system.input_names, system.output_names)
        assert _siso(ss) == pytest.approx((-1.0, -1.0, 0.0))

    def test_ground_input(self) -> None:
        from acausal import open_loop

        system = open_loop(_loop(), "plant_input", ground_input=True)
        assert system.input_names == []
        assert "u_plant_input" not in system.variables
        assert "y_plant_input" in system.variables

    def test_matches_loop_transfer(self) -> None:
        import numpy as np

        from acausal import get_looptransfer, linearize, open_loop

        system = open_loop(_loop(), "plant_input")
        opened, _ = linearize(system, system.input_names, system.output_names)
        loop_tf, _ = get_looptransfer(_loop(), "plant_input")
        w = np.logspace(-2, 2, 9)
        np.testing.assert_allclose(opened.freqresp(w), loop_tf.freqresp(w), atol=1e-10)

    def test_missing_point(self) -> None:
        from acausal import AnalysisPointNotFoundError, open_loop

        with pytest.raises(AnalysisPointNotFoundError, match="Available"):
            open_loop(_loop(), "nope")


class TestLinearizeBetween:
    """Test linearize_between()."""

    def test_closed_loop_between_points(self) -> None:
        from acausal import linearize_between

        ss, _ = linearize_between(_loop(with_output_point=True), "plant_input", "plant_output")
        assert _siso(ss) == pytest.approx((-2.0, 1.0, 0.0))
        assert ss.input_names == ("u_plant_input",)
        assert ss.output_names == ("y_plant_output",)

    def test_opened_output_point(self) -> None:
        from acausal import linearize_between

        ss, _ = linearize_between(
            _loop(with_output_point=True), "plant_input", "plant_output", loop_openings=["plant_output"]
        )
        assert _siso(ss) == pytest.approx((-1.0, 1.0, 0.0))

    def test_symbolic_output(self) -> None:
        from acausal import linearize_between

        loop = _loop()
        ss, _ = linearize_between(loop, "plant_input", loop.P.x)
        assert ss.output_names == ("P.x",)
        assert _siso(ss) == pytest.approx((-2.0, 1.0, 0.0))


class TestPointErrors:
    """Lookup and argument errors."""

    def test_not_found(self) -> None:
        from acausal import AnalysisPointNotFoundError, get_looptransfer

        with pytest.raises(AnalysisPointNotFoundError, match="not found"):
            get_looptransfer(_loop(), "nope")

    @pytest.mark.parametrize("function", ["get_sensitivity", "get_comp_sensitivity"])
    def test_missing_target(self, function) -> None:
        import acausal

        with pytest.raises(acausal.AnalysisPointNotFoundError, match="'nope' not found"):
            getattr(acausal, function)(_loop(), "nope")

    @pytest.mark.parametrize("function", ["get_sensitivity", "get_comp_sensitivity"])
    def test_missing_opening(self, function) -> None:
        import acausal

        with pytest.raises(acausal.AnalysisPointNotFoundError, match="Available: \\['plant_input'\\]"):
            getattr(acausal, function)(_loop(), "plant_input", loop_openings=["nope"])

    @pytest.mark.parametrize("function", ["get_sensitivity", "get_comp_sensitivity", "get_looptransfer"])
    def test_target_and_opening(self, function) -> None:
        import acausal

        with pytest.raises(ValueError, match="both analyzed and opened"):
            getattr(acausal, function)(_loop(), "plant_input", loop_openings=["plant_input"])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
