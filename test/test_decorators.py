"""
Tests for the modeling DSL declarations.

Covers: @model, @block, @connector, var(), submodel(), @equations,
connect() argument checking, partial base classes, derived overrides.
"""

import warnings

import pytest


class TestModelDecorator:
    """Test @model and instance construction."""

    def test_variables_and_equations(self) -> None:
        from acausal import der, equations, model, var

        @model
        class Decay:
            k = var(2.0, parameter=True)
            x = var(start=1.0)

            @equations
            def _(m):
                der(m.x) == -m.k * m.x

        inst = Decay()
        assert inst.name == "Decay"
        assert set(inst.declared_variables()) == {"k", "x"}
        eqs = inst.get_equations()
        assert len(eqs) == 1
        assert repr(eqs[0]) == "Eq(der(x) == ((-k) * x))"

    def test_override_parameter_and_start(self) -> None:
        from acausal import model, var

        @model
        class Holder:
            k = var(2.0, parameter=True)
            x = var(start=1.0)

        inst = Holder(name="h", k=5.0, x=3.0)
        declared = inst.declared_variables()
        assert inst.name == "h"
        assert declared["k"].get_initial_value() == 5.0
        assert declared["x"].get_initial_value() == 3.0

    def test_unknown_override_raises(self) -> None:
        from acausal import model, var

        @model
        class Holder:
            k = var(2.0, parameter=True)

        with pytest.raises(TypeError, match="no variable"):
            Holder(kk=1.0)

    def test_equations_must_be_decorated(self) -> None:
        from acausal import model, var

        with pytest.raises(TypeError, match="@equations"):

            @model
            class Bad:
                x = var()

                def equations(m):
                    pass

    def test_submodel_rejects_plain_class(self) -> None:
        from acausal import submodel

        class Plain:
            pass

        with pytest.raises(TypeError, match="expects"):
            submodel(Plain)

    def test_nested_symbolic_names(self) -> None:
        from acausal import model, submodel
        from acausal.blocks import FirstOrder

        @model
        class Wrapper:
            P = submodel(FirstOrder)

        inst = Wrapper()
        assert inst.P.output.u.name == "P.output.u"
        assert inst.P.x.name == "P.x"

    def test_missing_attribute_raises(self) -> None:
        from acausal.blocks import Gain

        with pytest.raises(AttributeError, match="no attribute"):
            Gain().nope

    def test_time_is_per_instance(self) -> None:
        from acausal.blocks import Gain
        from acausal.variables import TimeVar

        a, b = Gain(), Gain()
        assert isinstance(a.time, TimeVar)
        assert a.time is not b.time


class TestPartialModels:
    """Test declarations and equations inherited from plain base classes."""

    def test_one_port_equations_inherited(self) -> None:
        from acausal.electrical import Resistor

        inst = Resistor(R=10.0)
        assert {"p", "n"} <= set(inst._submodels)
        assert {"v", "i", "R"} <= set(inst.declared_variables())
        # 3 from OnePort, 1 from Resistor
        assert len(inst.get_equations()) == 4

    def test_decorated_base_reused(self) -> None:
        from acausal import equations, model, var

        @model
        class Base:
            x = var()

            @equations
            def _base(m):
                m.x == 1.0

        @model
        class Derived(Base):
            y = var()

            @equations
            def _(m):
                m.y == m.x

        inst = Derived()
        assert set(inst.declared_variables()) == {"x", "y"}
        assert len(inst.get_equations()) == 2


class TestBlockDecorator:
    """Test the @block input/output rule."""

    def test_public_variable_needs_causality(self) -> None:
        from acausal import block, var

        with pytest.raises(TypeError, match="violates block constraints"):

            @block
            class Bad:
                y = var()

    def test_protected_and_parameters_allowed(self) -> None:
        from acausal import block, var

        @block
        class Ok:
            k = var(1.0, parameter=True)
            x = var(protected=True)
            u = var(input=True)
            y = var(output=True)

        assert Ok._dsl_metadata.is_block


class TestConnectorDecorator:
    """Test the @connector restrictions."""

    def test_balanced(self) -> None:
        from acausal import connector, var

        @connector
        class Pin:
            v = var()
            i = var(flow=True)

        assert Pin._dsl_metadata.is_connector
        assert Pin._dsl_metadata.variables["i"].flow

    def test_balancing_violation(self) -> None:
        from acausal import connector, var

        with pytest.raises(TypeError, match="balancing violation"):

            @connector
            class Unbalanced:
                v = var()
                i1 = var(flow=True)
                i2 = var(flow=True)

    def test_signals_and_parameters_not_counted(self) -> None:
        from acausal import connector, var

        @connector
        class Signal:
            u = var(input=True)
            gain = var(1.0, parameter=True)

        assert Signal._dsl_metadata.is_connector

    def test_no_equations(self) -> None:
        from acausal import connector, equations, var

        with pytest.raises(TypeError, match="cannot have @equations"):

            @connector
            class Bad:
                v = var()
                i = var(flow=True)

                @equations
                def _(m):
                    pass

    def test_no_submodels(self) -> None:
        from acausal import connector, submodel, var
        from acausal.blocks import Gain

        with pytest.raises(TypeError, match="cannot have submodels"):

            @connector
            class Bad:
                v = var()
                i = var(flow=True)
                inner = submodel(Gain)


class TestConnect:
    """Test connect() argument checking."""

    def test_outside_equations_raises(self) -> None:
        from acausal import connect, model, submodel
        from acausal.electrical import Pin

        @model
        class TwoPins:
            p1 = submodel(Pin)
            p2 = submodel(Pin)

        inst = TwoPins()
        with pytest.raises(RuntimeError, match="inside an @equations block"):
            connect(inst.p1, inst.p2)

    def test_connection_marker(self) -> None:
        from acausal import connect, equations, model, submodel
        from acausal.equations import Connection
        from acausal.electrical import Pin

        @model
        class TwoPins:
            p1 = submodel(Pin)
            p2 = submodel(Pin)

            @equations
            def _(m):
                connect(m.p1, m.p2)

        (node,) = TwoPins().get_equations()
        assert isinstance(node, Connection)
        assert [c.path for c in node.connectors] == ["p1", "p2"]

    def test_non_connector_raises(self) -> None:
        from acausal import connect, equations, model, submodel
        from acausal.blocks import Gain
        from acausal.electrical import Pin

        @model
        class Bad:
            g = submodel(Gain)
            p = submodel(Pin)

            @equations
            def _(m):
                connect(m.g, m.p)

        with pytest.raises(TypeError, match="not a connector"):
            Bad().get_equations()

    def test_incompatible_connectors_raise(self) -> None:
        from acausal import connect, equations, model, submodel
        from acausal.electrical import Pin
        from acausal.thermal import HeatPort

        @model
        class Bad:
            p = submodel(Pin)
            h = submodel(HeatPort)

            @equations
            def _(m):
                connect(m.p, m.h)

        with pytest.raises(TypeError, match="Incompatible connectors"):
            Bad().get_equations()

    def test_analysis_point_needs_signal_connectors(self) -> None:
        from acausal import connect, equations, model, submodel
        from acausal.electrical import Pin

        @model
        class Bad:
            a = submodel(Pin)
            b = submodel(Pin)

            @equations
            def _(m):
                connect(m.a, "ap", m.b)

        with pytest.raises(TypeError, match="signal connectors"):
            Bad().get_equations()

    def test_analysis_point_marker_is_bound(self) -> None:
        from acausal import AnalysisPoint, connect, equations, model, submodel
        from acausal.blocks import Gain

        @model
        class Chain:
            a = submodel(Gain)
            b = submodel(Gain)

            @equations
            def _(m):
                connect(m.a.output, "ap", m.b.input)

        (point,) = Chain().get_equations()
        assert isinstance(point, AnalysisPoint)
        assert point.is_bound
        assert point.name == "ap"
        assert point.output_signal() == "a.output.u"
        assert point.input_signal() == "b.input.u"

    def test_reversed_analysis_point_warns(self) -> None:
        from acausal import CausalityWarning, connect, equations, model, submodel
        from acausal.blocks import Gain

        @model
        class Backwards:
            a = submodel(Gain)
            b = submodel(Gain)

            @equations
            def _(m):
                connect(m.b.input, "bad", m.a.output)

        with pytest.warns(CausalityWarning) as record:
            Backwards().get_equations()
        assert sum(issubclass(w.category, CausalityWarning) for w in record) == 2

    def test_reversed_analysis_point_silenced(self) -> None:
        from acausal import connect, equations, model, submodel
        from acausal.blocks import Gain

        @model
        class Backwards:
            a = submodel(Gain)
            b = submodel(Gain)

            @equations
            def _(m):
                connect(m.b.input, "bad", m.a.output, verbose=False)

        with warnings.catch_warnings():
            warnings.simplefilter("error")
            Backwards().get_equations()


class TestAnalysisPointEquality:
    """Points are equal when they join the same connectors, whatever their names."""

    def test_name_ignored(self) -> None:
        from acausal import AnalysisPoint, ConnectorRef

        out = ConnectorRef("C.output")
        inp = ConnectorRef("P.input")
        assert AnalysisPoint("a", out, inp) == AnalysisPoint("b", out, inp)
        assert AnalysisPoint("a", out, inp) != AnalysisPoint("a", inp, out)

    def test_unbound(self) -> None:
        from acausal import AnalysisPoint

        assert not AnalysisPoint("a").is_bound


class TestDerivedOverrides:
    """Child parameters computed from the parent's parameters."""

    def test_pid_children_follow_parent(self) -> None:
        from acausal import flatten
        from acausal.blocks import PID

        flat = flatten(PID(k=2.0, Ti=4.0, Td=0.5, Nd=20.0))
        assert flat.defaults["gain.k"] == 2.0
        assert flat.defaults["integrator.k"] == pytest.approx(0.25)
        assert flat.defaults["derivative.k"] == pytest.approx(2.0)
        assert flat.defaults["derivative.T"] == pytest.approx(0.05)

    def test_variant_classes_cached(self) -> None:
        from acausal.blocks import PID, pid

        assert pid() is PID
        assert pid(with_derivative=False).__name__ == "PI"
        assert pid(with_integral=False).__name__ == "PD"
        assert pid(False, False).__name__ == "P"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
