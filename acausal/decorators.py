"""
Model decorators for the acausal modeling DSL.

This module contains:
- @model: Main decorator for creating components
- @block: Decorator for signal-flow blocks
- @connector: Decorator for physical and signal interfaces
- ModelMetadata: Metadata container for models
- var()/Real(): Factory functions for variable declarations
- submodel(): Factory function for child components

Declarations are collected across the class MRO, so a plain (undecorated)
base class works as a partial model:

    class OnePort:
        p = submodel(Pin)
        n = submodel(Pin)
        v = var()
        i = var()

        @equations
        def _one_port(m):
            m.v == m.p.v - m.n.v
            0 == m.p.i + m.n.i
            m.i == m.p.i

    @model
    class Resistor(OnePort):
        R = var(1.0, parameter=True)

        @equations
        def _(m):
            m.v == m.R * m.i
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type, Union

from beartype import beartype

from acausal.context import execute_equations_method, is_equations_method
from acausal.equations import EquationNode
from acausal.instance import ModelInstance
from acausal.types import SubmodelField, Var


@dataclass
class ModelMetadata:
    """Metadata extracted from a model class by the @model decorator."""

    variables: Dict[str, Var] = field(default_factory=dict)
    submodels: Dict[str, SubmodelField] = field(default_factory=dict)
    is_connector: bool = False  # True if decorated with @connector
    is_block: bool = False  # True if decorated with @block


@beartype
def var(
    default: Optional[Union[float, int]] = None,
    start: Optional[Union[float, int]] = None,
    unit: Optional[str] = None,
    desc: str = "",
    parameter: bool = False,
    input: bool = False,
    output: bool = False,
    flow: bool = False,
    protected: bool = False,
) -> Var:
    """
    Declare a scalar variable in a component.

    Parameters
    ----------
    default : float, optional
        Parameter value, or start value when `start` is not given
    start : float, optional
        Initial value (takes precedence over default)
    unit : str, optional
        Physical unit (e.g., "m", "rad/s")
    desc : str, optional
        Description
    parameter : bool, optional
        If True, variable is constant during simulation and linearization
    input : bool, optional
        If True, the value is provided from outside the component
    output : bool, optional
        If True, the value is computed by the component
    flow : bool, optional
        If True, variable uses sum-to-zero semantics in connections
        (current, torque, force, heat flow). Non-flow connector variables
        (voltage, angle, position, temperature) are equated.
    protected : bool, optional
        If True, the variable is internal to a block (states, intermediates)

    Automatic Classification
    ------------------------
    If der(var) appears in the flattened equations the variable is a
    state, otherwise it is algebraic.
    """
    return Var(
        default=default,
        start=start,
        unit=unit,
        desc=desc,
        parameter=parameter,
        input=input,
        output=output,
        flow=flow,
        protected=protected,
    )


Real = var


@beartype
def submodel(model_class: Type, **overrides: Any) -> SubmodelField:
    """
    Declare a child component with optional value overrides.

    An override may be a callable taking the parent's values (as
    attributes) and returning the child's value; it is evaluated when the
    parent is instantiated:

        integrator = submodel(Integrator, k=lambda p: 1.0 / p.Ti)

    Example
    -------
    >>> @model
    ... class Loop:
    ...     P = submodel(FirstOrder, k=1.0, T=1.0)
    ...     C = submodel(Gain, k=-1.0)
    """
    if not isinstance(getattr(model_class, "_dsl_metadata", None), ModelMetadata):
        raise TypeError(f"submodel() expects a @model/@block/@connector class, got {model_class!r}")
    return SubmodelField(model_class=model_class, overrides=overrides)


def _collect(cls: Type[Any]) -> tuple:
    """Walk the MRO (base first) for declarations and @equations methods."""
    metadata = ModelMetadata()
    equations_methods: List[Callable] = []
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        base_md = klass.__dict__.get("_dsl_metadata")
        if isinstance(base_md, ModelMetadata):
            # Already decorated base: reuse its metadata and methods
            metadata.variables.update(base_md.variables)
            metadata.submodels.update(base_md.submodels)
            for method in klass.__dict__.get("_equations_methods", []):
                if method not in equations_methods:
                    equations_methods.append(method)
            continue
        for name, value in vars(klass).items():
            if isinstance(value, Var):
                value.name = name
                metadata.variables[name] = value
            elif isinstance(value, SubmodelField):
                value.name = name
                metadata.submodels[name] = value
            elif callable(value) and is_equations_method(value) and value not in equations_methods:
                equations_methods.append(value)
    return metadata, equations_methods


@beartype
def model(cls: Type[Any]) -> Type[Any]:
    """
    Decorator to convert a class into an acausal component.

    Processes field descriptors (var, submodel) and @equations methods,
    including those inherited from partial base classes.

    Example
    -------
    >>> @model
    ... class Inertia:
    ...     flange_a = submodel(Flange)
    ...     flange_b = submodel(Flange)
    ...     J = var(1.0, parameter=True)
    ...     phi = var(0.0)
    ...     w = var(0.0)
    ...     a = var(0.0)
    ...
    ...     @equations
    ...     def _(m):
    ...         m.phi == m.flange_a.phi
    ...         m.phi == m.flange_b.phi
    ...         der(m.phi) == m.w
    ...         der(m.w) == m.a
    ...         m.J * m.a == m.flange_a.tau + m.flange_b.tau
    """
    metadata, equations_methods = _collect(cls)

    equations_attr = vars(cls).get("equations")
    if equations_attr is not None and callable(equations_attr) and not is_equations_method(equations_attr):
        raise TypeError(f"Model '{cls.__name__}': equations() must use @equations decorator.")

    class ModelClass(ModelInstance):
        __doc__ = cls.__doc__

        _equations_methods = equations_methods

        def __init__(self, name: str = "", **overrides: Any):
            super().__init__(ModelClass, name=name or cls.__name__, **overrides)

        def get_equations(self) -> List[EquationNode]:
            """Execute all @equations methods and collect equations."""
            all_equations: List[EquationNode] = []
            for method in self._equations_methods:
                all_equations.extend(execute_equations_method(method, self))
            return all_equations

    ModelClass.__name__ = cls.__name__
    ModelClass.__qualname__ = cls.__qualname__
    ModelClass.__module__ = cls.__module__
    ModelClass._dsl_metadata = metadata

    return ModelClass


@beartype
def block(cls: Type[Any]) -> Type[Any]:
    """
    Decorator to convert a class into a signal-flow block.

    In a block, all public variables that are not parameters must carry
    an input or output prefix. States and intermediate quantities are
    declared with protected=True.

    Raises
    ------
    TypeError
        If a public non-parameter variable lacks input or output prefix.
    """
    errors = []
    for name, value in vars(cls).items():
        if isinstance(value, Var):
            if value.protected or value.parameter:
                continue
            if not value.input and not value.output:
                errors.append(
                    f"  - '{name}': public variable must have input=True or output=True "
                    f"(or use protected=True for internal variables)"
                )

    if errors:
        raise TypeError(
            f"Block '{cls.__name__}' violates block constraints.\n"
            f"All public non-parameter variables must have input or output prefix:\n" + "\n".join(errors)
        )

    model_cls = model(cls)
    model_cls._dsl_metadata.is_block = True
    return model_cls


@beartype
def connector(cls: Type[Any]) -> Type[Any]:
    """
    Decorator to convert a class into a connector.

    A connector defines an interface between components:
    - Potential (effort) variables: equality at connection points
    - Flow variables (flow=True): sum-to-zero at connection points
    - Signal variables (input=True or output=True): equality, causal

    Connectors cannot contain equations or submodels. The balancing
    restriction requires as many flow variables as potential variables
    (not counting parameters, inputs and outputs).

    Example
    -------
    >>> @connector
    ... class Pin:
    ...     v = var()           # Potential (voltage)
    ...     i = var(flow=True)  # Flow (current)

    Raises
    ------
    TypeError
        If the connector contains @equations methods or submodels.
        If the balancing restriction is violated.
    """
    errors = []

    for name, value in vars(cls).items():
        if callable(value) and is_equations_method(value):
            errors.append("Connectors cannot have @equations")
            break

    for name, value in vars(cls).items():
        if isinstance(value, SubmodelField):
            errors.append(f"Connectors cannot have submodels: '{name}'")

    n_flow = 0
    n_potential = 0
    for name, value in vars(cls).items():
        if isinstance(value, Var):
            if value.flow:
                n_flow += 1
            elif not (value.parameter or value.input or value.output):
                n_potential += 1

    if n_flow != n_potential:
        errors.append(
            f"Connector balancing violation: "
            f"{n_flow} flow variable(s) vs {n_potential} potential variable(s). "
            f"These must be equal."
        )

    if errors:
        raise TypeError(
            f"Connector '{cls.__name__}' violates connector constraints:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    model_cls = model(cls)
    model_cls._dsl_metadata.is_connector = True
    return model_cls
