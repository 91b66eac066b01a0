"""
ModelInstance and SubmodelProxy for the acausal modeling DSL.

This module contains the runtime model instance class and submodel proxy.
An instance owns its children; symbolic variables of the whole subtree
are registered on it under dotted names so that equations written in
one component can reach into its children ('P.output.u').
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Type

from acausal.types import Var
from acausal.variables import SymbolicVar, TimeVar

if TYPE_CHECKING:
    from acausal.decorators import ModelMetadata
    from acausal.equations import EquationNode
    from acausal.flat_model import FlatSystem


class SubmodelProxy:
    """Proxy for accessing submodel variables with dot notation.

    Supports nested submodels: m.model.inertia2.flange_b.phi
    """

    def __init__(self, name: str, instance: "ModelInstance", parent: "ModelInstance"):
        self._name = name
        self._instance = instance
        self._parent = parent

    def __repr__(self) -> str:
        return f"<{type(self._instance).__name__} {self._name}>"

    def __getattr__(self, attr: str) -> Any:
        if attr.startswith("_"):
            raise AttributeError(attr)

        # First check if this is a nested submodel
        if attr in self._instance._submodels:
            nested_instance = self._instance._submodels[attr]
            return SubmodelProxy(f"{self._name}.{attr}", nested_instance, self._parent)

        # Access submodel's symbolic variable with prefixed name
        full_name = f"{self._name}.{attr}"
        if full_name in self._parent._sym_vars:
            return self._parent._sym_vars[full_name]
        raise AttributeError(f"Submodel '{self._name}' has no attribute '{attr}'")


class ModelInstance:
    """
    Runtime instance of a model for building equations.

    Created when a @model decorated class is instantiated. Keyword
    arguments override parameter values (or start values of other
    variables) of this instance, like `submodel(cls, **overrides)` does
    for children.
    """

    _dsl_metadata: "ModelMetadata"  # Set by @model decorator
    _equations_methods: List[Callable] = []

    def __init__(self, model_class: Type[Any], name: str = "", **overrides: Any):
        self._model_class = model_class
        self._name = name or model_class.__name__
        self._metadata: "ModelMetadata" = model_class._dsl_metadata

        self._sym_vars: Dict[str, SymbolicVar] = {}
        self._submodels: Dict[str, "ModelInstance"] = {}
        self._param_overrides: Dict[str, Any] = {}
        self._time = TimeVar()

        self._apply_overrides(overrides)
        self._create_symbols()

    def _create_symbols(self) -> None:
        """Create symbolic variables for all fields."""
        md = self._metadata

        for name, v in md.variables.items():
            self._sym_vars[name] = SymbolicVar(name, v, self)

        for name, subfld in md.submodels.items():
            sub_overrides = {
                k: (v(self._parameter_namespace()) if callable(v) else v) for k, v in subfld.overrides.items()
            }
            sub_instance = subfld.model_class(name=name, **sub_overrides)
            self._submodels[name] = sub_instance

            # Register the whole subtree on this instance with prefixed names
            for var_name, sym_var in sub_instance._sym_vars.items():
                full_name = f"{name}.{var_name}"
                self._sym_vars[full_name] = SymbolicVar(full_name, sym_var.var, self)

    def _parameter_namespace(self) -> SimpleNamespace:
        """Values of this instance's declarations, for derived child overrides."""
        return SimpleNamespace(**{n: v.get_initial_value() for n, v in self.declared_variables().items()})

    def _apply_overrides(self, overrides: Dict[str, Any]) -> None:
        unknown = sorted(set(overrides) - set(self._metadata.variables))
        if unknown:
            raise TypeError(
                f"'{self._model_class.__name__}' has no variable(s) {unknown} to override; "
                f"available: {sorted(self._metadata.variables)}"
            )
        self._param_overrides = dict(overrides)

    def __getattr__(self, name: str) -> Any:
        """Provide access to symbolic variables and submodels."""
        if name.startswith("_"):
            raise AttributeError(name)

        if name in self._submodels:
            return SubmodelProxy(name, self._submodels[name], self)

        if name in self._sym_vars:
            return self._sym_vars[name]

        raise AttributeError(f"'{self._model_class.__name__}' has no attribute '{name}'")

    def __repr__(self) -> str:
        return f"<{self._model_class.__name__} {self._name}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def time(self) -> TimeVar:
        """Independent variable of this instance."""
        return self._time

    def declared_variables(self) -> Dict[str, Var]:
        """This instance's own declarations with overrides applied."""
        result: Dict[str, Var] = {}
        for name, v in self._metadata.variables.items():
            if name in self._param_overrides:
                v = v.with_value(self._param_overrides[name])
            result[name] = v
        return result

    def get_equations(self) -> List["EquationNode"]:
        """
        Execute all @equations methods and collect equations.

        This is overridden by the @model decorator to execute the
        actual @equations decorated methods.
        """
        return []

    def flatten(self) -> "FlatSystem":
        """Flatten the hierarchy; analysis points become plain signal ties."""
        from acausal.connections import flatten

        return flatten(self)
