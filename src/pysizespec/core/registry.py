"""
Name-based registries of replaceable model functions.

Every stage of the rate pipeline, the resource dynamics, the dynamics of
additional ecosystem components, the predation kernels and the gear
selectivity functions are looked up by name at the moment they are
called. Replacing a stage therefore only requires registering a function
and pointing the parameter store at its name.

Example
-------
>>> from pysizespec.core.registry import RATE_FUNCTIONS
>>> @RATE_FUNCTIONS.register()
... def half_feeding_level(params, encounter, **kwargs):
...     return encounter / (encounter + params.intake_max) / 2
>>> params = set_rate_function(params, "FeedingLevel", "half_feeding_level")
"""

from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Optional, Union

from pysizespec.core.errors import UnknownFunction


class Registry:
    """Mapping from names to callables.

    Parameters
    ----------
    kind : str
        Human readable name of the registry, used in error messages.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._functions: Dict[str, Callable] = {}

    def register(self, name: Optional[str] = None, fun: Optional[Callable] = None):
        """Register a function.

        Can be used directly, ``registry.register("name", fun)``, or as a
        decorator, ``@registry.register()`` or ``@registry.register("name")``.
        Registering under an existing name replaces the previous entry.
        """
        if fun is not None:
            if not callable(fun):
                raise TypeError(f"Cannot register non-callable {fun!r} in {self.kind}")
            self._functions[name or fun.__name__] = fun
            return fun

        def decorator(f: Callable) -> Callable:
            return self.register(name or f.__name__, f)

        return decorator

    def resolve(self, name_or_fun: Union[str, Callable]) -> Callable:
        """Return the callable registered under a name.

        Callables are passed through unchanged.

        Raises
        ------
        UnknownFunction
            If nothing is registered under the name.
        """
        if callable(name_or_fun):
            return name_or_fun
        try:
            return self._functions[name_or_fun]
        except KeyError:
            raise UnknownFunction(self.kind, str(name_or_fun), list(self._functions)) from None

    def name_of(self, name_or_fun: Union[str, Callable]) -> str:
        """Return a registered name, registering a callable if needed.

        A callable is registered under its ``__name__``. If that name
        already belongs to a different function (two lambdas, or a
        redefined function) the new one gets a name suffixed with its id,
        so stores pointing at the existing entry keep their function.
        """
        if callable(name_or_fun):
            for name, fun in self._functions.items():
                if fun is name_or_fun:
                    return name
            name = getattr(name_or_fun, "__name__", type(name_or_fun).__name__)
            if name in self._functions:
                name = f"{name}_{id(name_or_fun):x}"
            self.register(name, name_or_fun)
            return name
        self.resolve(name_or_fun)
        return name_or_fun

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def names(self) -> List[str]:
        return list(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def __repr__(self) -> str:
        return f"Registry({self.kind!r}, {len(self)} functions)"


RATE_FUNCTIONS = Registry("rate functions")
RESOURCE_DYNAMICS = Registry("resource dynamics")
COMPONENT_FUNCTIONS = Registry("component functions")
PRED_KERNELS = Registry("predation kernels")
SELECTIVITY_FUNCTIONS = Registry("selectivity functions")
