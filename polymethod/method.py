"""Open methods: functions dispatched on the dynamic types of several arguments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .errors import (
    AmbiguousDispatchError,
    DispatchNotImplementedError,
    NotInitializedError,
)
from .registry import Registry, default_registry
from .virtual_ptr import VirtualPtr


@dataclass(frozen=True)
class Virtual:
    """Marks a parameter of a method as virtual, with its declared class."""

    cls: Any


@dataclass(eq=False)
class _Overrider:
    fn: Callable[..., Any]
    types: tuple
    returns: Any
    name: str
    next: Optional[Callable[..., Any]] = None


class Method:
    """A function whose implementation is chosen from the dynamic types of its
    virtual arguments.

    ``params`` lists the parameters: ``Virtual(cls)`` for a virtual one,
    anything else for an ordinary one. Calls need the registry to be
    initialized after every overrider has been added.
    """

    def __init__(
        self,
        name: str,
        params: Sequence[Any],
        returns: Any = None,
        registry: Optional[Registry] = None,
    ) -> None:
        self.name = name
        self.params = tuple(params)
        self.returns = returns
        self.registry = registry or default_registry()
        self._positions = tuple(
            index for index, param in enumerate(self.params) if isinstance(param, Virtual)
        )
        if not self._positions:
            raise TypeError(f"method {name} needs at least one virtual parameter")
        self.virtual_types = tuple(self.params[i].cls for i in self._positions)
        self.overriders: List[_Overrider] = []
        self.slots: Optional[List[int]] = None
        self.strides: Optional[List[int]] = None
        self.table: Optional[List[Callable[..., Any]]] = None
        self.registry.add_method(self)

    def __repr__(self) -> str:
        return f"Method({self.name!r})"

    def override(self, *args: Any, returns: Any = None) -> Callable[[Callable], Callable]:
        """Decorator adding the decorated function as an overrider.

        ``args`` are the classes of the virtual parameters, or of all the
        parameters (those in non-virtual positions are then ignored).
        """

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add_overrider(fn, args, returns)
            return fn

        return decorator

    def add_overrider(
        self, fn: Callable[..., Any], types: Sequence[Any], returns: Any = None
    ) -> Callable[..., Any]:
        """Add ``fn`` as the overrider for the given virtual parameter classes."""
        types = tuple(types)
        if len(types) == len(self.params) and len(types) != len(self._positions):
            types = tuple(types[i] for i in self._positions)
        if len(types) != len(self._positions):
            raise TypeError(
                f"overrider of {self.name} needs {len(self._positions)} "
                f"virtual parameter types, got {len(types)}"
            )
        for given, declared in zip(types, self.virtual_types):
            if (
                isinstance(given, type)
                and isinstance(declared, type)
                and not issubclass(given, declared)
            ):
                raise TypeError(
                    f"{given.__qualname__} does not derive from {declared.__qualname__}"
                )
        name = getattr(fn, "__qualname__", None) or repr(fn)
        self.overriders.append(
            _Overrider(
                fn=fn,
                types=types,
                returns=returns if returns is not None else self.returns,
                name=name,
            )
        )
        return fn

    def _spec_for(self, fn: Callable[..., Any]) -> _Overrider:
        for spec in self.overriders:
            if spec.fn is fn:
                return spec
        raise ValueError(f"{fn!r} is not an overrider of {self.name}")

    def next(self, overrider: Callable[..., Any]) -> Callable[..., Any]:
        """A callable invoking the overrider that ``overrider`` specializes."""
        spec = self._spec_for(overrider)

        def call_next(*args: Any) -> Any:
            if not self.registry.initialized or spec.next is None:
                raise NotInitializedError(f"{self.registry.name} is not initialized")
            return spec.next(*args)

        return call_next

    def _dynamic_types(self, args: Tuple[Any, ...]) -> Tuple[Any, ...]:
        types = []
        for index in self._positions:
            if index >= len(args):
                break
            arg = args[index]
            if isinstance(arg, VirtualPtr):
                arg = arg.obj
            types.append(self.registry.dynamic_type(arg))
        return tuple(types)

    def not_implemented(self, *args: Any) -> Any:
        """Called when no overrider applies; reports and raises."""
        self.registry.error(DispatchNotImplementedError(self, self._dynamic_types(args)))

    def ambiguous(self, *args: Any) -> Any:
        """Called when the best overrider is ambiguous; reports and raises."""
        self.registry.error(AmbiguousDispatchError(self, self._dynamic_types(args)))

    def _vptr_of(self, arg: Any) -> Any:
        if isinstance(arg, VirtualPtr):
            if arg.registry is self.registry:
                return arg.vptr
            return self.registry.vptr(arg.obj)
        return self.registry.vptr(arg)

    def __call__(self, *args: Any) -> Any:
        if len(args) != len(self.params):
            raise TypeError(
                f"{self.name} takes {len(self.params)} arguments, got {len(args)}"
            )
        if not self.registry.initialized or self.table is None:
            raise NotInitializedError(f"{self.registry.name} is not initialized")

        vptrs = [self._vptr_of(args[i]) for i in self._positions]
        if len(vptrs) == 1:
            fn = vptrs[0][self.slots[0]]
        else:
            index = vptrs[0][self.slots[0]]
            for vptr, slot, stride in zip(vptrs[1:], self.slots[1:], self.strides):
                index += vptr[slot] * stride
            fn = self.table[index]
        return fn(*args)