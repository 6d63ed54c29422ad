"""Registries: the classes, methods and policies that dispatch relies on."""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, List, Optional

from .compiler import Compiler, Vtable
from .errors import NotInitializedError, OpenMethodError, UnknownClassError
from .model import ClassRegistration, Trace


class Registry:
    """Holds classes and methods, and the tables built from them."""

    def __init__(
        self,
        name: str = "registry",
        trace: bool = False,
        n2216: bool = False,
        type_id: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        self.name = name
        self.trace = Trace(enabled=trace)
        self.n2216 = n2216
        self.type_id = type_id or type
        self.registrations: List[ClassRegistration] = []
        self.methods: List[Any] = []
        self.vptrs: Dict[Any, Vtable] = {}
        self.initialized = False
        self._error_handler: Optional[Callable[[OpenMethodError], Any]] = None

    def __repr__(self) -> str:
        return f"Registry({self.name!r})"

    def use_classes(self, *args: type) -> None:
        """Register classes; each gets as bases the listed classes it derives from."""
        for cls in args:
            if not isinstance(cls, type):
                raise TypeError(f"not a class: {cls!r}")
        for cls in args:
            bases = tuple(b for b in args if b is not cls and issubclass(cls, b))
            self.registrations.append(
                ClassRegistration(cls, bases, inspect.isabstract(cls))
            )

    def add_method(self, method: Any) -> None:
        """Register a method description."""
        if method not in self.methods:
            self.methods.append(method)

    def initialize(self) -> Compiler:
        """Build the dispatch data; return the compiler, with its report."""
        return Compiler(self).initialize()

    def finalize(self) -> None:
        """Discard the dispatch data."""
        self.vptrs = {}
        self.initialized = False

    def set_error_handler(
        self, handler: Optional[Callable[[OpenMethodError], Any]]
    ) -> None:
        """Install a handler called before an error is raised."""
        self._error_handler = handler

    def error(self, error: OpenMethodError) -> None:
        """Report ``error`` to the handler, then raise it."""
        if self._error_handler is not None:
            self._error_handler(error)
        raise error

    def dynamic_type(self, obj: Any) -> Any:
        """The registered type of ``obj``."""
        return self.type_id(obj)

    def static_vptr(self, cls: Any) -> Vtable:
        """The v-table of a registered class."""
        if not self.initialized:
            raise NotInitializedError(f"{self.name} is not initialized")
        vtable = self.vptrs.get(cls)
        if vtable is None:
            self.error(UnknownClassError(cls))
        return vtable

    def vptr(self, obj: Any) -> Vtable:
        """The v-table of the dynamic type of ``obj``."""
        return self.static_vptr(self.dynamic_type(obj))

    def with_policies(self, name: str, **kwargs: Any) -> "Registry":
        """A new, independent registry with the same options, some overridden."""
        options = {
            "trace": self.trace.enabled,
            "n2216": self.n2216,
            "type_id": self.type_id,
        }
        options.update(kwargs)
        return Registry(name, **options)


_DEFAULT = Registry("default_registry")


def default_registry() -> Registry:
    """The registry used when none is given."""
    return _DEFAULT


def initialize(registry: Optional[Registry] = None) -> Compiler:
    """Initialize ``registry``, or the default one."""
    return (registry or _DEFAULT).initialize()


def finalize(registry: Optional[Registry] = None) -> None:
    """Finalize ``registry``, or the default one."""
    (registry or _DEFAULT).finalize()