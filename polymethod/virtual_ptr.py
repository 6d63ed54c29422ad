"""Pointers that carry an object together with its v-table."""

from __future__ import annotations

from typing import Any, Optional

from .registry import Registry, default_registry


class VirtualPtr:
    """An object paired with the v-table of its class."""

    __slots__ = ("obj", "registry", "vptr")

    def __init__(self, obj: Any, registry: Optional[Registry] = None) -> None:
        if isinstance(obj, VirtualPtr):
            registry = registry or obj.registry
            vptr = obj.vptr
            obj = obj.obj
        else:
            registry = registry or default_registry()
            vptr = registry.vptr(obj)
        self.obj = obj
        self.registry = registry
        self.vptr = vptr

    @classmethod
    def final(cls, obj: Any, registry: Optional[Registry] = None) -> "VirtualPtr":
        """A pointer using the v-table of the exact class of ``obj``."""
        registry = registry or default_registry()
        ptr = cls.__new__(cls)
        ptr.obj = obj
        ptr.registry = registry
        ptr.vptr = registry.static_vptr(type(obj))
        return ptr

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not slots of the pointer itself.
        if name in VirtualPtr.__slots__:
            raise AttributeError(name)
        return getattr(self.obj, name)

    def __repr__(self) -> str:
        return f"VirtualPtr({self.obj!r})"


def final_virtual_ptr(obj: Any, registry: Optional[Registry] = None) -> VirtualPtr:
    """A VirtualPtr for an object whose exact class is known."""
    return VirtualPtr.final(obj, registry)


def make_virtual(cls: type, *args: Any, **kwargs: Any) -> VirtualPtr:
    """Create ``cls(*args, **kwargs)`` and return a final VirtualPtr to it.

    A ``registry`` keyword selects the registry and is not passed to ``cls``.
    """
    registry = kwargs.pop("registry", None)
    return VirtualPtr.final(cls(*args, **kwargs), registry)