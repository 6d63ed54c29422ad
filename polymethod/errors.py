"""Exceptions raised while building or calling open methods."""

from __future__ import annotations

from typing import Any, Iterable


def _describe(obj: Any) -> str:
    name = getattr(obj, "name", None)
    if isinstance(name, str) and name:
        return name
    qualname = getattr(obj, "__qualname__", None)
    if isinstance(qualname, str) and qualname:
        return qualname
    return str(obj)


class OpenMethodError(Exception):
    """Base class of every error reported by the library."""


class UnknownClassError(OpenMethodError):
    """A class was used by a method or an overrider but never registered."""

    def __init__(self, type_: Any) -> None:
        self.type_ = type_
        super().__init__(f"unknown class {_describe(type_)}")


class DispatchNotImplementedError(OpenMethodError, NotImplementedError):
    """No overrider applies to the dynamic types of the arguments."""

    def __init__(self, method: Any, types: Iterable[Any]) -> None:
        self.method = method
        self.types = tuple(types)
        args = ", ".join(_describe(t) for t in self.types)
        super().__init__(f"no applicable overrider for {_describe(method)}({args})")


class AmbiguousDispatchError(OpenMethodError):
    """Several overriders apply and none is more specific than the others."""

    def __init__(self, method: Any, types: Iterable[Any]) -> None:
        self.method = method
        self.types = tuple(types)
        args = ", ".join(_describe(t) for t in self.types)
        super().__init__(f"ambiguous call to {_describe(method)}({args})")


class NotInitializedError(OpenMethodError):
    """A method was called before its registry was initialized."""