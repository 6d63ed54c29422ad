"""Class hierarchy model used by the dispatch compiler."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, Iterator, Optional, TextIO

from .errors import UnknownClassError


def _type_name(type_: Any) -> str:
    qualname = getattr(type_, "__qualname__", None)
    if isinstance(qualname, str) and qualname:
        return qualname
    return str(type_)


def _identity(type_: Any) -> Hashable:
    return type_


def _names(nodes: Iterable["ClassNode"]) -> str:
    return "(" + ", ".join(node.name for node in nodes) + ")"


class Trace:
    """Indented diagnostic output, written only when enabled."""

    def __init__(self, enabled: bool = False, stream: Optional[TextIO] = None) -> None:
        self.enabled = enabled
        self.stream = stream
        self._level = 0

    def line(self, text: str) -> None:
        """Write one line at the current indentation."""
        if self.enabled:
            out = self.stream if self.stream is not None else sys.stderr
            out.write("  " * self._level + text + "\n")

    @contextmanager
    def indent(self) -> Iterator["Trace"]:
        """Indent the lines written inside the block by one level."""
        self._level += 1
        try:
            yield self
        finally:
            self._level -= 1


@dataclass(frozen=True)
class ClassRegistration:
    """A class as declared to a registry, with its known bases.

    ``bases`` may include the class itself; that improper base is ignored.
    """

    type_: Any
    bases: tuple = ()
    is_abstract: bool = False


@dataclass(eq=False, repr=False)
class ClassNode:
    """A class in the inheritance lattice, with its slot and v-table data."""

    name: str = ""
    is_abstract: bool = False
    type_ids: list = field(default_factory=list)
    transitive_bases: list = field(default_factory=list)
    direct_bases: list = field(default_factory=list)
    direct_derived: list = field(default_factory=list)
    transitive_derived: dict = field(default_factory=dict)
    used_by_vp: list = field(default_factory=list)
    used_slots: int = 0
    reserved_slots: int = 0
    first_slot: int = 0
    mark: int = 0
    vtbl: list = field(default_factory=list)
    vptr: Any = None

    def is_base_of(self, other: "ClassNode") -> bool:
        """True if ``other`` is this class or derives from it."""
        return other in self.transitive_derived

    def __repr__(self) -> str:
        return f"ClassNode({self.name})"


@dataclass
class VtblEntry:
    """What a v-table slot refers to: a method, a parameter and a group."""

    method_index: int = 0
    vp_index: int = 0
    group_index: int = 0


@dataclass(eq=False, repr=False)
class OverriderNode:
    """An overrider of a method, resolved against the lattice."""

    info: Any = None
    name: str = ""
    pf: Optional[Callable[..., Any]] = None
    vp: list = field(default_factory=list)
    next: Optional["OverriderNode"] = None
    covariant_return_type: Optional[ClassNode] = None
    method_index: int = 0
    spec_index: int = 0

    def __repr__(self) -> str:
        return f"OverriderNode(#{self.spec_index} {self.name})"


@dataclass(eq=False, repr=False)
class MethodNode:
    """A method, its virtual parameters, overriders and dispatch data."""

    info: Any = None
    name: str = ""
    vp: list = field(default_factory=list)
    covariant_return_type: Optional[ClassNode] = None
    specs: list = field(default_factory=list)
    slots: list = field(default_factory=list)
    strides: list = field(default_factory=list)
    dispatch_table: list = field(default_factory=list)
    not_implemented: OverriderNode = field(
        default_factory=lambda: OverriderNode(name="not implemented")
    )
    ambiguous: OverriderNode = field(
        default_factory=lambda: OverriderNode(name="ambiguous")
    )
    gv_dispatch_table: Any = None
    report: Any = None

    def arity(self) -> int:
        """Number of virtual parameters."""
        return len(self.vp)

    def __repr__(self) -> str:
        return f"MethodNode({self.name})"


class Hierarchy:
    """The registered classes, looked up by type id."""

    def __init__(self, type_index: Optional[Callable[[Any], Hashable]] = None) -> None:
        self._key = type_index or _identity
        self._nodes: dict = {}
        self._order: list = []

    def _add(self, type_: Any, node: ClassNode) -> ClassNode:
        self._nodes[self._key(type_)] = node
        self._order.append(node)
        return node

    def __getitem__(self, type_: Any) -> ClassNode:
        node = self.get(type_)
        if node is None:
            raise UnknownClassError(type_)
        return node

    def get(self, type_: Any) -> Optional[ClassNode]:
        """The node for ``type_``, or None if it is not registered."""
        return self._nodes.get(self._key(type_))

    def __iter__(self) -> Iterator[ClassNode]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)


def _collect_transitive_bases(cls: ClassNode, base: ClassNode, seen: set) -> None:
    if base in seen:
        return
    cls.transitive_bases.append(base)
    seen.add(base)
    for base_base in list(base.transitive_bases):
        _collect_transitive_bases(cls, base_base, seen)


def _calculate_transitive_derived(cls: ClassNode) -> None:
    if cls.transitive_derived:
        return
    cls.transitive_derived[cls] = None
    for derived in cls.direct_derived:
        _calculate_transitive_derived(derived)
        cls.transitive_derived.update(derived.transitive_derived)


def build_hierarchy(
    registrations: Iterable[ClassRegistration],
    type_index: Optional[Callable[[Any], Hashable]] = None,
    trace: Optional[Trace] = None,
) -> Hierarchy:
    """Build the inheritance lattice from class registrations.

    Raises UnknownClassError if a base was never registered.
    """
    trace = trace or Trace()
    regs = list(registrations)
    hierarchy = Hierarchy(type_index)

    trace.line("Static class info:")
    for reg in regs:
        with trace.indent():
            bases = ", ".join(_type_name(b) for b in reg.bases)
            trace.line(f"{_type_name(reg.type_)}: ({bases})")
        node = hierarchy.get(reg.type_)
        if node is None:
            node = hierarchy._add(
                reg.type_,
                ClassNode(name=_type_name(reg.type_), is_abstract=reg.is_abstract),
            )
        if reg.type_ not in node.type_ids:
            node.type_ids.append(reg.type_)

    for reg in regs:
        node = hierarchy[reg.type_]
        for base in reg.bases:
            base_node = hierarchy[base]
            if base_node is not node:
                _collect_transitive_bases(node, base_node, set())

    for node in hierarchy:
        node.transitive_bases = list(dict.fromkeys(node.transitive_bases))

    for node in hierarchy:
        # A base never comes before one of its own bases.
        node.transitive_bases.sort(key=lambda b: len(b.transitive_bases), reverse=True)
        covered: set = set()
        for base in node.transitive_bases:
            if base in covered:
                continue
            node.direct_bases.append(base)
            covered.update(base.transitive_bases)

    for node in hierarchy:
        for base in node.direct_bases:
            base.direct_derived.append(node)

    for node in hierarchy:
        _calculate_transitive_derived(node)

    if trace.enabled:
        trace.line("Inheritance lattice:")
        for node in hierarchy:
            with trace.indent():
                trace.line(node.name)
                with trace.indent():
                    trace.line(f"bases:      {_names(node.direct_bases)}")
                    trace.line(f"derived:    {_names(node.direct_derived)}")
                    trace.line(f"covariant:  {_names(node.transitive_derived)}")

    return hierarchy