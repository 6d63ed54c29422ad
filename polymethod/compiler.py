"""Compilation of registered classes and methods into dispatch data.

The compiler works on a registry that exposes ``registrations`` (class
registrations), ``methods`` (method descriptions), ``trace``, ``n2216``,
``error(exc)`` and a writable ``vptrs`` mapping.

A method description provides ``name``, ``virtual_types``, ``returns``,
``overriders``, ``not_implemented`` and ``ambiguous``. Each overrider
provides ``fn``, ``types``, ``returns``, ``name`` and a writable ``next``.
After installation the method description receives ``slots``,
``strides`` and ``table``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from .dispatch import Report, build_dispatch_tables
from .errors import OpenMethodError, UnknownClassError
from .model import (
    ClassNode,
    Hierarchy,
    MethodNode,
    OverriderNode,
    build_hierarchy,
)
from .slots import assign_slots


class Vtable:
    """The per-class table of dispatch entries, indexed by slot."""

    def __init__(self, first_slot: int, entries: List[Any]) -> None:
        self.first_slot = first_slot
        self.entries = entries

    def __getitem__(self, slot: int) -> Any:
        return self.entries[slot - self.first_slot]

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Vtable(first_slot={self.first_slot}, entries={self.entries!r})"


def _name_of(obj: Any) -> str:
    name = getattr(obj, "name", None)
    if isinstance(name, str) and name:
        return name
    return getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None) or str(obj)


class Compiler:
    """Builds and installs the dispatch data of one registry."""

    def __init__(self, registry: Any) -> None:
        self.registry = registry
        self.trace = registry.trace
        self.hierarchy: Optional[Hierarchy] = None
        self.classes: List[ClassNode] = []
        self.methods: List[MethodNode] = []
        self.report = Report()
        self.compilation_done = False

    def _lookup(self, type_: Any) -> ClassNode:
        node = self.hierarchy.get(type_)
        if node is None:
            self.registry.error(UnknownClassError(type_))
            raise UnknownClassError(type_)
        return node

    def _augment_classes(self) -> None:
        try:
            self.hierarchy = build_hierarchy(
                self.registry.registrations, trace=self.trace
            )
        except UnknownClassError as exc:
            self.registry.error(exc)
            raise
        self.classes = list(self.hierarchy)

    def _augment_methods(self) -> None:
        self.methods = []
        self.trace.line("Methods:")
        with self.trace.indent():
            for method_index, info in enumerate(self.registry.methods):
                name = _name_of(info)
                self.trace.line(name)
                node = MethodNode(info=info, name=name)
                node.vp = [self._lookup(t) for t in info.virtual_types]
                node.slots = [0] * len(node.vp)

                returns = getattr(info, "returns", None)
                if returns is not None:
                    node.covariant_return_type = self.hierarchy.get(returns)

                overriders = list(info.overriders)
                node.not_implemented.pf = info.not_implemented
                node.not_implemented.method_index = method_index
                node.not_implemented.spec_index = len(overriders)
                node.ambiguous.pf = info.ambiguous
                node.ambiguous.method_index = method_index
                node.ambiguous.spec_index = len(overriders) + 1

                with self.trace.indent():
                    for spec_index, spec in enumerate(overriders):
                        spec_node = OverriderNode(
                            info=spec,
                            name=_name_of(spec),
                            pf=spec.fn,
                            vp=[self._lookup(t) for t in spec.types],
                            method_index=method_index,
                            spec_index=spec_index,
                        )
                        self.trace.line(spec_node.name)
                        if node.covariant_return_type is not None:
                            spec_node.covariant_return_type = self._lookup(
                                spec.returns
                            )
                        node.specs.append(spec_node)

                self.methods.append(node)

        for node in self.methods:
            for param, vp in enumerate(node.vp):
                vp.used_by_vp.append((node, param))

    def compile(self) -> Report:
        """Build the lattice, slots and dispatch tables; return the report."""
        self._augment_classes()
        self._augment_methods()
        assign_slots(self.classes, self.trace)
        self.report = build_dispatch_tables(
            self.methods, self.registry.n2216, self.trace
        )
        self.compilation_done = True
        return self.report

    def install_global_tables(self) -> None:
        """Write the compiled data into the methods and the registry."""
        if not self.compilation_done:
            raise OpenMethodError("install_global_tables called before compile")

        self.trace.line("Initializing multi-method dispatch tables")
        for m in self.methods:
            info = m.info
            info.slots = list(m.slots)
            info.strides = list(m.strides)
            info.table = [spec.pf for spec in m.dispatch_table]

        self.trace.line("Setting 'next' pointers")
        for m in self.methods:
            for spec in m.specs:
                if spec.next is not None:
                    spec.info.next = spec.next.pf

        self.trace.line("Initializing v-tables")
        vptrs: Dict[Any, Vtable] = {}
        for cls in self.classes:
            entries: List[Any] = []
            for entry in cls.vtbl:
                method = self.methods[entry.method_index]
                if method.arity() == 1:
                    entries.append(method.dispatch_table[entry.group_index].pf)
                else:
                    entries.append(entry.group_index)
            vtable = Vtable(cls.first_slot, entries)
            cls.vptr = vtable
            for type_ in cls.type_ids:
                vptrs[type_] = vtable
        self.registry.vptrs = vptrs

        r = self.report
        cells = f"{r.cells} dispatch table cells, " if r.cells else ""
        self.trace.line(
            f"{cells}{r.not_implemented} not implemented, {r.ambiguous} ambiguous"
        )
        self.trace.line("Finished")

    def initialize(self) -> "Compiler":
        """Compile, install, and mark the registry as initialized."""
        self.compile()
        self.install_global_tables()
        self.registry.initialized = True
        return self


NotImplementedHandler = Callable[..., Any]