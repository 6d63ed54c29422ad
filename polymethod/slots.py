"""Allocation of v-table slots to the virtual parameters of methods."""

from __future__ import annotations

from typing import Iterable, Optional

from .model import ClassNode, Trace, VtblEntry


def _bits(mask: int) -> str:
    return format(mask, "b") if mask else ""


def _first_clear_bit(mask: int) -> int:
    return (~mask & (mask + 1)).bit_length() - 1


def _lowest_set_bit(mask: int) -> int:
    return (mask & -mask).bit_length() - 1


def _set_slot(method, param: int, slot: int) -> None:
    if len(method.slots) <= param:
        method.slots.extend([0] * (param + 1 - len(method.slots)))
    method.slots[param] = slot


def _assign_tree_slots(cls: ClassNode, base_slot: int, trace: Trace) -> None:
    next_slot = base_slot
    for method, param in cls.used_by_vp:
        trace.line(f" in {cls.name} for {method.name} parameter {param}: {next_slot}")
        _set_slot(method, param, next_slot)
        next_slot += 1

    cls.first_slot = 0
    cls.vtbl = [VtblEntry() for _ in range(next_slot)]

    for derived in cls.direct_derived:
        _assign_tree_slots(derived, next_slot, trace)


def _assign_lattice_slots(cls: ClassNode, visited: set, trace: Trace) -> None:
    if cls in visited:
        return
    visited.add(cls)

    for method, param in cls.used_by_vp:
        trace.line(f" in {cls.name} for {method.name} parameter {param}")
        with trace.indent():
            trace.line(
                f"reserved slots: {_bits(cls.reserved_slots)}"
                f" used slots: {_bits(cls.used_slots)}"
            )
            unavailable = cls.used_slots | cls.reserved_slots
            trace.line(f"unavailable slots: {_bits(unavailable)}")
            slot = _first_clear_bit(unavailable)
            trace.line(f"first available slot: {slot}")

            _set_slot(method, param, slot)
            cls.used_slots |= 1 << slot
            cls.reserved_slots |= 1 << slot

            trace.line(f"reserve slots {_bits(cls.used_slots)} in:")
            with trace.indent():
                for base in cls.transitive_bases:
                    trace.line(base.name)
                    base.reserved_slots |= cls.used_slots

            trace.line(f"assign slots {_bits(cls.used_slots)} in:")
            with trace.indent():
                for covariant in cls.transitive_derived:
                    if covariant is cls:
                        continue
                    trace.line(covariant.name)
                    covariant.used_slots |= cls.used_slots
                    for base in covariant.transitive_bases:
                        trace.line(base.name)
                        base.reserved_slots |= cls.used_slots

    for derived in cls.direct_derived:
        _assign_lattice_slots(derived, visited, trace)


def assign_slots(classes: Iterable[ClassNode], trace: Optional[Trace] = None) -> None:
    """Give every (method, parameter) pair in ``used_by_vp`` a v-table slot.

    Each class's ``used_by_vp`` holds ``(method, parameter index)`` pairs.
    Hierarchies without multiple inheritance get consecutive slots starting
    at zero; lattices get slots chosen so that no class sees two parameters
    sharing one. Every class's ``first_slot`` and ``vtbl`` are set.
    """
    trace = trace or Trace()
    nodes = list(classes)
    visited: set = set()

    trace.line("Allocating slots...")
    with trace.indent():
        for cls in nodes:
            if cls.direct_bases:
                continue
            if any(len(d.direct_bases) > 1 for d in cls.transitive_derived):
                _assign_lattice_slots(cls, visited, trace)
            else:
                with trace.indent():
                    _assign_tree_slots(cls, 0, trace)

    trace.line("Allocating MI v-tables...")
    with trace.indent():
        for cls in nodes:
            if not cls.used_slots:
                # not involved in multiple inheritance
                continue
            cls.first_slot = _lowest_set_bit(cls.used_slots)
            size = cls.used_slots.bit_length()
            cls.vtbl = [VtblEntry() for _ in range(size - cls.first_slot)]
            trace.line(
                f"{cls.name} vtbl: {cls.first_slot}-{size}"
                f" slots {_bits(cls.used_slots)}"
            )