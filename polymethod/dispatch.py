"""Selection of overriders and construction of dispatch tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from math import prod
from typing import List, Optional, Sequence, Tuple

from .model import ClassNode, MethodNode, OverriderNode, Trace, VtblEntry


@dataclass
class MethodReport:
    """Counts gathered while building one method's dispatch table."""

    cells: int = 0
    not_implemented: int = 0
    ambiguous: int = 0


@dataclass
class Report(MethodReport):
    """Totals over all methods: cells, and methods with missing or ambiguous cells."""

    def accumulate(self, partial: MethodReport) -> None:
        """Add one method's report to the totals."""
        self.cells += partial.cells
        self.not_implemented += partial.not_implemented != 0
        self.ambiguous += partial.ambiguous != 0


@dataclass
class _Group:
    classes: list = field(default_factory=list)
    has_concrete_classes: bool = False


def _bits(mask: int) -> str:
    return format(mask, "b") if mask else ""


def is_more_specific(a: OverriderNode, b: OverriderNode) -> bool:
    """True if ``a`` is more specific than ``b`` in at least one parameter and less in none."""
    result = False
    for a_cls, b_cls in zip(a.vp, b.vp):
        if a_cls is b_cls:
            continue
        if a_cls in b_cls.transitive_derived:
            result = True
        elif b_cls in a_cls.transitive_derived:
            return False
    return result


def is_base(a: OverriderNode, b: OverriderNode) -> bool:
    """True if every parameter of ``a`` is a base of the one of ``b``, and one strictly."""
    result = False
    for a_cls, b_cls in zip(a.vp, b.vp):
        if a_cls is b_cls:
            continue
        if b_cls not in a_cls.transitive_derived:
            return False
        result = True
    return result


def select_dominant_overriders(
    candidates: List[Optional[OverriderNode]], n2216: bool = False
) -> Tuple[int, int]:
    """Remove dominated overriders from ``candidates`` (set to None) in place.

    Returns ``(pick, remaining)``: the index of the last survivor and the
    number of survivors. With ``n2216``, ties are broken by covariant
    return types, keeping the most derived.
    """
    pick = 0
    remaining = 0

    for i in range(len(candidates)):
        if candidates[i] is not None:
            for j in range(i + 1, len(candidates)):
                if candidates[j] is None:
                    continue
                if is_more_specific(candidates[i], candidates[j]):
                    candidates[j] = None
                elif is_more_specific(candidates[j], candidates[i]):
                    candidates[i] = None
                    break
        if candidates[i] is not None:
            pick = i
            remaining += 1

    if remaining <= 1 or not n2216:
        return pick, remaining

    if candidates[pick].covariant_return_type is None:
        return pick, remaining

    remaining = 0
    for i in range(len(candidates)):
        if candidates[i] is not None:
            for j in range(i + 1, len(candidates)):
                if candidates[j] is None:
                    continue
                ret_i = candidates[i].covariant_return_type
                ret_j = candidates[j].covariant_return_type
                if ret_i is None or ret_j is None:
                    continue
                if ret_i.is_base_of(ret_j):
                    candidates[i] = None
                    break
                if ret_j.is_base_of(ret_i):
                    candidates[j] = None
        if candidates[i] is not None:
            pick = i
            remaining += 1

    return pick, remaining


def _make_groups(m: MethodNode, trace: Trace) -> List[List[Tuple[int, _Group]]]:
    groups = []
    for dim, vp in enumerate(m.vp):
        trace.line(f"make groups for param #{dim}, class {vp.name}")
        dim_groups: dict = {}
        with trace.indent():
            for covariant in vp.transitive_derived:
                trace.line(f"specs applicable to {covariant.name}")
                mask = 0
                with trace.indent():
                    for index, spec in enumerate(m.specs):
                        if covariant in spec.vp[dim].transitive_derived:
                            trace.line(spec.name)
                            mask |= 1 << index
                group = dim_groups.setdefault(mask, _Group())
                group.classes.append(covariant)
                group.has_concrete_classes = (
                    group.has_concrete_classes or not covariant.is_abstract
                )
                trace.line(f"-> mask: {_bits(mask)}")
        groups.append(sorted(dim_groups.items(), key=lambda item: item[0]))
    return groups


def _fill_dispatch_table(
    m: MethodNode,
    dim: int,
    groups: Sequence[Sequence[Tuple[int, _Group]]],
    candidates: int,
    concrete: bool,
    n2216: bool,
    trace: Trace,
) -> None:
    with trace.indent():
        for group_index, (group_mask, group) in enumerate(groups[dim]):
            mask = candidates & group_mask

            if trace.enabled:
                trace.line(f"group {dim}/{group_index} mask {_bits(mask)}")
                with trace.indent():
                    for cls in group.classes:
                        trace.line(cls.name)

            if dim > 0:
                _fill_dispatch_table(
                    m,
                    dim - 1,
                    groups,
                    mask,
                    concrete and group.has_concrete_classes,
                    n2216,
                    trace,
                )
                continue

            overriders: List[Optional[OverriderNode]] = [
                spec for index, spec in enumerate(m.specs) if mask >> index & 1
            ]

            if trace.enabled:
                trace.line("select best of:")
                with trace.indent():
                    for app in overriders:
                        trace.line(f"#{app.spec_index} {app.name}")

            dominants = list(overriders)
            pick, remaining = select_dominant_overriders(dominants, n2216)

            if remaining == 0:
                with trace.indent():
                    trace.line("not implemented")
                m.dispatch_table.append(m.not_implemented)
                m.report.not_implemented += 1
                continue

            if not n2216 and remaining > 1:
                trace.line("ambiguous")
                m.dispatch_table.append(m.ambiguous)
                m.report.ambiguous += 1
                continue

            overrider = dominants[pick]
            m.dispatch_table.append(overrider)
            suffix = ""
            if remaining > 1:
                suffix = " (ambiguous)"
                m.report.ambiguous += 1
            trace.line(f"-> #{overrider.spec_index} {overrider.name}{suffix}")

            # Remove the dominants from the overriders; both lists keep
            # the same relative order.
            remaining = 0
            for index, dominant in enumerate(dominants):
                if overriders[index] is dominant:
                    overriders[index] = None
                else:
                    remaining += 1

            if remaining == 0:
                trace.line("no 'next'")
                overrider.next = m.not_implemented
                continue

            if trace.enabled:
                trace.line("for 'next', select best of:")
                with trace.indent():
                    for app in overriders:
                        if app is not None:
                            trace.line(f"#{app.spec_index} {app.name}")

            pick, remaining = select_dominant_overriders(overriders, n2216)

            if not n2216 and remaining > 1:
                trace.line("ambiguous 'next'")
                overrider.next = m.ambiguous
                continue

            next_overrider = overriders[pick]
            overrider.next = next_overrider
            suffix = " (ambiguous)" if remaining > 1 else ""
            trace.line(f"-> #{next_overrider.spec_index} {next_overrider.name}{suffix}")


def build_dispatch_tables(
    methods: Sequence[MethodNode], n2216: bool = False, trace: Optional[Trace] = None
) -> Report:
    """Build every method's dispatch table, strides and v-table entries.

    Slots must already be assigned. Sets ``dispatch_table``, ``strides``,
    ``report`` and the ``next`` links of the overriders, fills the
    v-table entries of the classes, and returns the accumulated report.
    Raises ValueError for a method without virtual parameters.
    """
    trace = trace or Trace()
    total = Report()

    for method_index, m in enumerate(methods):
        if m.arity() == 0:
            raise ValueError(f"method {m.name} has no virtual parameter")

        trace.line(f"Building dispatch table for {m.name}")
        with trace.indent():
            m.report = MethodReport()
            m.dispatch_table = []
            groups = _make_groups(m, trace)

            m.strides = []
            stride = 1
            for dim in range(1, m.arity()):
                stride *= len(groups[dim - 1])
                trace.line(f"    stride for dim {dim} = {stride}")
                m.strides.append(stride)

            for dim, dim_groups in enumerate(groups):
                with trace.indent():
                    for group_num, (mask, group) in enumerate(dim_groups):
                        trace.line(f"groups for dim {dim}:")
                        with trace.indent():
                            trace.line(f"{group_num} mask {_bits(mask)}:")
                            for cls in group.classes:
                                with trace.indent():
                                    trace.line(cls.name)
                                _set_entry(
                                    cls,
                                    m.slots[dim],
                                    VtblEntry(method_index, dim, group_num),
                                )

            trace.line("building dispatch table")
            everything = (1 << len(m.specs)) - 1
            _fill_dispatch_table(
                m, m.arity() - 1, groups, everything, True, n2216, trace
            )

            if m.arity() > 1:
                m.report.cells = prod(len(dim_groups) for dim_groups in groups)
                if trace.enabled:
                    with trace.indent():
                        rank = " x ".join(str(len(g)) for g in groups)
                        concrete = " x ".join(
                            str(sum(1 for _, grp in g if grp.has_concrete_classes))
                            for g in groups
                        )
                        trace.line(
                            f"dispatch table rank: {rank}, concrete only: {concrete}"
                        )

            _print_report(m.report, trace)
            total.accumulate(m.report)

    return total


def _set_entry(cls: ClassNode, slot: int, entry: VtblEntry) -> None:
    cls.vtbl[slot - cls.first_slot] = entry


def _print_report(report: MethodReport, trace: Trace) -> None:
    cells = f"{report.cells} dispatch table cells, " if report.cells else ""
    trace.line(
        f"{cells}{report.not_implemented} not implemented, "
        f"{report.ambiguous} ambiguous"
    )