"""Line selection state for partial commits and discards."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Iterator


class DiffSelectionType(enum.Enum):
    ALL = "all"
    PARTIAL = "partial"
    NONE = "none"


def _type_matches_selection(selection_type: DiffSelectionType, selected: bool) -> bool:
    """True when *selected* is already the state of every line of *selection_type*."""

    if selection_type is DiffSelectionType.ALL:
        return selected
    if selection_type is DiffSelectionType.NONE:
        return not selected
    return False


@dataclass(frozen=True, slots=True)
class DiffSelection:
    """Immutable, sparse record of which flat line indices are selected.

    A selection starts out with every line selected or no line selected and
    only stores the indices whose state diverges from that default. Every
    mutator returns a new instance.

    ``selectable_lines`` optionally restricts which indices can ever diverge,
    typically the added and deleted lines of a diff. Without it the selection
    cannot tell when every line has diverged and reports ``PARTIAL`` instead.
    """

    default_selection_type: DiffSelectionType
    diverging_lines: frozenset[int] | None = None
    selectable_lines: frozenset[int] | None = None

    @classmethod
    def from_initial_selection(cls, initial_selection: DiffSelectionType) -> DiffSelection:
        if initial_selection not in (DiffSelectionType.ALL, DiffSelectionType.NONE):
            raise ValueError("Can only instantiate a DiffSelection with ALL or NONE as the initial selection")
        return cls(initial_selection)

    def get_selection_type(self) -> DiffSelectionType:
        diverging = self.diverging_lines
        if not diverging:
            return self.default_selection_type

        selectable = self.selectable_lines
        if selectable is not None and len(selectable) == len(diverging) and selectable <= diverging:
            if self.default_selection_type is DiffSelectionType.ALL:
                return DiffSelectionType.NONE
            return DiffSelectionType.ALL

        return DiffSelectionType.PARTIAL

    def is_selected(self, line_index: int) -> bool:
        diverges = bool(self.diverging_lines) and line_index in self.diverging_lines
        if self.default_selection_type is DiffSelectionType.ALL:
            return not diverges
        return diverges

    def is_selectable(self, line_index: int) -> bool:
        """Hunk headers and context lines are usually not selectable."""

        return self.selectable_lines is None or line_index in self.selectable_lines

    def iter_selected(self, line_indices: Iterable[int]) -> Iterator[int]:
        return (index for index in line_indices if self.is_selected(index))

    def with_line_selection(self, line_index: int, selected: bool) -> DiffSelection:
        return self.with_range_selection(line_index, 1, selected)

    def with_range_selection(self, start: int, length: int, selected: bool) -> DiffSelection:
        """Select or unselect the lines in ``[start, start + length)``."""

        computed = self.get_selection_type()
        if _type_matches_selection(computed, selected):
            return self

        indices = range(start, start + length)
        if computed is DiffSelectionType.PARTIAL:
            diverging = set(self.diverging_lines or ())
            if _type_matches_selection(self.default_selection_type, selected):
                diverging.difference_update(indices)
            else:
                diverging.update(i for i in indices if self.is_selectable(i))
            return DiffSelection(
                self.default_selection_type,
                frozenset(diverging) or None,
                self.selectable_lines,
            )

        # Uniform selection: rebase on the computed type so diverging lines
        # left over from an inverted default are dropped.
        diverging = frozenset(i for i in indices if self.is_selectable(i))
        return DiffSelection(computed, diverging or None, self.selectable_lines)

    def with_toggle_line_selection(self, line_index: int) -> DiffSelection:
        return self.with_line_selection(line_index, not self.is_selected(line_index))

    def with_toggle_range_selection(self, start: int, length: int) -> DiffSelection:
        """Select the range unless all of its selectable lines already are, then unselect it."""

        candidates = [i for i in range(start, start + length) if self.is_selectable(i)]
        all_selected = bool(candidates) and all(self.is_selected(i) for i in candidates)
        return self.with_range_selection(start, length, not all_selected)

    def with_select_all(self) -> DiffSelection:
        return DiffSelection(DiffSelectionType.ALL, None, self.selectable_lines)

    def with_select_none(self) -> DiffSelection:
        return DiffSelection(DiffSelectionType.NONE, None, self.selectable_lines)

    def with_selectable_lines(self, selectable_lines: Iterable[int]) -> DiffSelection:
        """Restrict the selection to *selectable_lines*, dropping stale diverging lines."""

        selectable = frozenset(selectable_lines)
        diverging = self.diverging_lines & selectable if self.diverging_lines else None
        return DiffSelection(self.default_selection_type, diverging or None, selectable)
