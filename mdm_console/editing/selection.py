from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple


class SelectionSet:
    """
    Working set of selected ids for one membership editor.

    Insertion-ordered. ``select_all`` and ``clear_all`` only touch the given
    universe, so selections made outside the universe the editor currently
    shows are left alone. A ``clear_all`` issued right after ``select_all``
    on the same universe takes back exactly what ``select_all`` added, which
    restores the earlier selection.
    """

    def __init__(self, ids: Optional[Iterable[str]] = None):
        self._ids: Dict[str, None] = dict.fromkeys(ids or ())
        self._baseline: Tuple[str, ...] = tuple(self._ids)
        # (universe, ids added) of the last select_all, until anything else changes
        self._last_select_all: Optional[Tuple[FrozenSet[str], List[str]]] = None

    def __contains__(self, item: str) -> bool:
        return item in self._ids

    def __iter__(self):
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"<SelectionSet({list(self._ids)!r})>"

    @property
    def selected(self) -> List[str]:
        return list(self._ids)

    def toggle(self, item: str) -> bool:
        """Flip membership of one id; returns whether it is now selected"""
        self._last_select_all = None
        if item in self._ids:
            del self._ids[item]
            return False
        self._ids[item] = None
        return True

    def select_all(self, universe: Iterable[str]) -> None:
        items = list(universe)
        added = [item for item in dict.fromkeys(items) if item not in self._ids]
        for item in added:
            self._ids[item] = None
        self._last_select_all = (frozenset(items), added)

    def clear_all(self, universe: Iterable[str]) -> None:
        items = list(universe)
        last, self._last_select_all = self._last_select_all, None
        if last is not None and last[0] == frozenset(items):
            for item in last[1]:
                self._ids.pop(item, None)
            return
        for item in items:
            self._ids.pop(item, None)

    def is_all_selected(self, universe: Iterable[str]) -> bool:
        items = list(universe)
        return bool(items) and all(item in self._ids for item in items)

    def toggle_all(self, universe: Iterable[str]) -> None:
        """Header checkbox: clear the universe if fully selected, else select it"""
        items = list(universe)
        if self.is_all_selected(items):
            self._last_select_all = None
            self.clear_all(items)
        else:
            self.select_all(items)

    def reset(self, ids: Optional[Iterable[str]] = None) -> None:
        """Replace the selection and make it the new baseline"""
        self._ids = dict.fromkeys(ids or ())
        self._baseline = tuple(self._ids)
        self._last_select_all = None

    @property
    def added(self) -> List[str]:
        baseline = set(self._baseline)
        return [item for item in self._ids if item not in baseline]

    @property
    def removed(self) -> List[str]:
        return [item for item in self._baseline if item not in self._ids]


def reconcile_members(current: Iterable[str], desired: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split a membership change into (to_add, to_remove), both in stable order"""
    current_ids = list(dict.fromkeys(current))
    desired_ids = list(dict.fromkeys(desired))
    current_set, desired_set = set(current_ids), set(desired_ids)
    to_add = [item for item in desired_ids if item not in current_set]
    to_remove = [item for item in current_ids if item not in desired_set]
    return to_add, to_remove
