"""
Field-by-field diff between a loaded entity and its edited draft.

Produces the human-readable change list shown before a save and the
changed-fields-only payload that is sent with the comment.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence, Tuple


class FieldKind(Enum):
    """How a field is compared and rendered in the change list."""
    SCALAR = "scalar"
    BOOLEAN = "boolean"
    SET = "set"


@dataclass(frozen=True)
class FieldSpec:
    """One editable field of an entity."""
    name: str
    label: str
    kind: FieldKind = FieldKind.SCALAR
    required: bool = False


@dataclass(frozen=True)
class Change:
    spec: FieldSpec
    old: Any
    new: Any
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()

    def render(self, boolean_labels: Tuple[str, str]) -> str:
        label = self.spec.label
        if self.spec.kind is FieldKind.SET:
            parts = []
            if self.added:
                parts.append(f"{len(self.added)} added")
            if self.removed:
                parts.append(f"{len(self.removed)} removed")
            return f"{label}: {', '.join(parts)}"

        if self.spec.kind is FieldKind.BOOLEAN:
            on, off = boolean_labels
            return f"{label}: {on if self.old else off} → {on if self.new else off}"

        return f"{label}: {_display(self.old)} → {_display(self.new)}"


@dataclass
class ChangeSet:
    changes: List[Change] = field(default_factory=list)
    boolean_labels: Tuple[str, str] = ("Active", "Inactive")

    def __bool__(self) -> bool:
        return bool(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def __contains__(self, name: str) -> bool:
        return any(change.spec.name == name for change in self.changes)

    def lines(self) -> List[str]:
        return [change.render(self.boolean_labels) for change in self.changes]

    def payload(self) -> Dict[str, Any]:
        """Changed fields only, keyed by field name, with their new values"""
        result: Dict[str, Any] = {}
        for change in self.changes:
            if change.spec.kind is FieldKind.SET:
                result[change.spec.name] = list(change.new)
            else:
                result[change.spec.name] = change.new
        return result


def _display(value: Any) -> str:
    if value is None:
        return "-"
    text = str(value)
    return text if text else "-"


def _ordered(values: Any) -> List[str]:
    return list(dict.fromkeys(values or ()))


def compute_changes(
    loaded: Mapping[str, Any],
    draft: Mapping[str, Any],
    fields: Sequence[FieldSpec],
    boolean_labels: Tuple[str, str] = ("Active", "Inactive")
) -> ChangeSet:
    """
    Compare ``draft`` against ``loaded`` for each field in ``fields``.

    Set fields compare membership only; order is ignored. Fields absent
    from the draft are treated as unchanged.
    """
    changes: List[Change] = []

    for spec in fields:
        if spec.name not in draft:
            continue
        old, new = loaded.get(spec.name), draft[spec.name]

        if spec.kind is FieldKind.SET:
            old_items, new_items = _ordered(old), _ordered(new)
            old_set, new_set = set(old_items), set(new_items)
            added = tuple(item for item in new_items if item not in old_set)
            removed = tuple(item for item in old_items if item not in new_set)
            if added or removed:
                changes.append(Change(spec, old_items, new_items, added, removed))
            continue

        if spec.kind is FieldKind.BOOLEAN:
            if bool(old) != bool(new):
                changes.append(Change(spec, bool(old), bool(new)))
            continue

        if (old or "") != (new or ""):
            changes.append(Change(spec, old, new))

    return ChangeSet(changes=changes, boolean_labels=boolean_labels)


def validate_required(draft: Mapping[str, Any], fields: Sequence[FieldSpec]) -> Dict[str, str]:
    """Field name -> message for every required field left blank"""
    errors: Dict[str, str] = {}
    for spec in fields:
        if not spec.required:
            continue
        value = draft.get(spec.name)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[spec.name] = f"{spec.label} is required"
    return errors
