from mdm_console.editing.diff import (
    Change,
    ChangeSet,
    FieldKind,
    FieldSpec,
    compute_changes,
    validate_required
)
from mdm_console.editing.selection import SelectionSet, reconcile_members
from mdm_console.editing.workflow import EditorState, EntityEditor
from mdm_console.editing.editors import (
    PermissionEditor,
    PermissionGroupEditor,
    RoleEditor
)
from mdm_console.editing.bulk import (
    BulkResult,
    Outcome,
    RoleMembershipEditor,
    settle_all
)
from mdm_console.editing.notifications import LoggingNotifier, Notifier
from mdm_console.editing.exceptions import InvalidTransition, ValidationFailed

__all__ = [
    # Diff
    "Change",
    "ChangeSet",
    "FieldKind",
    "FieldSpec",
    "compute_changes",
    "validate_required",
    # Selection
    "SelectionSet",
    "reconcile_members",
    # Editors
    "EditorState",
    "EntityEditor",
    "PermissionEditor",
    "PermissionGroupEditor",
    "RoleEditor",
    # Bulk
    "BulkResult",
    "Outcome",
    "RoleMembershipEditor",
    "settle_all",
    # Notices
    "LoggingNotifier",
    "Notifier",
    # Exceptions
    "InvalidTransition",
    "ValidationFailed",
]
