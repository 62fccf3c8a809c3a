"""
Change-tracked edit workflow shared by the role, permission and
permission-group editors.

    LOADING -> VIEWING -> EDITING -> DIFFING -> COMMENT_PENDING -> SAVING
                  ^                     |              |              |
                  +---- no changes -----+              |              |
                  +------------- cancel ---------------+              |
                  +------------- saved, reloaded ---------------------+
    SAVING -> EDITING when the save fails for any reason.

Nothing here talks HTTP directly; subclasses implement ``fetch`` and
``submit`` against the API client.
"""
import logging
from enum import Enum
from typing import Any, Dict, Generic, Optional, Sequence, Tuple, TypeVar

from mdm_console.api.exceptions import (
    GENERIC_FETCH_MESSAGE,
    GENERIC_MUTATION_MESSAGE,
    BackendError,
)
from mdm_console.config import get_settings
from mdm_console.editing.diff import ChangeSet, FieldKind, FieldSpec, compute_changes, validate_required
from mdm_console.editing.exceptions import InvalidTransition, ValidationFailed
from mdm_console.editing.notifications import LoggingNotifier, Notifier
from mdm_console.editing.selection import SelectionSet

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT")


class EditorState(Enum):
    """Lifecycle of one entity editor."""
    LOADING = "loading"
    LOAD_FAILED = "load_failed"
    VIEWING = "viewing"
    EDITING = "editing"
    DIFFING = "diffing"
    COMMENT_PENDING = "comment_pending"
    SAVING = "saving"
    CLOSED = "closed"


class EntityEditor(Generic[EntityT]):
    """Base editor: snapshot, diff, comment, save, reload."""

    fields: Sequence[FieldSpec] = ()
    entity_label: str = "Record"

    def __init__(
        self,
        entity_id: str,
        notifier: Optional[Notifier] = None,
        language: str = "en"
    ):
        settings = get_settings()
        self.entity_id = entity_id
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.language = language
        self.boolean_labels: Tuple[str, str] = (settings.ACTIVE_LABEL, settings.INACTIVE_LABEL)

        self.state = EditorState.LOADING
        self.entity: Optional[EntityT] = None
        self.draft: Optional[Dict[str, Any]] = None
        self.pending: Optional[ChangeSet] = None
        self.field_errors: Dict[str, str] = {}
        self.error: Optional[str] = None

    # ============ Subclass hooks ============

    async def fetch(self) -> EntityT:
        raise NotImplementedError

    async def submit(self, values: Dict[str, Any], comment: str) -> None:
        raise NotImplementedError

    def snapshot(self, entity: EntityT) -> Dict[str, Any]:
        """Plain field values of ``entity``, one key per field spec"""
        raise NotImplementedError

    # ============ State helpers ============

    @property
    def is_loading(self) -> bool:
        return self.state is EditorState.LOADING

    @property
    def is_editing(self) -> bool:
        return self.state in (EditorState.EDITING, EditorState.DIFFING, EditorState.COMMENT_PENDING)

    @property
    def is_saving(self) -> bool:
        return self.state is EditorState.SAVING

    @property
    def is_closed(self) -> bool:
        return self.state is EditorState.CLOSED

    def _require(self, action: str, *states: EditorState) -> None:
        if self.state not in states:
            raise InvalidTransition(self.state.value, action)

    def _spec(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def _plain_draft(self) -> Dict[str, Any]:
        if self.draft is None:
            raise InvalidTransition(self.state.value, "read the draft")
        return {
            name: (value.selected if isinstance(value, SelectionSet) else value)
            for name, value in self.draft.items()
        }

    def _reset_edit(self) -> None:
        self.draft = None
        self.pending = None
        self.field_errors = {}

    # ============ Transitions ============

    async def load(self) -> Optional[EntityT]:
        """Fetch the entity; on failure the editor sits in LOAD_FAILED until retried"""
        self._require("load", EditorState.LOADING, EditorState.LOAD_FAILED, EditorState.VIEWING)
        self.state = EditorState.LOADING
        self.error = None

        try:
            entity = await self.fetch()
        except BackendError as e:
            if self.is_closed:
                return None
            self.state = EditorState.LOAD_FAILED
            self.error = e.message or GENERIC_FETCH_MESSAGE
            logger.warning(f"Loading {self.entity_label} {self.entity_id} failed: {self.error}")
            return None

        if self.is_closed:
            return None
        self.entity = entity
        self.state = EditorState.VIEWING
        return entity

    def begin_edit(self) -> Dict[str, Any]:
        """Copy the loaded entity into a draft; set fields become SelectionSets"""
        self._require("edit", EditorState.VIEWING)
        values = self.snapshot(self.entity)
        self.draft = {
            spec.name: (SelectionSet(values.get(spec.name)) if spec.kind is FieldKind.SET else values.get(spec.name))
            for spec in self.fields
        }
        self.field_errors = {}
        self.error = None
        self.state = EditorState.EDITING
        return self.draft

    def set_field(self, name: str, value: Any) -> None:
        self._require("change a field", EditorState.EDITING)
        spec = self._spec(name)
        if spec.kind is FieldKind.SET:
            self.draft[name] = SelectionSet(value)
        else:
            self.draft[name] = value
        self.field_errors.pop(name, None)

    def selection(self, name: str) -> SelectionSet:
        """Working selection of a set-valued field while editing"""
        self._require("select", EditorState.EDITING)
        value = self.draft[name]
        if not isinstance(value, SelectionSet):
            raise KeyError(name)
        self.field_errors.pop(name, None)
        return value

    def request_save(self) -> ChangeSet:
        """
        Validate and diff the draft.

        Returns the change set. When it is empty the editor is back in
        VIEWING and nothing will be sent; otherwise it waits in
        COMMENT_PENDING for ``confirm``.
        """
        self._require("save", EditorState.EDITING)
        values = self._plain_draft()

        errors = validate_required(values, self.fields)
        if errors:
            self.field_errors = errors
            raise ValidationFailed(errors)

        self.state = EditorState.DIFFING
        changes = compute_changes(self.snapshot(self.entity), values, self.fields, self.boolean_labels)

        if not changes:
            self._reset_edit()
            self.state = EditorState.VIEWING
            self.notifier.info("No changes were made")
            return changes

        self.pending = changes
        self.state = EditorState.COMMENT_PENDING
        return changes

    def dismiss_comment(self) -> None:
        """Close the comment prompt and keep editing the same draft"""
        self._require("dismiss the comment", EditorState.COMMENT_PENDING)
        self.pending = None
        self.state = EditorState.EDITING

    async def confirm(self, comment: str = "") -> bool:
        """Send the changed fields with ``comment`` (may be empty), then reload"""
        self._require("confirm", EditorState.COMMENT_PENDING)
        changes = self.pending
        self.state = EditorState.SAVING

        try:
            await self.submit(changes.payload(), comment)
        except BackendError as e:
            return self._save_failed(e.message or GENERIC_MUTATION_MESSAGE)
        except Exception:
            # The payload never reached the backend, or its answer made no sense
            logger.exception(f"Saving {self.entity_label} {self.entity_id} raised unexpectedly")
            return self._save_failed(GENERIC_MUTATION_MESSAGE)

        logger.info(f"{self.entity_label} {self.entity_id} updated: {'; '.join(changes.lines())}")
        if self.is_closed:
            return True

        self._reset_edit()
        # The backend may normalize or drop fields, so the draft is not trusted
        self.state = EditorState.VIEWING
        await self.load()
        if self.is_closed:
            return True
        self.notifier.success(f"{self.entity_label} updated")
        return True

    def _save_failed(self, message: str) -> bool:
        """Back to EDITING with the draft intact"""
        if self.is_closed:
            return False
        self.pending = None
        self.error = message
        self.state = EditorState.EDITING
        logger.warning(f"Saving {self.entity_label} {self.entity_id} failed: {message}")
        self.notifier.error(message)
        return False

    def cancel(self) -> None:
        """Drop the draft and go back to the last loaded entity"""
        self._require(
            "cancel",
            EditorState.EDITING,
            EditorState.DIFFING,
            EditorState.COMMENT_PENDING,
        )
        self._reset_edit()
        self.state = EditorState.VIEWING

    def close(self) -> None:
        """Detach the editor; results of requests still in flight are ignored"""
        self._reset_edit()
        self.state = EditorState.CLOSED
