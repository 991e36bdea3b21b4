# jsonpilot/operation_tracker.py

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from jsonpilot.editor_state import EditorState
from jsonpilot.errors import InvalidTransition, PreviewApplyError
from jsonpilot.patch_operations import PatchOperation, describe_operation
from jsonpilot.patch_preview import PatchPreview, generate_patch_preview
from jsonpilot.patch_validator import ValidationResult

logger = logging.getLogger("jsonpilot_backend")


class OperationStatus(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    REJECTED = "rejected"


class OperationValidity(str, Enum):
    VALID = "valid"
    INVALID = "invalid"


@dataclass(frozen=True)
class AppliedChange:
    """
    Live-document text around one commit, kept so the commit can be undone.
    """
    before_text: str
    after_text: str
    indices: Tuple[int, ...]


@dataclass
class OperationRecord:
    index: int
    operation: PatchOperation
    validity: OperationValidity
    error: Optional[str] = None
    status: OperationStatus = OperationStatus.PENDING
    applied_change: Optional[AppliedChange] = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "operation": describe_operation(self.operation),
            "status": self.status.value,
            "validity": self.validity.value,
            "error": self.error,
        }


class OperationStateTracker:
    """
    Per-review accept/reject state for one batch of patch operations.

    Transitions: pending -> applied, pending -> rejected, applied -> rejected.
    Nothing leaves `rejected`. Applying always re-reads the live file content
    right before computing its preview, and writes back only through the
    editor state. Rejecting an applied operation restores the text it replaced,
    provided nobody edited the file since; otherwise the undo is refused.
    """

    def __init__(
        self,
        editor: EditorState,
        file_path: str,
        operations: Sequence[PatchOperation],
        validation: ValidationResult,
    ):
        self.editor = editor
        self.file_path = file_path
        self._records: List[OperationRecord] = []

        verdicts = {v.index: v for v in validation.per_operation}
        for index, operation in enumerate(operations):
            verdict = verdicts.get(index)
            if verdict is not None and verdict.valid:
                record = OperationRecord(index, operation, OperationValidity.VALID)
            else:
                error = verdict.error if verdict is not None else (validation.errors or ["Not validated"])[0]
                record = OperationRecord(index, operation, OperationValidity.INVALID, error=error)
            self._records.append(record)

    # -----------------------
    # Queries
    # -----------------------

    @property
    def records(self) -> List[OperationRecord]:
        return list(self._records)

    def status(self, index: int) -> OperationStatus:
        return self._record(index).status

    def pending_valid_indices(self) -> List[int]:
        return [
            r.index for r in self._records
            if r.status == OperationStatus.PENDING and r.validity == OperationValidity.VALID
        ]

    def summary(self) -> Dict[str, int]:
        counts = {"pending": 0, "applied": 0, "rejected": 0, "invalid": 0}
        for r in self._records:
            counts[r.status.value] += 1
            if r.validity == OperationValidity.INVALID:
                counts["invalid"] += 1
        return counts

    def _record(self, index: int) -> OperationRecord:
        if not 0 <= index < len(self._records):
            raise InvalidTransition(f"No operation at index {index} (batch has {len(self._records)})")
        return self._records[index]

    def _language(self) -> str:
        return self.editor.get_file(self.file_path).language

    def _commit(self, before: str, preview: PatchPreview) -> None:
        if not self.editor.compare_and_set_content(self.file_path, before, preview.modified_content):
            raise PreviewApplyError(f'"{self.file_path}" changed while the patch was being applied; retry')

    # -----------------------
    # Transitions
    # -----------------------

    def apply_one(self, index: int) -> PatchPreview:
        record = self._record(index)
        if record.validity != OperationValidity.VALID:
            raise InvalidTransition(f"Operation {index + 1} is invalid and cannot be applied: {record.error}")
        if record.status != OperationStatus.PENDING:
            raise InvalidTransition(f"Operation {index + 1} is {record.status.value}, not pending")

        before = self.editor.get_file_content(self.file_path)
        preview = generate_patch_preview(before, [record.operation], self._language())
        if not preview.is_valid:
            logger.info(f"[tracker] apply_one({index}) on {self.file_path} failed: {preview.error}")
            raise PreviewApplyError(
                f"Operation {index + 1} no longer applies to the current document: {preview.error}"
            )

        self._commit(before, preview)
        record.status = OperationStatus.APPLIED
        record.applied_change = AppliedChange(before, preview.modified_content, (index,))
        return preview

    def apply_all(self) -> Optional[PatchPreview]:
        """
        Commit every pending valid operation as one patch. All or nothing.
        Returns None when there is nothing left to apply.
        """
        indices = self.pending_valid_indices()
        if not indices:
            return None

        before = self.editor.get_file_content(self.file_path)
        operations = [self._records[i].operation for i in indices]
        preview = generate_patch_preview(before, operations, self._language())
        if not preview.is_valid:
            logger.info(f"[tracker] apply_all on {self.file_path} failed: {preview.error}")
            raise PreviewApplyError(f"Pending operations could not be applied together: {preview.error}")

        self._commit(before, preview)
        change = AppliedChange(before, preview.modified_content, tuple(indices))
        for i in indices:
            self._records[i].status = OperationStatus.APPLIED
            self._records[i].applied_change = change
        return preview

    def reject_one(self, index: int) -> None:
        record = self._record(index)
        if record.status == OperationStatus.REJECTED:
            return
        if record.status == OperationStatus.PENDING:
            record.status = OperationStatus.REJECTED
            return

        change = record.applied_change
        if change is None or not self.editor.compare_and_set_content(
            self.file_path, change.after_text, change.before_text
        ):
            raise PreviewApplyError(
                f"Operation {index + 1} cannot be undone: \"{self.file_path}\" was edited after it was applied"
            )
        # a shared commit is undone as a unit
        for i in change.indices:
            self._records[i].status = OperationStatus.REJECTED
            self._records[i].applied_change = None

    def reject_all(self) -> None:
        for record in self._records:
            if record.status == OperationStatus.PENDING:
                record.status = OperationStatus.REJECTED
