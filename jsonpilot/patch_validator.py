# jsonpilot/patch_validator.py

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import jsonpatch
from jsonpointer import JsonPointerException

from jsonpilot.errors import DocumentNotJSON, OperationApplyError
from jsonpilot.json_document import JsonDocument, serialize_json
from jsonpilot.patch_operations import PatchOperation, to_patch_dict

logger = logging.getLogger("jsonpilot_backend")

# Everything `jsonpatch` can raise while walking a pointer into a document.
APPLY_ERRORS = (
    jsonpatch.JsonPatchException,
    JsonPointerException,
    KeyError,
    IndexError,
    TypeError,
    ValueError,
)


@dataclass(frozen=True)
class OperationVerdict:
    index: int
    valid: bool
    error: Optional[str] = None


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    failed_operation_indices: List[int] = field(default_factory=list)
    valid_operations: List[PatchOperation] = field(default_factory=list)
    per_operation: List[OperationVerdict] = field(default_factory=list)
    document_error: Optional[str] = None


def apply_single_operation(document: JsonDocument, index: int, operation: PatchOperation):
    """
    Apply one operation to a fresh copy of the original value.
    Raises OperationApplyError with the applier's message, or when the
    result has no JSON form.
    """
    try:
        patched = jsonpatch.apply_patch(document.fresh_value(), [to_patch_dict(operation)], in_place=True)
        serialize_json(patched)
    except APPLY_ERRORS as e:
        raise OperationApplyError(index, str(e) or type(e).__name__) from e
    return patched


def check_operation(document: JsonDocument, index: int, operation: PatchOperation) -> OperationVerdict:
    try:
        apply_single_operation(document, index, operation)
    except OperationApplyError as e:
        return OperationVerdict(index=index, valid=False, error=e.message)
    return OperationVerdict(index=index, valid=True)


def validate_operations_individually(
    document: Union[JsonDocument, str],
    operations: Sequence[PatchOperation],
    language: str = "json",
) -> ValidationResult:
    """
    Check every operation on its own against the pristine original.

    Operation i never sees the effect of operation j, so the verdicts do not
    depend on batch order. A document that does not parse fails the whole
    batch with a single error and no per-operation entries.
    """
    if isinstance(document, str):
        try:
            document = JsonDocument.parse(document, language)
        except DocumentNotJSON as e:
            logger.info(f"[validator] Rejecting batch of {len(operations)}: {e}")
            return ValidationResult(
                is_valid=False,
                errors=["Original content is not valid JSON"],
                document_error=e.detail,
            )

    result = ValidationResult(is_valid=True)
    for index, operation in enumerate(operations):
        verdict = check_operation(document, index, operation)
        result.per_operation.append(verdict)
        if verdict.valid:
            result.valid_operations.append(operation)
        else:
            result.errors.append(f"Operation {index + 1}: {verdict.error}")
            result.failed_operation_indices.append(index)

    result.is_valid = not result.errors
    if result.errors:
        logger.debug(f"[validator] {len(result.errors)}/{len(operations)} operations failed: {result.errors}")
    return result
