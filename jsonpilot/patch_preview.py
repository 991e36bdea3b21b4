# jsonpilot/patch_preview.py

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import jsonpatch

from jsonpilot.errors import DocumentNotJSON
from jsonpilot.json_document import JsonDocument, serialize_json
from jsonpilot.patch_operations import PatchOperation, to_patch_dict
from jsonpilot.patch_validator import APPLY_ERRORS


@dataclass
class PatchPreview:
    original_content: str
    modified_content: str
    operations: List[PatchOperation] = field(default_factory=list)
    is_valid: bool = True
    error: Optional[str] = None


def generate_patch_preview(
    original_content: str,
    operations: Sequence[PatchOperation],
    language: str = "json",
) -> PatchPreview:
    """
    Apply `operations` as one patch to a freshly parsed copy of `original_content`.

    Never mutates the input. On success the result is re-serialized with the
    canonical 2-space layout; on any failure `modified_content` is the original
    text, never a partial result.
    """
    operations = list(operations)
    try:
        document = JsonDocument.parse(original_content, language)
    except DocumentNotJSON:
        return PatchPreview(
            original_content=original_content,
            modified_content=original_content,
            operations=operations,
            is_valid=False,
            error="Original content is not valid JSON",
        )

    if not operations:
        return PatchPreview(original_content, original_content, operations)

    try:
        patched = jsonpatch.apply_patch(
            document.fresh_value(),
            [to_patch_dict(op) for op in operations],
            in_place=True,
        )
    except APPLY_ERRORS as e:
        return PatchPreview(
            original_content=original_content,
            modified_content=original_content,
            operations=operations,
            is_valid=False,
            error=str(e) or "Unknown error applying patches",
        )

    try:
        modified = serialize_json(patched)
    except ValueError as e:
        return PatchPreview(
            original_content=original_content,
            modified_content=original_content,
            operations=operations,
            is_valid=False,
            error=str(e),
        )
    return PatchPreview(original_content, modified, operations)
