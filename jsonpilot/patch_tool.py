# jsonpilot/patch_tool.py

import logging
from typing import Any, Dict, List, Optional

from jsonpilot.editor_state import EditorState
from jsonpilot.errors import FileNotOpen, WrongFileType
from jsonpilot.operation_tracker import OperationStateTracker
from jsonpilot.patch_operations import parse_operations
from jsonpilot.patch_validator import validate_operations_individually
from jsonpilot.review_cache import PatchReview, ReviewCache

logger = logging.getLogger("jsonpilot_backend")


def _tool_response(success: bool, errors: List[str], instructions: str, **extra) -> Dict[str, Any]:
    response: Dict[str, Any] = {"success": success, "errors": errors, "instructions": instructions}
    response.update(extra)
    return response


def regenerate_instructions(failed_indices: List[int]) -> str:
    failed_ops = ", ".join(str(i + 1) for i in sorted(failed_indices))
    return (
        f"Operations {failed_ops} failed validation. Only regenerate these failed operations. "
        "Do not include the successful operations."
    )


class JsonPatchTool:
    """
    `suggest_json_patch`: screen a proposed batch and open a review for it.

    The AI caller always gets `{success, errors, instructions}`. When some
    operations fail, `instructions` names their 1-based positions so only
    those are regenerated.
    """

    name = "suggest_json_patch"

    def __init__(self, editor: EditorState, reviews: ReviewCache):
        self.editor = editor
        self.reviews = reviews

    def handle(
        self,
        file_path: str,
        description: str,
        operations: Optional[List[Any]],
    ) -> Dict[str, Any]:
        try:
            editor_file = self.editor.get_json_file(file_path)
        except FileNotOpen as e:
            return _tool_response(False, [str(e)], "Please use a file that is currently open in the editor.")
        except WrongFileType as e:
            return _tool_response(False, [str(e)], "Only use JSON files for patch operations.")

        snapshot = editor_file.content
        parsed = parse_operations(operations)
        validation = validate_operations_individually(snapshot, parsed.operations, editor_file.language)

        if validation.document_error is not None:
            logger.info(f"[{self.name}] {file_path} is not valid JSON: {validation.document_error}")
            return _tool_response(
                False,
                list(validation.errors),
                "The file is not valid JSON. Repair it with repair_json before suggesting patches.",
            )

        errors = list(parsed.errors)
        failed = list(parsed.failed_indices)
        for verdict in validation.per_operation:
            if not verdict.valid:
                wire_index = parsed.source_indices[verdict.index]
                errors.append(f"Operation {wire_index + 1}: {verdict.error}")
                failed.append(wire_index)

        review = PatchReview(
            review_id=self.reviews.new_review_id(),
            file_path=file_path,
            description=description or "",
            snapshot_text=snapshot,
            language=editor_file.language,
            operations=parsed.operations,
            validation=validation,
            tracker=OperationStateTracker(self.editor, file_path, parsed.operations, validation),
        )
        self.reviews.add(review)

        if failed:
            order = sorted(range(len(failed)), key=lambda k: failed[k])
            logger.info(f"[{self.name}] {file_path}: {len(failed)} operation(s) failed validation")
            return _tool_response(
                False,
                [errors[k] for k in order],
                regenerate_instructions(failed),
                review_id=review.review_id,
            )

        return _tool_response(
            True,
            [],
            "Your changes are suggested to user. User will apply this later",
            review_id=review.review_id,
        )
