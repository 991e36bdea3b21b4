# jsonpilot/repair_utils.py

import json
import logging
from dataclasses import dataclass
from typing import Optional

from json_repair import repair_json

from jsonpilot.json_document import strict_json_loads

logger = logging.getLogger("jsonpilot_backend")


@dataclass
class JSONValidationResult:
    is_valid: bool
    error: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    def position(self) -> Optional[dict]:
        if self.line is None:
            return None
        return {"line": self.line, "column": self.column}


@dataclass
class AutoRepairResult:
    success: bool
    changes_detected: bool = False
    repaired_content: Optional[str] = None
    error: Optional[str] = None
    original_error: Optional[str] = None


def validate_json(content: str) -> JSONValidationResult:
    """
    Strict parse with 1-based line/column of the first syntax error.
    """
    if not content or not content.strip():
        return JSONValidationResult(is_valid=False, error="Empty content")
    try:
        strict_json_loads(content)
    except json.JSONDecodeError as e:
        return JSONValidationResult(is_valid=False, error=e.msg, line=e.lineno, column=e.colno)
    except ValueError as e:
        return JSONValidationResult(is_valid=False, error=str(e))
    return JSONValidationResult(is_valid=True)


def describe_error(validation: JSONValidationResult) -> str:
    if validation.is_valid:
        return "JSON is valid"
    if validation.line is not None:
        return f"{validation.error} (line {validation.line}, column {validation.column})"
    return validation.error or "Unknown JSON error"


def try_automatic_repair(content: str) -> AutoRepairResult:
    """
    Non-AI repair via `json_repair`; the output is only trusted once it re-validates.
    """
    validation = validate_json(content)
    if validation.is_valid:
        return AutoRepairResult(success=True, repaired_content=content)

    original_error = describe_error(validation)
    if not content or not content.strip():
        return AutoRepairResult(success=False, error="Automatic repair failed: Empty content", original_error=original_error)
    try:
        repaired = repair_json(content)
    except (ValueError, TypeError, RecursionError) as e:
        return AutoRepairResult(
            success=False,
            error=f"Automatic repair failed: {e}",
            original_error=original_error,
        )

    if not isinstance(repaired, str):
        repaired = json.dumps(repaired)
    repaired_validation = validate_json(repaired)
    if not repaired_validation.is_valid:
        return AutoRepairResult(
            success=False,
            error=f"Automatic repair failed: {describe_error(repaired_validation)}",
            original_error=original_error,
        )

    logger.debug(f"[repair] automatic repair fixed: {original_error}")
    return AutoRepairResult(
        success=True,
        changes_detected=repaired != content,
        repaired_content=repaired,
        original_error=original_error,
    )
