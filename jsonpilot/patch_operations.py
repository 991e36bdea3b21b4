# jsonpilot/patch_operations.py

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from jsonpilot.errors import InvalidOperation
from jsonpilot.json_document import decode_operation_value

# `test` is deliberately absent: it is not offered to the AI as an authoring op.
ALLOWED_OPS = ("add", "remove", "replace", "move", "copy")


class PatchOperationIn(BaseModel):
    """
    Wire shape of one operation as sent by the AI layer.
    """
    model_config = ConfigDict(populate_by_name=True)

    op: str
    path: str
    value: Optional[Any] = None
    from_: Optional[str] = Field(default=None, alias="from")


@dataclass(frozen=True)
class AddOperation:
    path: str
    value: Any


@dataclass(frozen=True)
class RemoveOperation:
    path: str


@dataclass(frozen=True)
class ReplaceOperation:
    path: str
    value: Any


@dataclass(frozen=True)
class MoveOperation:
    path: str
    from_path: str


@dataclass(frozen=True)
class CopyOperation:
    path: str
    from_path: str


PatchOperation = Union[AddOperation, RemoveOperation, ReplaceOperation, MoveOperation, CopyOperation]


def _wire_to_dict(wire: Any) -> Dict[str, Any]:
    if isinstance(wire, PatchOperationIn):
        data = wire.model_dump(by_alias=True, exclude_unset=True)
        return data
    if isinstance(wire, dict):
        return dict(wire)
    raise InvalidOperation(f"expected an object, got {type(wire).__name__}")


def parse_operation(wire: Any) -> PatchOperation:
    data = _wire_to_dict(wire)
    op = data.get("op")
    path = data.get("path")

    if op not in ALLOWED_OPS:
        raise InvalidOperation(f"unsupported op {op!r}; allowed: {', '.join(ALLOWED_OPS)}")
    if not isinstance(path, str):
        raise InvalidOperation(f"'{op}' requires a string 'path'")

    if op in ("add", "replace"):
        value = decode_operation_value(data.get("value")).value
        if op == "add":
            return AddOperation(path=path, value=value)
        return ReplaceOperation(path=path, value=value)

    if op == "remove":
        return RemoveOperation(path=path)

    from_path = data.get("from", data.get("from_"))
    if not isinstance(from_path, str):
        raise InvalidOperation(f"'{op}' requires a string 'from'")
    if op == "move":
        return MoveOperation(path=path, from_path=from_path)
    return CopyOperation(path=path, from_path=from_path)


@dataclass
class ParsedBatch:
    operations: List[PatchOperation]
    # wire index of each entry in `operations`
    source_indices: List[int]
    errors: List[str]
    failed_indices: List[int]


def parse_operations(wires: Optional[List[Any]]) -> ParsedBatch:
    """
    Parse a wire batch. A malformed entry is reported under its wire index and
    skipped; the rest survive.
    """
    batch = ParsedBatch(operations=[], source_indices=[], errors=[], failed_indices=[])
    for i, wire in enumerate(wires or []):
        try:
            batch.operations.append(parse_operation(wire))
            batch.source_indices.append(i)
        except InvalidOperation as e:
            batch.errors.append(f"Operation {i + 1}: {e}")
            batch.failed_indices.append(i)
    return batch


def to_patch_dict(operation: PatchOperation) -> Dict[str, Any]:
    """
    RFC 6902 rendering of an operation, as consumed by `jsonpatch`.
    """
    if isinstance(operation, AddOperation):
        return {"op": "add", "path": operation.path, "value": operation.value}
    if isinstance(operation, RemoveOperation):
        return {"op": "remove", "path": operation.path}
    if isinstance(operation, ReplaceOperation):
        return {"op": "replace", "path": operation.path, "value": operation.value}
    if isinstance(operation, MoveOperation):
        return {"op": "move", "path": operation.path, "from": operation.from_path}
    if isinstance(operation, CopyOperation):
        return {"op": "copy", "path": operation.path, "from": operation.from_path}
    raise TypeError(f"Unknown patch operation kind: {type(operation).__name__}")


def describe_operation(operation: PatchOperation) -> str:
    data = to_patch_dict(operation)
    if "from" in data:
        return f"{data['op']} {data['from']} -> {data['path']}"
    return f"{data['op']} {data['path']}"
