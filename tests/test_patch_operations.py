import pytest

from jsonpilot.errors import InvalidOperation
from jsonpilot.patch_operations import (
    AddOperation,
    CopyOperation,
    MoveOperation,
    PatchOperationIn,
    RemoveOperation,
    ReplaceOperation,
    describe_operation,
    parse_operation,
    parse_operations,
    to_patch_dict,
)


def test_parse_add_decodes_value():
    op = parse_operation({"op": "add", "path": "/b", "value": "2"})
    assert op == AddOperation(path="/b", value=2)


def test_parse_replace_keeps_undecodable_string():
    op = parse_operation({"op": "replace", "path": "/name", "value": "Ada"})
    assert op == ReplaceOperation(path="/name", value="Ada")


def test_parse_add_without_value_is_null():
    assert parse_operation({"op": "add", "path": "/x"}) == AddOperation(path="/x", value=None)


def test_parse_move_and_copy_from_pydantic_model():
    wire = PatchOperationIn.model_validate({"op": "move", "path": "/b", "from": "/a"})
    assert parse_operation(wire) == MoveOperation(path="/b", from_path="/a")
    assert parse_operation({"op": "copy", "path": "/c", "from": "/a"}) == CopyOperation(path="/c", from_path="/a")


def test_parse_remove():
    assert parse_operation({"op": "remove", "path": "/a"}) == RemoveOperation(path="/a")


@pytest.mark.parametrize(
    "wire",
    [
        {"op": "test", "path": "/a", "value": "1"},
        {"op": "frobnicate", "path": "/a"},
        {"op": "add"},
        {"op": "move", "path": "/a"},
        "not an object",
    ],
)
def test_parse_rejects_malformed_operations(wire):
    with pytest.raises(InvalidOperation):
        parse_operation(wire)


def test_parse_operations_reports_wire_positions():
    batch = parse_operations([
        {"op": "add", "path": "/x", "value": "1"},
        {"op": "test", "path": "/x", "value": "1"},
        {"op": "remove", "path": "/y"},
    ])
    assert batch.operations == [AddOperation("/x", 1), RemoveOperation("/y")]
    assert batch.source_indices == [0, 2]
    assert batch.failed_indices == [1]
    assert batch.errors[0].startswith("Operation 2: ")


def test_parse_operations_accepts_none():
    batch = parse_operations(None)
    assert batch.operations == [] and batch.errors == []


def test_to_patch_dict_renders_rfc6902():
    assert to_patch_dict(AddOperation("/a", {"k": 1})) == {"op": "add", "path": "/a", "value": {"k": 1}}
    assert to_patch_dict(RemoveOperation("/a")) == {"op": "remove", "path": "/a"}
    assert to_patch_dict(MoveOperation("/b", "/a")) == {"op": "move", "path": "/b", "from": "/a"}


def test_to_patch_dict_rejects_unknown_kinds():
    with pytest.raises(TypeError):
        to_patch_dict({"op": "add", "path": "/a"})


def test_describe_operation():
    assert describe_operation(CopyOperation("/b", "/a")) == "copy /a -> /b"
    assert describe_operation(ReplaceOperation("/a", 1)) == "replace /a"
