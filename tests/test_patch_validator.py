import itertools

import pytest

from jsonpilot.json_document import JsonDocument
from jsonpilot.patch_operations import (
    AddOperation,
    CopyOperation,
    MoveOperation,
    RemoveOperation,
    ReplaceOperation,
)
from jsonpilot.patch_validator import check_operation, validate_operations_individually


def test_single_valid_add():
    result = validate_operations_individually('{"a":1}', [AddOperation("/b", 2)])
    assert result.is_valid
    assert result.errors == []
    assert result.valid_operations == [AddOperation("/b", 2)]


def test_remove_of_missing_path_fails_with_its_path():
    result = validate_operations_individually('{"a":1}', [RemoveOperation("/z")])
    assert not result.is_valid
    assert result.failed_operation_indices == [0]
    assert result.errors[0].startswith("Operation 1: ")
    assert "z" in result.errors[0]


@pytest.mark.parametrize("operations", [[], [AddOperation("/a", 1)], [RemoveOperation("/a")]])
def test_document_that_does_not_parse_fails_the_whole_batch(operations):
    result = validate_operations_individually("not json", operations)
    assert not result.is_valid
    assert result.errors == ["Original content is not valid JSON"]
    assert result.per_operation == []
    assert result.document_error


def test_mixed_batch_reports_valid_then_invalid():
    result = validate_operations_individually(
        '{"a":1}',
        [AddOperation("/x", 1), RemoveOperation("/missing")],
    )
    assert [v.valid for v in result.per_operation] == [True, False]
    assert result.valid_operations == [AddOperation("/x", 1)]
    assert result.failed_operation_indices == [1]


def test_operations_do_not_see_each_other():
    # the remove would succeed after the add, but each is checked alone
    result = validate_operations_individually('{"a":1}', [AddOperation("/b", 2), RemoveOperation("/b")])
    assert [v.valid for v in result.per_operation] == [True, False]


def test_verdicts_are_order_independent():
    doc = JsonDocument.parse('{"a": {"b": [1, 2]}, "c": "x"}')
    operations = [
        AddOperation("/a/b/-", 3),
        RemoveOperation("/nope"),
        ReplaceOperation("/c", "y"),
        MoveOperation("/d", "/missing"),
        CopyOperation("/e", "/a"),
        AddOperation("/q/r", 1),
    ]
    baseline = {op: check_operation(doc, 0, op).valid for op in operations}
    for permutation in itertools.permutations(operations, 3):
        result = validate_operations_individually(doc, list(permutation))
        assert [v.valid for v in result.per_operation] == [baseline[op] for op in permutation]


@pytest.mark.parametrize(
    "operation",
    [
        MoveOperation("/b", "/missing"),
        AddOperation("/missing/child", 1),
        ReplaceOperation("/missing", 1),
        AddOperation("/list/9", 1),
    ],
)
def test_invalid_edge_cases(operation):
    result = validate_operations_individually('{"a": 1, "list": [1]}', [operation])
    assert not result.is_valid


def test_original_document_is_never_mutated():
    doc = JsonDocument.parse('{"a": {"b": 1}}')
    validate_operations_individually(doc, [RemoveOperation("/a/b"), AddOperation("/a/c", 2)])
    assert doc.value == {"a": {"b": 1}}


def test_jsonc_document_is_validated_with_comments():
    text = '{\n  // note\n  "a": 1\n}'
    assert validate_operations_individually(text, [RemoveOperation("/a")], "jsonc").is_valid


def test_non_finite_value_is_an_invalid_operation():
    result = validate_operations_individually('{"a":1}', [AddOperation("/b", 2), ReplaceOperation("/a", float("nan"))])
    assert not result.is_valid
    assert result.failed_operation_indices == [1]
    assert result.valid_operations == [AddOperation("/b", 2)]
    assert result.errors[0].startswith("Operation 2: ")
