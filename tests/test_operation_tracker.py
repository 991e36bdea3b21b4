import json

import pytest

from jsonpilot.errors import InvalidTransition, PreviewApplyError
from jsonpilot.operation_tracker import OperationStateTracker, OperationStatus, OperationValidity
from jsonpilot.patch_operations import AddOperation, RemoveOperation, ReplaceOperation
from jsonpilot.patch_validator import validate_operations_individually

PATH = "form.json"


def make_tracker(editor, text, operations):
    editor.open_file(PATH, text)
    validation = validate_operations_individually(text, operations)
    return OperationStateTracker(editor, PATH, operations, validation)


def live(editor):
    return json.loads(editor.get_file_content(PATH))


def test_records_carry_validity_and_start_pending(editor):
    tracker = make_tracker(editor, '{"a":1}', [AddOperation("/x", 1), RemoveOperation("/missing")])
    first, second = tracker.records
    assert first.validity == OperationValidity.VALID and first.status == OperationStatus.PENDING
    assert second.validity == OperationValidity.INVALID and second.error
    assert tracker.pending_valid_indices() == [0]
    assert tracker.summary() == {"pending": 2, "applied": 0, "rejected": 0, "invalid": 1}


def test_apply_one_commits_exactly_that_change(editor):
    tracker = make_tracker(editor, '{"a": 1, "b": {"c": 2}}', [ReplaceOperation("/b/c", 3), AddOperation("/d", 4)])
    tracker.apply_one(0)
    assert live(editor) == {"a": 1, "b": {"c": 3}}
    assert tracker.status(0) == OperationStatus.APPLIED
    assert tracker.status(1) == OperationStatus.PENDING
    assert editor.get_file(PATH).is_dirty


def test_apply_one_rereads_the_live_document(editor):
    tracker = make_tracker(editor, '{"a":1}', [AddOperation("/x", 1)])
    editor.set_file_content(PATH, '{"a": 1, "user": "edit"}')
    tracker.apply_one(0)
    assert live(editor) == {"a": 1, "user": "edit", "x": 1}


def test_apply_one_against_diverged_document_stays_pending(editor):
    tracker = make_tracker(editor, '{"a":1}', [RemoveOperation("/a")])
    editor.set_file_content(PATH, '{"b": 2}')
    with pytest.raises(PreviewApplyError):
        tracker.apply_one(0)
    assert tracker.status(0) == OperationStatus.PENDING
    assert editor.get_file_content(PATH) == '{"b": 2}'


def test_invalid_or_non_pending_records_cannot_be_applied(editor):
    tracker = make_tracker(editor, '{"a":1}', [AddOperation("/x", 1), RemoveOperation("/missing")])
    with pytest.raises(InvalidTransition):
        tracker.apply_one(1)
    tracker.apply_one(0)
    with pytest.raises(InvalidTransition):
        tracker.apply_one(0)
    with pytest.raises(InvalidTransition):
        tracker.apply_one(7)


def test_apply_all_only_uses_the_valid_pending_subset(editor):
    tracker = make_tracker(
        editor,
        '{"a":1}',
        [AddOperation("/x", 1), RemoveOperation("/missing"), AddOperation("/y", 2), AddOperation("/z", 3)],
    )
    tracker.reject_one(3)
    preview = tracker.apply_all()
    assert preview.is_valid
    assert live(editor) == {"a": 1, "x": 1, "y": 2}
    assert [r.status for r in tracker.records] == [
        OperationStatus.APPLIED,
        OperationStatus.PENDING,
        OperationStatus.APPLIED,
        OperationStatus.REJECTED,
    ]
    assert tracker.apply_all() is None


def test_apply_all_is_all_or_nothing(editor):
    tracker = make_tracker(editor, '{"a": 1, "b": 2}', [RemoveOperation("/a"), RemoveOperation("/b")])
    before = '{"a": 1}'
    editor.set_file_content(PATH, before)
    with pytest.raises(PreviewApplyError):
        tracker.apply_all()
    assert editor.get_file_content(PATH) == before
    assert tracker.pending_valid_indices() == [0, 1]


def test_reject_is_idempotent_and_final(editor):
    tracker = make_tracker(editor, '{"a":1}', [AddOperation("/x", 1)])
    tracker.reject_one(0)
    tracker.reject_one(0)
    assert tracker.status(0) == OperationStatus.REJECTED
    with pytest.raises(InvalidTransition):
        tracker.apply_one(0)
    assert editor.get_file_content(PATH) == '{"a":1}'


def test_reject_all_leaves_applied_records_alone(editor):
    tracker = make_tracker(editor, '{"a":1}', [AddOperation("/x", 1), AddOperation("/y", 2)])
    tracker.apply_one(0)
    tracker.reject_all()
    assert tracker.status(0) == OperationStatus.APPLIED
    assert tracker.status(1) == OperationStatus.REJECTED
    assert live(editor) == {"a": 1, "x": 1}


def test_rejecting_an_applied_record_restores_the_previous_text(editor):
    original = '{"a":1}'
    tracker = make_tracker(editor, original, [AddOperation("/x", 1)])
    tracker.apply_one(0)
    tracker.reject_one(0)
    assert tracker.status(0) == OperationStatus.REJECTED
    assert editor.get_file_content(PATH) == original


def test_undo_is_refused_after_a_later_edit(editor):
    tracker = make_tracker(editor, '{"a":1}', [AddOperation("/x", 1)])
    tracker.apply_one(0)
    editor.set_file_content(PATH, '{"a": 1, "x": 1, "later": true}')
    with pytest.raises(PreviewApplyError):
        tracker.reject_one(0)
    assert tracker.status(0) == OperationStatus.APPLIED
    assert live(editor) == {"a": 1, "x": 1, "later": True}


def test_undoing_a_group_commit_rejects_the_whole_group(editor):
    original = '{"a":1}'
    tracker = make_tracker(editor, original, [AddOperation("/x", 1), AddOperation("/y", 2)])
    tracker.apply_all()
    tracker.reject_one(1)
    assert [r.status for r in tracker.records] == [OperationStatus.REJECTED, OperationStatus.REJECTED]
    assert editor.get_file_content(PATH) == original
