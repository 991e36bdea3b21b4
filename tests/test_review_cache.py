import json

import pytest

from jsonpilot.errors import ReviewNotFound
from jsonpilot.operation_tracker import OperationStateTracker
from jsonpilot.patch_operations import AddOperation, RemoveOperation
from jsonpilot.patch_validator import validate_operations_individually
from jsonpilot.review_cache import PatchReview, ReviewCache


def make_review(editor, cache, path="a.json", text='{"a":1}', operations=None):
    operations = operations or [AddOperation("/x", 1), RemoveOperation("/missing")]
    if not editor.has_file(path):
        editor.open_file(path, text)
    validation = validate_operations_individually(text, operations)
    return PatchReview(
        review_id=cache.new_review_id(),
        file_path=path,
        description="test",
        snapshot_text=text,
        language="json",
        operations=operations,
        validation=validation,
        tracker=OperationStateTracker(editor, path, operations, validation),
    )


def test_add_get_discard(editor, reviews):
    review = make_review(editor, reviews)
    reviews.add(review)
    assert reviews.get(review.review_id) is review
    assert reviews.discard(review.review_id)
    assert not reviews.discard(review.review_id)
    with pytest.raises(ReviewNotFound):
        reviews.get(review.review_id)


def test_expired_reviews_are_gone(editor):
    cache = ReviewCache(ttl_seconds=0)
    review = make_review(editor, cache)
    cache.add(review)
    with pytest.raises(ReviewNotFound):
        cache.get(review.review_id)
    cache.add(review)
    assert cache.sweep_expired() == 1
    assert len(cache) == 0


def test_discard_for_file(editor, reviews):
    reviews.add(make_review(editor, reviews, path="a.json"))
    reviews.add(make_review(editor, reviews, path="a.json"))
    reviews.add(make_review(editor, reviews, path="b.json"))
    assert reviews.discard_for_file("a.json") == 2
    assert len(reviews) == 1


def test_previews_come_from_the_snapshot(editor, reviews):
    review = make_review(editor, reviews)
    editor.set_file_content("a.json", '{"changed": true}')
    single, invalid = review.operation_previews()
    assert json.loads(single.modified_content) == {"a": 1, "x": 1}
    assert not invalid.is_valid
    assert json.loads(review.batch_preview().modified_content) == {"a": 1, "x": 1}


def test_to_dict(editor, reviews):
    review = make_review(editor, reviews)
    data = review.to_dict(include_previews=True)
    assert data["review_id"].startswith("review_")
    assert data["is_valid"] is False
    assert [op["validity"] for op in data["operations"]] == ["valid", "invalid"]
    assert data["summary"]["invalid"] == 1
    assert data["batch_preview"]["is_valid"]
    assert len(data["operation_previews"]) == 2
