# jsonpilot/review_cache.py

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List
from uuid import uuid4

from jsonpilot.errors import ReviewNotFound
from jsonpilot.operation_tracker import OperationStateTracker
from jsonpilot.patch_operations import PatchOperation
from jsonpilot.patch_preview import PatchPreview, generate_patch_preview
from jsonpilot.patch_validator import ValidationResult


@dataclass
class PatchReview:
    """
    One batch under human review. `snapshot_text` is the file content captured
    when the batch arrived; it is only read, never written.
    """
    review_id: str
    file_path: str
    description: str
    snapshot_text: str
    language: str
    operations: List[PatchOperation]
    validation: ValidationResult
    tracker: OperationStateTracker
    created_at: float = field(default_factory=time.time)

    def operation_previews(self) -> List[PatchPreview]:
        return [
            generate_patch_preview(self.snapshot_text, [op], self.language)
            for op in self.operations
        ]

    def batch_preview(self) -> PatchPreview:
        return generate_patch_preview(self.snapshot_text, self.validation.valid_operations, self.language)

    def to_dict(self, include_previews: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "review_id": self.review_id,
            "file_path": self.file_path,
            "description": self.description,
            "is_valid": self.validation.is_valid,
            "errors": list(self.validation.errors),
            "operations": [r.to_dict() for r in self.tracker.records],
            "summary": self.tracker.summary(),
        }
        if include_previews:
            data["operation_previews"] = [
                {"is_valid": p.is_valid, "modified_content": p.modified_content, "error": p.error}
                for p in self.operation_previews()
            ]
            batch = self.batch_preview()
            data["batch_preview"] = {
                "is_valid": batch.is_valid,
                "modified_content": batch.modified_content,
                "error": batch.error,
            }
        return data


class ReviewCache:
    """
    In-memory patch reviews with:
    - sliding TTL (expires ttl_seconds after last touch)
    - explicit discard when the owning view goes away
    - thread-safe operations
    """

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        # review_id -> {"review": PatchReview, "expires_at": float}
        self._items: dict[str, dict[str, object]] = {}

    def new_review_id(self) -> str:
        return f"review_{uuid4().hex[:12]}"

    def add(self, review: PatchReview) -> None:
        with self._lock:
            self._items[review.review_id] = {
                "review": review,
                "expires_at": time.time() + self.ttl_seconds,
            }

    def get(self, review_id: str) -> PatchReview:
        now = time.time()
        with self._lock:
            item = self._items.get(review_id)
            if item is None:
                raise ReviewNotFound(review_id)
            if float(item["expires_at"]) <= now:
                del self._items[review_id]
                raise ReviewNotFound(review_id)
            item["expires_at"] = now + self.ttl_seconds
            return item["review"]  # type: ignore[return-value]

    def discard(self, review_id: str) -> bool:
        with self._lock:
            return self._items.pop(review_id, None) is not None

    def discard_for_file(self, file_path: str) -> int:
        with self._lock:
            doomed = [k for k, v in self._items.items() if v["review"].file_path == file_path]
            for k in doomed:
                del self._items[k]
        return len(doomed)

    def sweep_expired(self) -> int:
        """
        Drop expired reviews. Returns how many entries were removed.
        """
        now = time.time()
        removed = 0
        with self._lock:
            expired = [k for k, v in self._items.items() if float(v["expires_at"]) <= now]
            for k in expired:
                del self._items[k]
                removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
