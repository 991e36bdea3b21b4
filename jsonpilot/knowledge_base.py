# jsonpilot/knowledge_base.py

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger("jsonpilot_backend")

KNOWLEDGE_BASE_KEY = "ai-editor-knowledge-base"


class KnowledgeBaseStore:
    """
    Free-form repair context, kept in a small local preferences file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._value: str | None = None

    def _load_unlocked(self) -> str:
        if self._value is not None:
            return self._value
        self._value = ""
        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
                self._value = str(data.get(KNOWLEDGE_BASE_KEY, "") or "")
            except (OSError, json.JSONDecodeError, AttributeError) as e:
                logger.warning(f"[knowledge_base] Ignoring unreadable {self.path}: {e}")
        return self._value

    def get(self) -> str:
        with self._lock:
            return self._load_unlocked()

    def set(self, content: str) -> None:
        content = content or ""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump({KNOWLEDGE_BASE_KEY: content}, f, ensure_ascii=False, indent=2)
            self._value = content
