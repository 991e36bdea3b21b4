import json

import pytest

from jsonpilot.config import Settings
from jsonpilot.editor_state import EditorState
from jsonpilot.knowledge_base import KnowledgeBaseStore
from jsonpilot.review_cache import ReviewCache

FORM_DOC = {
    "title": "Signup",
    "fields": [
        {"component": "textfield", "name": "first_name", "label": "First name"},
        {"component": "textfield", "name": "email", "label": "Email"},
        {"component": "checkbox", "name": "email", "label": "Email again"},
        {"component": "number", "name": "2fa-code", "label": "Code"},
    ],
}


class FakeChatLlm:
    """
    Stand-in for ChatLlmClient: replays canned chunks and records the prompts.
    """

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.calls = []
        self.sent = 0
        self.closed = False

    def stream(self, messages):
        self.calls.append(messages)
        try:
            for chunk in self.chunks:
                self.sent += 1
                yield chunk
        finally:
            self.closed = True


@pytest.fixture
def editor():
    return EditorState()


@pytest.fixture
def reviews():
    return ReviewCache(ttl_seconds=3600)


@pytest.fixture
def form_text():
    return json.dumps(FORM_DOC, indent=2)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key="sk-test",
        openai_model="gpt-test",
        knowledge_base_path=str(tmp_path / "kb.json"),
    )


@pytest.fixture
def knowledge_base(tmp_path):
    return KnowledgeBaseStore(tmp_path / "kb.json")
