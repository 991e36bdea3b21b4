# jsonpilot/repair_agent.py

import logging
import threading
import time
from contextlib import closing
from typing import Any, Callable, Dict, Iterator, List, Optional
from uuid import uuid4

from langchain_core.messages import HumanMessage, SystemMessage

from chat_prompts.tool_prompts import JSON_REPAIR_PROMPT, JSON_REPAIR_SYSTEM_PROMPT, KNOWLEDGE_BASE_SECTION
from jsonpilot.base_utils import BaseUtils
from jsonpilot.edit_parser import SearchReplaceEdit, StreamingEditParser, apply_edits
from jsonpilot.editor_state import EditorState
from jsonpilot.errors import FileNotOpen, JsonPilotError, WrongFileType
from jsonpilot.knowledge_base import KnowledgeBaseStore
from jsonpilot.llm_client import ChatLlmClient
from jsonpilot.repair_utils import describe_error, try_automatic_repair, validate_json

logger = logging.getLogger("jsonpilot_backend")


class RepairProposalCache:
    """
    Pending AI repair proposals with a sliding TTL, keyed by proposal id.
    A proposal is consumed by `pop`; closing its file drops it.
    """

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        # proposal_id -> {"proposal": {"file_path", "edits", "original_error"}, "expires_at": float}
        self._items: Dict[str, Dict[str, Any]] = {}

    def new_proposal_id(self) -> str:
        return f"repair_{uuid4().hex[:12]}"

    def add(self, proposal_id: str, proposal: Dict[str, Any]) -> None:
        with self._lock:
            self._items[proposal_id] = {"proposal": proposal, "expires_at": time.time() + self.ttl_seconds}

    def pop(self, proposal_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._items.pop(proposal_id, None)
        if item is None or float(item["expires_at"]) <= time.time():
            return None
        return item["proposal"]

    def discard_for_file(self, file_path: str) -> int:
        with self._lock:
            doomed = [k for k, v in self._items.items() if v["proposal"]["file_path"] == file_path]
            for k in doomed:
                del self._items[k]
        return len(doomed)

    def sweep_expired(self) -> int:
        now = time.time()
        with self._lock:
            expired = [k for k, v in self._items.items() if float(v["expires_at"]) <= now]
            for k in expired:
                del self._items[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class JsonRepairAgent(BaseUtils):
    """
    `repair_json`: fix a broken JSON file.

    The LLM answers in the `<edits>` protocol; edits are parsed only once the
    block closes, shown as a proposal, and written to the live file only on
    approval, against whatever the file holds at that moment.
    """

    name = "repair_json"

    def __init__(
        self,
        editor: EditorState,
        knowledge_base: KnowledgeBaseStore,
        llm_factory: Callable[[], ChatLlmClient],
        proposals: Optional[RepairProposalCache] = None,
    ):
        self.editor = editor
        self.knowledge_base = knowledge_base
        self.llm_factory = llm_factory
        self.proposals = proposals if proposals is not None else RepairProposalCache(ttl_seconds=3600)

    # -----------------------
    # Prompting
    # -----------------------

    def build_prompt(self, content: str, error: str, knowledge_base: Optional[str] = None) -> str:
        kb_section = ""
        if knowledge_base:
            kb_section = self.unsafe_string_format(KNOWLEDGE_BASE_SECTION, knowledge_base=knowledge_base)
        return self.unsafe_string_format(
            JSON_REPAIR_PROMPT,
            knowledge_base_section=kb_section,
            content=content,
            error=error,
        )

    def stream_repair(
        self,
        content: str,
        error: str,
        knowledge_base: Optional[str] = None,
        prompt: Optional[str] = None,
    ) -> Iterator[str]:
        """
        Raw text chunks from the model, in arrival order. The client is built
        before returning, so configuration errors surface here and not mid-stream.
        """
        messages = [
            SystemMessage(content=JSON_REPAIR_SYSTEM_PROMPT),
            HumanMessage(content=prompt or self.build_prompt(content, error, knowledge_base)),
        ]
        llm = self.llm_factory()
        return llm.stream(messages)

    def request_edits(self, content: str, error: str, knowledge_base: Optional[str] = None):
        parser = StreamingEditParser()
        with closing(self.stream_repair(content, error, knowledge_base)) as chunks:
            for chunk in chunks:
                if parser.feed(chunk) is not None:
                    break
        return parser.finish()

    # -----------------------
    # Tool flow
    # -----------------------

    def _json_file(self, file_path: str):
        try:
            return self.editor.get_json_file(file_path), None
        except FileNotOpen:
            return None, {"success": False, "error": f'File "{file_path}" not found'}
        except WrongFileType as e:
            return None, {"success": False, "error": f"File is not JSON (detected: {e.language})"}

    def auto_repair_file(self, file_path: str) -> Dict[str, Any]:
        editor_file, failure = self._json_file(file_path)
        if failure:
            return failure

        outcome = try_automatic_repair(editor_file.content)
        if not outcome.success:
            return {"success": False, "error": outcome.error, "original_error": outcome.original_error}
        if not outcome.changes_detected:
            return {"success": True, "method": "none", "changes_applied": False,
                    "message": "JSON is already valid - no repair needed"}
        if not self.editor.compare_and_set_content(file_path, editor_file.content, outcome.repaired_content):
            return {"success": False, "error": f'"{file_path}" changed during repair; retry'}
        return {
            "success": True,
            "method": "automatic",
            "changes_applied": True,
            "message": "JSON repaired automatically and validated.",
            "details": {"original_error": outcome.original_error},
        }

    def propose_repair(self, file_path: str) -> Dict[str, Any]:
        editor_file, failure = self._json_file(file_path)
        if failure:
            return failure

        validation = validate_json(editor_file.content)
        if validation.is_valid:
            return {"success": True, "message": "JSON is already valid - no repair needed"}

        error = describe_error(validation)
        try:
            parsed = self.request_edits(editor_file.content, error, self.knowledge_base.get() or None)
        except (JsonPilotError, ValueError) as e:
            logger.info(f"[{self.name}] LLM repair failed for {file_path}: {e}")
            return {"success": False, "error": str(e), "original_error": error}

        if not parsed.success:
            return {"success": False, "error": f"Parse failed: {', '.join(parsed.errors)}", "original_error": error}

        preview = apply_edits(editor_file.content, parsed.edits)
        proposal_id = self.proposals.new_proposal_id()
        self.proposals.add(proposal_id, {
            "file_path": file_path,
            "edits": parsed.edits,
            "original_error": error,
        })
        return {
            "success": True,
            "proposal_id": proposal_id,
            "original_error": error,
            "edits": [{"old_text": e.old_text, "new_text": e.new_text} for e in parsed.edits],
            "preview_applies": preview.success,
            "modified_content": preview.result if preview.success else None,
        }

    def apply_repair(self, proposal_id: str) -> Dict[str, Any]:
        proposal = self.proposals.pop(proposal_id)
        if proposal is None:
            return {"success": False, "error": "No AI edits available to apply",
                    "message": "No repair suggestions are available to apply."}

        file_path = proposal["file_path"]
        edits: List[SearchReplaceEdit] = proposal["edits"]
        original_error = proposal["original_error"]
        try:
            before = self.editor.get_file_content(file_path)
        except FileNotOpen as e:
            return {"success": False, "error": str(e)}

        applied = apply_edits(before, edits)
        if not applied.success:
            return {
                "success": False,
                "error": f"Failed to apply AI edits: {', '.join(applied.errors)}",
                "message": "The AI-generated fixes could not be applied to the file.",
                "details": {"original_error": original_error, "edit_errors": applied.errors},
            }
        if not self.editor.compare_and_set_content(file_path, before, applied.result):
            return {"success": False, "error": f'"{file_path}" changed while applying the repair; retry'}

        validation = validate_json(applied.result)
        plural = "es" if len(edits) != 1 else ""
        if validation.is_valid:
            return {
                "success": True,
                "method": "ai_assisted",
                "changes_applied": True,
                "edits_count": len(edits),
                "message": f"JSON successfully repaired! Applied {len(edits)} AI-generated fix{plural} and validated the result.",
                "details": {"original_error": original_error, "fixes_applied": len(edits), "validation_passed": True},
            }
        return {
            "success": False,
            "error": f"AI repair applied but JSON is still invalid: {describe_error(validation)}",
            "message": "The AI fixes were applied but the JSON still has validation errors. Manual intervention may be required.",
            "details": {
                "original_error": original_error,
                "fixes_applied": len(edits),
                "validation_passed": False,
                "remaining_error": describe_error(validation),
            },
        }

    def reject_repair(self, proposal_id: str) -> Dict[str, Any]:
        self.proposals.pop(proposal_id)
        return {
            "success": False,
            "error": "User rejected AI repair suggestions",
            "message": "Please fix the JSON manually",
        }
