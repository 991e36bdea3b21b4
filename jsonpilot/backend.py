# jsonpilot/backend.py

import logging
from typing import Any, Callable, Dict, Optional

from chat_prompts.tool_prompts import (
    JSON_PATCH_INSTRUCTIONS,
    JSON_PATCH_TOOL_DESCRIPTION,
    JSON_PATH_INSTRUCTIONS,
    JSON_PATH_TOOL_DESCRIPTION,
    JSON_REPAIR_INSTRUCTIONS,
    JSON_REPAIR_TOOL_DESCRIPTION,
)
from jsonpilot.base_utils import BaseUtils
from jsonpilot.config import Settings, load_settings
from jsonpilot.editor_state import EditorFile, EditorState, normalize_file_name
from jsonpilot.errors import InvalidTransition, JsonPilotError
from jsonpilot.json_path_tool import JsonPathTool
from jsonpilot.knowledge_base import KnowledgeBaseStore
from jsonpilot.llm_client import ChatLlmClient, build_openai_client
from jsonpilot.patch_preview import PatchPreview
from jsonpilot.patch_tool import JsonPatchTool
from jsonpilot.repair_agent import JsonRepairAgent, RepairProposalCache
from jsonpilot.repair_utils import describe_error, validate_json
from jsonpilot.review_cache import ReviewCache
from jsonpilot.schema_diagnostics import diagnose_form_schema
from jsonpilot.token_cache import CopilotTokenCache

logger = logging.getLogger("jsonpilot_backend")


def _file_dict(editor_file: EditorFile, include_content: bool = True) -> Dict[str, Any]:
    data = {
        "name": editor_file.name,
        "path": editor_file.path,
        "language": editor_file.language,
        "is_dirty": editor_file.is_dirty,
    }
    if include_content:
        data["content"] = editor_file.content
    return data


def _preview_dict(preview: Optional[PatchPreview]) -> Optional[Dict[str, Any]]:
    if preview is None:
        return None
    return {
        "is_valid": preview.is_valid,
        "modified_content": preview.modified_content,
        "error": preview.error,
    }


class Backend(BaseUtils):
    """
    Request dispatcher in front of the editor state and the AI tools.

    Every request is `{"type": ..., "payload": {...}}`; every response is
    `{"status": "success"|"error", "message": str, "data": ...}`.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        editor: Optional[EditorState] = None,
        reviews: Optional[ReviewCache] = None,
        knowledge_base: Optional[KnowledgeBaseStore] = None,
        llm_factory: Optional[Callable[[], ChatLlmClient]] = None,
    ):
        self.settings = settings or load_settings()
        self.editor = editor if editor is not None else EditorState()
        self.reviews = reviews if reviews is not None else ReviewCache(self.settings.review_ttl_seconds)
        self.knowledge_base = knowledge_base if knowledge_base is not None else KnowledgeBaseStore(self.settings.knowledge_base_path)
        self.token_cache = CopilotTokenCache(
            self.settings.github_oauth_token,
            token_url=self.settings.copilot_token_url,
        )
        self.llm_factory = llm_factory or self._build_repair_llm

        self.patch_tool = JsonPatchTool(self.editor, self.reviews)
        self.path_tool = JsonPathTool(self.editor)
        self.repair_agent = JsonRepairAgent(
            self.editor,
            self.knowledge_base,
            self.llm_factory,
            proposals=RepairProposalCache(self.settings.review_ttl_seconds),
        )

    def _build_repair_llm(self) -> ChatLlmClient:
        # rebuilt per request; the Copilot token is short-lived
        client = build_openai_client(self.settings, self.token_cache)
        return ChatLlmClient(client, self.settings.repair_model)

    def process_request_data(self, request_data: dict) -> dict:
        """
        Core request handling logic.
        Takes a parsed JSON dict and returns the response_data dict.
        """
        request_type = request_data.get("type")
        payload = request_data.get("payload") or {}

        logger.debug(f"process_request request {self._preview_payload(request_data)}")

        response_data: Dict[str, Any] = {"status": "success", "message": "", "data": None}

        self.reviews.sweep_expired()
        self.repair_agent.proposals.sweep_expired()
        handler = self._handlers().get(request_type)
        if handler is None:
            response_data["status"] = "error"
            response_data["message"] = f"Unknown request type: {request_type}"
            return response_data

        try:
            response_data["data"] = handler(payload)
        except JsonPilotError as e:
            logger.info(f"[{request_type}] {e}")
            response_data["status"] = "error"
            response_data["message"] = str(e)
        except Exception as e:
            logger.exception(f"Error while processing {request_type}: {e}")
            response_data["status"] = "error"
            response_data["message"] = f"Internal error while processing {request_type}"

        logger.debug(f"response {self._preview_payload(response_data)}")
        return response_data

    def _handlers(self) -> Dict[str, Callable[[dict], Any]]:
        return {
            "open_file": self.handle_open_file,
            "create_file": self.handle_create_file,
            "update_file": self.handle_update_file,
            "close_file": self.handle_close_file,
            "list_files": self.handle_list_files,
            "suggest_json_patch": self.handle_suggest_json_patch,
            "get_review": self.handle_get_review,
            "apply_operation": self.handle_apply_operation,
            "apply_all": self.handle_apply_all,
            "reject_operation": self.handle_reject_operation,
            "reject_all": self.handle_reject_all,
            "discard_review": self.handle_discard_review,
            "query_json_path": self.handle_query_json_path,
            "diagnose_form_schema": self.handle_diagnose_form_schema,
            "validate_json": self.handle_validate_json,
            "auto_repair": self.handle_auto_repair,
            "propose_repair": self.handle_propose_repair,
            "apply_repair": self.handle_apply_repair,
            "reject_repair": self.handle_reject_repair,
            "get_knowledge_base": self.handle_get_knowledge_base,
            "set_knowledge_base": self.handle_set_knowledge_base,
            "get_tool_instructions": self.handle_get_tool_instructions,
        }

    # -----------------------
    # Editor files
    # -----------------------

    def handle_open_file(self, payload: dict) -> dict:
        path = (payload.get("path") or "").strip()
        if not path:
            raise JsonPilotError("open_file requires a path")
        editor_file = self.editor.open_file(path, payload.get("content") or "", payload.get("language"))
        return _file_dict(editor_file)

    def handle_create_file(self, payload: dict) -> dict:
        language = payload.get("language") or "json"
        name = (payload.get("name") or "").strip()
        if not name:
            raise JsonPilotError("File name cannot be empty")
        name = normalize_file_name(name, language)
        editor_file = self.editor.create_file(name, language, payload.get("content"))
        self.color_print(f"Created {editor_file.path} ({language})", "green")
        return _file_dict(editor_file)

    def handle_update_file(self, payload: dict) -> dict:
        path = payload.get("path")
        self.editor.set_file_content(path, payload.get("content") or "")
        return _file_dict(self.editor.get_file(path), include_content=False)

    def handle_close_file(self, payload: dict) -> dict:
        path = payload.get("path")
        self.editor.close_file(path)
        dropped = self.reviews.discard_for_file(path)
        dropped_repairs = self.repair_agent.proposals.discard_for_file(path)
        return {"path": path, "discarded_reviews": dropped, "discarded_repairs": dropped_repairs}

    def handle_list_files(self, payload: dict) -> dict:
        return {"files": [_file_dict(f, include_content=False) for f in self.editor.list_files()]}

    # -----------------------
    # Patch reviews
    # -----------------------

    def handle_suggest_json_patch(self, payload: dict) -> dict:
        return self.patch_tool.handle(
            payload.get("file_path", ""),
            payload.get("description", ""),
            payload.get("operations"),
        )

    def handle_get_review(self, payload: dict) -> dict:
        review = self.reviews.get(payload.get("review_id", ""))
        return review.to_dict(include_previews=bool(payload.get("include_previews", True)))

    def _operation_index(self, payload: dict) -> int:
        index = payload.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidTransition("An integer operation index is required")
        return index

    def handle_apply_operation(self, payload: dict) -> dict:
        review = self.reviews.get(payload.get("review_id", ""))
        preview = review.tracker.apply_one(self._operation_index(payload))
        return {"review": review.to_dict(), "preview": _preview_dict(preview)}

    def handle_apply_all(self, payload: dict) -> dict:
        review = self.reviews.get(payload.get("review_id", ""))
        preview = review.tracker.apply_all()
        return {"review": review.to_dict(), "preview": _preview_dict(preview)}

    def handle_reject_operation(self, payload: dict) -> dict:
        review = self.reviews.get(payload.get("review_id", ""))
        review.tracker.reject_one(self._operation_index(payload))
        return {"review": review.to_dict()}

    def handle_reject_all(self, payload: dict) -> dict:
        review = self.reviews.get(payload.get("review_id", ""))
        review.tracker.reject_all()
        return {"review": review.to_dict()}

    def handle_discard_review(self, payload: dict) -> dict:
        review_id = payload.get("review_id", "")
        return {"review_id": review_id, "discarded": self.reviews.discard(review_id)}

    # -----------------------
    # Read-only tools
    # -----------------------

    def handle_query_json_path(self, payload: dict) -> dict:
        return self.path_tool.handle(payload.get("file_path", ""), payload.get("queries"))

    def handle_diagnose_form_schema(self, payload: dict) -> dict:
        file_path = payload.get("file_path", "")
        editor_file = self.editor.get_json_file(file_path)
        return diagnose_form_schema(editor_file.content, file_path, editor_file.language)

    def handle_validate_json(self, payload: dict) -> dict:
        if "content" in payload:
            content = payload.get("content") or ""
        else:
            content = self.editor.get_file_content(payload.get("file_path", ""))
        validation = validate_json(content)
        return {
            "is_valid": validation.is_valid,
            "error": None if validation.is_valid else describe_error(validation),
            "position": validation.position(),
        }

    # -----------------------
    # Repair
    # -----------------------

    def handle_auto_repair(self, payload: dict) -> dict:
        return self.repair_agent.auto_repair_file(payload.get("file_path", ""))

    def handle_propose_repair(self, payload: dict) -> dict:
        return self.repair_agent.propose_repair(payload.get("file_path", ""))

    def handle_apply_repair(self, payload: dict) -> dict:
        return self.repair_agent.apply_repair(payload.get("proposal_id", ""))

    def handle_reject_repair(self, payload: dict) -> dict:
        return self.repair_agent.reject_repair(payload.get("proposal_id", ""))

    def handle_get_knowledge_base(self, payload: dict) -> dict:
        return {"knowledge_base": self.knowledge_base.get()}

    def handle_set_knowledge_base(self, payload: dict) -> dict:
        self.knowledge_base.set(self._coerce_field_to_str(payload.get("knowledge_base")))
        return {"knowledge_base": self.knowledge_base.get()}

    def handle_get_tool_instructions(self, payload: dict) -> dict:
        return {
            "suggest_json_patch": {
                "description": JSON_PATCH_TOOL_DESCRIPTION,
                "instructions": JSON_PATCH_INSTRUCTIONS.strip(),
            },
            "query_json_path": {
                "description": JSON_PATH_TOOL_DESCRIPTION,
                "instructions": JSON_PATH_INSTRUCTIONS.strip(),
            },
            "repair_json": {
                "description": JSON_REPAIR_TOOL_DESCRIPTION,
                "instructions": JSON_REPAIR_INSTRUCTIONS.strip(),
            },
        }
