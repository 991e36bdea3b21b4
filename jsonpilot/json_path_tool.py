# jsonpilot/json_path_tool.py

import logging
import time
from typing import Any, Dict, List, Optional

from jsonpath_ng.jsonpath import Fields, Index
from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as parse_jsonpath
from jsonpointer import JsonPointer

from jsonpilot.editor_state import EditorState
from jsonpilot.errors import DocumentNotJSON, FileNotOpen, WrongFileType
from jsonpilot.json_document import parse_json_text

logger = logging.getLogger("jsonpilot_backend")


def match_pointer(match) -> str:
    """
    JSON Pointer of a jsonpath-ng match, rebuilt from its context chain.
    """
    parts: List[str] = []
    datum = match
    while datum is not None:
        path = datum.path
        if isinstance(path, Fields) and len(path.fields) == 1:
            parts.append(path.fields[0])
        elif isinstance(path, Index):
            index = path.indices[0] if hasattr(path, "indices") else path.index
            if index < 0 and datum.context is not None:
                index += len(datum.context.value)
            parts.append(str(index))
        datum = datum.context
    parts.reverse()
    return JsonPointer.from_parts(parts).path


def execute_query(json_obj: Any, query_item: Dict[str, Any]) -> Dict[str, Any]:
    query = query_item.get("query", "")
    description = query_item.get("description", "")
    include_values = bool(query_item.get("include_values", False))

    result: Dict[str, Any] = {
        "query": query,
        "description": description,
        "include_values": include_values,
    }
    start = time.perf_counter()
    try:
        expression = parse_jsonpath(query)
        found = expression.find(json_obj)
    except (JSONPathError, TypeError, ValueError, KeyError, IndexError, AttributeError) as e:
        result["success"] = False
        result["error"] = f"{e}. Call this again with correct query"
        return result

    matches: Dict[str, Any] = {}
    for match in found:
        matches[match_pointer(match)] = match.value if include_values else None

    result["success"] = True
    result["matches"] = matches
    result["execution_time"] = f"{round((time.perf_counter() - start) * 1000)}ms"
    return result


class JsonPathTool:
    """
    `query_json_path`: run JSONPath queries against an open JSON file.
    Matches are keyed by JSON Pointer so they can feed straight into patches.
    """

    name = "query_json_path"

    def __init__(self, editor: EditorState):
        self.editor = editor

    def handle(self, file_path: str, queries: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
        failure = {"success": False, "file_path": file_path, "queries": []}
        try:
            editor_file = self.editor.get_json_file(file_path)
        except (FileNotOpen, WrongFileType) as e:
            return {**failure, "error": str(e)}

        try:
            json_obj = parse_json_text(editor_file.content, editor_file.language)
        except DocumentNotJSON:
            return {**failure, "error": "Invalid JSON content"}

        results = [execute_query(json_obj, item or {}) for item in (queries or [])]
        logger.debug(f"[{self.name}] {file_path}: {len(results)} queries")
        return {
            "success": True,
            "file_path": file_path,
            "queries": results,
            "summary": {
                "total_queries": len(results),
                "successful_queries": sum(1 for r in results if r["success"]),
                "total_matches": sum(len(r.get("matches") or {}) for r in results),
            },
        }
