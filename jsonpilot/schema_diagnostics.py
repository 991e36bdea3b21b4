# jsonpilot/schema_diagnostics.py

import re
from dataclasses import dataclass
from typing import Any, Dict, List

from jsonpointer import JsonPointer

from jsonpilot.errors import DocumentNotJSON
from jsonpilot.json_document import parse_json_text

FIELD_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


@dataclass(frozen=True)
class FieldInfo:
    name: str
    component: str
    path: str


def is_valid_field_name(name: Any) -> bool:
    return isinstance(name, str) and bool(FIELD_NAME_RE.match(name))


def extract_fields(json_obj: Any) -> List[FieldInfo]:
    """
    Every nested object (not the root) carrying both `component` and `name`,
    in document order.
    """
    fields: List[FieldInfo] = []

    def walk(node: Any, parts: List[str]) -> None:
        if isinstance(node, dict):
            if parts and node.get("component") and node.get("name"):
                fields.append(FieldInfo(
                    name=str(node["name"]),
                    component=str(node["component"]),
                    path=JsonPointer.from_parts(parts).path,
                ))
            for key, child in node.items():
                walk(child, parts + [key])
        elif isinstance(node, list):
            for i, child in enumerate(node):
                walk(child, parts + [str(i)])

    walk(json_obj, [])
    return fields


def find_duplicate_names(fields: List[FieldInfo]) -> Dict[str, Dict[str, Any]]:
    groups: Dict[str, List[FieldInfo]] = {}
    for f in fields:
        groups.setdefault(f.name, []).append(f)
    return {
        name: {"paths": [f.path for f in group], "component": group[0].component}
        for name, group in groups.items()
        if len(group) > 1
    }


def find_invalid_names(fields: List[FieldInfo]) -> Dict[str, Dict[str, Any]]:
    invalid: Dict[str, Dict[str, Any]] = {}
    for f in fields:
        if is_valid_field_name(f.name):
            continue
        entry = invalid.setdefault(f.name, {"paths": [], "component": f.component})
        entry["paths"].append(f.path)
    return invalid


def create_summary(diagnostics: Dict[str, Any]) -> Dict[str, int]:
    duplicate_count = len(diagnostics.get("duplicated_names", {}))
    invalid_count = len(diagnostics.get("invalid_names", {}))
    return {
        "total_issues": duplicate_count + invalid_count,
        "duplicate_count": duplicate_count,
        "invalid_count": invalid_count,
    }


def diagnose_form_schema(json_content: str, file_path: str, language: str = "json") -> Dict[str, Any]:
    try:
        json_obj = parse_json_text(json_content, language)
    except DocumentNotJSON as e:
        return {"success": False, "json_error": e.detail or str(e), "file_path": file_path}

    fields = extract_fields(json_obj)
    diagnostics: Dict[str, Any] = {}
    duplicated = find_duplicate_names(fields)
    if duplicated:
        diagnostics["duplicated_names"] = duplicated
    invalid = find_invalid_names(fields)
    if invalid:
        diagnostics["invalid_names"] = invalid

    return {"success": True, "diagnostics": diagnostics, "summary": create_summary(diagnostics)}
