# jsonpilot/editor_state.py

import logging
import re
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from jsonpilot.errors import FileNotOpen, JsonPilotError, WrongFileType
from jsonpilot.json_document import JSON_LANGUAGES

logger = logging.getLogger("jsonpilot_backend")


@dataclass(frozen=True)
class FileType:
    label: str
    value: str
    extension: str


FILE_TYPES: List[FileType] = [
    FileType("JSON", "json", ".json"),
    FileType("JSON with Comments", "jsonc", ".jsonc"),
    FileType("JavaScript", "javascript", ".js"),
    FileType("TypeScript", "typescript", ".ts"),
    FileType("HTML", "html", ".html"),
    FileType("CSS", "css", ".css"),
    FileType("Markdown", "markdown", ".md"),
    FileType("Python", "python", ".py"),
    FileType("Plain Text", "plaintext", ".txt"),
]

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')


def get_language_from_file_name(file_name: str) -> str:
    if "." not in file_name:
        return "plaintext"
    ext = "." + file_name.rsplit(".", 1)[-1].lower()
    for file_type in FILE_TYPES:
        if file_type.extension == ext:
            return file_type.value
    return "plaintext"


def get_default_content(language: str) -> str:
    defaults = {
        "json": "{\n  \n}",
        "jsonc": "{\n  \n}",
        "javascript": "// JavaScript file\n",
        "typescript": "// TypeScript file\n",
        "html": "<!DOCTYPE html>\n<html>\n<head>\n  <title>Document</title>\n</head>\n<body>\n  \n</body>\n</html>",
        "css": "/* CSS file */\n",
        "markdown": "# Markdown Document\n\n",
        "python": "# Python file\n",
    }
    return defaults.get(language, "")


def validate_file_name(file_name: str, existing_files: List[str]) -> Optional[str]:
    """
    Returns an error message, or None when the name is acceptable.
    """
    if not file_name or not file_name.strip():
        return "File name cannot be empty"
    if file_name in existing_files:
        return f'File "{file_name}" already exists'
    if _INVALID_NAME_CHARS.search(file_name):
        return "File name contains invalid characters"
    return None


def normalize_file_name(file_name: str, file_type: str) -> str:
    if "." in file_name:
        return file_name
    for candidate in FILE_TYPES:
        if candidate.value == file_type:
            return file_name + candidate.extension
    return file_name + ".txt"


@dataclass(frozen=True)
class EditorFile:
    name: str
    path: str
    language: str
    content: str
    is_dirty: bool = False


class EditorState:
    """
    Open files keyed by path. Each file's content is the single live cell that
    tools read from and write through; nothing else holds a writable copy.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._files: Dict[str, EditorFile] = {}

    def open_file(self, path: str, content: str, language: Optional[str] = None) -> EditorFile:
        language = language or get_language_from_file_name(path)
        editor_file = EditorFile(
            name=path.rsplit("/", 1)[-1],
            path=path,
            language=language,
            content=content,
        )
        with self._lock:
            self._files[path] = editor_file
        logger.debug(f"[editor] opened {path} ({language}, {len(content)} chars)")
        return editor_file

    def create_file(self, name: str, language: str, content: Optional[str] = None) -> EditorFile:
        with self._lock:
            error = validate_file_name(name, list(self._files))
            if error:
                raise JsonPilotError(error)
            if content is None:
                content = get_default_content(language)
            return self.open_file(name, content, language)

    def close_file(self, path: str) -> None:
        with self._lock:
            if self._files.pop(path, None) is None:
                raise FileNotOpen(path)

    def get_file(self, path: str) -> EditorFile:
        with self._lock:
            editor_file = self._files.get(path)
        if editor_file is None:
            raise FileNotOpen(path)
        return editor_file

    def get_json_file(self, path: str) -> EditorFile:
        editor_file = self.get_file(path)
        if editor_file.language not in JSON_LANGUAGES:
            raise WrongFileType(path, editor_file.language)
        return editor_file

    def has_file(self, path: str) -> bool:
        with self._lock:
            return path in self._files

    def list_files(self) -> List[EditorFile]:
        with self._lock:
            return list(self._files.values())

    def get_file_content(self, path: str) -> str:
        return self.get_file(path).content

    def set_file_content(self, path: str, content: str) -> None:
        with self._lock:
            editor_file = self._files.get(path)
            if editor_file is None:
                raise FileNotOpen(path)
            self._files[path] = replace(editor_file, content=content, is_dirty=True)

    def compare_and_set_content(self, path: str, expected: str, content: str) -> bool:
        """
        Replace the content only if it still equals `expected`.
        """
        with self._lock:
            editor_file = self._files.get(path)
            if editor_file is None:
                raise FileNotOpen(path)
            if editor_file.content != expected:
                return False
            self._files[path] = replace(editor_file, content=content, is_dirty=True)
            return True

    def set_file_dirty(self, path: str, is_dirty: bool) -> None:
        with self._lock:
            editor_file = self._files.get(path)
            if editor_file is None:
                raise FileNotOpen(path)
            self._files[path] = replace(editor_file, is_dirty=is_dirty)
