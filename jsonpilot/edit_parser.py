# jsonpilot/edit_parser.py

import re
from dataclasses import dataclass, field
from typing import List, Optional

EDITS_RE = re.compile(r"<edits>(.*?)</edits>", re.DOTALL)
OLD_TEXT_RE = re.compile(r"<old_text>(.*?)</old_text>", re.DOTALL)
NEW_TEXT_RE = re.compile(r"<new_text>(.*?)</new_text>", re.DOTALL)


@dataclass(frozen=True)
class SearchReplaceEdit:
    old_text: str
    new_text: str
    index: int


@dataclass
class EditParseResult:
    success: bool
    edits: List[SearchReplaceEdit] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    raw_response: str = ""


@dataclass
class EditApplyResult:
    success: bool
    result: Optional[str] = None
    errors: List[str] = field(default_factory=list)


def parse_edits(ai_response: str) -> EditParseResult:
    """
    Parse an `<edits>` block of `<old_text>`/`<new_text>` pairs.
    """
    match = EDITS_RE.search(ai_response or "")
    if not match:
        return EditParseResult(False, errors=["No <edits> section found in response"], raw_response=ai_response)

    body = match.group(1)
    old_texts = OLD_TEXT_RE.findall(body)
    new_texts = NEW_TEXT_RE.findall(body)

    errors: List[str] = []
    if len(old_texts) != len(new_texts):
        errors.append(f"Mismatched edit pairs: {len(old_texts)} old_text, {len(new_texts)} new_text")

    edits: List[SearchReplaceEdit] = []
    for i, (old, new) in enumerate(zip(old_texts, new_texts)):
        old = old.strip()
        if not old:
            errors.append(f"Edit {i + 1}: old_text cannot be empty")
            continue
        edits.append(SearchReplaceEdit(old_text=old, new_text=new.strip(), index=i))

    return EditParseResult(not errors, edits, errors, ai_response)


def apply_edits(content: str, edits: List[SearchReplaceEdit]) -> EditApplyResult:
    """
    Apply edits in order, each replacing the first occurrence in the text the
    previous edits produced. Any miss makes the whole result unsuccessful.
    """
    errors: List[str] = []
    result = content
    for edit in edits:
        if edit.old_text not in result:
            errors.append(f"Edit {edit.index + 1}: old_text not found in content")
            continue
        result = result.replace(edit.old_text, edit.new_text, 1)
    return EditApplyResult(not errors, result, errors)


class StreamingEditParser:
    """
    Accumulates a streamed response; edits become available only once the
    closing `</edits>` tag has arrived.
    """

    def __init__(self) -> None:
        self._chunks: List[str] = []
        self._result: Optional[EditParseResult] = None

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    @property
    def is_complete(self) -> bool:
        return self._result is not None

    def feed(self, chunk: str) -> Optional[EditParseResult]:
        if self._result is not None or not chunk:
            return self._result
        self._chunks.append(chunk)
        text = self.text
        if "</edits>" in text:
            self._result = parse_edits(text)
        return self._result

    def finish(self) -> EditParseResult:
        """
        Final verdict at end of stream; an unclosed block is a parse failure.
        """
        if self._result is not None:
            return self._result
        text = self.text
        if "<edits>" in text:
            return EditParseResult(False, errors=["Response ended before </edits> was closed"], raw_response=text)
        return parse_edits(text)
