import json

import pytest

from conftest import FakeChatLlm
from jsonpilot.repair_agent import JsonRepairAgent, RepairProposalCache

BROKEN = '{\n  "name": "John"\n  "age": 30\n}'
FIX = "<edits>\n<old_text>\n\"name\": \"John\"\n</old_text>\n<new_text>\n\"name\": \"John\",\n</new_text>\n</edits>"


@pytest.fixture
def llm():
    return FakeChatLlm([FIX[:20], FIX[20:], "trailing text after the block"])


@pytest.fixture
def agent(editor, knowledge_base, llm):
    editor.open_file("person.json", BROKEN)
    return JsonRepairAgent(editor, knowledge_base, lambda: llm)


def test_prompt_includes_content_error_and_knowledge_base(agent):
    prompt = agent.build_prompt('{"a": {b}}', "Expecting value", knowledge_base="ages are integers")
    assert '{"a": {b}}' in prompt
    assert "JSON Parse Error: Expecting value" in prompt
    assert "<knowledge_base>\nages are integers" in prompt
    assert "{knowledge_base_section}" not in prompt


def test_prompt_without_knowledge_base(agent):
    assert "<knowledge_base>" not in agent.build_prompt("{", "err")


def test_propose_then_apply(agent, editor, knowledge_base, llm):
    knowledge_base.set("people have a name and an age")
    proposal = agent.propose_repair("person.json")
    assert proposal["success"]
    assert proposal["preview_applies"]
    assert json.loads(proposal["modified_content"]) == {"name": "John", "age": 30}
    # nothing is written until the proposal is applied
    assert editor.get_file_content("person.json") == BROKEN
    system, human = llm.calls[0]
    assert "people have a name and an age" in human.content

    result = agent.apply_repair(proposal["proposal_id"])
    assert result["success"]
    assert result["method"] == "ai_assisted"
    assert result["edits_count"] == 1
    assert json.loads(editor.get_file_content("person.json")) == {"name": "John", "age": 30}


def test_apply_uses_the_live_content(agent, editor):
    proposal = agent.propose_repair("person.json")
    editor.set_file_content("person.json", '{\n  "name": "John"\n  "age": 31\n}')
    agent.apply_repair(proposal["proposal_id"])
    assert json.loads(editor.get_file_content("person.json")) == {"name": "John", "age": 31}


def test_apply_reports_edits_that_no_longer_match(agent, editor):
    proposal = agent.propose_repair("person.json")
    editor.set_file_content("person.json", '{"other": 1')
    result = agent.apply_repair(proposal["proposal_id"])
    assert not result["success"]
    assert result["details"]["edit_errors"] == ["Edit 1: old_text not found in content"]
    assert editor.get_file_content("person.json") == '{"other": 1'


def test_apply_twice_or_unknown(agent):
    proposal = agent.propose_repair("person.json")
    agent.apply_repair(proposal["proposal_id"])
    assert agent.apply_repair(proposal["proposal_id"])["error"] == "No AI edits available to apply"


def test_reject(agent, editor):
    proposal = agent.propose_repair("person.json")
    result = agent.reject_repair(proposal["proposal_id"])
    assert result == {
        "success": False,
        "error": "User rejected AI repair suggestions",
        "message": "Please fix the JSON manually",
    }
    assert editor.get_file_content("person.json") == BROKEN
    assert not agent.apply_repair(proposal["proposal_id"])["success"]


def test_valid_file_needs_no_repair(editor, knowledge_base, llm):
    editor.open_file("ok.json", '{"a": 1}')
    agent = JsonRepairAgent(editor, knowledge_base, lambda: llm)
    assert agent.propose_repair("ok.json")["message"] == "JSON is already valid - no repair needed"
    assert llm.calls == []


def test_unparseable_llm_answer(editor, knowledge_base):
    editor.open_file("bad.json", "{")
    agent = JsonRepairAgent(editor, knowledge_base, lambda: FakeChatLlm(["I cannot help with that"]))
    result = agent.propose_repair("bad.json")
    assert not result["success"]
    assert result["error"] == "Parse failed: No <edits> section found in response"


def test_file_checks(agent, editor):
    editor.open_file("notes.md", "# hi")
    assert agent.propose_repair("missing.json")["error"] == 'File "missing.json" not found'
    assert agent.propose_repair("notes.md")["error"] == "File is not JSON (detected: markdown)"


def test_auto_repair_file(editor, knowledge_base, llm):
    editor.open_file("trailing.json", '{"a": [1, 2,]}')
    agent = JsonRepairAgent(editor, knowledge_base, lambda: llm)
    result = agent.auto_repair_file("trailing.json")
    assert result["success"] and result["changes_applied"]
    assert json.loads(editor.get_file_content("trailing.json")) == {"a": [1, 2]}
    assert agent.auto_repair_file("trailing.json")["message"] == "JSON is already valid - no repair needed"


def test_stream_is_closed_once_the_edits_block_ends(agent, llm):
    agent.propose_repair("person.json")
    assert llm.closed
    # the trailing chunk after </edits> is never pulled
    assert llm.sent == 2


def test_expired_proposal_cannot_be_applied(editor, knowledge_base, llm):
    editor.open_file("person.json", BROKEN)
    agent = JsonRepairAgent(editor, knowledge_base, lambda: llm, proposals=RepairProposalCache(ttl_seconds=0))
    proposal = agent.propose_repair("person.json")
    assert proposal["success"]
    assert agent.apply_repair(proposal["proposal_id"])["error"] == "No AI edits available to apply"
    assert editor.get_file_content("person.json") == BROKEN


def test_proposal_cache_sweeps_and_discards():
    cache = RepairProposalCache(ttl_seconds=3600)
    cache.add("repair_a", {"file_path": "a.json", "edits": [], "original_error": "x"})
    cache.add("repair_b", {"file_path": "b.json", "edits": [], "original_error": "x"})
    assert len(cache) == 2
    assert cache.discard_for_file("a.json") == 1
    assert cache.sweep_expired() == 0
    cache.ttl_seconds = 0
    cache.add("repair_c", {"file_path": "c.json", "edits": [], "original_error": "x"})
    assert cache.sweep_expired() == 1
    assert len(cache) == 1
    assert cache.pop("repair_b")["file_path"] == "b.json"
    assert cache.pop("repair_b") is None
