"""Tests for tool-call history reconciliation."""

import copy

from claude_proxy.messages.reconciler import (
    classify_result,
    reconcile,
    result_ids,
    stringify_result_content,
    successful_result_ids,
)


def _tool_use(tool_id: str, name: str = "bash") -> dict:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": {}}


def _tool_result(tool_id: str, content="ok", is_error: bool = False) -> dict:
    return {"type": "tool_result", "tool_use_id": tool_id, "content": content, "is_error": is_error}


def _has_tool_use(message: dict) -> bool:
    content = message["content"]
    return isinstance(content, list) and any(b.get("type") == "tool_use" for b in content)


CONVERSATION = [
    {"role": "user", "content": "list files"},
    {"role": "assistant", "content": [{"type": "text", "text": "sure"}, _tool_use("t1")]},
    {"role": "user", "content": [_tool_result("t1", "a.txt")]},
    {"role": "assistant", "content": [{"type": "text", "text": "also"}, _tool_use("t2")]},
    {"role": "user", "content": [_tool_result("t3", "Interrupted by user", is_error=True)]},
    {"role": "assistant", "content": [_tool_use("t3")]},
    {"role": "user", "content": [{"type": "text", "text": "thanks"}]},
]


class TestReconcile:
    """Tests for reconcile()."""

    def test_keeps_messages_without_tool_use(self):
        messages = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": [{"type": "text", "text": "hello"}]},
        ]
        assert reconcile(messages) == messages

    def test_drops_whole_message_with_unanswered_tool_use(self):
        result = reconcile(CONVERSATION)
        texts = [
            block.get("text")
            for message in result
            if isinstance(message["content"], list)
            for block in message["content"]
        ]
        # sibling text of the unanswered t2 call goes with it
        assert "also" not in texts
        assert "sure" in texts
        assert all(
            block.get("id") != "t2"
            for message in result
            if isinstance(message["content"], list)
            for block in message["content"]
        )

    def test_output_is_messages_without_tool_use_plus_fully_answered(self):
        answered = result_ids(CONVERSATION)
        expected = [
            message
            for message in CONVERSATION
            if not _has_tool_use(message)
            or all(
                block["id"] in answered
                for block in message["content"]
                if block.get("type") == "tool_use"
            )
        ]
        assert reconcile(CONVERSATION) == expected

    def test_no_surviving_tool_use_lacks_a_result(self):
        answered = result_ids(CONVERSATION)
        for message in reconcile(CONVERSATION):
            if isinstance(message["content"], list):
                for block in message["content"]:
                    if block.get("type") == "tool_use":
                        assert block["id"] in answered

    def test_lone_unanswered_call_is_dropped(self):
        messages = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": [_tool_use("t1")]},
        ]
        assert reconcile(messages) == [{"role": "user", "content": "hi"}]

    def test_error_results_still_count_as_answers(self):
        result = reconcile(CONVERSATION)
        assert {"role": "assistant", "content": [_tool_use("t3")]} in result

    def test_is_idempotent(self):
        once = reconcile(CONVERSATION)
        assert reconcile(once) == once

    def test_cascading_drop_reaches_fixed_point(self):
        messages = [
            {"role": "assistant", "content": [_tool_use("a")]},
            {"role": "user", "content": [_tool_result("a"), _tool_use("b")]},
        ]
        result = reconcile(messages)
        assert result == []
        assert reconcile(result) == result

    def test_does_not_mutate_input(self):
        original = copy.deepcopy(CONVERSATION)
        reconcile(CONVERSATION)
        assert CONVERSATION == original


class TestResultClassification:
    """Tests for result sets and classify_result()."""

    def test_successful_ids_exclude_errors(self):
        assert result_ids(CONVERSATION) == {"t1", "t3"}
        assert successful_result_ids(CONVERSATION) == {"t1"}

    def test_classify_success(self):
        assert classify_result(_tool_result("x", "done")) == "success"

    def test_classify_missing_is_error_as_success(self):
        assert classify_result({"type": "tool_result", "tool_use_id": "x", "content": "ok"}) == "success"

    def test_classify_interrupted(self):
        block = _tool_result("x", "[Request Interrupted by user for tool use]", is_error=True)
        assert classify_result(block) == "interrupted"

    def test_classify_interrupted_in_block_content(self):
        block = _tool_result("x", [{"type": "text", "text": "Interrupted by user"}], is_error=True)
        assert classify_result(block) == "interrupted"

    def test_classify_error(self):
        assert classify_result(_tool_result("x", "permission denied", is_error=True)) == "error"

    def test_stringify_result_content(self):
        assert stringify_result_content("plain") == "plain"
        assert stringify_result_content([{"type": "text", "text": "x"}]) == '[{"type": "text", "text": "x"}]'
