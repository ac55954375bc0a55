"""Tests for chatgpz/core/transcript.py."""

import pytest

from chatgpz.core.errors import InvalidInput
from chatgpz.core.transcript import (
    FINALIZATION_PROMPT,
    SYSTEM_PROMPT,
    append_assistant,
    append_finalization,
    append_tool_result,
    build_transcript,
    format_tool_marker,
    normalize_history,
)
from chatgpz.providers.base import Message, ToolInvocation


@pytest.fixture
def history():
    return [Message(role="user", content="hi"), Message(role="assistant", content="hello")]


class TestBuild:

    def test_system_prompt_only_with_tools(self, history):
        with_tools = build_transcript(history, enable_tools=True)
        without = build_transcript(history, enable_tools=False)
        assert with_tools[0] == Message(role="system", content=SYSTEM_PROMPT)
        assert with_tools[1:] == history
        assert without == history

    def test_appends_return_new_lists(self, history):
        call = ToolInvocation("calculator", {"expression": "1+1"})
        step1 = append_assistant(history, "", [call])
        step2 = append_tool_result(step1, "calculator", "1+1 = 2")
        step3 = append_finalization(step2)

        assert len(history) == 2
        assert step1[-1] == Message(role="assistant", content="", tool_calls=[call])
        assert step2[-1] == Message(role="tool", content="1+1 = 2", tool_name="calculator")
        assert step3[-1] == Message(role="user", content=FINALIZATION_PROMPT)
        assert len(step1) == 3 and len(step2) == 4 and len(step3) == 5

    def test_tool_message_wire_format(self):
        msg = append_tool_result([], "get_weather", "Sunny")[0]
        assert msg.to_dict() == {"role": "tool", "content": "Sunny", "tool_name": "get_weather"}


class TestMarker:

    def test_format(self):
        marker = format_tool_marker("calculator", {"expression": "15 * 7"}, "15 * 7 = 105")
        assert marker == '<!--TOOL_START:calculator:{"expression": "15 * 7"}-->15 * 7 = 105<!--TOOL_END-->'

    def test_non_ascii_kept(self):
        marker = format_tool_marker("get_weather", {"location": "Zürich"}, "ok")
        assert '"Zürich"' in marker


class TestNormalize:

    def test_valid(self):
        messages = normalize_history([
            {"role": "user", "content": "What's 2+2?"},
            {"role": "assistant", "content": "", "toolCalls": [
                {"function": {"name": "calculator", "arguments": {"expression": "2+2"}}},
            ]},
            {"role": "tool", "content": "2+2 = 4", "tool_name": "calculator"},
        ])
        assert [m.role for m in messages] == ["user", "assistant", "tool"]
        assert messages[1].tool_calls == [ToolInvocation("calculator", {"expression": "2+2"})]
        assert messages[2].tool_name == "calculator"

    def test_null_content_becomes_empty(self):
        assert normalize_history([{"role": "assistant", "content": None}])[0].content == ""

    @pytest.mark.parametrize("raw,message", [
        ([], "Model and messages are required"),
        (None, "Model and messages are required"),
        ("hello", "Model and messages are required"),
        (["hello"], "must be an object"),
        ([{"role": "wizard", "content": "x"}], "invalid role"),
        ([{"content": "x"}], "invalid role"),
        ([{"role": "user", "content": 5}], "must be a string"),
    ])
    def test_invalid(self, raw, message):
        with pytest.raises(InvalidInput, match=message):
            normalize_history(raw)
