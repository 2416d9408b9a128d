import io
import json

from devic_cli import formatting as md
from devic_cli.models import RealtimeChatHistory
from devic_cli.output import OutputFormat, OutputRenderer


def make_renderer(fmt):
    return OutputRenderer(fmt, stdout=io.StringIO(), stderr=io.StringIO())


def test_non_tty_defaults_to_json():
    renderer = OutputRenderer(stdout=io.StringIO(), stderr=io.StringIO())
    assert renderer.format is OutputFormat.json


def test_json_status_line_is_ndjson():
    renderer = make_renderer("json")
    renderer.status_line("chat_status", {"chatUid": "c-1", "status": "processing"}, 1234)

    assert json.loads(renderer.stdout.getvalue()) == {
        "type": "chat_status",
        "chatUid": "c-1",
        "status": "processing",
        "timestamp": 1234,
    }
    assert renderer.stderr.getvalue() == ""


def test_human_thread_status_line_shows_progress():
    renderer = make_renderer("human")
    renderer.status_line(
        "thread_status",
        {"threadId": "t-1", "state": "processing", "progress": {"completed": 1, "total": 2}},
        0,
    )
    assert renderer.stderr.getvalue() == "[..] Thread `t-1` - **processing** (tasks: 1/2)\n"
    assert renderer.stdout.getvalue() == ""


def test_human_chat_status_line():
    renderer = make_renderer("human")
    renderer.status_line("chat_status", {"chatUid": "c-1", "status": "waiting_for_tool_response"}, 0)
    assert renderer.stderr.getvalue().startswith("[!!] Chat `c-1`")


def test_models_are_dumped_with_api_names():
    renderer = make_renderer("json")
    renderer.output(RealtimeChatHistory(chatUID="c-1", status="completed"))

    data = json.loads(renderer.stdout.getvalue())
    assert data["chatUID"] == "c-1"
    assert data["chatHistory"] == []
    assert "clientUID" not in data


def test_errors_go_to_stderr():
    renderer = make_renderer("json")
    renderer.error({"error": "nope", "code": "HTTP_500", "statusCode": 500})
    assert json.loads(renderer.stderr.getvalue())["code"] == "HTTP_500"

    human = make_renderer("human")
    human.error({"error": "nope", "code": "AUTH_REQUIRED"})
    assert "**Error:** nope" in human.stderr.getvalue()
    assert "Code: `AUTH_REQUIRED`" in human.stderr.getvalue()


def test_humanize_key():
    assert md.humanize_key("chatUID") == "Chat UID"
    assert md.humanize_key("agentId") == "Agent ID"
    assert md.humanize_key("creationTimestampMs") == "Creation Timestamp (ms)"
    assert md.humanize_key("base_url") == "Base URL"


def test_status_badges():
    assert md.status("completed") == "[OK]"
    assert md.status("handed_off") == "[..]"
    assert md.status("paused_for_approval") == "[!!]"
    assert md.status("guardrail_trigger") == "[XX]"
    assert md.status("something_new") == "[--]"


def test_table_skips_nested_columns_and_truncates():
    rows = [{"id": "a", "name": "x" * 60, "threadContent": [1], "meta": {"k": 1}}]
    lines = md.table(rows).splitlines()

    assert lines[0].split("|")[1:3] == [" ID ", " Name" + " " * 47]
    assert lines[2].endswith("~ |")
    assert "Thread Content" not in lines[0]


def test_default_format_for_scalars_and_lists():
    assert md.format_default(None) == "_empty_"
    assert md.format_default([]) == "_No results._"
    assert md.format_default(["a", "b"]) == "- a\n- b"
    assert md.format_default({"enabled": True}) == "**Enabled**: Yes"


def test_conversation_extracts_text():
    text = md.conversation(
        [
            {"role": "user", "content": {"message": "hi"}},
            {"role": "assistant", "content": "hello"},
        ]
    )
    assert text == "**USER:**\nhi\n\n**ASSISTANT:**\nhello"
