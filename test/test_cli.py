import json

import pytest
from typer.testing import CliRunner

from devic_cli import __version__
from devic_cli.cli import app
from devic_cli.errors import DevicApiError, PollTimeoutError
from devic_cli.models import AgentThread, AsyncResponse, RealtimeChatHistory

runner = CliRunner()


class FakeClient:
    """Stands in for DevicApiClient; every fetch resolves immediately."""

    def __init__(self, chat_status="completed", thread_state="completed", error=None):
        self.chat_status = chat_status
        self.thread_state = thread_state
        self.error = error
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def get_assistants(self, external=False):
        self.calls.append(("get_assistants", external))
        if self.error:
            raise self.error
        return [{"identifier": "default", "name": "Default assistant"}]

    async def send_message_async(self, identifier, dto):
        self.calls.append(("send_message_async", identifier, dto))
        return AsyncResponse(chatUid="chat-1")

    async def send_tool_responses(self, identifier, chat_uid, responses):
        self.calls.append(("send_tool_responses", identifier, chat_uid, responses))
        return {"chatUid": chat_uid}

    async def get_realtime_history(self, identifier, chat_uid):
        self.calls.append(("get_realtime_history", identifier, chat_uid))
        return RealtimeChatHistory.model_validate(
            {
                "chatUID": chat_uid,
                "status": self.chat_status,
                "pendingToolCalls": [
                    {"id": "call-1", "type": "function", "function": {"name": "lookup", "arguments": "{}"}}
                ]
                if self.chat_status == "waiting_for_tool_response"
                else None,
            }
        )

    async def create_thread(self, agent_id, data):
        self.calls.append(("create_thread", agent_id, data))
        return {"threadId": "thread-1", "agentId": agent_id, "state": "queued"}

    async def get_thread(self, thread_id, with_tasks=False):
        self.calls.append(("get_thread", thread_id, with_tasks))
        return AgentThread.model_validate(
            {"_id": thread_id, "agentId": "agent-1", "state": self.thread_state}
        )


@pytest.fixture
def fake_client(monkeypatch, isolated_config):
    client = FakeClient()
    monkeypatch.setattr("devic_cli.cli.helpers.create_client", lambda base_url=None: client)
    return client


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_auth_status_when_logged_out(isolated_config):
    result = runner.invoke(app, ["auth", "status"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "authenticated": False,
        "baseUrl": "https://api.devic.ai",
    }


def test_auth_status_truncates_key(isolated_config, monkeypatch):
    monkeypatch.setenv("DEVIC_API_KEY", "devic-0123456789abcdef")
    result = runner.invoke(app, ["-o", "human", "auth", "status"])

    assert result.exit_code == 0
    assert "API Key: devic-0123..." in result.output
    assert "abcdef" not in result.output


def test_missing_credentials_exit_code(isolated_config):
    result = runner.invoke(app, ["assistants", "list"])

    assert result.exit_code == 2
    assert "AUTH_REQUIRED" in result.output


def test_rejected_key_exit_code(fake_client):
    fake_client.error = DevicApiError(401, "Invalid API key", "Unauthorized")
    result = runner.invoke(app, ["assistants", "list"])

    assert result.exit_code == 2
    assert "Invalid API key" in result.output


def test_server_error_exit_code(fake_client):
    fake_client.error = DevicApiError(500, "Database unavailable")
    result = runner.invoke(app, ["assistants", "list", "--external"])

    assert result.exit_code == 1
    assert "HTTP_500" in result.output
    assert fake_client.calls == [("get_assistants", True)]


def test_chat_sends_async_and_polls(fake_client):
    result = runner.invoke(app, ["assistants", "chat", "default", "-m", "hello", "--tags", "a, b"])

    assert result.exit_code == 0, result.output
    assert fake_client.calls[0] == (
        "send_message_async",
        "default",
        {"message": "hello", "tags": ["a", "b"]},
    )
    assert ("get_realtime_history", "default", "chat-1") in fake_client.calls
    assert '"type": "chat_status"' in result.output
    assert '"chatUID": "chat-1"' in result.output


def test_chat_stops_for_tool_calls(fake_client):
    fake_client.chat_status = "waiting_for_tool_response"
    result = runner.invoke(app, ["-o", "human", "assistants", "chat", "default", "-m", "weather?"])

    assert result.exit_code == 0, result.output
    assert "[!!] Chat `chat-1` - **waiting_for_tool_response**" in result.output
    assert "Pending Tool Calls" in result.output
    assert "lookup({})" in result.output


def test_chat_requires_message(fake_client):
    result = runner.invoke(app, ["assistants", "chat", "default"])

    assert result.exit_code == 1
    assert "INVALID_INPUT" in result.output
    assert fake_client.calls == []


def test_tool_response_from_stdin(fake_client):
    payload = json.dumps([{"tool_call_id": "call-1", "content": "42"}])
    result = runner.invoke(
        app, ["assistants", "tool-response", "default", "chat-1", "--from-json", "-"], input=payload
    )

    assert result.exit_code == 0, result.output
    assert fake_client.calls[0] == (
        "send_tool_responses",
        "default",
        "chat-1",
        [{"role": "tool", "tool_call_id": "call-1", "content": "42"}],
    )
    assert fake_client.calls[1][0] == "get_realtime_history"


def test_tool_response_rejects_missing_ids(fake_client):
    result = runner.invoke(
        app,
        ["assistants", "tool-response", "default", "chat-1", "--from-json", "-"],
        input='{"responses": [{"content": "42"}]}',
    )

    assert result.exit_code == 1
    assert "tool_call_id" in result.output


def test_thread_create_waits_for_approval(fake_client):
    fake_client.thread_state = "paused_for_approval"
    result = runner.invoke(app, ["agents", "threads", "create", "agent-1", "-m", "do it", "--wait"])

    assert result.exit_code == 0, result.output
    assert fake_client.calls[1] == ("get_thread", "thread-1", True)
    assert '"type": "thread_status"' in result.output
    assert '"state": "paused_for_approval"' in result.output


def test_thread_create_without_wait_does_not_poll(fake_client):
    result = runner.invoke(app, ["agents", "threads", "create", "agent-1", "-m", "do it"])

    assert result.exit_code == 0, result.output
    assert [c[0] for c in fake_client.calls] == ["create_thread"]


def test_thread_wait_timeout_exit_code(fake_client, monkeypatch):
    async def never_finishes(client, thread_id, config=None, sink=None):
        assert config.timeout_ms == 5000
        raise PollTimeoutError("thread", thread_id, 5000)

    monkeypatch.setattr("devic_cli.cli.agents.poll_thread", never_finishes)
    result = runner.invoke(app, ["agents", "threads", "wait", "thread-1", "--timeout", "5"])

    assert result.exit_code == 3
    assert "POLL_TIMEOUT" in result.output


def test_feedback_rejects_both_polarities(fake_client):
    result = runner.invoke(
        app,
        ["feedback", "submit-chat", "default", "chat-1", "--message-id", "m-1", "--positive", "--negative"],
    )

    assert result.exit_code == 1
    assert "INVALID_INPUT" in result.output


@pytest.mark.parametrize(
    "args",
    [
        ["agents", "threads", "wait", "thread-1", "--timeout", "-1"],
        ["assistants", "chat", "default", "-m", "hi", "--timeout", "-0.5"],
    ],
)
def test_negative_timeout_is_rendered_as_input_error(fake_client, args):
    result = runner.invoke(app, ["-o", "json", *args])

    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    error = json.loads(result.output.strip().splitlines()[-1])
    assert error["code"] == "INVALID_INPUT"
    assert "--timeout" in error["error"]
    assert fake_client.calls == []
