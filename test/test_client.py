import aiohttp
import pytest
from platform_server import API_KEY

from devic_cli.client import DevicApiClient, _query
from devic_cli.errors import DevicApiError, PollTimeoutError
from devic_cli.models import CHAT_POLL_DEFAULTS, THREAD_POLL_DEFAULTS, AsyncResponse
from devic_cli.policies import Tier
from devic_cli.polling import poll_chat, poll_thread

# Intervals short enough to keep the suite fast against a real server
FAST_CHAT = CHAT_POLL_DEFAULTS.with_overrides(initial_interval_ms=10, max_interval_ms=20)
FAST_THREAD = THREAD_POLL_DEFAULTS.with_overrides(initial_interval_ms=10, max_interval_ms=20)


def test_query_serialisation():
    assert _query(offset=0, limit=10, archived=False, state=None, tags="") == {
        "offset": "0",
        "limit": "10",
        "archived": "false",
    }


@pytest.mark.asyncio
async def test_unwraps_data_envelope_and_sends_bearer_token(platform, api_client):
    assistants = await api_client.get_assistants()

    assert assistants == [{"identifier": "default", "name": "Default assistant"}]
    assert platform.requests[-1]["authorization"] == f"Bearer {API_KEY}"


@pytest.mark.asyncio
async def test_external_flag_is_sent_as_query(platform, api_client):
    await api_client.get_assistants(external=True)
    assert platform.requests[-1]["query"] == {"external": "true"}


@pytest.mark.asyncio
async def test_structured_api_error(platform, api_client):
    with pytest.raises(DevicApiError) as exc_info:
        await api_client.get_agent("missing")

    error = exc_info.value
    assert error.status_code == 404
    assert error.message == "Agent not found"
    assert error.to_dict() == {"error": "Agent not found", "code": "NOT_FOUND", "statusCode": 404}


@pytest.mark.asyncio
async def test_plain_message_error_gets_http_code(platform, api_client):
    with pytest.raises(DevicApiError) as exc_info:
        await api_client.list_tool_servers(offset=0, limit=5)

    assert exc_info.value.status_code == 500
    assert exc_info.value.to_dict()["code"] == "HTTP_500"
    assert exc_info.value.message == "Database unavailable"


@pytest.mark.asyncio
async def test_invalid_key_is_401(platform):
    async with DevicApiClient("wrong-key", platform.base_url) as client:
        with pytest.raises(DevicApiError) as exc_info:
            await client.get_assistants()
    assert exc_info.value.status_code == 401
    assert exc_info.value.error_type == "Unauthorized"


@pytest.mark.asyncio
async def test_empty_response_body(platform, api_client):
    assert await api_client.delete_agent("agent-1") is None
    assert platform.requests[-1]["method"] == "DELETE"


@pytest.mark.asyncio
async def test_async_message_returns_chat_uid(platform, api_client):
    accepted = await api_client.send_message_async("default", {"message": "hi"})

    assert isinstance(accepted, AsyncResponse)
    assert accepted.chat_uid == "chat-1"
    assert platform.requests[-1]["query"] == {"async": "true"}
    assert platform.requests[-1]["json"] == {"message": "hi"}


@pytest.mark.asyncio
async def test_request_outside_context_fails():
    client = DevicApiClient(API_KEY, "http://127.0.0.1:1")
    with pytest.raises(RuntimeError):
        await client.get_assistants()


@pytest.mark.asyncio
async def test_poll_chat_until_completed(platform, api_client):
    platform.chat_statuses = ["processing", "processing", "completed"]
    events = []

    result = await poll_chat(
        api_client, "default", "chat-1", config=FAST_CHAT, sink=lambda *e: events.append(e)
    )

    assert result.snapshot.status == "completed"
    assert result.attempts == 3
    assert len(platform.paths("/chats/chat-1/realtime")) == 3
    assert [e[1]["status"] for e in events] == ["processing", "completed"]


@pytest.mark.asyncio
async def test_poll_chat_returns_for_tool_calls(platform, api_client):
    platform.chat_statuses = ["processing", "waiting_for_tool_response", "completed"]

    result = await poll_chat(api_client, "default", "chat-1", config=FAST_CHAT)

    assert result.classification.tier is Tier.early_return
    assert len(platform.paths("/realtime")) == 2


@pytest.mark.asyncio
async def test_poll_thread_requests_tasks(platform, api_client):
    platform.thread_states = ["processing", "paused_for_approval"]
    platform.tasks = [{"title": "Plan", "completed": True}, {"title": "Ship", "completed": False}]
    events = []

    result = await poll_thread(
        api_client, "thread-9", config=FAST_THREAD, sink=lambda *e: events.append(e)
    )

    assert result.snapshot.state == "paused_for_approval"
    assert [t.title for t in result.snapshot.tasks] == ["Plan", "Ship"]
    assert platform.requests[-1]["query"] == {"withTasks": "true"}
    assert events[0][1]["progress"] == {"completed": 1, "total": 2}


@pytest.mark.asyncio
async def test_poll_thread_times_out(platform, api_client):
    platform.thread_states = ["processing"]
    config = FAST_THREAD.with_overrides(timeout_ms=50)

    with pytest.raises(PollTimeoutError) as exc_info:
        await poll_thread(api_client, "thread-9", config=config)

    assert exc_info.value.kind == "thread"
    assert exc_info.value.resource_id == "thread-9"
    assert len(platform.paths("/threads/thread-9")) >= 2


@pytest.mark.asyncio
async def test_poll_propagates_transport_errors(platform):
    async with DevicApiClient("wrong-key", platform.base_url) as client:
        with pytest.raises(DevicApiError):
            await poll_chat(client, "default", "chat-1", config=FAST_CHAT)
    assert len(platform.paths("/realtime")) == 1


@pytest.mark.asyncio
async def test_server_unavailable():
    async with DevicApiClient(API_KEY, "http://127.0.0.1:1") as client:
        with pytest.raises(aiohttp.ClientConnectionError):
            await poll_chat(client, "default", "chat-1", config=FAST_CHAT)
