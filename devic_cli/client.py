from typing import Any, Dict, List, Optional

import aiohttp
from loguru import logger

from devic_cli.errors import DevicApiError
from devic_cli.models import AgentThread, AsyncResponse, RealtimeChatHistory

DEFAULT_BASE_URL = "https://api.devic.ai"


def _query(**params: Any) -> Dict[str, str]:
    """Drop unset values and serialise the rest the way the API expects."""
    query = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        query[key] = str(value)
    return query


class DevicApiClient:
    """Async client for the Devic platform REST API.

    Use as an async context manager so the underlying session is closed::

        async with DevicApiClient(api_key) as client:
            await client.get_assistants()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "DevicApiClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                }
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    @staticmethod
    async def _error_from_response(response: aiohttp.ClientResponse) -> DevicApiError:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            body = None

        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            return DevicApiError(
                error.get("statusCode") or response.status,
                error.get("message") or response.reason or "",
                error.get("error"),
            )
        message = response.reason or ""
        if isinstance(body, dict) and body.get("message"):
            message = body["message"]
        return DevicApiError(response.status, message)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> Any:
        if self._session is None:
            raise RuntimeError("DevicApiClient must be used inside 'async with'")

        url = f"{self.base_url}{endpoint}"
        self.logger.debug(f"{method} {url} params={params or {}}")
        async with self._session.request(method, url, params=params, json=json) as response:
            if response.status >= 400:
                error = await self._error_from_response(response)
                self.logger.error(f"HTTP error {error.status_code} at {url}: {error.message}")
                raise error

            data = await response.json(content_type=None)
            if isinstance(data, dict) and "data" in data:
                return data["data"]
            return data

    # Assistants

    async def get_assistants(self, external: bool = False) -> List[Dict[str, Any]]:
        params = _query(external=True) if external else None
        return await self._request("GET", "/api/v1/assistants", params=params)

    async def get_assistant(self, identifier: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/v1/assistants/{identifier}")

    async def send_message(self, assistant_id: str, dto: Dict[str, Any]) -> Any:
        params = _query(skipSummarization=True) if dto.get("skipSummarization") else None
        return await self._request(
            "POST", f"/api/v1/assistants/{assistant_id}/messages", params=params, json=dto
        )

    async def send_message_async(
        self, assistant_id: str, dto: Dict[str, Any]
    ) -> AsyncResponse:
        params = _query(**{"async": True})
        if dto.get("skipSummarization"):
            params["skipSummarization"] = "true"
        data = await self._request(
            "POST", f"/api/v1/assistants/{assistant_id}/messages", params=params, json=dto
        )
        return AsyncResponse.model_validate(data)

    async def get_realtime_history(
        self, assistant_id: str, chat_uid: str
    ) -> RealtimeChatHistory:
        data = await self._request(
            "GET", f"/api/v1/assistants/{assistant_id}/chats/{chat_uid}/realtime"
        )
        return RealtimeChatHistory.model_validate(data)

    async def get_chat_history(self, assistant_id: str, chat_uid: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/api/v1/assistants/{assistant_id}/chats/{chat_uid}"
        )

    async def list_conversations(
        self,
        assistant_id: str,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        omit_content: bool = False,
    ) -> Any:
        params = _query(offset=offset, limit=limit, omitContent=omit_content or None)
        return await self._request(
            "GET", f"/api/v1/assistants/{assistant_id}/chats", params=params
        )

    async def search_chats(
        self,
        filters: Dict[str, Any],
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        omit_content: bool = False,
    ) -> Any:
        params = _query(offset=offset, limit=limit, omitContent=omit_content or None)
        return await self._request(
            "POST", "/api/v1/assistants/chats", params=params, json=filters
        )

    async def stop_chat(self, assistant_id: str, chat_uid: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/v1/assistants/{assistant_id}/chats/{chat_uid}/stop"
        )

    async def send_tool_responses(
        self, assistant_id: str, chat_uid: str, responses: List[Dict[str, Any]]
    ) -> Any:
        return await self._request(
            "POST",
            f"/api/v1/assistants/{assistant_id}/chats/{chat_uid}/tool-response",
            json={"responses": responses},
        )

    async def submit_chat_feedback(
        self, assistant_id: str, chat_uid: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/v1/assistants/{assistant_id}/chats/{chat_uid}/feedback", json=data
        )

    async def get_chat_feedback(self, assistant_id: str, chat_uid: str) -> Any:
        return await self._request(
            "GET", f"/api/v1/assistants/{assistant_id}/chats/{chat_uid}/feedback"
        )

    # Agents

    async def list_agents(
        self,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        archived: Optional[bool] = None,
    ) -> Any:
        params = _query(offset=offset, limit=limit, archived=archived)
        return await self._request("GET", "/api/v1/agents", params=params)

    async def get_agent(self, agent_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/v1/agents/{agent_id}")

    async def create_agent(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/api/v1/agents", json=data)

    async def update_agent(self, agent_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/v1/agents/{agent_id}", json=data)

    async def delete_agent(self, agent_id: str) -> Any:
        return await self._request("DELETE", f"/api/v1/agents/{agent_id}")

    # Threads

    async def create_thread(self, agent_id: str, data: Dict[str, Any]) -> Any:
        return await self._request("POST", f"/api/v1/agents/{agent_id}/threads", json=data)

    async def list_threads(
        self,
        agent_id: str,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        state: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        date_order: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> Any:
        params = _query(
            offset=offset,
            limit=limit,
            state=state,
            startDate=start_date,
            endDate=end_date,
            dateOrder=date_order,
            tags=tags,
        )
        return await self._request(
            "GET", f"/api/v1/agents/{agent_id}/threads", params=params
        )

    async def get_thread(self, thread_id: str, with_tasks: bool = False) -> AgentThread:
        params = _query(withTasks=True) if with_tasks else None
        data = await self._request(
            "GET", f"/api/v1/agents/threads/{thread_id}", params=params
        )
        return AgentThread.model_validate(data)

    async def update_thread(self, thread_id: str, data: Dict[str, Any]) -> Any:
        return await self._request(
            "PATCH", f"/api/v1/agents/threads/{thread_id}", json=data
        )

    async def handle_approval(
        self, thread_id: str, approved: bool, message: Optional[str] = None
    ) -> Any:
        body: Dict[str, Any] = {"approved": approved}
        if message is not None:
            body["message"] = message
        return await self._request(
            "POST", f"/api/v1/agents/threads/{thread_id}/approval", json=body
        )

    async def complete_thread(self, thread_id: str, state: str) -> Any:
        return await self._request(
            "POST", f"/api/v1/agents/threads/{thread_id}/complete", json={"state": state}
        )

    async def pause_thread(self, thread_id: str) -> Any:
        return await self._request("POST", f"/api/v1/agents/threads/{thread_id}/pause")

    async def resume_thread(self, thread_id: str) -> Any:
        return await self._request("POST", f"/api/v1/agents/threads/{thread_id}/resume")

    async def evaluate_thread(self, thread_id: str) -> Any:
        return await self._request("POST", f"/api/v1/agents/threads/{thread_id}/evaluate")

    async def get_thread_evaluation(self, thread_id: str) -> Any:
        return await self._request("GET", f"/api/v1/agents/threads/{thread_id}/evaluation")

    async def submit_thread_feedback(
        self, thread_id: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/api/v1/agents/threads/{thread_id}/feedback", json=data
        )

    async def get_thread_feedback(self, thread_id: str) -> Any:
        return await self._request("GET", f"/api/v1/agents/threads/{thread_id}/feedback")

    # Costs

    async def get_daily_costs(
        self,
        agent_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Any:
        params = _query(startDate=start_date, endDate=end_date)
        return await self._request(
            "GET", f"/api/v1/agents/agents/{agent_id}/costs/daily", params=params
        )

    async def get_monthly_costs(
        self,
        agent_id: str,
        start_month: Optional[str] = None,
        end_month: Optional[str] = None,
    ) -> Any:
        params = _query(startMonth=start_month, endMonth=end_month)
        return await self._request(
            "GET", f"/api/v1/agents/agents/{agent_id}/costs/monthly", params=params
        )

    async def get_cost_summary(self, agent_id: str) -> Any:
        return await self._request("GET", f"/api/v1/agents/agents/{agent_id}/costs/summary")

    # Tool servers

    async def list_tool_servers(
        self, offset: Optional[int] = None, limit: Optional[int] = None
    ) -> Any:
        params = _query(offset=offset, limit=limit)
        return await self._request("GET", "/api/v1/tool-servers", params=params)

    async def get_tool_server(self, tool_server_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/v1/tool-servers/{tool_server_id}")

    async def create_tool_server(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/api/v1/tool-servers", json=data)

    async def update_tool_server(
        self, tool_server_id: str, data: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/api/v1/tool-servers/{tool_server_id}", json=data
        )

    async def delete_tool_server(self, tool_server_id: str) -> Any:
        return await self._request("DELETE", f"/api/v1/tool-servers/{tool_server_id}")

    async def clone_tool_server(self, tool_server_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/v1/tool-servers/{tool_server_id}/clone")

    async def get_tool_server_definition(self, tool_server_id: str) -> Any:
        return await self._request(
            "GET", f"/api/v1/tool-servers/{tool_server_id}/definition"
        )

    async def update_tool_server_definition(
        self, tool_server_id: str, data: Dict[str, Any]
    ) -> Any:
        return await self._request(
            "PATCH", f"/api/v1/tool-servers/{tool_server_id}/definition", json=data
        )

    # Tools

    async def list_tools(self, tool_server_id: str) -> Any:
        return await self._request("GET", f"/api/v1/tool-servers/{tool_server_id}/tools")

    async def get_tool(self, tool_server_id: str, tool_name: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/api/v1/tool-servers/{tool_server_id}/tools/{tool_name}"
        )

    async def add_tool(self, tool_server_id: str, tool: Dict[str, Any]) -> Any:
        return await self._request(
            "POST", f"/api/v1/tool-servers/{tool_server_id}/tools", json={"tool": tool}
        )

    async def update_tool(
        self, tool_server_id: str, tool_name: str, data: Dict[str, Any]
    ) -> Any:
        return await self._request(
            "PATCH", f"/api/v1/tool-servers/{tool_server_id}/tools/{tool_name}", json=data
        )

    async def delete_tool(self, tool_server_id: str, tool_name: str) -> Any:
        return await self._request(
            "DELETE", f"/api/v1/tool-servers/{tool_server_id}/tools/{tool_name}"
        )

    async def test_tool(
        self, tool_server_id: str, tool_name: str, parameters: Dict[str, Any]
    ) -> Any:
        return await self._request(
            "POST",
            f"/api/v1/tool-servers/{tool_server_id}/tools/{tool_name}/test",
            json={"parameters": parameters},
        )
