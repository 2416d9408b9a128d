from typing import List, Optional

from aiohttp import web
from loguru import logger

API_KEY = "devic-test-key"


class PlatformServer:
    """Scripted stand-in for the Devic API.

    Realtime chat and thread endpoints walk through ``chat_statuses`` /
    ``thread_states`` one value per request and then repeat the last one.
    """

    def __init__(
        self,
        chat_statuses: Optional[List[str]] = None,
        thread_states: Optional[List[str]] = None,
        tasks: Optional[List[dict]] = None,
    ):
        self.chat_statuses = list(chat_statuses or ["processing", "completed"])
        self.thread_states = list(thread_states or ["queued", "processing", "completed"])
        self.tasks = tasks
        self.requests = []
        self.logger = logger

        self.app = web.Application()
        self.app.router.add_get("/api/v1/assistants", self.handle_assistants)
        self.app.router.add_post(
            "/api/v1/assistants/{assistant_id}/messages", self.handle_message
        )
        self.app.router.add_get(
            "/api/v1/assistants/{assistant_id}/chats/{chat_uid}/realtime",
            self.handle_realtime,
        )
        self.app.router.add_get("/api/v1/agents/threads/{thread_id}", self.handle_thread)
        self.app.router.add_get("/api/v1/agents/{agent_id}", self.handle_agent)
        self.app.router.add_delete("/api/v1/agents/{agent_id}", self.handle_delete_agent)
        self.app.router.add_get("/api/v1/tool-servers", self.handle_broken)

    def paths(self, suffix: str) -> List[str]:
        return [r["path"] for r in self.requests if r["path"].endswith(suffix)]

    async def _record(self, request: web.Request) -> Optional[web.Response]:
        body = await request.json() if request.can_read_body else None
        self.requests.append(
            {
                "method": request.method,
                "path": request.path,
                "query": dict(request.query),
                "json": body,
                "authorization": request.headers.get("Authorization"),
            }
        )
        if request.headers.get("Authorization") != f"Bearer {API_KEY}":
            return web.json_response(
                {"error": {"statusCode": 401, "message": "Invalid API key", "error": "Unauthorized"}},
                status=401,
            )
        return None

    @staticmethod
    def _next(script: List[str]) -> str:
        return script.pop(0) if len(script) > 1 else script[0]

    async def handle_assistants(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        return web.json_response(
            {"data": [{"identifier": "default", "name": "Default assistant"}]}
        )

    async def handle_message(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        if request.query.get("async") == "true":
            return web.json_response({"chatUid": "chat-1", "message": "accepted"})
        return web.json_response([{"role": "assistant", "content": {"message": "hello"}}])

    async def handle_realtime(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        status = self._next(self.chat_statuses)
        self.logger.info(f"Returning chat status {status}")
        return web.json_response(
            {
                "chatUID": request.match_info["chat_uid"],
                "clientUID": "client-1",
                "chatHistory": [],
                "status": status,
            }
        )

    async def handle_thread(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        state = self._next(self.thread_states)
        self.logger.info(f"Returning thread state {state}")
        data = {
            "_id": request.match_info["thread_id"],
            "agentId": "agent-1",
            "state": state,
            "threadContent": [],
        }
        if self.tasks is not None and request.query.get("withTasks") == "true":
            data["tasks"] = self.tasks
        return web.json_response({"data": data})

    async def handle_agent(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        return web.json_response(
            {"error": {"statusCode": 404, "message": "Agent not found", "error": "NOT_FOUND"}},
            status=404,
        )

    async def handle_delete_agent(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        return web.Response(status=204)

    async def handle_broken(self, request):
        denied = await self._record(request)
        if denied:
            return denied
        return web.json_response({"message": "Database unavailable"}, status=500)
