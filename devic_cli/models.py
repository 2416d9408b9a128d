from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChatStatus(str, Enum):
    processing = "processing"
    completed = "completed"
    error = "error"
    waiting_for_tool_response = "waiting_for_tool_response"
    handed_off = "handed_off"


class ThreadState(str, Enum):
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    terminated = "terminated"
    paused = "paused"
    paused_for_approval = "paused_for_approval"
    approval_rejected = "approval_rejected"
    waiting_for_response = "waiting_for_response"
    paused_for_resume = "paused_for_resume"
    handed_off = "handed_off"
    guardrail_trigger = "guardrail_trigger"


class ApiModel(BaseModel):
    """Base for API payloads: camelCase aliases, unknown fields preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolCallFunction(ApiModel):
    name: str
    arguments: str = ""


class ToolCall(ApiModel):
    id: str
    type: str = "function"
    function: ToolCallFunction


class ChatMessage(ApiModel):
    uid: Optional[str] = None
    role: str
    content: Any = None
    timestamp: Optional[int] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None


class RealtimeChatHistory(ApiModel):
    # status stays a plain string: the platform may add new in-progress values
    chat_uid: str = Field(alias="chatUID")
    client_uid: Optional[str] = Field(default=None, alias="clientUID")
    chat_history: List[ChatMessage] = Field(default_factory=list, alias="chatHistory")
    status: str
    last_updated_at: Optional[int] = Field(default=None, alias="lastUpdatedAt")
    pending_tool_calls: Optional[List[ToolCall]] = Field(
        default=None, alias="pendingToolCalls"
    )
    handed_off_sub_thread_id: Optional[str] = Field(
        default=None, alias="handedOffSubThreadId"
    )


class AgentTask(ApiModel):
    id: Optional[str] = Field(default=None, alias="_id")
    title: Optional[str] = None
    description: Optional[str] = None
    completed: bool = False


class AgentThread(ApiModel):
    id: Optional[str] = Field(default=None, alias="_id")
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    state: str
    thread_content: List[ChatMessage] = Field(
        default_factory=list, alias="threadContent"
    )
    tasks: Optional[List[AgentTask]] = None
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")
    paused_reason: Optional[str] = Field(default=None, alias="pausedReason")
    name: Optional[str] = None


class AsyncResponse(ApiModel):
    chat_uid: str = Field(alias="chatUid")
    message: Optional[str] = None
    error: Optional[str] = None


class PollConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    initial_interval_ms: int = Field(gt=0)
    backoff_multiplier: float = Field(ge=1.0)
    max_interval_ms: int = Field(gt=0)
    timeout_ms: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_interval_bounds(self) -> "PollConfig":
        if self.initial_interval_ms > self.max_interval_ms:
            raise ValueError("initial_interval_ms must not exceed max_interval_ms")
        return self

    def with_overrides(self, **overrides: Any) -> "PollConfig":
        """Return a validated copy with the given fields replaced (None values are ignored)."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return PollConfig(**values)


CHAT_POLL_DEFAULTS = PollConfig(
    initial_interval_ms=1000,
    backoff_multiplier=1.5,
    max_interval_ms=10_000,
    timeout_ms=5 * 60 * 1000,
)

THREAD_POLL_DEFAULTS = PollConfig(
    initial_interval_ms=2000,
    backoff_multiplier=1.5,
    max_interval_ms=15_000,
    timeout_ms=10 * 60 * 1000,
)
