"""State policies: classify an observed resource status for the poller.

Each resource kind gets one policy. The poller only ever sees a
StatusClassification, so adding a kind means registering a new policy.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, FrozenSet, NamedTuple, Optional

from devic_cli.models import (
    CHAT_POLL_DEFAULTS,
    THREAD_POLL_DEFAULTS,
    AgentThread,
    ChatStatus,
    PollConfig,
    RealtimeChatHistory,
    ThreadState,
)


class Tier(str, Enum):
    continue_ = "continue"
    early_return = "early_return"
    terminal = "terminal"


class TaskProgress(NamedTuple):
    completed: int
    total: int


class StatusClassification(NamedTuple):
    tier: Tier
    display_status: str
    auxiliary: Optional[Any] = None

    @property
    def resolved(self) -> bool:
        return self.tier is not Tier.continue_


class StatePolicy(ABC):
    kind: str
    event_type: str
    id_field: str
    defaults: PollConfig

    terminal: FrozenSet[str] = frozenset()
    early_return: FrozenSet[str] = frozenset()

    @abstractmethod
    def display_status(self, snapshot: Any) -> str:
        ...

    def auxiliary(self, snapshot: Any) -> Optional[Any]:
        return None

    def classify(self, snapshot: Any) -> StatusClassification:
        status = self.display_status(snapshot)
        if status in self.terminal:
            tier = Tier.terminal
        elif status in self.early_return:
            tier = Tier.early_return
        else:
            tier = Tier.continue_
        return StatusClassification(tier, status, self.auxiliary(snapshot))

    def event_fields(
        self, resource_id: str, classification: StatusClassification
    ) -> Dict[str, Any]:
        return {self.id_field: resource_id, "status": classification.display_status}


class ChatPolicy(StatePolicy):
    kind = "chat"
    event_type = "chat_status"
    id_field = "chatUid"
    defaults = CHAT_POLL_DEFAULTS

    terminal = frozenset({ChatStatus.completed.value, ChatStatus.error.value})
    early_return = frozenset({ChatStatus.waiting_for_tool_response.value})

    def display_status(self, snapshot: RealtimeChatHistory) -> str:
        return snapshot.status


class ThreadPolicy(StatePolicy):
    kind = "thread"
    event_type = "thread_status"
    id_field = "threadId"
    defaults = THREAD_POLL_DEFAULTS

    terminal = frozenset(
        {
            ThreadState.completed.value,
            ThreadState.failed.value,
            ThreadState.terminated.value,
        }
    )
    early_return = frozenset({ThreadState.paused_for_approval.value})

    def display_status(self, snapshot: AgentThread) -> str:
        return snapshot.state

    def auxiliary(self, snapshot: AgentThread) -> Optional[TaskProgress]:
        if snapshot.tasks is None:
            return None
        done = sum(1 for task in snapshot.tasks if task.completed)
        return TaskProgress(done, len(snapshot.tasks))

    def event_fields(
        self, resource_id: str, classification: StatusClassification
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            self.id_field: resource_id,
            "state": classification.display_status,
        }
        progress = classification.auxiliary
        if progress is not None:
            fields["progress"] = progress._asdict()
        return fields


_POLICIES: Dict[str, StatePolicy] = {}


def register_policy(policy: StatePolicy) -> StatePolicy:
    _POLICIES[policy.kind] = policy
    return policy


def get_policy(kind: str) -> StatePolicy:
    try:
        return _POLICIES[kind]
    except KeyError:
        raise KeyError(f"No state policy registered for resource kind {kind!r}") from None


register_policy(ChatPolicy())
register_policy(ThreadPolicy())
