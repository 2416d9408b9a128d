import time
from typing import Any, Callable, Dict, Optional

from loguru import logger

from devic_cli.policies import StatePolicy, StatusClassification

StatusSink = Callable[[str, Dict[str, Any], int], Any]


class StatusChangeNotifier:
    """Emits a status event whenever the observed display status changes.

    Only the immediately previous value is remembered, so a status that
    oscillates (A -> B -> A) is reported on every transition.
    """

    def __init__(
        self,
        policy: StatePolicy,
        sink: Optional[StatusSink] = None,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.policy = policy
        self.sink = sink
        self.wall_clock = wall_clock
        self.last_status: Optional[str] = None

    def observe(self, resource_id: str, classification: StatusClassification) -> bool:
        """Record an observation and return True if it produced an event."""
        if classification.display_status == self.last_status:
            return False

        self.last_status = classification.display_status
        logger.debug(
            f"{self.policy.kind} {resource_id} status changed to {classification.display_status}"
        )
        if self.sink is not None:
            fields = self.policy.event_fields(resource_id, classification)
            self.sink(self.policy.event_type, fields, int(self.wall_clock() * 1000))
        return True
