import asyncio
import time
from typing import Any, Awaitable, Callable, Iterator, NamedTuple, Optional

from loguru import logger

from devic_cli.errors import PollTimeoutError
from devic_cli.models import PollConfig
from devic_cli.notifier import StatusChangeNotifier, StatusSink
from devic_cli.policies import StatePolicy, StatusClassification, get_policy


class PollResult(NamedTuple):
    snapshot: Any
    classification: StatusClassification
    attempts: int
    elapsed_ms: int


def interval_schedule(config: PollConfig, count: int) -> Iterator[float]:
    """Yield the first ``count`` sleep intervals (ms) the poller would use."""
    interval = float(config.initial_interval_ms)
    for _ in range(count):
        yield interval
        interval = min(interval * config.backoff_multiplier, config.max_interval_ms)


class Poller:
    """Polls one long-running remote operation until it needs attention.

    ``fetch`` is awaited once per iteration and its errors propagate as-is.
    The first fetch happens immediately; the deadline is only checked after
    each sleep, so a timeout can surface up to one interval late. Even
    ``timeout_ms=0`` sleeps one ``initial_interval_ms`` before giving up.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Any]],
        policy: StatePolicy,
        resource_id: str,
        config: Optional[PollConfig] = None,
        sink: Optional[StatusSink] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.fetch = fetch
        self.policy = policy
        self.resource_id = resource_id
        self.config = config or policy.defaults
        self.notifier = StatusChangeNotifier(policy, sink)
        self.clock = clock
        self.sleep = sleep
        self.logger = logger

    def _elapsed_ms(self, started: float) -> int:
        return int((self.clock() - started) * 1000)

    async def _wait_before_next_check(self, interval_ms: float, status: str) -> None:
        self.logger.debug(
            f"{self.policy.kind} {self.resource_id} still {status}, "
            f"waiting {interval_ms / 1000:.2f}s before next check"
        )
        await self.sleep(interval_ms / 1000)

    async def poll_until_complete(self) -> PollResult:
        started = self.clock()
        deadline = started + self.config.timeout_ms / 1000
        interval = float(self.config.initial_interval_ms)
        attempts = 0

        while True:
            snapshot = await self.fetch()
            attempts += 1

            classification = self.policy.classify(snapshot)
            self.notifier.observe(self.resource_id, classification)

            if classification.resolved:
                self.logger.info(
                    f"{self.policy.kind} {self.resource_id} resolved as "
                    f"{classification.display_status} ({classification.tier.value}) "
                    f"after {attempts} check(s)"
                )
                return PollResult(
                    snapshot, classification, attempts, self._elapsed_ms(started)
                )

            await self._wait_before_next_check(interval, classification.display_status)
            interval = min(interval * self.config.backoff_multiplier, self.config.max_interval_ms)

            if self.clock() >= deadline:
                break

        elapsed_ms = self._elapsed_ms(started)
        self.logger.warning(
            f"{self.policy.kind} {self.resource_id} did not resolve within "
            f"{self.config.timeout_ms / 1000:.0f}s"
        )
        raise PollTimeoutError(self.policy.kind, self.resource_id, elapsed_ms)


async def poll_chat(
    client,
    assistant_id: str,
    chat_uid: str,
    config: Optional[PollConfig] = None,
    sink: Optional[StatusSink] = None,
) -> PollResult:
    """Poll an async chat turn via its realtime history endpoint."""

    async def fetch():
        return await client.get_realtime_history(assistant_id, chat_uid)

    poller = Poller(fetch, get_policy("chat"), chat_uid, config=config, sink=sink)
    return await poller.poll_until_complete()


async def poll_thread(
    client,
    thread_id: str,
    config: Optional[PollConfig] = None,
    sink: Optional[StatusSink] = None,
) -> PollResult:
    """Poll an agent execution thread, including its task list."""

    async def fetch():
        return await client.get_thread(thread_id, with_tasks=True)

    poller = Poller(fetch, get_policy("thread"), thread_id, config=config, sink=sink)
    return await poller.poll_until_complete()
