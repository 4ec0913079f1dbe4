"""
Push channels — ordered delivery of authoritative changes to clients.

A channel delivers ChangeEvents per topic (the draft id) at least once and
in order. Consumers must tolerate redelivery; OptimisticUpdateEngine
reconciliation is idempotent.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Protocol

from draftkeeper.client.rpc import DraftBackend
from draftkeeper.config import settings
from draftkeeper.models.failure import RpcError
from draftkeeper.models.sync import ChangeEvent

logger = logging.getLogger(__name__)


class PushChannel(Protocol):
    def subscribe(self, topic: str) -> AsyncIterator[ChangeEvent]: ...

    def close(self) -> None: ...


class InMemoryPushChannel:
    """
    Process-local fan-out channel.

    A subscription is registered when subscribe() is called, so events
    published before iteration starts are not lost. close() ends every
    open subscription after its queued events are drained.
    """

    def __init__(self) -> None:
        self._queues: defaultdict[str, list[asyncio.Queue[ChangeEvent | None]]] = defaultdict(list)
        self._closed = False

    def subscribe(self, topic: str) -> AsyncIterator[ChangeEvent]:
        queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        if self._closed:
            queue.put_nowait(None)
        self._queues[topic].append(queue)
        return self._drain(topic, queue)

    async def _drain(
        self, topic: str, queue: asyncio.Queue[ChangeEvent | None]
    ) -> AsyncIterator[ChangeEvent]:
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._queues[topic].remove(queue)

    def publish(self, topic: str, event: ChangeEvent) -> None:
        for queue in self._queues.get(topic, []):
            queue.put_nowait(event)

    def subscriber_count(self, topic: str) -> int:
        return len(self._queues.get(topic, []))

    def close(self) -> None:
        self._closed = True
        for queues in self._queues.values():
            for queue in queues:
                queue.put_nowait(None)


class PollingPushChannel:
    """
    Channel backed by the backend's change feed.

    Polls `fetch_changes(topic, after)` every `interval` seconds and yields
    new events in sequence order. A failed poll is logged and retried on
    the next tick.
    """

    def __init__(
        self,
        backend: DraftBackend,
        interval: float | None = None,
        after: int = 0,
    ):
        self._backend = backend
        self._interval = interval if interval is not None else settings.poll_interval_seconds
        self._start_after = after
        self._closed = False

    async def _poll(self, topic: str) -> AsyncIterator[ChangeEvent]:
        after = self._start_after
        while not self._closed:
            try:
                events = await self._backend.fetch_changes(topic, after)
            except RpcError as e:
                logger.warning(
                    "CHANGE_POLL_FAILED",
                    extra={"draft_id": topic, "after": after, "kind": e.kind.value},
                )
                events = []

            for event in events:
                if event.sequence is not None:
                    if event.sequence <= after:
                        continue
                    after = event.sequence
                yield event

            if not self._closed:
                await asyncio.sleep(self._interval)

    def subscribe(self, topic: str) -> AsyncIterator[ChangeEvent]:
        return self._poll(topic)

    def close(self) -> None:
        """Stop polling after the current tick."""
        self._closed = True
