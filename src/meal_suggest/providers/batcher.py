"""Coalesce identical provider calls made within a short window.

Calls are keyed by (prompt, system instructions). A single flusher task drains the pending
list when the interval elapses or the size threshold is reached; each distinct key in the
drained batch becomes one provider call whose output resolves every member's future.

If a shared call fails, each member is retried on its own so one bad batch does not fail
requests that might succeed individually. A member that gives up (cancelled or timed out)
only cancels its own future; the shared call keeps running for the other members and is
cancelled only once every member has given up.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from meal_suggest.models.models import RawProviderOutput
from meal_suggest.providers.base import ProviderClient
from meal_suggest.utils.config import config
from meal_suggest.utils.logger import logger


@dataclass
class _PendingCall:
    prompt: str
    system_instructions: str
    future: asyncio.Future


class RequestBatcher(ProviderClient):
    """Batching front for one provider. Exposes the same generate() as the provider.

    Args:
        provider: Provider that executes the shared calls.
        interval_seconds: Maximum time a call waits before its batch is flushed.
        size_threshold: Pending calls that trigger an immediate flush.
    """

    def __init__(
        self,
        provider: ProviderClient,
        interval_seconds: float = config.BATCH_INTERVAL_SECONDS,
        size_threshold: int = config.BATCH_SIZE_THRESHOLD,
    ) -> None:
        self.provider = provider
        self.name = provider.name
        self.timeout_seconds = provider.timeout_seconds + interval_seconds
        self.cost_per_1k_tokens = provider.cost_per_1k_tokens
        self.interval_seconds = interval_seconds
        self.size_threshold = size_threshold
        self._pending: Dict[str, List[_PendingCall]] = {}
        self._pending_count = 0
        self._wakeup: Optional[asyncio.Event] = None
        self._flusher: Optional[asyncio.Task] = None
        self._dispatches: Set[asyncio.Task] = set()
        self.provider_calls = 0

    @staticmethod
    def batch_key(prompt: str, system_instructions: str) -> str:
        return hashlib.sha256(f"{system_instructions}\x00{prompt}".encode()).hexdigest()

    async def generate(self, prompt: str, system_instructions: str) -> RawProviderOutput:
        future = asyncio.get_running_loop().create_future()
        key = self.batch_key(prompt, system_instructions)
        self._pending.setdefault(key, []).append(_PendingCall(prompt, system_instructions, future))
        self._pending_count += 1

        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        if self._flusher is None or self._flusher.done():
            self._flusher = asyncio.create_task(self._run_flusher())
        if self._pending_count >= self.size_threshold:
            self._wakeup.set()

        return await future

    async def _run_flusher(self) -> None:
        while self._pending:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()

            batch, self._pending, self._pending_count = self._pending, {}, 0
            for calls in batch.values():
                task = asyncio.create_task(self._dispatch(calls))
                self._dispatches.add(task)
                task.add_done_callback(self._dispatches.discard)

    async def _dispatch(self, calls: List[_PendingCall]) -> None:
        live = [c for c in calls if not c.future.done()]
        if not live:
            return

        # Once every member has given up, the call has no one to answer
        dispatch = asyncio.current_task()

        def abandon_if_unwanted(_future: asyncio.Future) -> None:
            if not dispatch.done() and all(c.future.cancelled() for c in live):
                logger.debug(f"All {len(live)} waiting request(s) cancelled, cancelling {self.name} call")
                dispatch.cancel()

        for call in live:
            call.future.add_done_callback(abandon_if_unwanted)

        self.provider_calls += 1
        try:
            output = await self.provider.generate(live[0].prompt, live[0].system_instructions)
        except asyncio.CancelledError:
            for call in live:
                if not call.future.done():
                    call.future.cancel()
            raise
        except Exception as e:
            if len(live) == 1:
                self._resolve(live[0], error=e)
                return
            logger.warning(f"Batched {self.name} call for {len(live)} requests failed, retrying individually")
            await asyncio.gather(*(self._dispatch_single(c) for c in live))
            return

        # Members share the call, so each is charged an equal share of its cost
        share = output.model_copy(update={"cost": output.cost / len(live)})
        for call in live:
            self._resolve(call, result=share)
        if len(live) > 1:
            logger.debug(f"Batched {len(live)} identical {self.name} requests into one call")

    async def _dispatch_single(self, call: _PendingCall) -> None:
        if call.future.done():
            return
        self.provider_calls += 1
        try:
            output = await self.provider.generate(call.prompt, call.system_instructions)
        except Exception as e:
            self._resolve(call, error=e)
            return
        self._resolve(call, result=output)

    @staticmethod
    def _resolve(call: _PendingCall, result: Optional[RawProviderOutput] = None, error: Optional[Exception] = None) -> None:
        if call.future.done():
            return
        if error is not None:
            call.future.set_exception(error)
        else:
            call.future.set_result(result)

    async def close(self) -> None:
        """Cancel the flusher and any pending calls, then close the provider."""
        for calls in self._pending.values():
            for call in calls:
                if not call.future.done():
                    call.future.cancel()
        self._pending, self._pending_count = {}, 0
        tasks = [t for t in [self._flusher, *self._dispatches] if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.provider.close()
