from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Final, Iterable, Literal, Union

from ..registry import RegistryStore, Subject
from ..services.messaging import MessagingSink, OutboundPayload, SendOutcome, SendResult
from .bot_config import BotConfigStore, NotificationsConfig
from .errors import CollaboratorError, NotFoundError

logger = logging.getLogger("filehost_bot")

ALL: Final = "all"
FanoutTarget = Union[int, Literal["all"]]


@dataclass(slots=True, frozen=True)
class FanoutReport:
    sent: int = 0
    suppressed: int = 0
    reported: int = 0
    skipped: int = 0

    @property
    def failed(self) -> int:
        return self.suppressed + self.reported

    def as_tuple(self) -> tuple[int, int]:
        return self.sent, self.failed


class SendRateLimiter:
    """Minimum interval between successive sends, shared by all workers."""

    def __init__(self, min_interval_seconds: float) -> None:
        self.min_interval_seconds = max(0.0, float(min_interval_seconds))
        self._lock = asyncio.Lock()
        self._next_at = 0.0

    async def wait(self) -> None:
        if self.min_interval_seconds <= 0:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            delay = self._next_at - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            self._next_at = loop.time() + self.min_interval_seconds


class _Tally:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.sent = 0
        self.suppressed = 0
        self.reported = 0

    async def add(self, result: SendResult) -> None:
        async with self._lock:
            if result.outcome is SendOutcome.DELIVERED:
                self.sent += 1
            elif result.outcome is SendOutcome.UNREACHABLE:
                self.suppressed += 1
            else:
                self.reported += 1

    def report(self, skipped: int) -> FanoutReport:
        return FanoutReport(sent=self.sent, suppressed=self.suppressed, reported=self.reported, skipped=skipped)


def is_deliverable(subject: Subject) -> bool:
    return subject.notifications and not subject.deleted and not subject.banned and subject.chat_id is not None


class FanoutEngine:
    """Delivers one payload to one subject or to the whole registry.

    ``ALL`` works over the registry as read at call start. Recipients go into a
    queue drained by at most ``concurrency`` workers that share one rate
    limiter. Every send is bounded by ``timeout_seconds``; reported failures are
    retried ``max_retries`` times, unreachable recipients never are.
    """

    def __init__(
        self,
        registry: RegistryStore,
        sink: MessagingSink,
        config: BotConfigStore,
        *,
        send_delay_seconds: float = 0.05,
        concurrency: int = 4,
        max_retries: int = 1,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.registry = registry
        self.sink = sink
        self.config = config
        self.send_delay_seconds = max(0.0, float(send_delay_seconds))
        self.concurrency = max(1, int(concurrency))
        self.max_retries = max(0, int(max_retries))
        self.timeout_seconds = float(timeout_seconds)

    async def notify(self, payload: OutboundPayload, target: FanoutTarget) -> FanoutReport:
        if target == ALL:
            return await self._notify_all(payload)

        subject = await self.registry.get_subject(int(target))
        if subject is None:
            raise NotFoundError(f"User {target} not found.")
        if not is_deliverable(subject):
            return FanoutReport(skipped=1)
        tally = _Tally()
        await tally.add(await self._deliver(subject.subject_id, subject.chat_id, payload, limiter=None))
        return tally.report(skipped=0)

    async def _notify_all(self, payload: OutboundPayload) -> FanoutReport:
        switch = await self.config.load(NotificationsConfig)
        if not switch.enabled:
            logger.info("Fan-out skipped: notifications are globally disabled")
            return FanoutReport()

        snapshot = await self.registry.list_subjects()
        recipients = [subject for subject in snapshot if is_deliverable(subject)]
        skipped = len(snapshot) - len(recipients)
        tally = _Tally()
        if not recipients:
            return tally.report(skipped=skipped)

        queue: asyncio.Queue[Subject] = asyncio.Queue()
        for subject in recipients:
            queue.put_nowait(subject)
        limiter = SendRateLimiter(self.send_delay_seconds)

        async def _worker() -> None:
            while True:
                try:
                    subject = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    result = await self._deliver(subject.subject_id, subject.chat_id, payload, limiter=limiter)
                    await tally.add(result)
                finally:
                    queue.task_done()

        workers = [
            asyncio.create_task(_worker(), name=f"fanout-worker-{index}")
            for index in range(min(self.concurrency, len(recipients)))
        ]
        await asyncio.gather(*workers)

        report = tally.report(skipped=skipped)
        logger.info(
            "Fan-out finished: sent=%s suppressed=%s reported=%s skipped=%s",
            report.sent,
            report.suppressed,
            report.reported,
            report.skipped,
        )
        return report

    async def _deliver(
        self,
        subject_id: int,
        address: int | None,
        payload: OutboundPayload,
        *,
        limiter: SendRateLimiter | None,
    ) -> SendResult:
        if address is None:
            return SendResult(SendOutcome.UNREACHABLE, "no delivery address")
        result = SendResult(SendOutcome.ERROR, "not attempted")
        for attempt in range(self.max_retries + 1):
            if limiter is not None:
                await limiter.wait()
            result = await self._send_once(address, payload)
            if result.outcome is not SendOutcome.ERROR:
                break
            if attempt < self.max_retries:
                logger.debug("Retrying delivery to subject=%s after: %s", subject_id, result.cause)

        if result.outcome is SendOutcome.UNREACHABLE:
            logger.debug("Subject %s is unreachable: %s", subject_id, result.cause)
        elif result.outcome is SendOutcome.ERROR:
            logger.warning("Delivery to subject=%s failed: %s", subject_id, result.cause)
        return result

    async def _send_once(self, address: int, payload: OutboundPayload) -> SendResult:
        try:
            return await asyncio.wait_for(self.sink.send(address, payload), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return SendResult(SendOutcome.ERROR, f"timed out after {self.timeout_seconds:.1f}s")
        except Exception as exc:
            return SendResult(SendOutcome.ERROR, f"{type(exc).__name__}: {exc}")

    async def send_direct(self, subject_id: int, payload: OutboundPayload) -> None:
        """Single-recipient send that ignores opt-out and raises on failure."""
        subject = await self.registry.get_subject(subject_id)
        if subject is None:
            raise NotFoundError(f"User {subject_id} not found.")
        await self.send_to_address(subject.subject_id, subject.chat_id, payload)

    async def send_to_address(self, subject_id: int, address: int | None, payload: OutboundPayload) -> None:
        result = await self._deliver(subject_id, address, payload, limiter=None)
        if not result.delivered:
            raise CollaboratorError(f"Could not reach {subject_id}: {result.cause or result.outcome.value}")

    async def notify_admins(self, admin_ids: Iterable[int], payload: OutboundPayload) -> FanoutReport:
        tally = _Tally()
        for admin_id in sorted(admin_ids):
            await tally.add(await self._deliver(admin_id, admin_id, payload, limiter=None))
        return tally.report(skipped=0)
