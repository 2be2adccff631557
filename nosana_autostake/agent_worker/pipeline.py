"""
Staking pipeline: log events -> payout lookup -> amount -> transfer + topup.

Each JobFinished starts an independent asyncio task (a staking cycle) so the
scanner never waits on the network. Cycles have no completion order relative to
each other. Every cycle ends with exactly one terminal audit event:
staking_succeeded, no_tokens_received, or staking_failed{reason}. Per-cycle
errors stop at the cycle boundary; only a broken log stream ends run().
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Callable

from nosana_autostake.autostake_logging import bind_job, get_logger
from nosana_autostake.core.exceptions import AutostakeError, StreamIOError
from nosana_autostake.log_scanner.events import JobFinished, LogEvent, QueuePosition
from nosana_autostake.log_scanner.scanner import LogEventScanner
from nosana_autostake.staking.amounts import AmountExtractor
from nosana_autostake.staking.builder import StakeTransactionBuilder
from nosana_autostake.staking.context import StakingContext
from nosana_autostake.staking.pda import PDAResolver
from nosana_autostake.staking.resolver import TransactionResolver

logger = get_logger(__name__)

STAKING_STARTED = "staking_started"
STAKING_SUCCEEDED = "staking_succeeded"
STAKING_FAILED = "staking_failed"
NO_TOKENS_RECEIVED = "no_tokens_received"
TERMINAL_EVENTS = (STAKING_SUCCEEDED, STAKING_FAILED, NO_TOKENS_RECEIVED)

STATE_IDLE = "idle"
STATE_STAKING = "staking"

DEFAULT_MAX_SEEN_SIGNATURES = 10_000


@dataclass(frozen=True)
class AuditEvent:
    """One audit record of a staking cycle, keyed by the job payout signature."""

    kind: str
    job_signature: str
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_EVENTS


AuditSink = Callable[[AuditEvent], Any]


class Pipeline:
    """
    Orchestrates scanner, resolvers, extractor and builder for one authority.

    Components default to instances built from the context; pass explicit ones
    to swap behavior (tests, alternative ledgers).
    """

    def __init__(
        self,
        context: StakingContext,
        *,
        scanner: LogEventScanner | None = None,
        tx_resolver: TransactionResolver | None = None,
        pda_resolver: PDAResolver | None = None,
        extractor: AmountExtractor | None = None,
        builder: StakeTransactionBuilder | None = None,
        audit_sink: AuditSink | None = None,
        max_seen_signatures: int = DEFAULT_MAX_SEEN_SIGNATURES,
    ) -> None:
        self._ctx = context
        self._scanner = scanner or LogEventScanner()
        self._tx_resolver = tx_resolver or TransactionResolver(context.ledger, context.commitment)
        self._pda_resolver = pda_resolver or PDAResolver(
            context.ledger, context.program_id, context.commitment
        )
        self._extractor = extractor or AmountExtractor(mint=str(context.mint))
        self._builder = builder or StakeTransactionBuilder(context)
        self._audit_sink = audit_sink
        self._max_seen = max_seen_signatures
        self._seen: set[str] = set()
        self._seen_order: deque[str] = deque()
        self._tasks: set[asyncio.Task[AuditEvent]] = set()

    @property
    def state(self) -> str:
        return STATE_STAKING if self._tasks else STATE_IDLE

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self, chunks: AsyncIterable[bytes | str]) -> None:
        """
        Scan the stream until it ends, then wait for in-flight cycles.

        StreamIOError propagates after in-flight cycles finish; started cycles
        are never cancelled.
        """
        logger.info(
            "pipeline_started",
            authority=str(self._ctx.authority_pubkey),
            token_account=str(self._ctx.token_account),
        )
        try:
            async for event in self._scanner.scan(chunks):
                self.handle(event)
        except StreamIOError as e:
            logger.error("log_stream_broken", error=str(e))
            raise
        finally:
            await self.wait_idle()
            logger.info("pipeline_stopped")

    def handle(self, event: LogEvent) -> asyncio.Task[AuditEvent] | None:
        """Dispatch one event; returns the spawned cycle task for JobFinished (None otherwise)."""
        if isinstance(event, QueuePosition):
            logger.info("queue_position", position=event.position, total=event.total)
            return None
        if not isinstance(event, JobFinished):
            return None
        if not self._mark_seen(event.signature):
            logger.info("duplicate_job_ignored", job_signature=event.signature)
            return None
        logger.info("job_finished_detected", job_signature=event.signature)
        task = asyncio.get_running_loop().create_task(self.stake_signature(event.signature))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until no staking cycle is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _mark_seen(self, signature: str) -> bool:
        """Record signature; False if already seen. Oldest entries are evicted over capacity."""
        if signature in self._seen:
            return False
        if len(self._seen) >= self._max_seen:
            self._seen.discard(self._seen_order.popleft())
        self._seen.add(signature)
        self._seen_order.append(signature)
        return True

    async def stake_signature(self, signature: str) -> AuditEvent:
        """Run one staking cycle for a job payout signature; returns its terminal audit event."""
        log = bind_job(signature)
        await self._emit(AuditEvent(STAKING_STARTED, signature))
        try:
            tx_result, pda_result = await asyncio.gather(
                self._tx_resolver.resolve(signature),
                self._pda_resolver.resolve(self._ctx.authority_pubkey, self._ctx.mint),
                return_exceptions=True,
            )
            for result in (tx_result, pda_result):
                if isinstance(result, BaseException):
                    raise result
            addresses = pda_result

            amount = self._extractor.extract(tx_result, str(self._ctx.token_account))
            if amount.is_zero:
                return await self._emit(AuditEvent(NO_TOKENS_RECEIVED, signature))

            log.info("stake_amount_received", amount=str(amount), raw=amount.raw)
            stake_sig = await self._builder.build_and_submit(
                amount, addresses.stake, addresses.vault
            )
            return await self._emit(
                AuditEvent(
                    STAKING_SUCCEEDED,
                    signature,
                    {"signature": stake_sig, "amount": str(amount), "raw": amount.raw},
                )
            )
        except AutostakeError as e:
            return await self._emit(
                AuditEvent(STAKING_FAILED, signature, {"reason": e.reason, "error": str(e)})
            )
        except asyncio.CancelledError:
            log.warning("staking_cycle_cancelled")
            await self._emit(
                AuditEvent(
                    STAKING_FAILED,
                    signature,
                    {"reason": "CancelledError", "error": "staking cycle cancelled"},
                )
            )
            raise
        except Exception as e:
            log.exception("staking_cycle_unexpected_error", error=str(e))
            return await self._emit(
                AuditEvent(STAKING_FAILED, signature, {"reason": type(e).__name__, "error": str(e)})
            )

    async def _emit(self, event: AuditEvent) -> AuditEvent:
        """Log the audit event and hand it to the sink (sync or async); sink errors are logged."""
        level = "warning" if event.kind == STAKING_FAILED else "info"
        getattr(logger, level)(event.kind, job_signature=event.job_signature, **event.fields)
        if self._audit_sink is not None:
            try:
                result = self._audit_sink(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.exception("audit_sink_failed", kind=event.kind, error=str(e))
        return event
