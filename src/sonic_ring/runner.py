from __future__ import annotations

import asyncio
import enum
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from solders.keypair import Keypair

from .api import SonicApi
from .auth import TokenHolder
from .config import Settings
from .errors import RemoteError, SonicRingError
from .lottery import build_transaction, participate, poll_result
from .project_constants import REPORT_TRAILER
from .submit import TransactionSubmitter
from .wallet import shorten

log = logging.getLogger("runner")


class RunState(enum.Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    RUNNING_BATCH = "running_batch"
    WAITING = "waiting"
    COMPLETE = "complete"


def plan_batches(total: int, batch_size: int) -> List[range]:
    """Iteration ranges (0-based) of each batch; the last one may be short."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [
        range(start, min(start + batch_size, total))
        for start in range(0, max(total, 0), batch_size)
    ]


@dataclass
class DrawReport:
    iteration: int
    lines: List[str] = field(default_factory=list)
    draw: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    # The first call of the draw was refused for the session token.
    unauthorized: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def add(self, label: str, payload: Any) -> None:
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.lines.append(f"[{stamp}] {label} {json.dumps(payload)}")

    def render(self) -> str:
        return "\n".join(self.lines)


@dataclass
class RunSummary:
    total: int
    batches: int
    reports: List[DrawReport] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.reports if r.ok)

    @property
    def failed(self) -> int:
        return len(self.reports) - self.succeeded


@dataclass
class DrawContext:
    api: SonicApi
    submitter: TransactionSubmitter
    holder: TokenHolder
    keypair: Keypair
    settings: Settings


async def run_draw(
    ctx: DrawContext, token: str, iteration: int, total: int
) -> DrawReport:
    """One build -> sign -> submit -> draw -> result cycle.

    Never raises for per-draw failures; they end up in the report.
    """
    report = DrawReport(iteration=iteration)
    stage = "build"
    try:
        log.info("Building lottery transaction for draw %d of %d", iteration, total)
        tx = await build_transaction(ctx.api, token)

        stage = "submit"
        signature = await ctx.submitter.submit(tx["hash"], ctx.keypair)
        log.info(
            "Draw %d: transaction sent. Signature: %s", iteration, shorten(signature)
        )

        stage = "draw"
        draw = await participate(ctx.api, ctx.holder, token, signature)
        report.draw = draw
        report.add("Draw result:", draw)
        log.info("Draw %d: participation complete", iteration)

        stage = "result"
        report.result = await poll_result(
            ctx.api,
            token,
            draw.get("block_number"),
            retry_delay=ctx.settings.poll_retry_delay,
            retries=ctx.settings.poll_retries,
        )
        report.add("Result:", report.result)
        log.info("Draw %d: lottery result received", iteration)

        await asyncio.sleep(ctx.settings.settle_delay)
    except SonicRingError as e:
        report.error = str(e)
        report.unauthorized = (
            stage == "build" and isinstance(e, RemoteError) and e.unauthorized
        )
        log.error("Error in draw %d: %s", iteration, e)
    except Exception as e:
        # One broken draw must not take its batch down with it.
        report.error = f"{type(e).__name__}: {e}"
        log.exception("Unexpected error in draw %d", iteration)

    report.lines.append(REPORT_TRAILER)
    return report


class LotteryRunner:
    """Runs a number of draws in fixed-size concurrent batches."""

    def __init__(self, ctx: DrawContext) -> None:
        self.ctx = ctx
        self.state = RunState.IDLE
        self.waits = 0

    def _enter(self, state: RunState) -> None:
        log.debug("State %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(self, total: int) -> RunSummary:
        settings = self.ctx.settings
        batches = plan_batches(total, settings.batch_size)
        summary = RunSummary(total=total, batches=len(batches))

        self._enter(RunState.AUTHENTICATING)
        # Fatal when it fails: nothing can run without a session.
        await self.ctx.holder.login()

        for n, batch in enumerate(batches):
            self._enter(RunState.RUNNING_BATCH)
            log.info(
                "Initiating batch %d of %d (%d draws)", n + 1, len(batches), len(batch)
            )
            reports = await asyncio.gather(
                *(self._dispatch(i + 1, total) for i in batch)
            )
            summary.reports.extend(reports)

            if n < len(batches) - 1:
                self._enter(RunState.WAITING)
                log.info(
                    "Waiting %s seconds before next batch...", settings.batch_delay
                )
                self.waits += 1
                await asyncio.sleep(settings.batch_delay)

        self._enter(RunState.COMPLETE)
        log.info(
            "Ring lottery participation completed: %d succeeded, %d failed, %d batches",
            summary.succeeded,
            summary.failed,
            summary.batches,
        )
        return summary

    async def _dispatch(self, iteration: int, total: int) -> DrawReport:
        token = self.ctx.holder.token
        report = await run_draw(self.ctx, token, iteration, total)
        if not report.unauthorized or not self.ctx.holder.can_refresh:
            return report

        try:
            token = await self.ctx.holder.refresh(token)
        except SonicRingError as e:
            log.error("Error in draw %d: token refresh failed: %s", iteration, e)
            report.error = f"{report.error}; token refresh failed: {e}"
            return report
        log.info("Dispatching replacement for draw %d with refreshed token", iteration)
        return await run_draw(self.ctx, token, iteration, total)
