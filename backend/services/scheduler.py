"""
Due-Agent Scheduler
Finds agents whose next_execution has passed and runs them one at a time.

A run is guarded by an explicit state: a trigger that arrives while a pass is
in progress returns immediately with `already_running` set. The periodic job
is an APScheduler interval job with max_instances=1.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from executors.models import Agent, AgentStatus, ExecutionResult, utcnow
from executors.router import AgentRouter
from infrastructure.config import SchedulerConfig, get_config
from infrastructure.errors import ExecutorError, NotFoundError, error_tracker

from .agent_store import AgentStore
from .reporter import ResultReporter

logger = logging.getLogger("AgentScheduler")


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class RunSummary:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    details: List[Dict] = field(default_factory=list)
    already_running: bool = False
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def record(self, agent: Agent, result: ExecutionResult):
        if result.success:
            self.success += 1
        elif result.skipped or result.terminal_status is not None:
            self.skipped += 1
        else:
            self.failed += 1

        detail = {
            "agentId": agent.id,
            "name": agent.name,
            "type": agent.agent_type,
            "status": result.outcome,
        }
        if result.tx_hash:
            detail["txHash"] = result.tx_hash
        if result.error:
            detail["error"] = result.error
        self.details.append(detail)

    @property
    def message(self) -> str:
        if self.already_running:
            return "Execution already in progress"
        if self.error:
            return f"Run aborted: {self.error}"
        total = self.success + self.failed + self.skipped
        return f"Processed {total} agents"

    def to_dict(self) -> Dict:
        data = {
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "details": self.details,
        }
        if self.error:
            data["error"] = self.error
        return data


class DueAgentScheduler:
    """Single-process scheduler; one pass at a time, agents strictly sequential"""

    JOB_ID = "execute_due_agents"

    def __init__(
        self,
        store: AgentStore,
        router: AgentRouter,
        reporter: Optional[ResultReporter] = None,
        config: Optional[SchedulerConfig] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable] = asyncio.sleep
    ):
        self.store = store
        self.router = router
        self.config = config or get_config().scheduler
        self.reporter = reporter or ResultReporter(store, self.config.max_consecutive_failures, clock)
        self.clock = clock
        self.sleep = sleep

        self.state = SchedulerState.IDLE
        self.last_run: Optional[RunSummary] = None
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self.state == SchedulerState.RUNNING

    # ==========================================
    # SINGLE PASS
    # ==========================================

    async def run_once(self) -> RunSummary:
        """Execute every due agent once; no-op if a pass is already running"""
        if self.state == SchedulerState.RUNNING:
            logger.info("[Scheduler] Pass already in progress, skipping trigger")
            return RunSummary(already_running=True)

        # Claimed before the first await so a concurrent trigger sees it
        self.state = SchedulerState.RUNNING
        summary = RunSummary(started_at=self.clock())
        try:
            agents = await self.store.fetch_due_agents(summary.started_at)
            logger.info(f"[Scheduler] {len(agents)} agents due")

            for index, agent in enumerate(agents):
                if index > 0 and self.config.inter_agent_delay > 0:
                    await self.sleep(self.config.inter_agent_delay)
                await self._process(agent, summary)
        except ExecutorError as e:
            logger.error(f"[Scheduler] Pass aborted: {e.message}")
            error_tracker.track(e, "run_once")
            summary.error = e.message
        except Exception as e:
            logger.exception(f"[Scheduler] Pass aborted: {e}")
            error_tracker.track(e, "run_once")
            summary.error = str(e)
        finally:
            self.state = SchedulerState.IDLE
            summary.finished_at = self.clock()
            self.last_run = summary

        elapsed = (summary.finished_at - summary.started_at).total_seconds()
        logger.info(
            f"[Scheduler] Pass done in {elapsed:.1f}s: {summary.success} success, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
        return summary

    async def _process(self, agent: Agent, summary: RunSummary):
        try:
            # Status may have changed since the due query ran
            current = await self.store.fetch_agent_by_id(agent.id)
            if current.status != AgentStatus.ACTIVE:
                logger.info(f"[Scheduler] Agent {agent.id} no longer active ({current.status.value}), skipping")
                return

            result = await self.router.dispatch(current)
            await self.reporter.report(current, result)
            summary.record(current, result)
        except Exception as e:
            # One agent must never abort the pass
            logger.exception(f"[Scheduler] Agent {agent.id} processing error: {e}")
            error_tracker.track(e, f"agent {agent.id} ({agent.agent_type})")
            summary.record(agent, ExecutionResult.failure(str(e)))

    # ==========================================
    # MANUAL EXECUTION
    # ==========================================

    async def execute_agent(self, agent_id: str, agent_type: Optional[str] = None) -> ExecutionResult:
        """Run one agent now regardless of its schedule; always returns a result"""
        try:
            agent = await self.store.fetch_agent_by_id(agent_id)
        except NotFoundError as e:
            return ExecutionResult.failure(e.message)
        except ExecutorError as e:
            logger.error(f"[Scheduler] Could not load agent {agent_id}: {e.message}")
            return ExecutionResult.failure(e.message)

        if agent_type and agent.agent_type != agent_type:
            return ExecutionResult.failure(f"Agent {agent_id} is a {agent.agent_type} agent, not {agent_type}")
        if agent.status != AgentStatus.ACTIVE:
            return ExecutionResult.failure(f"Agent {agent_id} is not active (status: {agent.status.value})")

        result = await self.router.dispatch(agent)
        try:
            await self.reporter.report(agent, result)
        except ExecutorError as e:
            logger.error(f"[Scheduler] Failed to record result for {agent_id}: {e.message}")
            error_tracker.track(e, f"agent {agent_id}")
        return result

    # ==========================================
    # PERIODIC JOB
    # ==========================================

    async def _tick(self):
        summary = await self.run_once()
        if summary.error:
            logger.warning(f"[Scheduler] Tick ended early: {summary.error}")

    def start(self):
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=self.config.interval_seconds),
            id=self.JOB_ID,
            name="Execute due agents",
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        logger.info(f"[Scheduler] Started, every {self.config.interval_seconds}s")

    def stop(self):
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("[Scheduler] Stopped")

    def status(self) -> Dict:
        data = {
            "state": self.state.value,
            "periodic": self._scheduler is not None,
            "interval_seconds": self.config.interval_seconds,
            "supported_types": self.router.supported_types,
            "last_run": None,
            "errors": error_tracker.get_stats(),
        }
        if self.last_run is not None:
            data["last_run"] = {
                **self.last_run.to_dict(),
                "started_at": self.last_run.started_at.isoformat() if self.last_run.started_at else None,
                "finished_at": self.last_run.finished_at.isoformat() if self.last_run.finished_at else None,
            }
        return data
