"""
Result Reporter
Applies an ExecutionResult to the agent's persistent state.

- success:   log, count + 1, next slot = old slot + interval, completed at cap
- failure:   log only; the same slot is retried next pass
- skip:      nothing is written
- cancelled: log + status transition
Five consecutive failed log entries (or any fatal failure) stop the agent.
"""

import copy
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from executors.models import (
    CONFIG_KEYS,
    Agent,
    AgentStatus,
    AgentType,
    ExecutionLog,
    ExecutionResult,
    LogStatus,
    ScheduleUpdate,
    utcnow,
)

from .agent_store import AgentStore

logger = logging.getLogger("ResultReporter")

# Config field accumulating successful amounts per agent type
RUNNING_TOTALS = {
    AgentType.SAVINGS: "total_supplied",
    AgentType.RECURRING_PAYMENT: "total_paid",
}


class ResultReporter:

    def __init__(
        self,
        store: AgentStore,
        max_consecutive_failures: int = 5,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.max_consecutive_failures = max_consecutive_failures
        self.clock = clock

    async def report(self, agent: Agent, result: ExecutionResult) -> Optional[AgentStatus]:
        """Persist the outcome; returns the agent's new status if it changed"""
        if result.skipped:
            logger.info(f"[Reporter] Agent {agent.id} skipped: {result.error}")
            return None

        now = self.clock()
        log = ExecutionLog.from_result(result, now)
        await self.store.append_execution_log(agent.id, log)

        if result.terminal_status is not None:
            await self.store.update_status(agent.id, result.terminal_status)
            logger.info(f"[Reporter] Agent {agent.id} -> {result.terminal_status.value}: {result.error}")
            return result.terminal_status

        if result.success:
            return await self._record_success(agent, result, now)
        return await self._record_failure(agent, result, log)

    async def _record_success(self, agent: Agent, result: ExecutionResult, now: datetime) -> Optional[AgentStatus]:
        count = agent.execution_count + 1
        interval = agent.interval_seconds

        if interval is None or agent.cap_reached(count):
            status = AgentStatus.COMPLETED
            next_execution = agent.next_execution
        else:
            status = AgentStatus.ACTIVE
            next_execution = agent.next_execution + timedelta(seconds=interval)

        await self.store.update_schedule(
            agent.id,
            ScheduleUpdate(next_execution=next_execution, execution_count=count, status=status, last_execution=now),
        )
        await self._add_running_total(agent, result)

        logger.info(
            f"[Reporter] Agent {agent.id} success #{count} (tx {result.tx_hash}), "
            f"next {next_execution.isoformat()}, status {status.value}"
        )
        return status if status != agent.status else None

    async def _add_running_total(self, agent: Agent, result: ExecutionResult):
        field_name = RUNNING_TOTALS.get(agent.known_type)
        if field_name is None:
            return
        key = CONFIG_KEYS[agent.known_type]
        config = copy.deepcopy(agent.config)
        section = config.setdefault(key, {})
        section[field_name] = str(int(section.get(field_name) or 0) + int(result.amount_in))
        await self.store.update_config(agent.id, config)

    async def _record_failure(self, agent: Agent, result: ExecutionResult, log: ExecutionLog) -> Optional[AgentStatus]:
        if result.fatal:
            await self.store.update_status(agent.id, AgentStatus.FAILED)
            logger.error(f"[Reporter] Agent {agent.id} failed permanently: {result.error}")
            return AgentStatus.FAILED

        recent = [*agent.execution_logs, log][-self.max_consecutive_failures:]
        streak = len(recent) >= self.max_consecutive_failures and all(
            entry.status == LogStatus.FAILED for entry in recent
        )
        if streak:
            await self.store.update_status(agent.id, AgentStatus.FAILED)
            logger.error(
                f"[Reporter] Agent {agent.id} stopped after {self.max_consecutive_failures} consecutive failures"
            )
            return AgentStatus.FAILED

        logger.warning(f"[Reporter] Agent {agent.id} failed, slot kept for retry: {result.error}")
        return None
