"""
Agent Store - persistence for agents and their execution history

Backends:
- SupabaseAgentStore: PostgREST tables `agents` + `agent_execution_logs`
- InMemoryAgentStore: process-local, used by tests and dry runs

Logs are append-only. Agents are returned with their most recent logs in
chronological order.
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional

from executors.models import Agent, AgentStatus, ExecutionLog, LogStatus, ScheduleUpdate
from infrastructure.config import StoreConfig, get_config
from infrastructure.errors import NotFoundError, StoreError, error_tracker
from infrastructure.supabase_rest import SupabaseREST

logger = logging.getLogger("AgentStore")


class AgentStore(ABC):
    """Storage contract used by the scheduler, reporter and trigger API"""

    @abstractmethod
    async def fetch_due_agents(self, now: datetime) -> List[Agent]:
        """Active agents with next_execution <= now, earliest first"""

    @abstractmethod
    async def fetch_agent_by_id(self, agent_id: str) -> Agent:
        """Raises NotFoundError when the agent does not exist"""

    @abstractmethod
    async def append_execution_log(self, agent_id: str, log: ExecutionLog) -> None:
        ...

    @abstractmethod
    async def update_schedule(self, agent_id: str, update: ScheduleUpdate) -> None:
        ...

    @abstractmethod
    async def update_status(self, agent_id: str, status: AgentStatus) -> None:
        ...

    @abstractmethod
    async def update_config(self, agent_id: str, config: Dict) -> None:
        """Replace the agent's config document (running totals live there)"""


# ============================================
# SUPABASE
# ============================================

class SupabaseAgentStore(AgentStore):
    """
    Supabase-backed store.

    The REST wrapper is synchronous, so every request runs in the default
    executor to keep the event loop free.
    """

    def __init__(self, client: SupabaseREST, store_config: Optional[StoreConfig] = None):
        self.client = client
        self.cfg = store_config or get_config().store
        if not client.is_available:
            logger.warning("[AgentStore] Supabase not configured - all store calls will fail")

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    def _recent_logs(self, agent_id: str) -> List[Dict]:
        result = (
            self.client.table(self.cfg.logs_table)
            .select("*")
            .eq("agent_id", agent_id)
            .order("timestamp", desc=True)
            .limit(self.cfg.recent_logs_limit)
            .execute()
        )
        return list(reversed(result.data))

    def _parse_row(self, row: Dict, logs: List[Dict]) -> Agent:
        try:
            return Agent.from_row(row, logs=logs)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed agent row {row.get('id')}", e) from e

    def _build_agent(self, row: Dict) -> Agent:
        return self._parse_row(row, self._recent_logs(str(row.get("id"))))

    def _fetch_due(self, now: datetime) -> List[Agent]:
        result = (
            self.client.table(self.cfg.agents_table)
            .select("*")
            .eq("status", AgentStatus.ACTIVE.value)
            .lte("next_execution", now.isoformat())
            .order("next_execution")
            .execute()
        )

        agents = []
        for row in result.data:
            logs = self._recent_logs(str(row.get("id")))
            try:
                agents.append(self._parse_row(row, logs))
            except StoreError as e:
                # A bad row fails its own agent, not the whole pass
                logger.error(f"[AgentStore] {e.message}, marking it failed")
                error_tracker.track(e, f"agent row {row.get('id')}")
                self._fail_malformed(row, e.message, now)
        return agents

    def _fail_malformed(self, row: Dict, reason: str, now: datetime) -> None:
        agent_id = row.get("id")
        if not agent_id:
            return
        self._insert_log(str(agent_id), ExecutionLog(timestamp=now, status=LogStatus.FAILED, error=reason))
        self._patch(str(agent_id), {"status": AgentStatus.FAILED.value})

    def _fetch_one(self, agent_id: str) -> Agent:
        result = (
            self.client.table(self.cfg.agents_table)
            .select("*")
            .eq("id", agent_id)
            .single()
            .execute()
        )
        if not result.data:
            raise NotFoundError("Agent", agent_id)
        return self._build_agent(result.data)

    def _patch(self, agent_id: str, data: Dict) -> None:
        self.client.table(self.cfg.agents_table).update(data).eq("id", agent_id).execute()

    def _insert_log(self, agent_id: str, log: ExecutionLog) -> None:
        row = log.to_dict()
        row["agent_id"] = agent_id
        self.client.table(self.cfg.logs_table).insert(row).execute()

    async def fetch_due_agents(self, now: datetime) -> List[Agent]:
        agents = await self._run(self._fetch_due, now)
        logger.info(f"[AgentStore] {len(agents)} due agents")
        return agents

    async def fetch_agent_by_id(self, agent_id: str) -> Agent:
        return await self._run(self._fetch_one, agent_id)

    async def append_execution_log(self, agent_id: str, log: ExecutionLog) -> None:
        await self._run(self._insert_log, agent_id, log)

    async def update_schedule(self, agent_id: str, update: ScheduleUpdate) -> None:
        data = {
            "next_execution": update.next_execution.isoformat(),
            "execution_count": update.execution_count,
            "status": update.status.value,
        }
        if update.last_execution is not None:
            data["last_execution"] = update.last_execution.isoformat()
        await self._run(self._patch, agent_id, data)

    async def update_status(self, agent_id: str, status: AgentStatus) -> None:
        await self._run(self._patch, agent_id, {"status": status.value})

    async def update_config(self, agent_id: str, config: Dict) -> None:
        await self._run(self._patch, agent_id, {"config": config})


# ============================================
# IN-MEMORY
# ============================================

class InMemoryAgentStore(AgentStore):
    """Dict-backed store; hands out copies so callers never share state"""

    def __init__(self, agents: List[Agent] = None):
        self._agents: Dict[str, Agent] = {}
        for agent in agents or []:
            self.add_agent(agent)

    def add_agent(self, agent: Agent) -> None:
        self._agents[agent.id] = copy.deepcopy(agent)

    def _get(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise NotFoundError("Agent", agent_id)
        return agent

    async def fetch_due_agents(self, now: datetime) -> List[Agent]:
        due = [a for a in self._agents.values() if a.is_due(now)]
        due.sort(key=lambda a: a.next_execution)
        return [copy.deepcopy(a) for a in due]

    async def fetch_agent_by_id(self, agent_id: str) -> Agent:
        return copy.deepcopy(self._get(agent_id))

    async def append_execution_log(self, agent_id: str, log: ExecutionLog) -> None:
        self._get(agent_id).execution_logs.append(copy.deepcopy(log))

    async def update_schedule(self, agent_id: str, update: ScheduleUpdate) -> None:
        agent = self._get(agent_id)
        agent.next_execution = update.next_execution
        agent.execution_count = update.execution_count
        agent.status = update.status
        if update.last_execution is not None:
            agent.last_execution = update.last_execution

    async def update_status(self, agent_id: str, status: AgentStatus) -> None:
        self._get(agent_id).status = status

    async def update_config(self, agent_id: str, config: Dict) -> None:
        self._get(agent_id).config = copy.deepcopy(config)


_store: Optional[AgentStore] = None


def get_agent_store() -> AgentStore:
    """Store for the configured backend (STORE_BACKEND)"""
    global _store
    if _store is None:
        cfg = get_config().store
        if cfg.backend == "memory":
            _store = InMemoryAgentStore()
        else:
            client = SupabaseREST(cfg.supabase_url, cfg.supabase_key, timeout=cfg.request_timeout)
            _store = SupabaseAgentStore(client, cfg)
        logger.info(f"[AgentStore] Using {_store.__class__.__name__}")
    return _store
