"""
Executor Services
Agent persistence, result reporting and the due-agent scheduler
"""

from .agent_store import AgentStore, InMemoryAgentStore, SupabaseAgentStore, get_agent_store
from .reporter import ResultReporter
from .scheduler import DueAgentScheduler, RunSummary, SchedulerState

__all__ = [
    # Store
    "AgentStore",
    "InMemoryAgentStore",
    "SupabaseAgentStore",
    "get_agent_store",

    # Reporting
    "ResultReporter",

    # Scheduler
    "DueAgentScheduler",
    "RunSummary",
    "SchedulerState",
]
