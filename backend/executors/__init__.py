"""
Agent execution strategies and dispatch
"""

from .base import SagaAborted, Strategy, TransactionSaga
from .dca import DCAStrategy
from .limit_order import LimitOrderStrategy
from .models import (
    Agent,
    AgentStatus,
    AgentType,
    ExecutionLog,
    ExecutionResult,
    LogStatus,
    PriceCheckResult,
    ScheduleUpdate,
)
from .recurring_payment import RecurringPaymentStrategy
from .router import AgentRouter, build_default_router
from .savings import SavingsStrategy

__all__ = [
    "Agent",
    "AgentRouter",
    "AgentStatus",
    "AgentType",
    "DCAStrategy",
    "ExecutionLog",
    "ExecutionResult",
    "LimitOrderStrategy",
    "LogStatus",
    "PriceCheckResult",
    "RecurringPaymentStrategy",
    "SagaAborted",
    "SavingsStrategy",
    "ScheduleUpdate",
    "Strategy",
    "TransactionSaga",
    "build_default_router",
]
