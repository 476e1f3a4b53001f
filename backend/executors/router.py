"""
Agent Router
Single dispatch point from agent type to strategy. No business logic.
"""

import logging
from typing import Dict, Iterable, List, Optional

from infrastructure.chain import ChainClient, get_chain_client
from infrastructure.config import ExecutorConfig, SecretsManager, get_config, get_secrets
from infrastructure.errors import UnknownAgentTypeError
from integrations.delegation import DelegationRedeemer
from integrations.uniswap import PriceOracle

from .base import Strategy
from .dca import DCAStrategy
from .limit_order import LimitOrderStrategy
from .models import Agent, AgentType, ExecutionResult
from .recurring_payment import RecurringPaymentStrategy
from .savings import SavingsStrategy

logger = logging.getLogger("AgentRouter")


class AgentRouter:
    """Lookup table AgentType -> Strategy, built once at startup"""

    def __init__(self, strategies: Iterable[Strategy] = ()):
        self._registry: Dict[AgentType, Strategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: Strategy):
        self._registry[strategy.agent_type] = strategy
        logger.info(f"[AgentRouter] Registered {strategy.__class__.__name__} for '{strategy.agent_type.value}'")

    @property
    def supported_types(self) -> List[str]:
        return [t.value for t in self._registry]

    def strategy_for(self, agent_type: str) -> Strategy:
        try:
            return self._registry[AgentType(agent_type)]
        except (ValueError, KeyError):
            raise UnknownAgentTypeError(agent_type)

    async def dispatch(self, agent: Agent) -> ExecutionResult:
        try:
            strategy = self.strategy_for(agent.agent_type)
        except UnknownAgentTypeError as e:
            logger.warning(f"[AgentRouter] {e.message} (agent {agent.id})")
            return ExecutionResult.failure(e.message, fatal=True)
        return await strategy.execute(agent)


def build_default_router(
    chain: Optional[ChainClient] = None,
    config: Optional[ExecutorConfig] = None,
    secrets: Optional[SecretsManager] = None
) -> AgentRouter:
    """Router with every built-in strategy sharing one chain client"""
    chain = chain or get_chain_client()
    config = config or get_config()
    secrets = secrets or get_secrets()

    redeemer = DelegationRedeemer(chain)
    oracle = PriceOracle(chain, config.contracts.quoter_v2)
    common = dict(redeemer=redeemer, secrets=secrets, gas=config.gas, contracts=config.contracts)

    return AgentRouter([
        DCAStrategy(chain, oracle, **common),
        LimitOrderStrategy(chain, oracle, **common),
        SavingsStrategy(chain, **common),
        RecurringPaymentStrategy(chain, **common),
    ])
