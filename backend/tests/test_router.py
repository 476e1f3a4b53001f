"""
Agent Router Tests
Registry-based dispatch by agent type

Run: python -m pytest tests/test_router.py -v
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from executors.models import AgentType, ExecutionResult
from executors.router import AgentRouter, build_default_router
from infrastructure.config import ExecutorConfig
from infrastructure.errors import UnknownAgentTypeError


def stub_strategy(agent_type: AgentType):
    strategy = MagicMock()
    strategy.agent_type = agent_type
    strategy.execute = AsyncMock(return_value=ExecutionResult.ok("0x01", 1, 1))
    return strategy


class TestAgentRouter:

    @pytest.mark.asyncio
    async def test_dispatches_to_registered_strategy(self, make_agent):
        dca = stub_strategy(AgentType.DCA)
        savings = stub_strategy(AgentType.SAVINGS)
        router = AgentRouter([dca, savings])
        agent = make_agent("savings")

        result = await router.dispatch(agent)

        assert result.success is True
        savings.execute.assert_awaited_once_with(agent)
        dca.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_type_is_fatal_failure(self, make_agent):
        router = AgentRouter([stub_strategy(AgentType.DCA)])

        result = await router.dispatch(make_agent("yield-farm", config={}))

        assert result.success is False
        assert result.fatal is True
        assert "yield-farm" in result.error

    @pytest.mark.asyncio
    async def test_known_but_unregistered_type(self, make_agent):
        router = AgentRouter([stub_strategy(AgentType.DCA)])

        result = await router.dispatch(make_agent("savings"))

        assert result.fatal is True

    def test_strategy_for_raises(self):
        with pytest.raises(UnknownAgentTypeError):
            AgentRouter().strategy_for("nope")


class TestDefaultRouter:

    def test_registers_all_types(self, fake_chain, secrets):
        router = build_default_router(chain=fake_chain, config=ExecutorConfig(), secrets=secrets)

        assert sorted(router.supported_types) == sorted(t.value for t in AgentType)

    def test_strategies_share_chain(self, fake_chain, secrets):
        router = build_default_router(chain=fake_chain, config=ExecutorConfig(), secrets=secrets)

        for agent_type in AgentType:
            assert router.strategy_for(agent_type.value).chain is fake_chain
