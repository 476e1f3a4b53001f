"""
Savings Strategy
Supplies a fixed amount to Aave V3 on the user's behalf on a fixed cadence.
"""

import logging

from integrations.aave import encode_supply
from integrations.erc20 import encode_approve

from .base import Strategy, TransactionSaga
from .models import Agent, AgentType, ExecutionResult, SavingsConfig

logger = logging.getLogger("SavingsStrategy")


class SavingsStrategy(Strategy):
    agent_type = AgentType.SAVINGS

    async def _execute(self, agent: Agent) -> ExecutionResult:
        cfg: SavingsConfig = agent.settings()
        account = self.session_account(agent)
        amount = cfg.amount_per_execution
        pool = self.contracts.aave_pool

        logger.info(f"[Savings] Agent {agent.id}: supply {amount} of {cfg.token[:10]}... to {cfg.protocol}")

        await self.require_balance(cfg.token, agent.user_address, amount)

        saga = TransactionSaga(self.chain)
        await self.pull_funds(saga, agent, account, cfg.token, amount)
        await saga.run_step(
            "approve",
            lambda: self.chain.send_transaction(account, cfg.token, encode_approve(pool, amount), gas=self.gas.approve),
        )
        receipt = await saga.run_step(
            "supply",
            lambda: self.chain.send_transaction(
                account, pool, encode_supply(cfg.token, amount, agent.user_address), gas=self.gas.supply
            ),
        )

        # aTokens are minted 1:1 with the supplied amount
        return ExecutionResult.ok(receipt.tx_hash, amount, amount, saga.steps)
