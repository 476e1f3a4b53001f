"""
DCA Strategy
Buys token_out with a fixed amount of token_in on a fixed cadence.

Flow:
1. Quote expected output and derive the slippage floor
2. Check the user's token_in balance
3. Redeem delegation: user -> session account transfer
4. Approve the swap router for exactly the amount
5. exactInputSingle with the user as recipient
"""

import logging

from integrations.erc20 import amount_received, encode_approve
from integrations.uniswap import PriceOracle, encode_exact_input_single, min_amount_out

from .base import Strategy, TransactionSaga
from .models import Agent, AgentType, DCAConfig, ExecutionResult

logger = logging.getLogger("DCAStrategy")


class DCAStrategy(Strategy):
    agent_type = AgentType.DCA

    def __init__(self, chain, oracle: PriceOracle, **kwargs):
        super().__init__(chain, **kwargs)
        self.oracle = oracle

    async def _execute(self, agent: Agent) -> ExecutionResult:
        cfg: DCAConfig = agent.settings()
        account = self.session_account(agent)
        amount = cfg.amount_per_execution

        logger.info(f"[DCA] Agent {agent.id}: {cfg.token_in[:10]}... -> {cfg.token_out[:10]}... amount {amount}")

        expected_out = await self.oracle.quote_amount(cfg.token_in, cfg.token_out, amount, cfg.fee_tier)
        floor = min_amount_out(expected_out, cfg.max_slippage_bps)
        logger.info(f"[DCA] Expected out {expected_out}, min out {floor} ({cfg.max_slippage_bps} bps)")

        await self.require_balance(cfg.token_in, agent.user_address, amount)

        saga = TransactionSaga(self.chain)
        await self.pull_funds(saga, agent, account, cfg.token_in, amount)

        router = self.contracts.swap_router
        await saga.run_step(
            "approve",
            lambda: self.chain.send_transaction(account, cfg.token_in, encode_approve(router, amount), gas=self.gas.approve),
        )

        swap_data = encode_exact_input_single(
            cfg.token_in, cfg.token_out, cfg.fee_tier, agent.user_address, amount, floor
        )
        receipt = await saga.run_step(
            "swap",
            lambda: self.chain.send_transaction(account, router, swap_data, gas=self.gas.swap),
        )

        amount_out = amount_received(receipt, cfg.token_out, agent.user_address)
        if amount_out is None:
            amount_out = expected_out

        logger.info(f"[DCA] Agent {agent.id} swapped {amount} -> {amount_out} (tx {receipt.tx_hash})")
        return ExecutionResult.ok(receipt.tx_hash, amount, amount_out, saga.steps)
