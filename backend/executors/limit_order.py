"""
Limit-Order Strategy
One-shot swap that fires once the pool price reaches the target.

States:
- expired:    now > expiry_timestamp -> cancelled, no chain interaction
- waiting:    price below target -> skip, nothing mutated
- triggering: transfer -> approve -> swap, each awaited before the next
"""

import logging
from decimal import Decimal
from typing import Optional, Tuple

from infrastructure.errors import QuoteError
from integrations.erc20 import amount_received, encode_approve
from integrations.uniswap import PriceOracle, PriceQuote, encode_exact_input_single

from .base import Strategy, TransactionSaga
from .models import (
    Agent,
    AgentStatus,
    AgentType,
    ExecutionResult,
    LimitOrderConfig,
    PriceCheckReason,
    PriceCheckResult,
)

logger = logging.getLogger("LimitOrderStrategy")


def target_met(current_price: Decimal, cfg: LimitOrderConfig) -> bool:
    # Buy and sell currently share the same trigger condition.
    return current_price >= cfg.target_price


def limit_min_amount_out(amount_in: int, target_price: Decimal, decimals_in: int, decimals_out: int) -> int:
    """Raw token_out floor implied by the target price (truncating)"""
    numerator, denominator = target_price.as_integer_ratio()
    return amount_in * numerator * 10 ** decimals_out // (denominator * 10 ** decimals_in)


class LimitOrderStrategy(Strategy):
    agent_type = AgentType.LIMIT_ORDER

    def __init__(self, chain, oracle: PriceOracle, **kwargs):
        super().__init__(chain, **kwargs)
        self.oracle = oracle

    async def _check(self, cfg: LimitOrderConfig) -> Tuple[PriceCheckResult, Optional[PriceQuote]]:
        if self.clock().timestamp() > cfg.expiry_timestamp:
            return PriceCheckResult(None, cfg.target_price, False, PriceCheckReason.EXPIRED, "Order expired"), None

        try:
            quote = await self.oracle.quote(cfg.token_in, cfg.token_out, cfg.fee_tier)
        except QuoteError as e:
            return PriceCheckResult(None, cfg.target_price, False, PriceCheckReason.QUOTE_ERROR, e.message), None

        if target_met(quote.price, cfg):
            check = PriceCheckResult(quote.price, cfg.target_price, True, PriceCheckReason.TARGET_MET, "Price target reached")
        else:
            check = PriceCheckResult(quote.price, cfg.target_price, False, PriceCheckReason.WAITING, "Waiting for target price")
        return check, quote

    async def check_price(self, agent: Agent) -> PriceCheckResult:
        """Price check only; never touches the agent or submits transactions"""
        check, _ = await self._check(agent.settings())
        return check

    async def _execute(self, agent: Agent) -> ExecutionResult:
        cfg: LimitOrderConfig = agent.settings()
        check, quote = await self._check(cfg)

        logger.info(
            f"[LimitOrder] Agent {agent.id} ({cfg.direction.value}): current {check.current_price}, "
            f"target {cfg.target_price}, {check.reason.value}"
        )

        if check.reason == PriceCheckReason.EXPIRED:
            return ExecutionResult.terminated(AgentStatus.CANCELLED, "Order expired", check)
        if check.reason == PriceCheckReason.QUOTE_ERROR:
            return ExecutionResult.failure(f"Price check failed: {check.message}", price_check=check)
        if not check.should_execute:
            return ExecutionResult.skip(
                f"Price target not met (current: {check.current_price}, target: {check.target_price})",
                check,
            )

        account = self.session_account(agent)
        amount = cfg.amount_in
        floor = limit_min_amount_out(amount, cfg.target_price, quote.decimals_in, quote.decimals_out)

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
            amount_out = floor

        logger.info(f"[LimitOrder] Agent {agent.id} filled {amount} -> {amount_out} (tx {receipt.tx_hash})")
        result = ExecutionResult.ok(receipt.tx_hash, amount, amount_out, saga.steps)
        result.price_check = check
        return result
