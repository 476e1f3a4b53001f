"""
Recurring-Payment Strategy
Pays a fixed amount from the user straight to a payee through a single
delegation redemption.
"""

import logging

from integrations.erc20 import amount_received, encode_transfer

from .base import Strategy, TransactionSaga
from .models import Agent, AgentType, ExecutionResult, RecurringPaymentConfig

logger = logging.getLogger("RecurringPaymentStrategy")


class RecurringPaymentStrategy(Strategy):
    agent_type = AgentType.RECURRING_PAYMENT

    async def _execute(self, agent: Agent) -> ExecutionResult:
        cfg: RecurringPaymentConfig = agent.settings()
        account = self.session_account(agent)

        logger.info(f"[RecurringPayment] Agent {agent.id}: pay {cfg.amount} of {cfg.token[:10]}... to {cfg.recipient[:10]}...")

        await self.require_balance(cfg.token, agent.user_address, cfg.amount)

        saga = TransactionSaga(self.chain)
        receipt = await saga.run_step(
            "payment",
            lambda: self.redeemer.redeem(
                account,
                agent.delegation_manager,
                agent.permission_context,
                target=cfg.token,
                call_data=encode_transfer(cfg.recipient, cfg.amount),
                gas=self.gas.redeem_payment,
            ),
        )

        received = amount_received(receipt, cfg.token, cfg.recipient)
        return ExecutionResult.ok(receipt.tx_hash, cfg.amount, received if received is not None else cfg.amount, saga.steps)
