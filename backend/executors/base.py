"""
Execution Strategy Base
Shared contract for every agent type: execute(agent) -> ExecutionResult.

Strategies never raise to their caller. Errors are translated into failed
results here so the scheduler only has to count and report them.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from infrastructure.chain import ChainClient, TxReceipt
from infrastructure.config import ContractsConfig, GasLimits, SecretsManager, get_config, get_secrets
from infrastructure.errors import (
    ConfigurationError,
    ErrorCode,
    ExecutorError,
    InsufficientBalanceError,
    TransactionRevertedError,
)
from integrations.delegation import DelegationRedeemer
from integrations.erc20 import encode_transfer
from sentry_config import capture_agent_context

from .models import Agent, AgentType, ExecutionResult, StepRecord, utcnow

logger = logging.getLogger("Strategy")


class SagaAborted(ExecutorError):
    """A step of a multi-transaction execution failed; later steps were not sent"""

    def __init__(self, message: str, tx_hash: Optional[str], steps: List[StepRecord]):
        super().__init__(message, ErrorCode.TRANSACTION_REVERTED, 502, {"steps": [s.to_dict() for s in steps]})
        self.tx_hash = tx_hash
        self.steps = steps


class TransactionSaga:
    """
    Runs dependent transactions strictly one after another.

    Each step is awaited to inclusion before the next is submitted and records
    its own outcome, so a failed run shows exactly which steps landed.
    """

    def __init__(self, chain: ChainClient):
        self.chain = chain
        self.steps: List[StepRecord] = []

    @property
    def last_tx_hash(self) -> Optional[str]:
        for step in reversed(self.steps):
            if step.tx_hash:
                return step.tx_hash
        return None

    async def run_step(self, name: str, submit: Callable[[], Awaitable[str]]) -> TxReceipt:
        try:
            tx_hash = await submit()
        except ExecutorError as e:
            self.steps.append(StepRecord(name=name, status="error", error=e.message))
            raise SagaAborted(f"{name} submission failed: {e.message}", self.last_tx_hash, self.steps) from e

        try:
            receipt = await self.chain.wait_for_receipt(tx_hash)
        except ExecutorError as e:
            self.steps.append(StepRecord(name=name, status="error", tx_hash=tx_hash, error=e.message))
            raise SagaAborted(f"{name} failed: {e.message}", tx_hash, self.steps) from e

        if not receipt.succeeded:
            self.steps.append(StepRecord(name=name, status="reverted", tx_hash=tx_hash, block_number=receipt.block_number))
            reverted = TransactionRevertedError(self.chain.config.chain_name, name, tx_hash)
            raise SagaAborted(reverted.message, tx_hash, self.steps) from reverted

        self.steps.append(StepRecord(name=name, status="success", tx_hash=tx_hash, block_number=receipt.block_number))
        logger.info(f"[Saga] {name} confirmed in block {receipt.block_number}")
        return receipt


class Strategy(ABC):
    """One implementation per agent type"""

    agent_type: AgentType

    def __init__(
        self,
        chain: ChainClient,
        redeemer: Optional[DelegationRedeemer] = None,
        secrets: Optional[SecretsManager] = None,
        gas: Optional[GasLimits] = None,
        contracts: Optional[ContractsConfig] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.chain = chain
        self.redeemer = redeemer or DelegationRedeemer(chain)
        self.secrets = secrets or get_secrets()
        self.gas = gas or get_config().gas
        self.contracts = contracts or get_config().contracts
        self.clock = clock

    async def execute(self, agent: Agent) -> ExecutionResult:
        capture_agent_context(agent.user_address, agent.id, agent.agent_type)
        try:
            return await self._execute(agent)
        except SagaAborted as e:
            logger.error(f"[{self.__class__.__name__}] Agent {agent.id} aborted: {e.message}")
            return ExecutionResult.failure(e.message, tx_hash=e.tx_hash, steps=e.steps)
        except ExecutorError as e:
            logger.error(f"[{self.__class__.__name__}] Agent {agent.id} failed: {e.message}")
            return ExecutionResult.failure(e.message, tx_hash=getattr(e, "tx_hash", None), fatal=e.fatal)
        except Exception as e:
            logger.exception(f"[{self.__class__.__name__}] Agent {agent.id} execution error: {e}")
            return ExecutionResult.failure(str(e))

    @abstractmethod
    async def _execute(self, agent: Agent) -> ExecutionResult:
        ...

    # ==========================================
    # SHARED STEPS
    # ==========================================

    def session_account(self, agent: Agent) -> LocalAccount:
        """Executor signing key; must be the delegate named on the agent"""
        key = self.secrets.session_key_for(self.agent_type.value)
        if not key:
            raise ConfigurationError(f"Session key for {self.agent_type.value} agents not set (SESSION_PRIVATE_KEY)")

        account = Account.from_key(key)
        if agent.session_key_address and account.address.lower() != agent.session_key_address.lower():
            raise ConfigurationError(
                "Session key does not match the agent's delegate",
                {"expected": agent.session_key_address, "actual": account.address},
            )
        return account

    async def require_balance(self, token: str, owner: str, amount: int) -> int:
        balance = await self.chain.balance_of(token, owner)
        if balance < amount:
            raise InsufficientBalanceError(token, balance, amount)
        return balance

    async def pull_funds(self, saga: TransactionSaga, agent: Agent, account: LocalAccount, token: str, amount: int) -> TxReceipt:
        """Redeem the delegation to transfer `amount` of `token` from the user to the session account"""
        return await saga.run_step(
            "transfer",
            lambda: self.redeemer.redeem(
                account,
                agent.delegation_manager,
                agent.permission_context,
                target=token,
                call_data=encode_transfer(account.address, amount),
                gas=self.gas.redeem,
            ),
        )
