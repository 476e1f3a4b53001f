"""
Pytest Configuration for Agent Executor Tests

Run all tests: python -m pytest tests/ -v

Chain access is replaced by FakeChain: balances and decimals are in-memory,
submitted transactions are recorded in order and receipts can be scripted to
revert.
"""

import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from eth_account import Account
from web3 import Web3

from infrastructure.chain import TxReceipt
from infrastructure.config import (
    SESSION_KEY_ENV,
    ChainConfig,
    ContractsConfig,
    GasLimits,
    SchedulerConfig,
    SecretsManager,
)


# =============================================================================
# FAKE CHAIN
# =============================================================================

class FakeChain:
    """In-memory stand-in for ChainClient"""

    def __init__(self, balances: Dict = None, decimals: Dict = None):
        self.config = ChainConfig()
        self.balances = {(t.lower(), o.lower()): v for (t, o), v in (balances or {}).items()}
        self.token_decimals = {t.lower(): d for t, d in (decimals or {}).items()}
        self.sent: List[Dict] = []
        self.revert_on = set()          # 1-based submission numbers that revert
        self.fail_submit_on = set()     # 1-based submission numbers rejected by the node
        self.receipt_logs: Dict[int, List[Dict]] = {}
        self.call_result: Optional[bytes] = None
        self.call_error: Optional[Exception] = None

    async def balance_of(self, token: str, owner: str) -> int:
        return self.balances.get((token.lower(), owner.lower()), 0)

    async def decimals(self, token: str) -> int:
        return self.token_decimals.get(token.lower(), 18)

    async def call(self, to: str, data: bytes) -> bytes:
        if self.call_error is not None:
            raise self.call_error
        return self.call_result

    async def send_transaction(self, account, to: str, data: bytes, gas: int, value: int = 0) -> str:
        from infrastructure.errors import ChainError

        number = len(self.sent) + 1
        if number in self.fail_submit_on:
            raise ChainError("sepolia", "nonce too low")
        tx_hash = "0x" + format(number, "064x")
        self.sent.append({"from": account.address, "to": to, "data": data, "gas": gas, "value": value, "hash": tx_hash})
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        number = int(tx_hash, 16)
        return TxReceipt(
            tx_hash=tx_hash,
            status="reverted" if number in self.revert_on else "success",
            block_number=1000 + number,
            gas_used=21000,
            logs=self.receipt_logs.get(number, []),
        )


def transfer_log(token: str, sender: str, recipient: str, amount: int) -> Dict:
    """Receipt log entry for an ERC-20 Transfer"""
    from integrations.erc20 import TRANSFER_TOPIC

    def topic(address):
        return "0x" + address.lower()[2:].rjust(64, "0")

    return {
        "address": token,
        "topics": [TRANSFER_TOPIC, topic(sender), topic(recipient)],
        "data": "0x" + format(amount, "064x"),
    }


# =============================================================================
# FIXTURES - Shared across all test files
# =============================================================================

@pytest.fixture
def test_addresses():
    """Standard test addresses for Sepolia"""
    return {
        "USDC": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        "WETH": "0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14",
        "user": "0xa30A689ec0F9D717C5bA1098455B031b868B720f",
        "payee": "0x5E047DeB5eb22F4E4A7f2207087369468575e3EF",
        "delegation_manager": "0xdb9B1e94B5b69Df7e401DDbedE43491141047dB3",
    }


@pytest.fixture
def session_account():
    return Account.create()


@pytest.fixture
def secrets(session_account, monkeypatch):
    for key in ["SESSION_PRIVATE_KEY", *SESSION_KEY_ENV.values()]:
        monkeypatch.delenv(key, raising=False)
    manager = SecretsManager()
    manager.set("SESSION_PRIVATE_KEY", Web3.to_hex(session_account.key))
    return manager


@pytest.fixture
def gas_limits():
    return GasLimits()


@pytest.fixture
def contracts():
    return ContractsConfig()


@pytest.fixture
def fake_chain(test_addresses):
    return FakeChain(
        balances={
            (test_addresses["USDC"], test_addresses["user"]): 1_000_000_000,
            (test_addresses["WETH"], test_addresses["user"]): 5 * 10 ** 18,
        },
        decimals={test_addresses["USDC"]: 6, test_addresses["WETH"]: 18},
    )


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_oracle():
    """Price oracle with scripted quotes"""
    oracle = MagicMock()
    oracle.quote_amount = AsyncMock(return_value=1000)
    oracle.quote = AsyncMock()
    return oracle


@pytest.fixture
def scheduler_config():
    return SchedulerConfig(interval_seconds=60, inter_agent_delay=0, max_consecutive_failures=5, autostart=False)


@pytest.fixture
def make_agent(test_addresses, session_account, fixed_now):
    """Factory for agents of any type, due one minute ago by default"""
    from executors.models import Agent

    def _make(agent_type: str = "dca", config: Dict = None, **overrides):
        defaults = {
            "dca": {
                "dca": {
                    "token_in": test_addresses["USDC"],
                    "token_out": test_addresses["WETH"],
                    "amount_per_execution": "100000000",
                    "interval_seconds": 86400,
                    "max_slippage_bps": 100,
                    "fee_tier": 3000,
                }
            },
            "limit-order": {
                "limit_order": {
                    "token_in": test_addresses["WETH"],
                    "token_out": test_addresses["USDC"],
                    "amount_in": str(10 ** 18),
                    "target_price": "2400",
                    "direction": "sell",
                    "expiry_timestamp": int((fixed_now + timedelta(days=7)).timestamp()),
                    "fee_tier": 3000,
                }
            },
            "savings": {
                "savings": {
                    "token": test_addresses["USDC"],
                    "amount_per_execution": "50000000",
                    "interval_seconds": 604800,
                    "protocol": "aave-v3",
                }
            },
            "recurring-payment": {
                "recurring_payment": {
                    "token": test_addresses["USDC"],
                    "amount": "15000000",
                    "recipient": test_addresses["payee"],
                    "interval_seconds": 2592000,
                }
            },
        }
        fields = {
            "id": f"agent-{agent_type}",
            "user_address": test_addresses["user"],
            "agent_type": agent_type,
            "name": f"Test {agent_type}",
            "permission_context": "0x" + "ab" * 64,
            "delegation_manager": test_addresses["delegation_manager"],
            "session_key_address": session_account.address,
            "next_execution": fixed_now - timedelta(minutes=1),
            "config": config if config is not None else defaults.get(agent_type, {}),
        }
        fields.update(overrides)
        return Agent(**fields)

    return _make


# =============================================================================
# MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (use real RPC)"
    )
