"""
Model and Configuration Tests
Agent parsing, result invariants, env config and session key lookup

Run: python -m pytest tests/test_models_and_config.py -v
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from executors.models import (
    Agent,
    AgentStatus,
    Direction,
    ExecutionLog,
    ExecutionResult,
    LogStatus,
    StepRecord,
    parse_timestamp,
)
from infrastructure.config import ExecutorConfig, SecretsManager
from infrastructure.errors import ValidationError


class TestAgentModel:

    def test_from_row_defaults(self):
        agent = Agent.from_row({
            "_id": "abc",
            "user_address": "0xa30A689ec0F9D717C5bA1098455B031b868B720f",
            "agent_type": "savings",
            "next_execution": "2025-01-01T00:00:00Z",
        })

        assert agent.id == "abc"
        assert agent.status == AgentStatus.ACTIVE
        assert agent.execution_count == 0
        assert agent.max_executions is None
        assert agent.next_execution == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_limit_order_settings(self, make_agent):
        cfg = make_agent("limit-order").settings()

        assert cfg.target_price == Decimal("2400")
        assert cfg.direction == Direction.SELL
        assert cfg.amount_in == 10 ** 18

    def test_limit_order_has_no_interval(self, make_agent):
        assert make_agent("limit-order").interval_seconds is None
        assert make_agent("savings").interval_seconds == 604800

    def test_invalid_direction(self, make_agent):
        agent = make_agent("limit-order")
        agent.config["limit_order"]["direction"] = "sideways"

        with pytest.raises(ValidationError):
            agent.settings()

    def test_missing_fields_listed(self, make_agent):
        agent = make_agent("recurring-payment", config={"recurring_payment": {"token": "0x1", "amount": "5"}})

        with pytest.raises(ValidationError) as exc:
            agent.settings()

        assert exc.value.details["missing"] == ["recipient", "interval_seconds"]

    def test_is_due(self, make_agent, fixed_now):
        agent = make_agent("dca")
        assert agent.is_due(fixed_now) is True
        agent.status = AgentStatus.PAUSED
        assert agent.is_due(fixed_now) is False

    def test_cap(self, make_agent):
        agent = make_agent("dca", max_executions=3)
        assert agent.cap_reached(2) is False
        assert agent.cap_reached(3) is True
        assert make_agent("dca").cap_reached(10_000) is False

    def test_parse_unix_timestamp(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)


class TestExecutionResult:

    def test_success_requires_hash_and_amounts(self):
        with pytest.raises(ValueError):
            ExecutionResult.ok(None, 1, 1)

    def test_amounts_serialized_as_strings(self):
        result = ExecutionResult.ok("0x1", 10 ** 30, 5)
        assert result.to_dict()["amountIn"] == str(10 ** 30)

    def test_outcomes(self):
        assert ExecutionResult.ok("0x1", 1, 1).outcome == "success"
        assert ExecutionResult.skip("waiting").outcome == "skipped"
        assert ExecutionResult.failure("boom").outcome == "failed"
        assert ExecutionResult.terminated(AgentStatus.CANCELLED, "Order expired").outcome == "cancelled"

    def test_log_keeps_steps(self, fixed_now):
        steps = [StepRecord(name="transfer", status="success", tx_hash="0x1", block_number=7)]
        log = ExecutionLog.from_result(ExecutionResult.failure("approve reverted", tx_hash="0x1", steps=steps), fixed_now)

        restored = ExecutionLog.from_dict(log.to_dict())

        assert restored.status == LogStatus.FAILED
        assert restored.steps[0].block_number == 7
        assert restored.timestamp == fixed_now


class TestConfig:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CHAIN_ID", "1")
        monkeypatch.setenv("SCHEDULER_INTERVAL_SECONDS", "30")
        monkeypatch.setenv("MAX_CONSECUTIVE_FAILURES", "3")
        monkeypatch.setenv("STORE_BACKEND", "MEMORY")
        monkeypatch.setenv("SCHEDULER_AUTOSTART", "false")

        config = ExecutorConfig.from_env()

        assert config.chain.chain_id == 1
        assert config.scheduler.interval_seconds == 30
        assert config.scheduler.max_consecutive_failures == 3
        assert config.scheduler.autostart is False
        assert config.store.backend == "memory"

    def test_defaults(self, monkeypatch):
        for key in ["RPC_TIMEOUT_SECONDS", "RECEIPT_TIMEOUT_SECONDS", "UNISWAP_SWAP_ROUTER"]:
            monkeypatch.delenv(key, raising=False)

        config = ExecutorConfig.from_env()

        assert config.chain.rpc_timeout == 30
        assert config.chain.receipt_timeout == 120
        assert config.contracts.swap_router == "0x3bFA4769FB09eefC5a80d6E87c3B9C650f7Ae48E"
        assert config.gas.redeem_payment == 300_000

    def test_to_dict_hides_secrets(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_KEY", "super-secret")

        data = ExecutorConfig.from_env().to_dict()

        assert "supabase_key" not in data["store"]
        assert "sentry_dsn" not in data["monitoring"]

    def test_session_key_override_per_type(self, monkeypatch):
        monkeypatch.setenv("SESSION_PRIVATE_KEY", "0xshared")
        monkeypatch.setenv("LIMIT_ORDER_PRIVATE_KEY", "0xlimit")
        monkeypatch.delenv("DCA_PRIVATE_KEY", raising=False)

        secrets = SecretsManager()

        assert secrets.session_key_for("limit-order") == "0xlimit"
        assert secrets.session_key_for("dca") == "0xshared"
