"""
Agent Execution Models
Agents, their per-type configuration, execution logs and results.

Amounts are raw token units (int) end-to-end; prices are Decimal.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from infrastructure.errors import ValidationError


class AgentType(str, Enum):
    DCA = "dca"
    LIMIT_ORDER = "limit-order"
    SAVINGS = "savings"
    RECURRING_PAYMENT = "recurring-payment"


class AgentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class LogStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Direction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PriceCheckReason(str, Enum):
    TARGET_MET = "target-met"
    WAITING = "waiting"
    EXPIRED = "expired"
    QUOTE_ERROR = "quote-error"


# Key under Agent.config holding each type's settings
CONFIG_KEYS = {
    AgentType.DCA: "dca",
    AgentType.LIMIT_ORDER: "limit_order",
    AgentType.SAVINGS: "savings",
    AgentType.RECURRING_PAYMENT: "recurring_payment",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """ISO string / datetime / unix seconds -> aware UTC datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _require(data: Dict, *keys: str) -> None:
    missing = [k for k in keys if data.get(k) in (None, "")]
    if missing:
        raise ValidationError(f"Missing config fields: {', '.join(missing)}", {"missing": missing})


# ============================================
# PER-TYPE CONFIGURATION
# ============================================

@dataclass
class DCAConfig:
    token_in: str
    token_out: str
    amount_per_execution: int
    interval_seconds: int
    max_slippage_bps: int = 100
    fee_tier: int = 3000

    @classmethod
    def from_dict(cls, data: Dict) -> "DCAConfig":
        _require(data, "token_in", "token_out", "amount_per_execution", "interval_seconds")
        if data.get("max_slippage_bps") is not None:
            slippage_bps = int(data["max_slippage_bps"])
        elif data.get("max_slippage") is not None:
            # Legacy percent form: 1.0 == 1% == 100 bps
            slippage_bps = int(Decimal(str(data["max_slippage"])) * 100)
        else:
            slippage_bps = 100
        return cls(
            token_in=data["token_in"],
            token_out=data["token_out"],
            amount_per_execution=int(data["amount_per_execution"]),
            interval_seconds=int(data["interval_seconds"]),
            max_slippage_bps=slippage_bps,
            fee_tier=int(data.get("fee_tier", 3000)),
        )


@dataclass
class LimitOrderConfig:
    token_in: str
    token_out: str
    amount_in: int
    target_price: Decimal
    direction: Direction
    expiry_timestamp: int
    fee_tier: int = 3000

    @classmethod
    def from_dict(cls, data: Dict) -> "LimitOrderConfig":
        _require(data, "token_in", "token_out", "amount_in", "target_price", "direction", "expiry_timestamp")
        try:
            direction = Direction(data["direction"])
        except ValueError:
            raise ValidationError(f"Invalid direction: {data['direction']}")
        return cls(
            token_in=data["token_in"],
            token_out=data["token_out"],
            amount_in=int(data["amount_in"]),
            target_price=Decimal(str(data["target_price"])),
            direction=direction,
            expiry_timestamp=int(data["expiry_timestamp"]),
            fee_tier=int(data.get("fee_tier", 3000)),
        )


@dataclass
class SavingsConfig:
    token: str
    amount_per_execution: int
    interval_seconds: int
    protocol: str = "aave-v3"
    total_supplied: int = 0

    @classmethod
    def from_dict(cls, data: Dict) -> "SavingsConfig":
        _require(data, "token", "amount_per_execution", "interval_seconds")
        return cls(
            token=data["token"],
            amount_per_execution=int(data["amount_per_execution"]),
            interval_seconds=int(data["interval_seconds"]),
            protocol=data.get("protocol", "aave-v3"),
            total_supplied=int(data.get("total_supplied") or 0),
        )


@dataclass
class RecurringPaymentConfig:
    token: str
    amount: int
    recipient: str
    interval_seconds: int
    total_paid: int = 0

    @classmethod
    def from_dict(cls, data: Dict) -> "RecurringPaymentConfig":
        _require(data, "token", "amount", "recipient", "interval_seconds")
        return cls(
            token=data["token"],
            amount=int(data["amount"]),
            recipient=data["recipient"],
            interval_seconds=int(data["interval_seconds"]),
            total_paid=int(data.get("total_paid") or 0),
        )


CONFIG_TYPES = {
    AgentType.DCA: DCAConfig,
    AgentType.LIMIT_ORDER: LimitOrderConfig,
    AgentType.SAVINGS: SavingsConfig,
    AgentType.RECURRING_PAYMENT: RecurringPaymentConfig,
}


# ============================================
# LOGS AND RESULTS
# ============================================

@dataclass
class StepRecord:
    """Outcome of one transaction within a multi-step execution"""
    name: str
    status: str  # success | reverted | error
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict) -> "StepRecord":
        return cls(
            name=data["name"],
            status=data["status"],
            tx_hash=data.get("tx_hash"),
            block_number=data.get("block_number"),
            error=data.get("error"),
        )


@dataclass
class PriceCheckResult:
    current_price: Optional[Decimal]
    target_price: Decimal
    should_execute: bool
    reason: PriceCheckReason
    message: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "current_price": str(self.current_price) if self.current_price is not None else None,
            "target_price": str(self.target_price),
            "should_execute": self.should_execute,
            "reason": self.reason.value,
            "message": self.message,
        }


@dataclass
class ExecutionResult:
    """
    Outcome of one strategy invocation.

    On success tx_hash, amount_in and amount_out are always all present.
    A skip is a decision not to act and never mutates the agent.
    """
    success: bool
    tx_hash: Optional[str] = None
    amount_in: Optional[str] = None
    amount_out: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    fatal: bool = False
    terminal_status: Optional[AgentStatus] = None
    price_check: Optional[PriceCheckResult] = None
    steps: List[StepRecord] = field(default_factory=list)

    @classmethod
    def ok(cls, tx_hash: str, amount_in: int, amount_out: int, steps: List[StepRecord] = None) -> "ExecutionResult":
        if tx_hash is None or amount_in is None or amount_out is None:
            raise ValueError("Successful result requires tx_hash, amount_in and amount_out")
        return cls(
            success=True,
            tx_hash=tx_hash,
            amount_in=str(amount_in),
            amount_out=str(amount_out),
            steps=steps or [],
        )

    @classmethod
    def failure(
        cls,
        error: str,
        tx_hash: Optional[str] = None,
        steps: List[StepRecord] = None,
        fatal: bool = False,
        price_check: Optional[PriceCheckResult] = None
    ) -> "ExecutionResult":
        return cls(success=False, error=error, tx_hash=tx_hash, steps=steps or [], fatal=fatal, price_check=price_check)

    @classmethod
    def skip(cls, error: str, price_check: Optional[PriceCheckResult] = None) -> "ExecutionResult":
        return cls(success=False, skipped=True, error=error, price_check=price_check)

    @classmethod
    def terminated(cls, status: AgentStatus, error: str, price_check: Optional[PriceCheckResult] = None) -> "ExecutionResult":
        return cls(success=False, terminal_status=status, error=error, price_check=price_check)

    @property
    def outcome(self) -> str:
        if self.success:
            return "success"
        if self.skipped:
            return "skipped"
        if self.terminal_status is not None:
            return self.terminal_status.value
        return "failed"

    def to_dict(self) -> Dict:
        data = {
            "success": self.success,
            "status": self.outcome,
            "txHash": self.tx_hash,
            "amountIn": self.amount_in,
            "amountOut": self.amount_out,
            "error": self.error,
        }
        if self.price_check is not None:
            data["priceCheck"] = self.price_check.to_dict()
        if self.steps:
            data["steps"] = [s.to_dict() for s in self.steps]
        return data


@dataclass
class ExecutionLog:
    """Append-only execution history entry"""
    timestamp: datetime
    status: LogStatus
    tx_hash: Optional[str] = None
    amount_in: Optional[str] = None
    amount_out: Optional[str] = None
    error: Optional[str] = None
    steps: List[StepRecord] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: ExecutionResult, timestamp: datetime) -> "ExecutionLog":
        if result.success:
            status = LogStatus.SUCCESS
        elif result.terminal_status == AgentStatus.CANCELLED:
            status = LogStatus.CANCELLED
        else:
            status = LogStatus.FAILED
        return cls(
            timestamp=timestamp,
            status=status,
            tx_hash=result.tx_hash,
            amount_in=result.amount_in,
            amount_out=result.amount_out,
            error=result.error,
            steps=list(result.steps),
        )

    def to_dict(self) -> Dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "error": self.error,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ExecutionLog":
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            status=LogStatus(data["status"]),
            tx_hash=data.get("tx_hash"),
            amount_in=data.get("amount_in"),
            amount_out=data.get("amount_out"),
            error=data.get("error"),
            steps=[StepRecord.from_dict(s) for s in data.get("steps") or []],
        )


@dataclass
class ScheduleUpdate:
    next_execution: datetime
    execution_count: int
    status: AgentStatus
    last_execution: Optional[datetime] = None


# ============================================
# AGENT
# ============================================

@dataclass
class Agent:
    """A user-authorized recurring instruction and its scheduling state"""
    id: str
    user_address: str
    agent_type: str
    permission_context: str
    delegation_manager: str
    session_key_address: str
    next_execution: datetime
    config: Dict[str, Any] = field(default_factory=dict)
    name: str = ""
    status: AgentStatus = AgentStatus.ACTIVE
    execution_count: int = 0
    max_executions: Optional[int] = None
    last_execution: Optional[datetime] = None
    execution_logs: List[ExecutionLog] = field(default_factory=list)

    @property
    def known_type(self) -> Optional[AgentType]:
        try:
            return AgentType(self.agent_type)
        except ValueError:
            return None

    def settings(self):
        """Typed configuration for this agent's type"""
        agent_type = self.known_type
        if agent_type is None:
            raise ValidationError(f"Unknown agent type: {self.agent_type}")
        raw = self.config.get(CONFIG_KEYS[agent_type])
        if not raw:
            raise ValidationError(f"No {agent_type.value} config found")
        return CONFIG_TYPES[agent_type].from_dict(raw)

    @property
    def interval_seconds(self) -> Optional[int]:
        """Fixed cadence for recurring types; None for one-shot orders"""
        if self.known_type in (None, AgentType.LIMIT_ORDER):
            return None
        return self.settings().interval_seconds

    def is_due(self, now: datetime) -> bool:
        return self.status == AgentStatus.ACTIVE and self.next_execution <= now

    def cap_reached(self, execution_count: int) -> bool:
        return self.max_executions is not None and execution_count >= self.max_executions

    @classmethod
    def from_row(cls, row: Dict, logs: List[Dict] = None) -> "Agent":
        """Build from a store row (snake_case columns)"""
        return cls(
            id=str(row.get("id") or row.get("_id")),
            user_address=row["user_address"],
            agent_type=row["agent_type"],
            name=row.get("name") or "",
            permission_context=row.get("permission_context") or "0x",
            delegation_manager=row.get("delegation_manager") or "",
            session_key_address=row.get("session_key_address") or "",
            config=row.get("config") or {},
            status=AgentStatus(row.get("status", "active")),
            next_execution=parse_timestamp(row["next_execution"]),
            execution_count=int(row.get("execution_count") or 0),
            max_executions=row.get("max_executions"),
            last_execution=parse_timestamp(row.get("last_execution")),
            execution_logs=[ExecutionLog.from_dict(entry) for entry in (logs if logs is not None else row.get("execution_logs") or [])],
        )
