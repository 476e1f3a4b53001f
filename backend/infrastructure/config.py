"""
Configuration Management for the Agent Executor
Environment-based configuration with secrets handling

Features:
- Environment-based config (dev/staging/prod)
- Session key secrets (never logged)
- Per-call-type gas ceilings and explicit RPC timeouts
- Dynamic reload
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
from enum import Enum

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("Config")


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == "true"


@dataclass
class ChainConfig:
    """Blockchain connection configuration"""
    rpc_url: str = "https://ethereum-sepolia-rpc.publicnode.com"
    chain_id: int = 11155111
    chain_name: str = "sepolia"

    # Timeouts (seconds) - applied to every RPC request and receipt wait
    rpc_timeout: int = 30
    receipt_timeout: int = 120
    receipt_poll_interval: float = 2.0

    # Gas price buffer over the node's suggestion
    gas_buffer_percent: int = 20


@dataclass
class ContractsConfig:
    """Protocol contract addresses (Sepolia defaults)"""
    swap_router: str = "0x3bFA4769FB09eefC5a80d6E87c3B9C650f7Ae48E"
    quoter_v2: str = "0xEd1f6473345F45b75F8179591dd5bA1888cf2FB3"
    aave_pool: str = "0x8bAB6d1b75f19e9eD9fCe8b9BD338844fF79aE27"


@dataclass
class GasLimits:
    """Gas ceiling per call type"""
    redeem: int = 500_000
    redeem_payment: int = 300_000
    approve: int = 100_000
    swap: int = 500_000
    supply: int = 500_000


@dataclass
class SchedulerConfig:
    """Due-agent scheduler configuration"""
    interval_seconds: int = 60
    inter_agent_delay: float = 1.0
    max_consecutive_failures: int = 5
    autostart: bool = True


@dataclass
class StoreConfig:
    """Agent store configuration"""
    backend: str = "supabase"  # supabase or memory
    supabase_url: str = ""
    supabase_key: str = ""
    agents_table: str = "agents"
    logs_table: str = "agent_execution_logs"
    request_timeout: float = 30.0
    recent_logs_limit: int = 50


@dataclass
class MonitoringConfig:
    """Monitoring configuration"""
    log_level: str = "INFO"
    sentry_dsn: Optional[str] = None


@dataclass
class ExecutorConfig:
    """Main application configuration"""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True

    chain: ChainConfig = field(default_factory=ChainConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    gas: GasLimits = field(default_factory=GasLimits)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "ExecutorConfig":
        """Create configuration from environment variables"""
        env = os.environ.get("EXECUTOR_ENV", "development").lower()

        config = cls(
            environment=Environment(env) if env in [e.value for e in Environment] else Environment.DEVELOPMENT,
            debug=_env_bool("DEBUG", True),
        )

        config.chain = ChainConfig(
            rpc_url=os.environ.get("RPC_URL", ChainConfig.rpc_url),
            chain_id=int(os.environ.get("CHAIN_ID", ChainConfig.chain_id)),
            chain_name=os.environ.get("CHAIN_NAME", ChainConfig.chain_name),
            rpc_timeout=int(os.environ.get("RPC_TIMEOUT_SECONDS", ChainConfig.rpc_timeout)),
            receipt_timeout=int(os.environ.get("RECEIPT_TIMEOUT_SECONDS", ChainConfig.receipt_timeout)),
            gas_buffer_percent=int(os.environ.get("GAS_BUFFER_PERCENT", ChainConfig.gas_buffer_percent)),
        )

        config.contracts = ContractsConfig(
            swap_router=os.environ.get("UNISWAP_SWAP_ROUTER", ContractsConfig.swap_router),
            quoter_v2=os.environ.get("UNISWAP_QUOTER_V2", ContractsConfig.quoter_v2),
            aave_pool=os.environ.get("AAVE_V3_POOL", ContractsConfig.aave_pool),
        )

        config.scheduler = SchedulerConfig(
            interval_seconds=int(os.environ.get("SCHEDULER_INTERVAL_SECONDS", SchedulerConfig.interval_seconds)),
            inter_agent_delay=float(os.environ.get("SCHEDULER_AGENT_DELAY_SECONDS", SchedulerConfig.inter_agent_delay)),
            max_consecutive_failures=int(os.environ.get("MAX_CONSECUTIVE_FAILURES", SchedulerConfig.max_consecutive_failures)),
            autostart=_env_bool("SCHEDULER_AUTOSTART", True),
        )

        config.store = StoreConfig(
            backend=os.environ.get("STORE_BACKEND", "supabase").lower(),
            supabase_url=os.environ.get("SUPABASE_URL", ""),
            supabase_key=os.environ.get("SUPABASE_KEY", ""),
            agents_table=os.environ.get("AGENTS_TABLE", StoreConfig.agents_table),
            logs_table=os.environ.get("AGENT_LOGS_TABLE", StoreConfig.logs_table),
        )

        config.monitoring = MonitoringConfig(
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            sentry_dsn=os.environ.get("SENTRY_DSN"),
        )

        if config.environment == Environment.PRODUCTION:
            config.debug = False
            config.monitoring.log_level = "WARNING" if "LOG_LEVEL" not in os.environ else config.monitoring.log_level

        return config

    def to_dict(self) -> Dict:
        """Convert to dictionary (hiding secrets)"""
        def sanitize(obj):
            if isinstance(obj, dict):
                return {k: sanitize(v) for k, v in obj.items() if "key" not in k.lower() and "dsn" not in k.lower()}
            elif hasattr(obj, '__dataclass_fields__'):
                return sanitize({k: getattr(obj, k) for k in obj.__dataclass_fields__})
            elif isinstance(obj, Enum):
                return obj.value
            else:
                return obj

        return sanitize(self)


# ============================================
# SECRETS MANAGEMENT
# ============================================

# Per-agent-type session key overrides; SESSION_PRIVATE_KEY is the fallback
SESSION_KEY_ENV = {
    "dca": "DCA_PRIVATE_KEY",
    "limit-order": "LIMIT_ORDER_PRIVATE_KEY",
    "savings": "SAVINGS_PRIVATE_KEY",
    "recurring-payment": "RECURRING_PAYMENT_PRIVATE_KEY",
}


class SecretsManager:
    """
    Holds executor session keys.
    Values are never logged or serialized.
    """

    def __init__(self):
        self._secrets: Dict[str, str] = {}
        self._load_from_env()

    def _load_from_env(self):
        """Load secrets from environment variables"""
        secret_keys = [
            "SESSION_PRIVATE_KEY",
            "SUPABASE_KEY",
            *SESSION_KEY_ENV.values(),
        ]

        for key in secret_keys:
            value = os.environ.get(key)
            if value:
                self._secrets[key] = value

    def get(self, key: str, default: str = None) -> Optional[str]:
        """Get a secret value"""
        return self._secrets.get(key, default)

    def set(self, key: str, value: str):
        """Set a secret value (runtime only)"""
        self._secrets[key] = value

    def has(self, key: str) -> bool:
        """Check if secret exists"""
        return key in self._secrets

    def session_key_for(self, agent_type: str) -> Optional[str]:
        """Session private key for an agent type, falling back to the shared key"""
        override = SESSION_KEY_ENV.get(agent_type)
        if override and self.has(override):
            return self._secrets[override]
        return self._secrets.get("SESSION_PRIVATE_KEY")


# ============================================
# GLOBAL INSTANCES
# ============================================

config = ExecutorConfig.from_env()
secrets = SecretsManager()

logger.info(f"Configuration loaded for environment: {config.environment.value}")


def get_config() -> ExecutorConfig:
    """Get the global configuration"""
    return config


def get_secrets() -> SecretsManager:
    """Get the secrets manager"""
    return secrets


def reload_config():
    """Reload configuration from environment"""
    global config, secrets
    config = ExecutorConfig.from_env()
    secrets = SecretsManager()
    logger.info("Configuration reloaded")
