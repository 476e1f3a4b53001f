"""
Sentry Error Monitoring Configuration
Error tracking for the agent executor
"""
import os
import logging
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger("Sentry")


def filter_sensitive_data(event, hint):
    """Remove key material and delegation payloads from Sentry events."""
    sensitive_keys = ['private_key', 'permission_context', 'permissionContext', 'signature', 'secret', 'mnemonic']

    if 'request' in event and 'data' in event['request']:
        data = event['request']['data']
        if isinstance(data, dict):
            for key in sensitive_keys:
                if key in data:
                    data[key] = '[FILTERED]'

    if 'exception' in event and 'values' in event['exception']:
        for exc in event['exception']['values']:
            if 'value' in exc:
                for key in sensitive_keys:
                    if key.lower() in exc['value'].lower():
                        exc['value'] = '[FILTERED - sensitive data]'

    return event


def init_sentry(dsn: str = None) -> bool:
    """Initialize Sentry with appropriate configuration."""
    dsn = dsn or os.getenv("SENTRY_DSN")

    if not dsn:
        logger.info("[Sentry] No SENTRY_DSN found - error tracking disabled")
        return False

    environment = os.getenv("EXECUTOR_ENV", "development")
    release = os.getenv("COMMIT_SHA", "local")

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.2,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR
            ),
        ],
        before_send=filter_sensitive_data,
        send_default_pii=False,
        release=f"agent-executor@{release}",
        ignore_errors=[
            ConnectionRefusedError,
        ],
    )

    logger.info(f"[Sentry] Initialized for {environment} (release: {release[:8]})")
    return True


def capture_agent_context(user_address: str, agent_id: str = None, agent_type: str = None):
    """Add agent context to Sentry for execution attempts."""
    if not user_address:
        return

    sentry_sdk.set_user({
        "id": user_address[:10] + "...",  # Truncated for privacy
    })
    sentry_sdk.set_context("agent", {
        "agent_id": agent_id,
        "agent_type": agent_type,
        "wallet": user_address[:10] + "...",
    })


def capture_blockchain_breadcrumb(action: str, chain: str = "sepolia", details: dict = None):
    """Add breadcrumb for blockchain interactions."""
    sentry_sdk.add_breadcrumb(
        category="blockchain",
        message=action,
        level="info",
        data={"chain": chain, **(details or {})}
    )
