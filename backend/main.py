"""
Agent Executor - HTTP Service
Serves the manual execution / trigger API and runs the periodic scheduler.

Run: uvicorn main:app --host 0.0.0.0 --port 3002
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.executor_router import router as executor_router
from executors.router import build_default_router
from infrastructure.config import get_config
from infrastructure.errors import register_exception_handlers
from sentry_config import init_sentry
from services.agent_store import get_agent_store
from services.scheduler import DueAgentScheduler

logger = logging.getLogger("AgentExecutor")


def build_scheduler() -> DueAgentScheduler:
    """Scheduler wired to the configured store and the default strategy set"""
    return DueAgentScheduler(get_agent_store(), build_default_router())


def create_app(scheduler: Optional[DueAgentScheduler] = None, autostart: Optional[bool] = None) -> FastAPI:
    config = get_config()
    if autostart is None:
        autostart = config.scheduler.autostart

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=getattr(logging, config.monitoring.log_level.upper(), logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        init_sentry(config.monitoring.sentry_dsn)

        if app.state.scheduler is None:
            app.state.scheduler = build_scheduler()
        if autostart:
            app.state.scheduler.start()

        logger.info(f"🤖 Agent executor up ({config.environment.value}, chain {config.chain.chain_name})")
        yield

        app.state.scheduler.stop()
        logger.info("🤖 Agent executor shut down")

    app = FastAPI(title="Agent Executor", version="1.0.0", lifespan=lifespan)
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(executor_router)
    return app


app = create_app()
