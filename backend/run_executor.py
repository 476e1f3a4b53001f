"""
Agent Executor - Entry Point

    python run_executor.py          # serve API + periodic scheduler
    python run_executor.py --once   # run a single pass over due agents and exit
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from infrastructure.config import get_config
from sentry_config import init_sentry

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def run_single_pass():
    from main import build_scheduler

    scheduler = build_scheduler()
    summary = await scheduler.run_once()
    print(json.dumps({"message": summary.message, "results": summary.to_dict()}, indent=2))


def serve(host: str, port: int):
    import uvicorn

    uvicorn.run("main:app", host=host, port=port)


def main():
    parser = argparse.ArgumentParser(description="Delegated agent executor")
    parser.add_argument("--once", action="store_true", help="execute due agents once and exit")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("AGENT_SERVICE_PORT", "3002")))
    args = parser.parse_args()

    config = get_config()
    init_sentry(config.monitoring.sentry_dsn)

    if args.once:
        logger.info("🤖 Running a single scheduler pass...")
        asyncio.run(run_single_pass())
    else:
        logger.info(f"🤖 Starting agent executor on {args.host}:{args.port}")
        serve(args.host, args.port)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n👋 Executor stopped")
