"""
Executor API Router
Manual execution, scheduler trigger and health endpoints
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from services.scheduler import DueAgentScheduler

router = APIRouter(tags=["Agent Executor"])

# ============================================
# MODELS
# ============================================

class ExecuteRequest(BaseModel):
    agentId: Optional[str] = None
    agentType: Optional[str] = None


def get_scheduler(request: Request) -> DueAgentScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler

# ============================================
# HEALTH
# ============================================

@router.get("/health")
async def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

# ============================================
# MANUAL EXECUTION
# ============================================

@router.post("/execute")
async def execute_agent(request: ExecuteRequest, scheduler: DueAgentScheduler = Depends(get_scheduler)):
    """
    Execute one agent immediately, ignoring its schedule.

    Always answers with a result body; execution failures are reported in
    `error`, not as HTTP errors.
    """
    if not request.agentId or not request.agentType:
        raise HTTPException(status_code=400, detail="Missing required fields: agentId, agentType")

    result = await scheduler.execute_agent(request.agentId, request.agentType)
    return result.to_dict()

# ============================================
# SCHEDULER
# ============================================

@router.api_route("/trigger", methods=["GET", "POST"])
async def trigger_due_agents(scheduler: DueAgentScheduler = Depends(get_scheduler)):
    """Run a scheduler pass now; a no-op if one is already in progress"""
    summary = await scheduler.run_once()
    return {
        "success": summary.error is None,
        "message": summary.message,
        "results": summary.to_dict(),
    }


@router.get("/scheduler/status")
async def scheduler_status(scheduler: DueAgentScheduler = Depends(get_scheduler)):
    return {"success": True, **scheduler.status()}
