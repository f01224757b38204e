"""
Account Allocator API — FastAPI endpoints.

Thin boundary over the allocation services:
- Distribution runs and history
- Rotation
- Rankings
- Agent and account upkeep
- Stats

Bad input maps to 400, missing records to 404, storage failures to 503.
The rotation scheduler runs for the app's lifetime when enabled in settings.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from account_allocator.config import Settings, configure_logging
from account_allocator.container import AllocatorServices, build_services_from_settings
from account_allocator.errors import (
    InvalidArgumentError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from account_allocator.models.account import Account
from account_allocator.models.agent import Agent
from account_allocator.models.distribution import DistributionType
from account_allocator.rotation.engine import RotationType

logger = logging.getLogger(__name__)


# --- Request Models ---

class DistributionRequest(BaseModel):
    update_rankings: bool = True
    type: str = DistributionType.INITIAL


class RotationRequest(BaseModel):
    rotation_type: str = RotationType.PARTIAL.value
    percentage: Optional[float] = None


# --- Application Factory ---

def create_app(
    services: Optional[AllocatorServices] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()
    configure_logging(settings.log_level)

    svc = services or build_services_from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.rotation_scheduler_enabled:
            svc.scheduler.start()
        yield
        await svc.scheduler.stop()

    app = FastAPI(
        title=settings.app_name,
        description="Hybrid equitable/ranking allocation of accounts to agents",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.services = svc

    # === ERROR MAPPING ===

    @app.exception_handler(ValidationError)
    @app.exception_handler(InvalidArgumentError)
    async def bad_input_handler(request: Request, exc: Exception):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # === DISTRIBUTIONS ===

    @app.post("/distributions")
    async def execute_distribution(req: DistributionRequest):
        """Rank (optionally) and distribute every active account."""
        distribution = await svc.coordinator.execute_distribution(
            distribution_type=req.type,
            update_rankings=req.update_rankings,
        )
        return {
            "distribution": distribution.model_dump(mode="json"),
            "total_accounts": distribution.get_total_accounts(),
            "assignments_count": len(distribution.assignments),
        }

    @app.get("/distributions/latest")
    async def get_latest_distribution():
        distribution = await svc.coordinator.get_latest_distribution()
        if distribution is None:
            raise NotFoundError("No distribution found")
        return distribution.model_dump(mode="json")

    @app.get("/distributions/history")
    async def get_distribution_history(limit: int = 10):
        history = await svc.coordinator.get_distribution_history(limit)
        return [d.model_dump(mode="json") for d in history]

    @app.get("/distributions/{distribution_id}")
    async def get_distribution(distribution_id: str):
        distribution = await svc.coordinator.get_distribution(distribution_id)
        if distribution is None:
            raise NotFoundError(f"Distribution {distribution_id} not found")
        return distribution.model_dump(mode="json")

    @app.get("/stats")
    async def get_stats():
        """Per-agent report for the latest distribution."""
        stats = await svc.coordinator.get_stats()
        if stats is None:
            return {"message": "No distribution found", "stats": None}
        return stats.model_dump(mode="json")

    # === ROTATION ===

    @app.post("/rotations")
    async def execute_rotation(req: RotationRequest):
        distribution = await svc.rotation.execute_rotation(
            rotation_type=req.rotation_type,
            percentage=req.percentage,
        )
        return {
            "distribution": distribution.model_dump(mode="json"),
            "rotation_type": req.rotation_type,
            "message": f"Rotation completed using {req.rotation_type} strategy",
        }

    @app.get("/rotations/schedule")
    async def get_rotation_schedule():
        scheduler = svc.scheduler
        return {
            "status": scheduler.status,
            "expression": scheduler.expression,
            "next_run": scheduler.next_run().isoformat(),
            "last_run_at": scheduler.last_run_at.isoformat() if scheduler.last_run_at else None,
            "last_error": scheduler.last_error,
        }

    # === RANKINGS ===

    @app.post("/rankings")
    async def calculate_rankings():
        agents = await svc.ranking.rank()
        return [a.model_dump(mode="json") for a in agents]

    @app.get("/rankings/top")
    async def get_top_performers(limit: int = 5):
        agents = await svc.ranking.get_top_performers(limit)
        return [a.model_dump(mode="json") for a in agents]

    # === AGENTS ===

    @app.get("/agents")
    async def list_agents():
        return [a.model_dump(mode="json") for a in await svc.agent_repository.get_all()]

    @app.post("/agents")
    async def upsert_agent(agent: Agent):
        await svc.agent_repository.save(agent)
        return {"status": "saved", "agent_id": agent.id}

    @app.get("/agents/{agent_id}")
    async def get_agent(agent_id: str):
        agent = await svc.agent_repository.get_by_id(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent {agent_id} not found")
        return agent.model_dump(mode="json")

    @app.delete("/agents/{agent_id}")
    async def delete_agent(agent_id: str):
        if not await svc.agent_repository.delete(agent_id):
            raise NotFoundError(f"Agent {agent_id} not found")
        return {"status": "deleted", "agent_id": agent_id}

    @app.get("/agents/{agent_id}/accounts")
    async def get_agent_accounts(agent_id: str):
        accounts = await svc.account_repository.get_by_agent(agent_id)
        return {
            "agent_id": agent_id,
            "accounts": [a.model_dump(mode="json") for a in accounts],
        }

    # === ACCOUNTS ===

    @app.get("/accounts")
    async def list_accounts():
        return [a.model_dump(mode="json") for a in await svc.account_repository.get_all()]

    @app.post("/accounts")
    async def upsert_account(account: Account):
        await svc.account_repository.save(account)
        return {"status": "saved", "account_id": account.id}

    @app.get("/accounts/{account_id}")
    async def get_account(account_id: str):
        account = await svc.account_repository.get_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found")
        return account.model_dump(mode="json")

    # === MAINTENANCE ===

    @app.delete("/data")
    async def clear_data():
        """Remove all agents, accounts and distributions."""
        await svc.agent_repository.clear()
        await svc.account_repository.clear()
        await svc.distribution_repository.clear()
        return {"status": "cleared"}

    return app


# Default application instance
app = create_app()
