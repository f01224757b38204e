"""
Distribution Coordinator — one allocation run end to end.

  (optional) rank agents → load active accounts + all agents → distribute
  → save Distribution → save accounts in batches

Both writes finish before the run is reported as done. They are not
atomic together: if the account save fails after the distribution was
saved, accounts keep their previous state while a new Distribution exists.
Runs are not serialized here; callers must not start two at once.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from account_allocator.allocation.strategy import DistributionStrategy
from account_allocator.models.config import AllocationConfig
from account_allocator.models.distribution import (
    Distribution,
    DistributionParameters,
    DistributionType,
)
from account_allocator.models.stats import (
    AgentStatsRow,
    DistributionInfo,
    DistributionStats,
    DistributionSummary,
)
from account_allocator.ranking.engine import RankingEngine
from account_allocator.repositories.base import (
    AccountRepository,
    AgentRepository,
    DistributionRepository,
)

logger = logging.getLogger(__name__)


class DistributionCoordinator:
    """Orchestrates ranking, allocation, persistence and reporting."""

    def __init__(
        self,
        strategy: DistributionStrategy,
        ranking_engine: RankingEngine,
        account_repository: AccountRepository,
        agent_repository: AgentRepository,
        distribution_repository: DistributionRepository,
        config: Optional[AllocationConfig] = None,
    ):
        self.strategy = strategy
        self.ranking = ranking_engine
        self.account_repository = account_repository
        self.agent_repository = agent_repository
        self.distribution_repository = distribution_repository
        self.config = config or AllocationConfig()

    async def execute_distribution(
        self,
        distribution_type: str = DistributionType.INITIAL,
        update_rankings: bool = False,
        rotated_accounts: Optional[int] = None,
    ) -> Distribution:
        """Run one allocation over every active account and every agent."""
        if update_rankings:
            await self.ranking.rank()

        accounts = await self.account_repository.get_available_accounts()
        agents = await self.agent_repository.get_all()

        assignments = self.strategy.distribute(accounts, agents)

        distribution = Distribution(
            id=str(uuid4()),
            distribution_date=datetime.utcnow(),
            type=distribution_type,
            assignments=assignments,
            parameters=DistributionParameters(
                equitable_percentage=self.strategy.equitable_percentage,
                ranking_percentage=self.strategy.ranking_percentage,
                weighting_system=getattr(self.strategy, "weighting_system", "linear"),
            ),
            rotated_accounts=rotated_accounts,
        )

        await self.distribution_repository.save(distribution)
        await self._save_accounts(accounts)

        logger.info(
            "Distribution %s (%s): %d accounts across %d agents",
            distribution.id, distribution_type,
            distribution.get_total_accounts(), len(assignments),
        )
        return distribution

    async def check_inputs(self) -> None:
        """Raise ValidationError if a run over the current pool would be rejected."""
        accounts = await self.account_repository.get_available_accounts()
        agents = await self.agent_repository.get_all()
        self.strategy.validate_inputs(
            accounts, agents, self.strategy.equitable_percentage
        )

    async def _save_accounts(self, accounts: list) -> None:
        batch_size = self.config.save_batch_size
        for start in range(0, len(accounts), batch_size):
            await self.account_repository.save_all(accounts[start:start + batch_size])

    async def get_latest_distribution(self) -> Optional[Distribution]:
        return await self.distribution_repository.get_latest()

    async def get_distribution_history(self, limit: int = 10) -> List[Distribution]:
        return await self.distribution_repository.get_history(limit)

    async def get_distribution(self, distribution_id: str) -> Optional[Distribution]:
        return await self.distribution_repository.get_by_id(distribution_id)

    async def get_stats(self) -> Optional[DistributionStats]:
        """
        Per-agent report for the latest distribution, best rank first.
        Returns None when no distribution has been run yet.
        """
        distribution = await self.distribution_repository.get_latest()
        if distribution is None:
            logger.info("No distribution found for stats")
            return None

        agents = {a.id: a for a in await self.agent_repository.get_all()}

        rows = []
        for assignment in distribution.assignments:
            agent = agents.get(assignment.agent_id)
            if agent is None:
                logger.warning(
                    "Agent %s in distribution %s no longer exists",
                    assignment.agent_id, distribution.id,
                )
            rows.append(AgentStatsRow(
                agent_id=assignment.agent_id,
                agent_name=agent.name if agent else "Unknown",
                ranking=(agent.current_ranking or 0) if agent else 0,
                equitable_accounts=assignment.equitable_accounts,
                ranking_accounts=assignment.ranking_accounts,
                total_accounts=assignment.total_accounts,
                metrics=agent.metrics.model_dump() if agent else {},
            ))
        rows.sort(key=lambda r: r.ranking)

        return DistributionStats(
            distribution=DistributionInfo(
                id=distribution.id,
                date=distribution.distribution_date,
                type=distribution.type,
                parameters=distribution.parameters,
            ),
            stats=rows,
            summary=summarize([r.total_accounts for r in rows]),
        )


def summarize(totals: List[int]) -> DistributionSummary:
    """Total, mean, population stddev, min and max of per-agent totals."""
    if not totals:
        return DistributionSummary()

    total = sum(totals)
    avg = total / len(totals)
    variance = sum((t - avg) ** 2 for t in totals) / len(totals)

    return DistributionSummary(
        total_accounts=total,
        avg_accounts=round(avg, 2),
        std_deviation=round(math.sqrt(variance), 2),
        min_accounts=min(totals),
        max_accounts=max(totals),
    )
