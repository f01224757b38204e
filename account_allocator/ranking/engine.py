"""
Ranking Engine — turns agent performance metrics into a rank order.

Score = 0.4 * conversion_rate + 0.4 * (total_sales / 1000)
        + 0.2 * (closed_accounts / 10)

Ranks are dense and 1-based (1 = best). Agents with equal scores keep
the order in which they were passed in.
"""

import logging
from typing import List, Optional

from account_allocator.models.agent import Agent, AgentMetrics, ranking_sort_key
from account_allocator.repositories.base import AgentRepository

logger = logging.getLogger(__name__)

CONVERSION_WEIGHT = 0.4
SALES_WEIGHT = 0.4
CLOSED_ACCOUNTS_WEIGHT = 0.2


def calculate_score(metrics: AgentMetrics) -> float:
    """Weighted performance score for one agent."""
    normalized_conversion = metrics.conversion_rate or 0
    normalized_sales = (metrics.total_sales or 0) / 1000
    normalized_closed = (metrics.closed_accounts or 0) / 10

    return (
        normalized_conversion * CONVERSION_WEIGHT
        + normalized_sales * SALES_WEIGHT
        + normalized_closed * CLOSED_ACCOUNTS_WEIGHT
    )


class RankingEngine:
    """Computes and persists agent rankings."""

    def __init__(self, agent_repository: AgentRepository):
        self.agent_repository = agent_repository

    async def rank(self, agents: Optional[List[Agent]] = None) -> List[Agent]:
        """
        Rank agents by score and save them.
        Loads every agent from the repository when none are given.
        """
        if agents is None:
            agents = await self.agent_repository.get_all()
        if not agents:
            return []

        # sorted() is stable, so equal scores keep input order
        ranked = sorted(agents, key=lambda a: calculate_score(a.metrics), reverse=True)
        for index, agent in enumerate(ranked):
            agent.update_ranking(index + 1)

        await self.agent_repository.save_all(ranked)
        logger.info("Ranked %d agents; top agent is %s", len(ranked), ranked[0].id)
        return ranked

    async def get_top_performers(self, limit: int = 5) -> List[Agent]:
        """Active agents with the best current ranking."""
        agents = await self.agent_repository.get_all()
        active = [a for a in agents if a.is_active()]
        active.sort(key=ranking_sort_key)
        return active[:limit]

    async def get_agent_ranking(self, agent_id: str) -> Optional[int]:
        agent = await self.agent_repository.get_by_id(agent_id)
        return agent.current_ranking if agent else None
