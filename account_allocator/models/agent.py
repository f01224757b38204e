"""Agent — a sales agent competing for accounts."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AgentMetrics(BaseModel):
    """Performance metrics that feed the ranking score."""

    conversion_rate: float = Field(ge=0, le=100, default=0.0)   # Percent
    total_sales: float = Field(ge=0, default=0.0)
    closed_accounts: int = Field(ge=0, default=0)


class Agent(BaseModel):
    """A sales agent. Ranked by the RankingEngine, 1 = best."""

    id: str
    name: str
    email: str = ""
    active: bool = True
    current_ranking: Optional[int] = Field(ge=1, default=None)
    join_date: Optional[datetime] = None
    metrics: AgentMetrics = AgentMetrics()

    def is_active(self) -> bool:
        return self.active is True

    def update_ranking(self, new_ranking: int) -> None:
        self.current_ranking = new_ranking

    def update_metrics(self, **updates) -> None:
        """Merge partial metric updates into the current metrics."""
        merged = self.metrics.model_dump()
        merged.update(updates)
        self.metrics = AgentMetrics(**merged)


def ranking_sort_key(agent: Agent) -> tuple:
    """Ascending rank order. Agents never ranked sort after ranked ones."""
    return (agent.current_ranking is None, agent.current_ranking or 0)
