"""Reporting models produced by the stats reducer."""

from datetime import datetime
from typing import List

from pydantic import BaseModel

from account_allocator.models.distribution import DistributionParameters


class AgentStatsRow(BaseModel):
    """One agent's line in the latest distribution report."""

    agent_id: str
    agent_name: str
    ranking: int                            # 0 when the agent no longer exists
    equitable_accounts: int
    ranking_accounts: int
    total_accounts: int
    metrics: dict = {}


class DistributionSummary(BaseModel):
    total_accounts: int = 0
    avg_accounts: float = 0.0
    std_deviation: float = 0.0              # Population standard deviation
    min_accounts: int = 0
    max_accounts: int = 0


class DistributionInfo(BaseModel):
    id: str
    date: datetime
    type: str
    parameters: DistributionParameters


class DistributionStats(BaseModel):
    """Per-agent rows plus summary for the latest distribution."""

    distribution: DistributionInfo
    stats: List[AgentStatsRow]
    summary: DistributionSummary
