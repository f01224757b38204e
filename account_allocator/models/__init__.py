"""Account Allocator data models."""

from account_allocator.models.account import Account, AccountStatus
from account_allocator.models.agent import Agent, AgentMetrics
from account_allocator.models.config import AllocationConfig
from account_allocator.models.distribution import (
    Assignment,
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

__all__ = [
    "Account",
    "AccountStatus",
    "Agent",
    "AgentMetrics",
    "AgentStatsRow",
    "AllocationConfig",
    "Assignment",
    "Distribution",
    "DistributionInfo",
    "DistributionParameters",
    "DistributionStats",
    "DistributionSummary",
    "DistributionType",
]
