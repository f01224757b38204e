"""
Rotation Engine — periodic re-allocation of accounts.

Each policy clears the assignment of a subset of accounts, saves them,
then asks the coordinator for a fresh distribution. The rerun always
covers the whole active pool; freed accounts simply re-enter it.

  full              every account is cleared
  partial           per agent, the floor(count * pct) lowest-value accounts
  performance_based per agent, a rank-dependent share of lowest-value accounts
"""

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from account_allocator.errors import InvalidArgumentError
from account_allocator.models.account import Account
from account_allocator.models.agent import Agent
from account_allocator.models.config import AllocationConfig
from account_allocator.models.distribution import Distribution, DistributionType
from account_allocator.repositories.base import AccountRepository, AgentRepository

if TYPE_CHECKING:
    from account_allocator.coordinator.service import DistributionCoordinator

logger = logging.getLogger(__name__)

BASE_ROTATION_RATE = 0.2
MAX_ROTATION_RATE = 0.4


class RotationType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    PERFORMANCE_BASED = "performance_based"


def select_low_value_accounts(accounts: List[Account], count: int) -> List[Account]:
    """The `count` accounts with the lowest potential value (stable on ties)."""
    if count <= 0:
        return []
    return sorted(accounts, key=lambda a: a.potential_value)[:count]


def calculate_rotation_rate(agent: Agent) -> float:
    """
    Share of an agent's accounts to rotate. Worse rank rotates more:
    0.2 + rank/10 * 0.1, capped at 0.4. Unranked agents use the base rate.
    """
    ranking_factor = (agent.current_ranking or 0) / 10
    return min(BASE_ROTATION_RATE + ranking_factor * 0.1, MAX_ROTATION_RATE)


class RotationEngine:
    """Runs rotation policies and re-allocates through the coordinator."""

    def __init__(
        self,
        coordinator: "DistributionCoordinator",
        account_repository: AccountRepository,
        agent_repository: AgentRepository,
        config: Optional[AllocationConfig] = None,
    ):
        self.coordinator = coordinator
        self.account_repository = account_repository
        self.agent_repository = agent_repository
        self.config = config or AllocationConfig()

    async def execute_rotation(
        self,
        rotation_type: str = RotationType.PARTIAL.value,
        percentage: Optional[float] = None,
    ) -> Distribution:
        """
        Run one rotation policy and return the resulting Distribution.
        Fails with InvalidArgumentError or ValidationError before touching
        any account.
        """
        try:
            kind = RotationType(rotation_type)
        except ValueError:
            raise InvalidArgumentError(f"Unknown rotation type: {rotation_type}")

        if percentage is None:
            percentage = self.config.rotation_percentage
        if not 0 < percentage <= 1:
            raise InvalidArgumentError(
                f"Rotation percentage must be in (0, 1], got {percentage}"
            )

        # Clearing assignments leaves the available pool unchanged
        await self.coordinator.check_inputs()

        logger.info("Starting %s rotation", kind.value)
        if kind == RotationType.FULL:
            return await self.full_rotation()
        if kind == RotationType.PARTIAL:
            return await self.partial_rotation(percentage)
        return await self.performance_based_rotation()

    async def full_rotation(self) -> Distribution:
        """Clear every account, then distribute from scratch."""
        accounts = await self.account_repository.get_all()
        for account in accounts:
            account.unassign()
        await self.account_repository.save_all(accounts)

        return await self.coordinator.execute_distribution(
            distribution_type=DistributionType.FULL_ROTATION,
        )

    async def partial_rotation(self, percentage: float) -> Distribution:
        """Free the lowest-value share of each agent's accounts."""
        agents = await self.agent_repository.get_all()
        to_rotate: List[Account] = []

        for agent in agents:
            agent_accounts = await self.account_repository.get_by_agent(agent.id)
            count = math.floor(len(agent_accounts) * percentage)
            to_rotate.extend(select_low_value_accounts(agent_accounts, count))

        return await self._rotate(to_rotate, DistributionType.PARTIAL_ROTATION)

    async def performance_based_rotation(self) -> Distribution:
        """Free more accounts from worse-ranked agents."""
        agents = await self.agent_repository.get_all()
        to_rotate: List[Account] = []

        for agent in agents:
            agent_accounts = await self.account_repository.get_by_agent(agent.id)
            rate = calculate_rotation_rate(agent)
            count = math.floor(len(agent_accounts) * rate)
            to_rotate.extend(select_low_value_accounts(agent_accounts, count))

        return await self._rotate(to_rotate, DistributionType.PERFORMANCE_ROTATION)

    async def _rotate(self, accounts: List[Account], distribution_type: str) -> Distribution:
        for account in accounts:
            account.unassign()
        await self.account_repository.save_all(accounts)
        logger.info("Unassigned %d accounts for %s", len(accounts), distribution_type)

        return await self.coordinator.execute_distribution(
            distribution_type=distribution_type,
            rotated_accounts=len(accounts),
        )
