"""
Allocation Engine — hybrid equitable + ranking-weighted distribution.

Phase 1 (equitable): floor(n * pct) accounts are split evenly by count,
in sequential slices, across agents in rank order.

Phase 2 (ranking): the remaining accounts are split by linear rank weight
(m for rank 1 down to 1 for rank m), each share rounded half-up. The
cursor starts at floor(n * pct) and advances by the rounded share even
when the slice runs past the end of the pool.

Residual: accounts neither phase reached are dealt round-robin from the
best-ranked agent and counted as ranking accounts.

Accounts are assigned in place; the caller persists them.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional, Protocol

from account_allocator.errors import ValidationError
from account_allocator.models.account import Account
from account_allocator.models.agent import Agent, ranking_sort_key
from account_allocator.models.distribution import Assignment

logger = logging.getLogger(__name__)


class DistributionStrategy(Protocol):
    """Protocol for allocation strategies pluggable into the coordinator."""

    equitable_percentage: float
    ranking_percentage: float

    def distribute(
        self,
        accounts: List[Account],
        agents: List[Agent],
        equitable_percentage: Optional[float] = None,
    ) -> List[Assignment]: ...

    def validate_inputs(
        self, accounts: List[Account], agents: List[Agent], equitable_percentage: float
    ) -> None: ...


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero (values are non-negative)."""
    return int(math.floor(value + 0.5))


def linear_weights(total_agents: int) -> List[int]:
    """Weight for each rank position: total_agents for rank 1 down to 1."""
    return [total_agents - i for i in range(total_agents)]


class HybridDistributionStrategy:
    """Equitable share first, ranking-weighted share second."""

    weighting_system = "linear"

    def __init__(self, equitable_percentage: float = 0.5):
        self.equitable_percentage = equitable_percentage

    @property
    def ranking_percentage(self) -> float:
        return 1 - self.equitable_percentage

    def distribute(
        self,
        accounts: List[Account],
        agents: List[Agent],
        equitable_percentage: Optional[float] = None,
    ) -> List[Assignment]:
        """
        Assign every account to exactly one agent.
        Returns one Assignment per agent, best rank first.
        """
        pct = self.equitable_percentage if equitable_percentage is None else equitable_percentage
        self.validate_inputs(accounts, agents, pct)

        ranked_agents = sorted(agents, key=ranking_sort_key)
        total_accounts = len(accounts)
        total_equitable = math.floor(total_accounts * pct)
        per_agent = total_equitable // len(ranked_agents)
        total_ranking = total_accounts - total_equitable

        assignments = [Assignment(agent_id=agent.id) for agent in ranked_agents]
        assigned_at = datetime.utcnow()

        equitable_end = self._distribute_equitable(
            assignments, accounts, per_agent, assigned_at
        )
        ranking_end = self._distribute_by_ranking(
            assignments, accounts, total_equitable, total_ranking, assigned_at
        )

        # Division remainder of phase 1, then whatever phase 2 rounding left over
        residual = accounts[equitable_end:total_equitable] + accounts[ranking_end:]
        self._distribute_residual(assignments, residual, assigned_at)

        logger.debug(
            "Distributed %d accounts to %d agents "
            "(equitable=%d per agent, ranking=%d, residual=%d)",
            total_accounts, len(assignments), per_agent, total_ranking, len(residual),
        )
        return assignments

    def validate_inputs(
        self, accounts: List[Account], agents: List[Agent], equitable_percentage: float
    ) -> None:
        if not accounts:
            raise ValidationError("Accounts must be a non-empty list")
        if not agents:
            raise ValidationError("Agents must be a non-empty list")
        if len(accounts) < len(agents):
            raise ValidationError(
                f"Not enough accounts to distribute: "
                f"{len(accounts)} accounts for {len(agents)} agents"
            )
        if not 0 < equitable_percentage < 1:
            raise ValidationError(
                f"Equitable percentage must be between 0 and 1, got {equitable_percentage}"
            )

    def _distribute_equitable(
        self,
        assignments: List[Assignment],
        accounts: List[Account],
        per_agent: int,
        assigned_at: datetime,
    ) -> int:
        """Phase 1. Returns the index after the last account handed out."""
        index = 0
        for assignment in assignments:
            batch = accounts[index:index + per_agent]
            self._assign(assignment, batch, assigned_at, equitable=True)
            index += per_agent
        return index

    def _distribute_by_ranking(
        self,
        assignments: List[Assignment],
        accounts: List[Account],
        start_index: int,
        total_ranking: int,
        assigned_at: datetime,
    ) -> int:
        """Phase 2. Returns the cursor position after the last share."""
        weights = linear_weights(len(assignments))
        total_weight = sum(weights)

        index = start_index
        for assignment, weight in zip(assignments, weights):
            share = round_half_up(total_ranking * (weight / total_weight))
            batch = accounts[index:index + share]
            self._assign(assignment, batch, assigned_at, equitable=False)
            index += share
        return index

    def _distribute_residual(
        self,
        assignments: List[Assignment],
        residual: List[Account],
        assigned_at: datetime,
    ) -> None:
        for i, account in enumerate(residual):
            assignment = assignments[i % len(assignments)]
            self._assign(assignment, [account], assigned_at, equitable=False)

    def _assign(
        self,
        assignment: Assignment,
        batch: List[Account],
        assigned_at: datetime,
        equitable: bool,
    ) -> None:
        for account in batch:
            account.assign_to_agent(assignment.agent_id, assigned_at)
        ids = [account.id for account in batch]
        if equitable:
            assignment.add_equitable(ids)
        else:
            assignment.add_ranking(ids)
