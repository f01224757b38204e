"""Distribution — the immutable record of one allocation run."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DistributionType:
    """Type tags written by the coordinator and the rotation engine."""

    INITIAL = "initial"
    FULL_ROTATION = "full_rotation"
    PARTIAL_ROTATION = "partial_rotation"
    PERFORMANCE_ROTATION = "performance_rotation"


class DistributionParameters(BaseModel):
    """Snapshot of the strategy configuration used for a run."""

    equitable_percentage: float = Field(gt=0, lt=1, default=0.5)
    ranking_percentage: float = Field(gt=0, lt=1, default=0.5)
    weighting_system: str = "linear"


class Assignment(BaseModel):
    """What one agent received in a run, split by phase."""

    agent_id: str
    equitable_accounts: int = 0             # Phase 1
    ranking_accounts: int = 0               # Phase 2 + residual
    total_accounts: int = 0
    accounts_list: List[str] = []           # Account ids, in assignment order

    def add_equitable(self, account_ids: List[str]) -> None:
        self.equitable_accounts += len(account_ids)
        self.total_accounts += len(account_ids)
        self.accounts_list.extend(account_ids)

    def add_ranking(self, account_ids: List[str]) -> None:
        self.ranking_accounts += len(account_ids)
        self.total_accounts += len(account_ids)
        self.accounts_list.extend(account_ids)


class Distribution(BaseModel):
    """
    One allocation run. Never modified after creation; each run
    (initial or rotation) produces a new Distribution.
    """

    id: str
    distribution_date: datetime
    type: str = DistributionType.INITIAL
    assignments: List[Assignment] = []      # Ordered by agent rank
    parameters: DistributionParameters = DistributionParameters()
    rotated_accounts: Optional[int] = None  # Set by rotations only

    def get_total_accounts(self) -> int:
        return sum(a.total_accounts for a in self.assignments)

    def get_assignment_by_agent(self, agent_id: str) -> Optional[Assignment]:
        return next(
            (a for a in self.assignments if a.agent_id == agent_id), None
        )
