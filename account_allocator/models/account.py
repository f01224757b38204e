"""Account — a client account in the allocation pool."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


class Account(BaseModel):
    """
    A client account.

    assigned_agent is a weak reference (agent id), never an object.
    assignment_date is set iff assigned_agent is set.
    """

    id: str
    client_name: str
    potential_value: float = Field(ge=0, default=0.0)
    segment: str = ""
    status: AccountStatus = AccountStatus.ACTIVE
    assigned_agent: Optional[str] = None
    assignment_date: Optional[datetime] = None
    priority: str = "medium"                # "low" | "medium" | "high"

    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def assign_to_agent(self, agent_id: str, when: Optional[datetime] = None) -> None:
        """Assign to an agent. Both assignment fields are set together."""
        self.assigned_agent = agent_id
        self.assignment_date = when or datetime.utcnow()

    def unassign(self) -> None:
        """Clear the assignment. Both fields are cleared together."""
        self.assigned_agent = None
        self.assignment_date = None

    def update_status(self, new_status: str) -> None:
        """Change status. Unknown statuses are ignored."""
        try:
            self.status = AccountStatus(new_status)
        except ValueError:
            return
