"""
Repository protocols consumed by the allocation engine.

All methods are coroutines. Any failure surfaces as StorageError and is
propagated unchanged by the engine. Missing records are returned as None.
"""

from typing import List, Optional, Protocol

from account_allocator.models.account import Account
from account_allocator.models.agent import Agent
from account_allocator.models.distribution import Distribution


class AgentRepository(Protocol):
    """Storage for agents."""

    async def get_all(self) -> List[Agent]: ...

    async def get_by_id(self, agent_id: str) -> Optional[Agent]: ...

    async def get_active_agents(self) -> List[Agent]: ...

    async def save(self, agent: Agent) -> Agent: ...

    async def save_all(self, agents: List[Agent]) -> List[Agent]: ...

    async def delete(self, agent_id: str) -> bool: ...

    async def clear(self) -> None: ...

    async def count(self) -> int: ...


class AccountRepository(Protocol):
    """Storage for accounts."""

    async def get_all(self) -> List[Account]: ...

    async def get_by_id(self, account_id: str) -> Optional[Account]: ...

    async def get_available_accounts(self) -> List[Account]: ...

    async def get_by_agent(self, agent_id: str) -> List[Account]: ...

    async def save(self, account: Account) -> Account: ...

    async def save_all(self, accounts: List[Account]) -> List[Account]: ...

    async def delete(self, account_id: str) -> bool: ...

    async def clear(self) -> None: ...

    async def count(self) -> int: ...


class DistributionRepository(Protocol):
    """Storage for distribution runs. The latest run is the current one."""

    async def save(self, distribution: Distribution) -> Distribution: ...

    async def get_latest(self) -> Optional[Distribution]: ...

    async def get_history(self, limit: int = 10) -> List[Distribution]: ...

    async def get_by_id(self, distribution_id: str) -> Optional[Distribution]: ...

    async def clear(self) -> None: ...

    async def count(self) -> int: ...
