"""
In-memory repositories.

Records are copied on the way in and on the way out, so a caller mutating
an Agent or Account never changes stored state until it saves it back.
"""

from typing import Dict, List, Optional

from account_allocator.models.account import Account
from account_allocator.models.agent import Agent
from account_allocator.models.distribution import Distribution


class InMemoryAgentRepository:
    """Dict-backed agent store."""

    def __init__(self):
        self._agents: Dict[str, Agent] = {}

    async def get_all(self) -> List[Agent]:
        return [a.model_copy(deep=True) for a in self._agents.values()]

    async def get_by_id(self, agent_id: str) -> Optional[Agent]:
        agent = self._agents.get(agent_id)
        return agent.model_copy(deep=True) if agent else None

    async def get_active_agents(self) -> List[Agent]:
        return [
            a.model_copy(deep=True) for a in self._agents.values()
            if a.is_active()
        ]

    async def save(self, agent: Agent) -> Agent:
        self._agents[agent.id] = agent.model_copy(deep=True)
        return agent

    async def save_all(self, agents: List[Agent]) -> List[Agent]:
        for agent in agents:
            self._agents[agent.id] = agent.model_copy(deep=True)
        return agents

    async def delete(self, agent_id: str) -> bool:
        return self._agents.pop(agent_id, None) is not None

    async def clear(self) -> None:
        self._agents.clear()

    async def count(self) -> int:
        return len(self._agents)


class InMemoryAccountRepository:
    """Dict-backed account store. Iteration follows insertion order."""

    def __init__(self):
        self._accounts: Dict[str, Account] = {}

    async def get_all(self) -> List[Account]:
        return [a.model_copy(deep=True) for a in self._accounts.values()]

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return account.model_copy(deep=True) if account else None

    async def get_available_accounts(self) -> List[Account]:
        return [
            a.model_copy(deep=True) for a in self._accounts.values()
            if a.is_active()
        ]

    async def get_by_agent(self, agent_id: str) -> List[Account]:
        return [
            a.model_copy(deep=True) for a in self._accounts.values()
            if a.assigned_agent == agent_id
        ]

    async def save(self, account: Account) -> Account:
        self._accounts[account.id] = account.model_copy(deep=True)
        return account

    async def save_all(self, accounts: List[Account]) -> List[Account]:
        for account in accounts:
            self._accounts[account.id] = account.model_copy(deep=True)
        return accounts

    async def delete(self, account_id: str) -> bool:
        return self._accounts.pop(account_id, None) is not None

    async def clear(self) -> None:
        self._accounts.clear()

    async def count(self) -> int:
        return len(self._accounts)


class InMemoryDistributionRepository:
    """Keeps every run by id plus a newest-first history capped at history_limit."""

    def __init__(self, history_limit: int = 100):
        self.history_limit = history_limit
        self._distributions: Dict[str, Distribution] = {}
        self._history: List[Distribution] = []

    async def save(self, distribution: Distribution) -> Distribution:
        stored = distribution.model_copy(deep=True)
        self._distributions[stored.id] = stored
        self._history.insert(0, stored)
        self._history.sort(key=lambda d: d.distribution_date, reverse=True)
        del self._history[self.history_limit:]
        return distribution

    async def get_latest(self) -> Optional[Distribution]:
        if not self._history:
            return None
        return self._history[0].model_copy(deep=True)

    async def get_history(self, limit: int = 10) -> List[Distribution]:
        return [d.model_copy(deep=True) for d in self._history[:limit]]

    async def get_by_id(self, distribution_id: str) -> Optional[Distribution]:
        distribution = self._distributions.get(distribution_id)
        return distribution.model_copy(deep=True) if distribution else None

    async def clear(self) -> None:
        self._distributions.clear()
        self._history = []

    async def count(self) -> int:
        return len(self._distributions)
