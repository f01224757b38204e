"""
Service construction.

build_services() wires repositories, strategy and engines once; the
resulting AllocatorServices is passed to whoever needs it.
"""

from typing import Optional

from account_allocator.allocation.strategy import (
    DistributionStrategy,
    HybridDistributionStrategy,
)
from account_allocator.config import Settings
from account_allocator.coordinator.service import DistributionCoordinator
from account_allocator.models.config import AllocationConfig
from account_allocator.ranking.engine import RankingEngine
from account_allocator.repositories.base import (
    AccountRepository,
    AgentRepository,
    DistributionRepository,
)
from account_allocator.repositories.memory import (
    InMemoryAccountRepository,
    InMemoryAgentRepository,
    InMemoryDistributionRepository,
)
from account_allocator.repositories.sqlite import (
    SqliteAccountRepository,
    SqliteAgentRepository,
    SqliteDatabase,
    SqliteDistributionRepository,
)
from account_allocator.rotation.engine import RotationEngine
from account_allocator.rotation.scheduler import RotationScheduler


class AllocatorServices:
    """Everything a caller needs, built once per process."""

    def __init__(
        self,
        config: AllocationConfig,
        agent_repository: AgentRepository,
        account_repository: AccountRepository,
        distribution_repository: DistributionRepository,
        strategy: DistributionStrategy,
        ranking: RankingEngine,
        coordinator: DistributionCoordinator,
        rotation: RotationEngine,
        scheduler: RotationScheduler,
    ):
        self.config = config
        self.agent_repository = agent_repository
        self.account_repository = account_repository
        self.distribution_repository = distribution_repository
        self.strategy = strategy
        self.ranking = ranking
        self.coordinator = coordinator
        self.rotation = rotation
        self.scheduler = scheduler


def build_services(
    config: Optional[AllocationConfig] = None,
    agent_repository: Optional[AgentRepository] = None,
    account_repository: Optional[AccountRepository] = None,
    distribution_repository: Optional[DistributionRepository] = None,
    strategy: Optional[DistributionStrategy] = None,
) -> AllocatorServices:
    """Build the service graph. Missing repositories default to in-memory."""
    config = config or AllocationConfig()
    agents = agent_repository or InMemoryAgentRepository()
    accounts = account_repository or InMemoryAccountRepository()
    distributions = distribution_repository or InMemoryDistributionRepository(
        history_limit=config.history_limit
    )
    strategy = strategy or HybridDistributionStrategy(config.equitable_percentage)

    ranking = RankingEngine(agents)
    coordinator = DistributionCoordinator(
        strategy=strategy,
        ranking_engine=ranking,
        account_repository=accounts,
        agent_repository=agents,
        distribution_repository=distributions,
        config=config,
    )
    rotation = RotationEngine(
        coordinator=coordinator,
        account_repository=accounts,
        agent_repository=agents,
        config=config,
    )
    scheduler = RotationScheduler(rotation, schedule=config.rotation_schedule)

    return AllocatorServices(
        config=config,
        agent_repository=agents,
        account_repository=accounts,
        distribution_repository=distributions,
        strategy=strategy,
        ranking=ranking,
        coordinator=coordinator,
        rotation=rotation,
        scheduler=scheduler,
    )


def build_services_from_settings(settings: Settings) -> AllocatorServices:
    """Build services with the storage backend named in settings."""
    config = settings.allocation_config()
    if settings.storage_backend == "sqlite":
        db = SqliteDatabase(settings.database_path)
        return build_services(
            config=config,
            agent_repository=SqliteAgentRepository(db),
            account_repository=SqliteAccountRepository(db),
            distribution_repository=SqliteDistributionRepository(db),
        )
    return build_services(config=config)
