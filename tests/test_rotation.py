"""Tests for the Rotation Engine and Rotation Scheduler."""

import asyncio
import math
from datetime import datetime

import pytest

from account_allocator.container import build_services
from account_allocator.errors import InvalidArgumentError, StorageError, ValidationError
from account_allocator.models.account import Account, AccountStatus
from account_allocator.models.agent import Agent
from account_allocator.models.distribution import DistributionType
from account_allocator.rotation.engine import (
    RotationEngine,
    calculate_rotation_rate,
    select_low_value_accounts,
)
from account_allocator.rotation.scheduler import RotationScheduler, resolve_schedule


class SpyCoordinator:
    """Captures account state at the moment re-allocation is requested."""

    def __init__(self, coordinator, account_repository):
        self.coordinator = coordinator
        self.account_repository = account_repository
        self.unassigned_before_rerun = None

    async def check_inputs(self):
        return await self.coordinator.check_inputs()

    async def execute_distribution(self, **kwargs):
        accounts = await self.account_repository.get_all()
        self.unassigned_before_rerun = [a for a in accounts if a.assigned_agent is None]
        return await self.coordinator.execute_distribution(**kwargs)


class FailingRotationEngine:
    """Raises on every rotation; sets stop_event after `attempts` calls."""

    def __init__(self, stop_event, error, attempts: int = 3):
        self.stop_event = stop_event
        self.error = error
        self.attempts = attempts
        self.calls = 0

    async def execute_rotation(self, rotation_type="partial", percentage=None):
        self.calls += 1
        if self.calls >= self.attempts:
            self.stop_event.set()
        raise self.error


def _seeded_services(agents: int = 5, accounts: int = 200):
    services = build_services()
    asyncio.run(services.agent_repository.save_all([
        Agent(id=f"agent_{i}", name=f"Agent {i}", current_ranking=i)
        for i in range(1, agents + 1)
    ]))
    # Values are shuffled so low-value accounts are spread over agents
    asyncio.run(services.account_repository.save_all([
        Account(id=f"acc_{i}", client_name=f"Client {i}",
                potential_value=float((i * 37) % accounts))
        for i in range(accounts)
    ]))
    asyncio.run(services.coordinator.execute_distribution())
    return services


def _spy_engine(services):
    spy = SpyCoordinator(services.coordinator, services.account_repository)
    engine = RotationEngine(
        coordinator=spy,
        account_repository=services.account_repository,
        agent_repository=services.agent_repository,
        config=services.config,
    )
    return engine, spy


def _accounts_per_agent(services):
    """(agent, accounts currently assigned to it) pairs."""
    return [
        (agent, asyncio.run(services.account_repository.get_by_agent(agent.id)))
        for agent in asyncio.run(services.agent_repository.get_all())
    ]


class TestHelpers:
    def test_select_low_value_accounts(self):
        accounts = [
            Account(id="a", client_name="A", potential_value=300),
            Account(id="b", client_name="B", potential_value=100),
            Account(id="c", client_name="C", potential_value=200),
            Account(id="d", client_name="D", potential_value=100),
        ]
        selected = select_low_value_accounts(accounts, 3)
        assert [a.id for a in selected] == ["b", "d", "c"]

    def test_select_nothing(self):
        accounts = [Account(id="a", client_name="A")]
        assert select_low_value_accounts(accounts, 0) == []
        assert select_low_value_accounts([], 2) == []

    @pytest.mark.parametrize("ranking,rate", [
        (1, 0.21),
        (5, 0.25),
        (10, 0.3),
        (20, 0.4),
        (35, 0.4),
        (None, 0.2),
    ])
    def test_rotation_rate(self, ranking, rate):
        agent = Agent(id="a", name="A", current_ranking=ranking)
        assert calculate_rotation_rate(agent) == pytest.approx(rate)


class TestRotationEngine:
    def test_unknown_type_touches_nothing(self):
        services = _seeded_services()
        before = asyncio.run(services.account_repository.get_all())

        with pytest.raises(InvalidArgumentError):
            asyncio.run(services.rotation.execute_rotation("random"))

        assert asyncio.run(services.account_repository.get_all()) == before
        assert asyncio.run(services.distribution_repository.count()) == 1

    @pytest.mark.parametrize("pct", [0.0, -0.5, 1.5])
    def test_percentage_out_of_range(self, pct):
        services = _seeded_services()
        with pytest.raises(InvalidArgumentError):
            asyncio.run(services.rotation.execute_rotation("partial", pct))

    def test_full_rotation(self):
        services = _seeded_services()
        engine, spy = _spy_engine(services)

        distribution = asyncio.run(engine.execute_rotation("full"))

        assert len(spy.unassigned_before_rerun) == 200
        assert distribution.type == DistributionType.FULL_ROTATION
        assert distribution.get_total_accounts() == 200
        stored = asyncio.run(services.account_repository.get_all())
        assert all(a.assigned_agent is not None for a in stored)

    def test_full_rotation_clears_inactive_accounts(self):
        services = _seeded_services()
        account = asyncio.run(services.account_repository.get_by_id("acc_0"))
        account.update_status("inactive")
        asyncio.run(services.account_repository.save(account))

        distribution = asyncio.run(services.rotation.execute_rotation("full"))

        assert distribution.get_total_accounts() == 199
        stored = asyncio.run(services.account_repository.get_by_id("acc_0"))
        assert stored.status == AccountStatus.INACTIVE
        assert stored.assigned_agent is None

    def test_partial_rotation_count(self):
        services = _seeded_services()
        owned = _accounts_per_agent(services)
        expected = sum(math.floor(len(accs) * 0.2) for _, accs in owned)
        engine, spy = _spy_engine(services)

        distribution = asyncio.run(engine.execute_rotation("partial", 0.2))

        assert len(spy.unassigned_before_rerun) == expected
        assert distribution.rotated_accounts == expected
        assert distribution.type == DistributionType.PARTIAL_ROTATION
        assert distribution.get_total_accounts() == 200

    def test_partial_rotation_frees_lowest_value_accounts(self):
        services = _seeded_services()
        owned = _accounts_per_agent(services)
        expected_ids = set()
        for _, accs in owned:
            count = math.floor(len(accs) * 0.2)
            ranked = sorted(accs, key=lambda a: a.potential_value)
            expected_ids.update(a.id for a in ranked[:count])
        engine, spy = _spy_engine(services)

        asyncio.run(engine.execute_rotation("partial", 0.2))

        assert {a.id for a in spy.unassigned_before_rerun} == expected_ids

    def test_partial_rotation_uses_configured_default(self):
        services = _seeded_services()
        owned = _accounts_per_agent(services)
        expected = sum(math.floor(len(accs) * 0.2) for _, accs in owned)

        distribution = asyncio.run(services.rotation.execute_rotation())
        assert distribution.rotated_accounts == expected

    def test_performance_rotation(self):
        services = _seeded_services()
        owned = _accounts_per_agent(services)
        expected = sum(
            math.floor(len(accs) * calculate_rotation_rate(agent))
            for agent, accs in owned
        )
        engine, spy = _spy_engine(services)

        distribution = asyncio.run(engine.execute_rotation("performance_based"))

        assert len(spy.unassigned_before_rerun) == expected
        assert distribution.rotated_accounts == expected
        assert distribution.type == DistributionType.PERFORMANCE_ROTATION
        assert distribution.get_total_accounts() == 200

    def test_rotation_produces_new_distribution(self):
        services = _seeded_services()
        first = asyncio.run(services.coordinator.get_latest_distribution())

        rotated = asyncio.run(services.rotation.execute_rotation("partial", 0.5))

        assert rotated.id != first.id
        assert asyncio.run(services.distribution_repository.count()) == 2
        assert asyncio.run(services.coordinator.get_latest_distribution()).id == rotated.id

    @pytest.mark.parametrize("rotation_type", ["full", "partial", "performance_based"])
    def test_too_few_active_accounts_touches_nothing(self, rotation_type):
        services = _seeded_services(agents=3, accounts=4)
        for account_id in ("acc_0", "acc_1"):
            account = asyncio.run(services.account_repository.get_by_id(account_id))
            account.update_status("inactive")
            asyncio.run(services.account_repository.save(account))
        before = asyncio.run(services.account_repository.get_all())
        assert all(a.assigned_agent is not None for a in before)

        with pytest.raises(ValidationError, match="Not enough accounts"):
            asyncio.run(services.rotation.execute_rotation(rotation_type, 0.5))

        assert asyncio.run(services.account_repository.get_all()) == before
        assert asyncio.run(services.distribution_repository.count()) == 1


class TestRotationScheduler:
    def setup_method(self):
        self.services = _seeded_services(agents=3, accounts=30)

    def test_presets(self):
        assert resolve_schedule("daily") == "0 0 * * *"
        assert resolve_schedule("weekly") == "0 0 * * 0"
        assert resolve_schedule("monthly") == "0 0 1 * *"
        assert resolve_schedule("30 6 * * 1") == "30 6 * * 1"

    def test_invalid_schedule(self):
        with pytest.raises(InvalidArgumentError):
            RotationScheduler(self.services.rotation, schedule="every tuesday")

    @pytest.mark.parametrize("schedule,expected", [
        ("daily", datetime(2026, 10, 22, 0, 0)),
        ("weekly", datetime(2026, 10, 25, 0, 0)),
        ("monthly", datetime(2026, 11, 1, 0, 0)),
    ])
    def test_next_run(self, schedule, expected):
        scheduler = RotationScheduler(self.services.rotation, schedule=schedule)
        # Wednesday morning
        assert scheduler.next_run(datetime(2026, 10, 21, 10, 0)) == expected

    def test_run_once(self):
        now = datetime(2026, 10, 21, 10, 0)
        scheduler = RotationScheduler(self.services.rotation, clock=lambda: now)

        distribution = asyncio.run(scheduler.run_once())

        assert distribution.type == DistributionType.PARTIAL_ROTATION
        assert scheduler.last_run_at == now
        assert scheduler.last_distribution_id == distribution.id

    def test_run_async_stops_on_event(self):
        scheduler = RotationScheduler(self.services.rotation)

        async def run():
            stop = asyncio.Event()
            stop.set()
            await scheduler.run_async(stop)

        asyncio.run(run())
        assert scheduler.status == "stopped"
        assert scheduler.last_run_at is None

    @pytest.mark.parametrize("error", [
        ValidationError("Not enough accounts to distribute"),
        StorageError("database is locked"),
    ])
    def test_failed_rotation_keeps_loop_alive(self, error):
        def clock():
            # 1ms before the next minute boundary
            return datetime(2026, 10, 21, 10, 0, 59, 999000)

        async def run():
            stop = asyncio.Event()
            engine = FailingRotationEngine(stop, error)
            scheduler = RotationScheduler(engine, schedule="* * * * *", clock=clock)
            await asyncio.wait_for(scheduler.run_async(stop), timeout=5)
            return engine, scheduler

        engine, scheduler = asyncio.run(run())
        assert engine.calls == 3
        assert scheduler.status == "stopped"
        assert scheduler.last_error == str(error)
        assert scheduler.last_run_at is None

    def test_start_and_stop(self):
        async def run():
            scheduler = RotationScheduler(self.services.rotation)
            task = scheduler.start()
            assert scheduler.start() is task
            assert scheduler.status == "running"
            await scheduler.stop()
            return scheduler, task

        scheduler, task = asyncio.run(run())
        assert task.done()
        assert scheduler.status == "stopped"
        assert scheduler.last_run_at is None
