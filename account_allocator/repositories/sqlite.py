"""
SQLite repositories.

Each record is stored as its full JSON document plus the columns the
queries filter on. Upserts keep the original rowid, so listing order is
insertion order, the same as the in-memory adapter.

Any sqlite3 failure is re-raised as StorageError.
"""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional

from account_allocator.errors import StorageError
from account_allocator.models.account import Account, AccountStatus
from account_allocator.models.agent import Agent
from account_allocator.models.distribution import Distribution

logger = logging.getLogger(__name__)


class SqliteDatabase:
    """
    Shared connection and schema for the three repositories.
    Use ":memory:" for an ephemeral database.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agents (
                    id TEXT PRIMARY KEY,
                    active INTEGER NOT NULL DEFAULT 1,
                    record_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    assigned_agent TEXT,
                    record_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_accounts_assigned_agent
                ON accounts(assigned_agent)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS distributions (
                    id TEXT PRIMARY KEY,
                    distribution_date TEXT NOT NULL,
                    record_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_distributions_date
                ON distributions(distribution_date)
            """)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements in one transaction; wrap driver errors."""
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as e:
            logger.error("SQLite operation failed on %s: %s", self.db_path, e)
            raise StorageError(str(e)) from e

    def fetchall(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("SQLite query failed on %s: %s", self.db_path, e)
            raise StorageError(str(e)) from e

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        rows = self.fetchall(sql, params)
        return rows[0] if rows else None

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


class SqliteAgentRepository:

    def __init__(self, db: SqliteDatabase):
        self.db = db

    def _rows(self, sql: str, params: tuple = ()) -> List[Agent]:
        return [
            Agent.model_validate_json(r["record_json"])
            for r in self.db.fetchall(sql, params)
        ]

    async def get_all(self) -> List[Agent]:
        return self._rows("SELECT record_json FROM agents ORDER BY rowid")

    async def get_by_id(self, agent_id: str) -> Optional[Agent]:
        row = self.db.fetchone(
            "SELECT record_json FROM agents WHERE id = ?", (agent_id,)
        )
        return Agent.model_validate_json(row["record_json"]) if row else None

    async def get_active_agents(self) -> List[Agent]:
        return self._rows(
            "SELECT record_json FROM agents WHERE active = 1 ORDER BY rowid"
        )

    async def save(self, agent: Agent) -> Agent:
        await self.save_all([agent])
        return agent

    async def save_all(self, agents: List[Agent]) -> List[Agent]:
        with self.db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO agents (id, active, record_json) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    active = excluded.active,
                    record_json = excluded.record_json
                """,
                [(a.id, int(a.is_active()), a.model_dump_json()) for a in agents],
            )
        return agents

    async def delete(self, agent_id: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
        return cursor.rowcount > 0

    async def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM agents")

    async def count(self) -> int:
        return self.db.fetchone("SELECT COUNT(*) AS cnt FROM agents")["cnt"]


class SqliteAccountRepository:

    def __init__(self, db: SqliteDatabase):
        self.db = db

    def _rows(self, sql: str, params: tuple = ()) -> List[Account]:
        return [
            Account.model_validate_json(r["record_json"])
            for r in self.db.fetchall(sql, params)
        ]

    async def get_all(self) -> List[Account]:
        return self._rows("SELECT record_json FROM accounts ORDER BY rowid")

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        row = self.db.fetchone(
            "SELECT record_json FROM accounts WHERE id = ?", (account_id,)
        )
        return Account.model_validate_json(row["record_json"]) if row else None

    async def get_available_accounts(self) -> List[Account]:
        return self._rows(
            "SELECT record_json FROM accounts WHERE status = ? ORDER BY rowid",
            (AccountStatus.ACTIVE.value,),
        )

    async def get_by_agent(self, agent_id: str) -> List[Account]:
        return self._rows(
            "SELECT record_json FROM accounts WHERE assigned_agent = ? ORDER BY rowid",
            (agent_id,),
        )

    async def save(self, account: Account) -> Account:
        await self.save_all([account])
        return account

    async def save_all(self, accounts: List[Account]) -> List[Account]:
        with self.db.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO accounts (id, status, assigned_agent, record_json)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    assigned_agent = excluded.assigned_agent,
                    record_json = excluded.record_json
                """,
                [
                    (a.id, a.status.value, a.assigned_agent, a.model_dump_json())
                    for a in accounts
                ],
            )
        return accounts

    async def delete(self, account_id: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
        return cursor.rowcount > 0

    async def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM accounts")

    async def count(self) -> int:
        return self.db.fetchone("SELECT COUNT(*) AS cnt FROM accounts")["cnt"]


class SqliteDistributionRepository:
    """Distributions ordered by distribution_date, newest first."""

    def __init__(self, db: SqliteDatabase):
        self.db = db

    async def save(self, distribution: Distribution) -> Distribution:
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO distributions (id, distribution_date, record_json) "
                "VALUES (?, ?, ?)",
                (
                    distribution.id,
                    distribution.distribution_date.isoformat(),
                    distribution.model_dump_json(),
                ),
            )
        return distribution

    async def get_latest(self) -> Optional[Distribution]:
        history = await self.get_history(limit=1)
        return history[0] if history else None

    async def get_history(self, limit: int = 10) -> List[Distribution]:
        rows = self.db.fetchall(
            "SELECT record_json FROM distributions "
            "ORDER BY distribution_date DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        return [Distribution.model_validate_json(r["record_json"]) for r in rows]

    async def get_by_id(self, distribution_id: str) -> Optional[Distribution]:
        row = self.db.fetchone(
            "SELECT record_json FROM distributions WHERE id = ?",
            (distribution_id,),
        )
        return Distribution.model_validate_json(row["record_json"]) if row else None

    async def clear(self) -> None:
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM distributions")

    async def count(self) -> int:
        return self.db.fetchone("SELECT COUNT(*) AS cnt FROM distributions")["cnt"]
