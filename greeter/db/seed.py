import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

logger = logging.getLogger(__name__)

SEED_STATEMENTS: tuple[str, ...] = (
    "CREATE TABLE MOVIE (ID VARCHAR(16) PRIMARY KEY, TITLE VARCHAR(256) NOT NULL)",
    "CREATE TABLE RATING (ID BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY, value INT, MOVIE_ID VARCHAR(16))",
    "INSERT INTO MOVIE (ID, TITLE) VALUES ('starwars', 'Star Wars')",
    "INSERT INTO MOVIE (ID, TITLE) VALUES ('indianajones', 'Indiana Jones')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (1, 'starwars')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (5, 'starwars')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (9, 'starwars')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (10, 'starwars')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (4, 'indianajones')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (7, 'indianajones')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (3, 'indianajones')",
    "INSERT INTO RATING (VALUE, MOVIE_ID) VALUES (9, 'indianajones')",
)


class SeedConnection(Protocol):
    async def execute(self, sql: str) -> int: ...

    async def close(self) -> None: ...


class SeedPool(Protocol):
    async def get_connection(self) -> Any: ...


@dataclass
class StatementOutcome:
    statement: str
    row_count: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SeedReport:
    outcomes: list[StatementOutcome] = field(default_factory=list)
    # Only populated in fire-and-forget mode
    pending: list[asyncio.Task] = field(default_factory=list)

    @property
    def succeeded(self) -> list[StatementOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[StatementOutcome]:
        return [o for o in self.outcomes if not o.ok]

    async def wait(self) -> "SeedReport":
        if self.pending:
            await asyncio.gather(*self.pending, return_exceptions=True)
        return self


class SchemaSeeder:
    """Runs a fixed list of statements over a single pooled connection.

    Each statement is logged on its own; a failing statement never stops the
    ones after it. With ``wait_for_completion=False`` statements are submitted
    without being awaited and the connection is released immediately, which
    lets release race the in-flight statements. That mode exists only to
    reproduce the race in regression tests.
    """

    def __init__(self, statements: Sequence[str] = SEED_STATEMENTS, wait_for_completion: bool = True) -> None:
        self.statements = tuple(statements)
        self.wait_for_completion = wait_for_completion

    async def seed(self, pool: SeedPool) -> SeedReport:
        report = SeedReport()
        try:
            conn = await pool.get_connection()
        except Exception as e:
            logger.error("Failed to acquire seeding connection, cause = %s", e)
            for statement in self.statements:
                self._record_failure(report, statement, e)
            return report

        if not self.wait_for_completion:
            for statement in self.statements:
                task = asyncio.create_task(self._run_statement(conn, statement, report))
                report.pending.append(task)
            await conn.close()
            return report

        try:
            for statement in self.statements:
                await self._run_statement(conn, statement, report)
        finally:
            await conn.close()
        logger.info(
            "Seeding finished: %d succeeded, %d failed",
            len(report.succeeded),
            len(report.failed),
        )
        return report

    async def _run_statement(self, conn: SeedConnection, statement: str, report: SeedReport) -> None:
        try:
            row_count = await conn.execute(statement)
        except Exception as e:
            self._record_failure(report, statement, e)
            return
        logger.info("Success! SQL statement = '%s', row count = %s", statement, row_count)
        report.outcomes.append(StatementOutcome(statement=statement, row_count=row_count))

    @staticmethod
    def _record_failure(report: SeedReport, statement: str, cause: BaseException) -> None:
        logger.error("Failed to run SQL statement = '%s', cause = %s", statement, cause)
        report.outcomes.append(StatementOutcome(statement=statement, error=str(cause) or type(cause).__name__))
