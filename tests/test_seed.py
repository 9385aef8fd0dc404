import asyncio
import logging

from fakes import FakeConnection, FakePool
from greeter.db.seed import SEED_STATEMENTS, SchemaSeeder


def test_seed_statements_are_fixed_and_ordered():
	assert len(SEED_STATEMENTS) == 12
	assert SEED_STATEMENTS[0].startswith("CREATE TABLE MOVIE")
	assert SEED_STATEMENTS[1].startswith("CREATE TABLE RATING")
	assert all(s.startswith("INSERT INTO MOVIE") for s in SEED_STATEMENTS[2:4])
	assert all(s.startswith("INSERT INTO RATING") for s in SEED_STATEMENTS[4:])


def test_seed_runs_all_statements_in_order_on_one_connection():
	pool = FakePool()
	report = asyncio.run(SchemaSeeder().seed(pool))
	assert pool.checkouts == 1
	assert pool.conn.executed == list(SEED_STATEMENTS)
	assert [o.statement for o in report.outcomes] == list(SEED_STATEMENTS)
	assert all(o.row_count == 1 for o in report.outcomes)
	assert pool.conn.closed
	assert not report.pending


def test_failed_statement_does_not_stop_the_rest(caplog):
	failing = SEED_STATEMENTS[0]
	pool = FakePool(FakeConnection(fail_on=[failing]))
	with caplog.at_level(logging.INFO, logger="greeter.db.seed"):
		report = asyncio.run(SchemaSeeder().seed(pool))
	assert len(report.outcomes) == 12
	assert [o.statement for o in report.failed] == [failing]
	assert len(report.succeeded) == 11
	assert "relation already exists" in report.failed[0].error
	assert any("Failed to run SQL statement" in r.message for r in caplog.records)
	assert sum("Success! SQL statement" in r.message for r in caplog.records) == 11


def test_connection_released_only_after_statements_finish():
	conn = FakeConnection(delay=0.001)
	report = asyncio.run(SchemaSeeder().seed(FakePool(conn)))
	assert conn.executed_after_close == []
	assert all(o.ok for o in report.outcomes)


def test_unreachable_database_logs_failure_per_statement(caplog):
	pool = FakePool(connect_error=ConnectionRefusedError("connection refused"))
	with caplog.at_level(logging.ERROR, logger="greeter.db.seed"):
		report = asyncio.run(SchemaSeeder().seed(pool))
	assert len(report.failed) == 12
	assert all("connection refused" in o.error for o in report.failed)
	assert sum("Failed to run SQL statement" in r.message for r in caplog.records) == 12


def test_unsafe_mode_releases_connection_before_statements_complete():
	conn = FakeConnection(delay=0.001)
	seeder = SchemaSeeder(wait_for_completion=False)

	async def scenario():
		report = await seeder.seed(FakePool(conn))
		# Connection is already back before any statement finished
		assert conn.closed
		assert report.outcomes == []
		assert len(report.pending) == 12
		return await report.wait()

	report = asyncio.run(scenario())
	assert len(report.outcomes) == 12
	assert len(report.failed) == 12
	assert sorted(conn.executed_after_close) == sorted(SEED_STATEMENTS)


def test_custom_statements():
	pool = FakePool()
	report = asyncio.run(SchemaSeeder(["SELECT 1", "SELECT 2"]).seed(pool))
	assert pool.conn.executed == ["SELECT 1", "SELECT 2"]
	assert len(report.succeeded) == 2
