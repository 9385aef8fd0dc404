import asyncio


class FakeConnection:
	def __init__(self, fail_on=(), delay: float = 0.0) -> None:
		self.fail_on = set(fail_on)
		self.delay = delay
		self.executed: list[str] = []
		self.executed_after_close: list[str] = []
		self.closed = False

	async def execute(self, sql: str) -> int:
		if self.delay:
			await asyncio.sleep(self.delay)
		if self.closed:
			self.executed_after_close.append(sql)
			raise RuntimeError("connection is closed")
		if sql in self.fail_on:
			raise RuntimeError(f"relation already exists: {sql[:20]}")
		self.executed.append(sql)
		return 1

	async def close(self) -> None:
		self.closed = True


class FakePool:
	def __init__(self, conn: FakeConnection | None = None, connect_error: Exception | None = None) -> None:
		self.conn = conn or FakeConnection()
		self.connect_error = connect_error
		self.checkouts = 0
		self.disposed = False

	async def get_connection(self) -> FakeConnection:
		self.checkouts += 1
		if self.connect_error is not None:
			raise self.connect_error
		return self.conn

	async def close(self) -> None:
		self.disposed = True


class FakeListener:
	def __init__(self, app, host: str, port: int, error: Exception | None = None) -> None:
		self.app = app
		self.host = host
		self.port = port
		self.error = error
		self.started = False
		self.stopped = False

	async def start(self) -> None:
		if self.error is not None:
			raise self.error
		self.started = True

	async def stop(self) -> None:
		self.stopped = True

	async def wait_closed(self) -> None:
		return None

