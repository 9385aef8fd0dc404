import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from fastapi import FastAPI

from ..config.config import AppConfig, ConfigSource
from ..db.pool import ConnectionPool, provision_pool
from ..db.seed import SchemaSeeder, SeedReport
from ..errors import BootstrapError, ConfigError, ListenerBindError, PoolProvisionError
from .http import create_app
from .listener import DEFAULT_HOST, DEFAULT_PORT, HttpListener
from .serialization import JsonSerializer

logger = logging.getLogger(__name__)


class BootstrapState(str, Enum):
    NOT_STARTED = "not_started"
    CONFIG_LOADING = "config_loading"
    POOL_PROVISIONING = "pool_provisioning"
    SEEDING = "seeding"
    LISTENING = "listening"
    READY = "ready"
    FAILED = "failed"


_STAGE_ERRORS: dict[BootstrapState, type[BootstrapError]] = {
    BootstrapState.CONFIG_LOADING: ConfigError,
    BootstrapState.POOL_PROVISIONING: PoolProvisionError,
    BootstrapState.LISTENING: ListenerBindError,
}


class Listener(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def wait_closed(self) -> None: ...


@dataclass(frozen=True)
class ConfigLoaded:
    config: AppConfig


@dataclass(frozen=True)
class PoolReady:
    config: AppConfig
    pool: ConnectionPool


@dataclass(frozen=True)
class SeedingScheduled:
    pool: ConnectionPool
    task: "asyncio.Task[SeedReport]"


@dataclass(frozen=True)
class ListenerBound:
    listener: Listener


def _default_listener(app: FastAPI, host: str, port: int) -> Listener:
    return HttpListener(app, host=host, port=port)


class Bootstrap:
    """Startup pipeline: config, pool, seeding, then the HTTP listener.

    Stages run strictly one after another; only seeding is left running in
    the background. ``started`` is resolved exactly once, with ``None`` when
    the listener is up or with the ``BootstrapError`` that stopped startup.
    With ``hang_on_config_error`` a config failure leaves ``started``
    unresolved, which is how the service used to behave.
    """

    def __init__(
        self,
        config_source: ConfigSource | None = None,
        provisioner: Callable[..., ConnectionPool] = provision_pool,
        seeder: SchemaSeeder | None = None,
        listener_factory: Callable[[FastAPI, str, int], Listener] = _default_listener,
        serializer: JsonSerializer | None = None,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        hang_on_config_error: bool = False,
    ) -> None:
        self.config_source = config_source or ConfigSource()
        self.provisioner = provisioner
        self.seeder = seeder or SchemaSeeder()
        self.listener_factory = listener_factory
        self.serializer = serializer
        self.host = host
        self.port = port
        self.hang_on_config_error = hang_on_config_error

        self.state = BootstrapState.NOT_STARTED
        self.history: list[BootstrapState] = [self.state]
        self.config: AppConfig | None = None
        self.pool: ConnectionPool | None = None
        self.listener: Listener | None = None
        self.seeding: asyncio.Task | None = None
        self.error: BootstrapError | None = None
        self._started: asyncio.Future | None = None

    @property
    def started(self) -> asyncio.Future:
        if self._started is None:
            self._started = asyncio.get_running_loop().create_future()
        return self._started

    def _transition(self, state: BootstrapState) -> None:
        logger.debug("Bootstrap %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    async def _load_config(self) -> ConfigLoaded:
        self._transition(BootstrapState.CONFIG_LOADING)
        config = await self.config_source.load()
        logger.info("Success! config loaded, datasource = %s", config.datasource.masked())
        return ConfigLoaded(config)

    async def _provision(self, stage: ConfigLoaded) -> PoolReady:
        self._transition(BootstrapState.POOL_PROVISIONING)
        try:
            pool = self.provisioner(stage.config.datasource)
        except PoolProvisionError:
            raise
        except Exception as e:
            raise PoolProvisionError(f"Cannot create pool: {e}") from e
        return PoolReady(stage.config, pool)

    async def _schedule_seeding(self, stage: PoolReady) -> SeedingScheduled:
        self._transition(BootstrapState.SEEDING)
        task = asyncio.create_task(self.seeder.seed(stage.pool), name="schema-seeding")
        task.add_done_callback(_log_seeding_result)
        return SeedingScheduled(stage.pool, task)

    async def _listen(self, stage: SeedingScheduled) -> ListenerBound:
        self._transition(BootstrapState.LISTENING)
        app = create_app(self.serializer)
        listener = self.listener_factory(app, self.host, self.port)
        await listener.start()
        return ListenerBound(listener)

    async def start(self) -> asyncio.Future:
        """Run the pipeline once and return the startup-completion signal."""
        signal = self.started
        if self.state is not BootstrapState.NOT_STARTED:
            return signal
        try:
            loaded = await self._load_config()
            self.config = loaded.config
            ready = await self._provision(loaded)
            self.pool = ready.pool
            scheduled = await self._schedule_seeding(ready)
            self.seeding = scheduled.task
            bound = await self._listen(scheduled)
            self.listener = bound.listener
        except BootstrapError as e:
            self._fail(e)
            return signal
        except Exception as e:
            self._fail(self._stage_error(e))
            return signal
        self._transition(BootstrapState.READY)
        signal.set_result(None)
        return signal

    def _stage_error(self, cause: Exception) -> BootstrapError:
        error_cls = _STAGE_ERRORS.get(self.state, BootstrapError)
        error = error_cls(f"Unexpected error during {self.state.value}: {type(cause).__name__}: {cause}")
        error.__cause__ = cause
        return error

    def _fail(self, error: BootstrapError) -> None:
        self.error = error
        self._transition(BootstrapState.FAILED)
        if isinstance(error, ConfigError):
            logger.error("Failed to retrieve the configuration, cause = %s", error.message)
            if self.hang_on_config_error:
                logger.warning("Startup signal left unresolved after config failure")
                return
        else:
            logger.error("Startup failed in %s stage: %s", error.stage, error.message)
        self.started.set_exception(error)

    async def stop(self) -> None:
        if self.listener is not None:
            await self.listener.stop()
            self.listener = None
        if self.seeding is not None:
            await asyncio.gather(self.seeding, return_exceptions=True)
            report = self.seeding.result() if not self.seeding.cancelled() and self.seeding.exception() is None else None
            if report is not None:
                await report.wait()
            self.seeding = None
        if self.pool is not None:
            await self.pool.close()
            self.pool = None


def _log_seeding_result(task: "asyncio.Task[Any]") -> None:
    if task.cancelled():
        logger.warning("Seeding task cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Seeding task failed unexpectedly: %s", exc, exc_info=exc)
