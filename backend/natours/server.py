"""
Natours Backend — Process Supervisor
=====================================

What:  Owns the process lifecycle: configuration, the Database, the uvicorn
       Server, and the three ways the process ends.
How:   `Supervisor` is constructed once with explicit Settings; it builds the
       Database and the app, binds the socket through uvicorn, and connects
       the database in the background. It replaces uvicorn's own signal
       handling with loop-level handlers so the shutdown sequence and exit
       status are decided here.
Who:   `natours` console script (main()) and the supervisor tests.

Termination paths:
    1. Uncaught error during startup (bad configuration, app assembly)
         → "UNCAUGHT EXCEPTION! 💥 Shutting down..."           exit 1, no drain
    2. Unhandled asynchronous failure (failed database connection, any
       exception reaching the event loop's exception handler)
         → "UNHANDLED REJECTION! 💥 Shutting down..."          drain, exit 1
    3. SIGTERM / SIGINT
         → "👋 SIGTERM RECEIVED. Shutting down gracefully"
           drain in-flight requests
         → "💥 Process terminated!"                            exit 128 + signum

Draining is uvicorn's graceful shutdown: stop accepting, let open requests
finish, then run the lifespan shutdown. The database is disposed last.
"""

import asyncio
import contextlib
import logging
import signal
import sys
from typing import Any, Dict, Generator, Optional, Set

import uvicorn
from fastapi import FastAPI

from natours.config import Settings
from natours.database import Database
from natours.main import create_app, setup_logging

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class NatoursServer(uvicorn.Server):
    """A uvicorn Server that leaves signal handling to the Supervisor."""

    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield


class Supervisor:
    """
    One running Natours process.

    Args:
        settings:  validated configuration
        database:  injected Database (tests use SQLite); built from settings
                   otherwise
        app:       injected application; built with create_app otherwise
    """

    def __init__(
        self,
        settings: Settings,
        database: Optional[Database] = None,
        app: Optional[FastAPI] = None,
        graceful_timeout: Optional[int] = 30,
    ):
        self.settings = settings
        self.database = database or Database.from_settings(settings)
        self.app = app or create_app(settings, self.database)
        self.config = uvicorn.Config(
            self.app,
            host=settings.host,
            port=settings.port,
            log_config=None,
            access_log=False,
            lifespan="on",
            timeout_graceful_shutdown=graceful_timeout,
        )
        self.server = NatoursServer(self.config)
        self.exit_code = 0
        self.received_signal: Optional[int] = None
        self.failure: Optional[BaseException] = None
        self.signals_installed = False
        self._tasks: Set[asyncio.Task] = set()

    # ── Introspection ─────────────────────────────────────────────────────
    @property
    def started(self) -> bool:
        return self.server.started

    @property
    def bound_port(self) -> Optional[int]:
        """The port actually bound (useful when PORT=0)."""
        for server in getattr(self.server, "servers", []):
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None

    # ── Running ───────────────────────────────────────────────────────────
    async def serve(self) -> int:
        """Serve until a termination path fires; return the exit status."""
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_exception_handler)
        self._install_signal_handlers(loop)

        self.spawn(self._connect_database(), name="natours-db-connect")

        try:
            await self.server.serve()
        finally:
            # uvicorn skips its shutdown when exit is requested mid-startup
            for listener in getattr(self.server, "servers", []):
                listener.close()
            self._remove_signal_handlers(loop)
            for task in list(self._tasks):
                task.cancel()
            await self.database.dispose()
            loop.set_exception_handler(previous_handler)

        if self.received_signal is not None:
            logger.info("💥 Process terminated!")
        return self.exit_code

    def spawn(self, coro, name: Optional[str] = None) -> asyncio.Task:
        """Run a background coroutine whose failure takes the process down."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def _connect_database(self) -> None:
        await self.database.connect(
            attempts=self.settings.db_connect_attempts,
            min_wait=self.settings.db_connect_min_wait,
            max_wait=self.settings.db_connect_max_wait,
            create_tables=self.settings.db_create_tables,
        )

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.handle_unhandled_failure(exc)

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is None:
            # Diagnostics without an exception (e.g. slow callbacks) are not failures
            loop.default_exception_handler(context)
            return
        self.handle_unhandled_failure(exc)

    # ── Termination paths ─────────────────────────────────────────────────
    def handle_unhandled_failure(self, exc: BaseException) -> None:
        if self.failure is not None:
            return
        self.failure = exc
        logger.critical("UNHANDLED REJECTION! 💥 Shutting down...")
        logger.critical("%s: %s", type(exc).__name__, exc, exc_info=(type(exc), exc, exc.__traceback__))
        self.exit_code = 1
        self.server.should_exit = True

    def handle_signal(self, signum: int) -> None:
        if self.received_signal is not None:
            # Second signal: stop waiting for in-flight requests
            self.server.force_exit = True
            return
        self.received_signal = signum
        logger.info("👋 %s RECEIVED. Shutting down gracefully", signal.Signals(signum).name)
        if self.failure is None:
            self.exit_code = 128 + signum
        self.server.should_exit = True

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for signum in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(signum, self.handle_signal, signum)
                self.signals_installed = True
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or a loop without signal support
                logger.debug("Cannot install handler for %s", signal.Signals(signum).name)

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for signum in SHUTDOWN_SIGNALS:
            try:
                loop.remove_signal_handler(signum)
            except (NotImplementedError, RuntimeError):
                pass


def crash(exc: BaseException) -> int:
    """The startup-crash path: report and exit without draining."""
    logger.critical("UNCAUGHT EXCEPTION! 💥 Shutting down...")
    logger.critical("%s: %s", type(exc).__name__, exc, exc_info=(type(exc), exc, exc.__traceback__))
    return 1


def run(settings: Optional[Settings] = None) -> int:
    """Build a Supervisor and serve; every path returns the exit status."""
    try:
        settings = settings or Settings()
        setup_logging(settings)
        settings.validate_required_for_production()
        supervisor = Supervisor(settings)
    except Exception as exc:
        if not logging.getLogger().handlers:
            logging.basicConfig(level=logging.INFO, stream=sys.stdout)
        return crash(exc)

    try:
        return asyncio.run(supervisor.serve())
    except Exception as exc:
        return crash(exc)


def main() -> None:
    """Console entry point: `natours`."""
    sys.exit(run())


if __name__ == "__main__":
    main()
