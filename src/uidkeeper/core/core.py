from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from uidkeeper.config import Config

logger = structlog.get_logger(__name__)


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from uidkeeper.core.modules.access.service import AccessService  # noqa: PLC0415
    from uidkeeper.core.modules.bot.service import BotService  # noqa: PLC0415
    from uidkeeper.core.modules.cleanup.service import CleanupService  # noqa: PLC0415
    from uidkeeper.core.modules.session.service import SessionService  # noqa: PLC0415
    from uidkeeper.core.modules.uid.service import UidService  # noqa: PLC0415
    from uidkeeper.core.modules.user.service import UserService  # noqa: PLC0415

    user: UserService
    session: SessionService
    access: AccessService
    uid: UidService
    cleanup: CleanupService
    bot: BotService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters: bots start last and stop first, after the ledger is ready
        service_configs = [
            ("user", "uidkeeper.core.modules.user.service", "UserService"),
            ("session", "uidkeeper.core.modules.session.service", "SessionService"),
            ("access", "uidkeeper.core.modules.access.service", "AccessService"),
            ("uid", "uidkeeper.core.modules.uid.service", "UidService"),
            ("cleanup", "uidkeeper.core.modules.cleanup.service", "CleanupService"),
            ("bot", "uidkeeper.core.modules.bot.service", "BotService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services in registration order."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services in reverse registration order."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, database, and all service instances.

    A database may be passed in directly, in which case no MongoDB client is
    created and the caller owns the connection.
    """

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    database: AsyncDatabase[dict[str, Any]]
    services: Services

    def __init__(self, config: Config, database: AsyncDatabase[dict[str, Any]] | None = None) -> None:
        """Initialize core with config, MongoDB, and auto-register services."""
        self.config = config
        self.mongo_client = None
        if database is None:
            self.mongo_client = AsyncMongoClient(
                config.database_url,
                uuidRepresentation="standard",
                serverSelectionTimeoutMS=config.store_timeout_ms,
                timeoutMS=config.store_timeout_ms,
            )
            database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        self.database = database
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Verify the store is reachable, then start all services.

        A store that cannot be reached is fatal: the exception propagates and
        the server refuses to start.
        """
        if self.mongo_client is not None:
            await self.mongo_client.admin.command("ping")
            logger.info("mongodb_connected", database=self.database.name)
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
