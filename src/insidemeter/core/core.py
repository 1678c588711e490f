from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, cast
from urllib.parse import urlparse

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from insidemeter.config import Config


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


# (attribute_name, module_path, class_name); start order. Token and access resolve
# users through the user cache, so they come after it.
SERVICE_REGISTRY = [
    ("counter", "insidemeter.core.modules.counter.service", "CounterService"),
    ("user", "insidemeter.core.modules.user.service", "UserService"),
    ("session", "insidemeter.core.modules.session.service", "SessionService"),
    ("token", "insidemeter.core.modules.token.service", "TokenService"),
    ("access", "insidemeter.core.modules.access.service", "AccessService"),
]


class Services:
    """Service registry that automatically discovers and initializes services."""

    from insidemeter.core.modules.access.service import AccessService  # noqa: PLC0415
    from insidemeter.core.modules.counter.service import CounterService  # noqa: PLC0415
    from insidemeter.core.modules.session.service import SessionService  # noqa: PLC0415
    from insidemeter.core.modules.token.service import TokenService  # noqa: PLC0415
    from insidemeter.core.modules.user.service import UserService  # noqa: PLC0415

    counter: CounterService
    user: UserService
    session: SessionService
    token: TokenService
    access: AccessService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Instantiate every service in SERVICE_REGISTRY order."""
        self._services: list[Service] = []
        self._database = database

        for attr_name, module_path, class_name in SERVICE_REGISTRY:
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
    """Container providing config, database, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]]
    database: AsyncDatabase[dict[str, Any]]
    services: Services

    def __init__(self, config: Config) -> None:
        """Initialize core with config, MongoDB, and auto-register services."""
        self.config = config
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard")
        self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
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

    async def ping(self) -> bool:
        """Check that MongoDB answers."""
        try:
            await self.database.command("ping")
        except PyMongoError:
            return False
        return True

    async def on_start(self) -> None:
        """Start all services on application startup."""
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        await self.mongo_client.aclose()
