from collections.abc import Callable
from pathlib import Path

import httpx
import structlog

from insidemeter.client.auth_state import BearerTokenBackend, CookieSessionBackend, IdentityResolver
from insidemeter.client.config import ClientConfig
from insidemeter.client.consent import ConsentManager
from insidemeter.client.deeplink import DeepLinkHandler
from insidemeter.client.dispatcher import RequestDispatcher
from insidemeter.client.guest import GuestSessionManager
from insidemeter.client.platform import EnvironmentSnapshot, PlatformDetector
from insidemeter.client.storage import JsonFileStore, KeyValueStore, MemoryStore, ensure_storage_version
from insidemeter.client.token_store import TokenStore

logger = structlog.get_logger(__name__)

PREFERENCES_FILE = "preferences.json"
LOCAL_STORAGE_FILE = "local_storage.json"


class ClientRuntime:
    """Wires the client components together, one instance per running app."""

    def __init__(
        self,
        config: ClientConfig,
        snapshot_provider: Callable[[], EnvironmentSnapshot],
        http_client: httpx.AsyncClient,
        navigate: Callable[[str], None],
        storage_dir: Path | None = None,
    ) -> None:
        self.config = config
        self.http_client = http_client

        self.preferences: KeyValueStore
        self.local_storage: KeyValueStore
        if storage_dir is None:
            self.preferences = MemoryStore()
            self.local_storage = MemoryStore()
        else:
            self.preferences = JsonFileStore(storage_dir / PREFERENCES_FILE)
            self.local_storage = JsonFileStore(storage_dir / LOCAL_STORAGE_FILE)

        self.token_store = TokenStore(self.preferences, self.local_storage)
        self.detector = PlatformDetector(snapshot_provider, config)
        self.dispatcher = RequestDispatcher(http_client, self.detector, self.token_store, config)
        self.resolver = IdentityResolver(
            self.detector,
            BearerTokenBackend(self.dispatcher, self.token_store, config),
            CookieSessionBackend(self.dispatcher, self.local_storage, config),
            navigate,
            config,
        )
        self.guest = GuestSessionManager(self.local_storage)
        self.consent = ConsentManager(self.local_storage)
        self.deep_links = DeepLinkHandler(config, self.token_store, self.resolver)

    async def start(self) -> None:
        """Reset stale local storage, then resolve identity."""
        if ensure_storage_version(self.local_storage, self.config.app_version):
            # Consent was loaded before the wipe
            self.consent = ConsentManager(self.local_storage)
        state = await self.resolver.initialize()
        logger.info("client_started", native=self.resolver.is_native, phase=state.phase)

    async def aclose(self) -> None:
        await self.http_client.aclose()
