"""Native-app vs. browser classification.

No single signal holds across every build and debug setup, so several are
checked and any one of them is enough:

(a) the native bridge reports the target platform;
(b) the page was loaded from the app's custom URL scheme (or the bridge's);
(c) a device user agent, and the native bridge is present;
(d) a device user agent, and the page comes from a development host (a native
    shell pointed at a remote debug URL over HTTPS).
"""

from collections.abc import Callable
from urllib.parse import urlsplit

import structlog
from pydantic import BaseModel, ConfigDict

from insidemeter.client.config import ClientConfig

logger = structlog.get_logger(__name__)


class EnvironmentSnapshot(BaseModel):
    """What the host environment looks like at one moment."""

    bridge_platform: str | None = None  # Platform tag reported by the native bridge ("ios", "web", ...)
    is_native_platform: bool = False  # Bridge says it runs natively
    has_bridge_plugins: bool = False  # Bridge plugin registry is present
    url: str = ""
    user_agent: str = ""

    model_config = ConfigDict(frozen=True)


def has_device_marker(user_agent: str, config: ClientConfig) -> bool:
    return any(marker in user_agent for marker in config.device_markers)


def is_dev_host(host: str, dev_hosts: list[str]) -> bool:
    return any(host == dev or host.endswith(f".{dev}") for dev in dev_hosts)


def is_native_app(env: EnvironmentSnapshot, config: ClientConfig) -> bool:
    """Classify the environment. Never raises."""
    try:
        if env.bridge_platform == config.target_platform:
            return True

        parts = urlsplit(env.url)
        if parts.scheme in (config.app_scheme, config.bridge_scheme):
            return True

        device = has_device_marker(env.user_agent, config)
        if device and (env.is_native_platform or env.has_bridge_plugins):
            return True

        return device and is_dev_host(parts.hostname or "", config.dev_hosts)
    except Exception:
        logger.warning("platform_detection_failed", exc_info=True)
        return has_device_marker(env.user_agent, config)


class PlatformDetector:
    """Re-reads the environment on every call; nothing is memoized.

    The environment can change mid-session (deep-link transitions), so a
    cached answer could go stale.
    """

    def __init__(self, snapshot_provider: Callable[[], EnvironmentSnapshot], config: ClientConfig) -> None:
        self._snapshot_provider = snapshot_provider
        self._config = config

    def is_native_app(self) -> bool:
        try:
            env = self._snapshot_provider()
        except Exception:
            logger.warning("environment_snapshot_failed", exc_info=True)
            return False
        return is_native_app(env, self._config)
