from typing import Literal

from pydantic_settings import BaseSettings


class ClientConfig(BaseSettings):
    """Client runtime configuration loaded from environment variables."""

    environment: Literal["production", "staging"] = "production"
    production_base_url: str = "https://insidemeter.com"
    staging_base_url: str = "https://insidemeter-production.up.railway.app"
    token_header: str = "X-iOS-Auth-Token"
    token_max_age_hours: float = 24  # Client-side soft expiry; the server enforces its own 7 days
    target_platform: str = "ios"
    app_scheme: str = "insidemeter"
    bridge_scheme: str = "capacitor"
    device_markers: list[str] = ["iPhone", "iPad"]
    dev_hosts: list[str] = ["localhost", "replit.dev"]  # Hosts a native shell may load in debug builds
    max_loading_seconds: float = 3.0
    session_stale_seconds: float = 600  # Browser "who am I" cache lifetime
    session_retry_delay_seconds: float = 0.5
    app_version: str = "2.3.0"  # Bumping it wipes local storage on next start

    model_config = {
        "env_file": [".env"],
        "env_prefix": "INSIDEMETER_CLIENT_",
        "extra": "ignore",
    }

    @property
    def base_url(self) -> str:
        """API origin used by the native app."""
        return self.production_base_url if self.environment == "production" else self.staging_base_url
