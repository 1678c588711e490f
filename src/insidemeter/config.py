from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str
    port: int
    debug: bool
    session_secret_key: str  # HMAC key for iOS bearer tokens
    cors_origins: list[str] = []
    token_max_age_days: int = 7  # Absolute lifetime of an iOS bearer token
    session_max_age_days: int = 30  # Lifetime of a web session (cookie and TTL index)
    secure_cookies: bool = False  # Set to True in production with HTTPS
    forwarded_allow_ips: str = "127.0.0.1"  # Proxies trusted for X-Forwarded-* headers

    model_config = {
        "env_file": [".env"],
        "env_prefix": "INSIDEMETER_",
        "extra": "ignore",
    }
