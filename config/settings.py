"""Global Settings - Loads configuration from environment variables.

Centralizes all configuration so the auth and account code doesn't read
env vars directly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "gcal-readonly-mcp"


@dataclass
class Settings:
    """Application-wide settings loaded from environment variables."""

    # Holds credentials.json, config.json and tokens/
    config_dir: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR)

    # OAuth loopback callback
    callback_host: str = "127.0.0.1"
    callback_port: int = 8089
    auth_timeout: float = 300.0
    shutdown_grace: float = 2.0

    log_level: str = "INFO"

    @property
    def credentials_path(self) -> Path:
        return self.config_dir / "credentials.json"

    @property
    def accounts_path(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def tokens_dir(self) -> Path:
        return self.config_dir / "tokens"


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults.

    Environment variables:
        GCAL_CONFIG_DIR: Directory for credentials, account config and tokens
        OAUTH_CALLBACK_HOST: Loopback address the callback listener binds
        OAUTH_CALLBACK_PORT: Callback port registered with Google
        OAUTH_TIMEOUT_SECONDS: Seconds to wait for an authorization code
        OAUTH_SHUTDOWN_GRACE_SECONDS: Seconds to wait for the listener to stop
        LOG_LEVEL: Logging level name

    Returns:
        A populated Settings instance.
    """
    config_dir = os.getenv("GCAL_CONFIG_DIR")

    return Settings(
        config_dir=Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR,
        callback_host=os.getenv("OAUTH_CALLBACK_HOST", "127.0.0.1"),
        callback_port=int(os.getenv("OAUTH_CALLBACK_PORT", "8089")),
        auth_timeout=float(os.getenv("OAUTH_TIMEOUT_SECONDS", "300")),
        shutdown_grace=float(os.getenv("OAUTH_SHUTDOWN_GRACE_SECONDS", "2")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
