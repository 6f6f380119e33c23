"""
Configuration module for the Harvester provider.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ClusterConfig:
    """Cluster API connection configuration."""

    api_url: str = "https://localhost:6443"
    token: str = field(default="", repr=False)  # Never log token
    verify_ssl: bool = True
    request_timeout: int = 30  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        api_url = os.getenv("HARVESTER_API_URL", "")
        if not api_url:
            raise ValueError(
                "HARVESTER_API_URL environment variable must be set. "
                "The provider needs the cluster API address."
            )

        return cls(
            api_url=api_url,
            token=os.getenv("HARVESTER_TOKEN", ""),
            verify_ssl=os.getenv("HARVESTER_INSECURE", "false").lower() != "true",
            request_timeout=int(os.getenv("HARVESTER_REQUEST_TIMEOUT", "30")),
        )


@dataclass
class TimeoutConfig:
    """Per-operation timeouts, in seconds."""

    create: int = 120
    read: int = 120
    update: int = 120
    delete: int = 120

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            create=int(os.getenv("HARVESTER_CREATE_TIMEOUT", "120")),
            read=int(os.getenv("HARVESTER_READ_TIMEOUT", "120")),
            update=int(os.getenv("HARVESTER_UPDATE_TIMEOUT", "120")),
            delete=int(os.getenv("HARVESTER_DELETE_TIMEOUT", "120")),
        )


@dataclass
class WaitConfig:
    """Polling configuration for waits on remote state."""

    poll_interval: float = 3.0  # seconds between polls

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            poll_interval=float(os.getenv("HARVESTER_POLL_INTERVAL", "3")),
        )


@dataclass
class KindConfig:
    """Resource kind configuration."""

    # List of enabled kind names (empty = all registered kinds)
    enabled_kinds: List[str] = field(default_factory=list)
    default_namespace: str = "default"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        enabled_str = os.getenv("ENABLED_KINDS", "")
        enabled = (
            [k.strip() for k in enabled_str.split(",") if k.strip()]
            if enabled_str
            else []
        )
        return cls(
            enabled_kinds=enabled,
            default_namespace=os.getenv("DEFAULT_NAMESPACE", "default"),
        )

    def is_enabled(self, kind_name: str) -> bool:
        """Check whether a kind may be used."""
        return not self.enabled_kinds or kind_name in self.enabled_kinds


@dataclass
class Config:
    """Main configuration object."""

    cluster: ClusterConfig
    timeouts: TimeoutConfig
    wait: WaitConfig
    kinds: KindConfig
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            cluster=ClusterConfig.from_env(),
            timeouts=TimeoutConfig.from_env(),
            wait=WaitConfig.from_env(),
            kinds=KindConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            cluster=ClusterConfig(),
            timeouts=TimeoutConfig(),
            wait=WaitConfig(),
            kinds=KindConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
