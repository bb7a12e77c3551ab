"""
Configuration management for TacMap.

Handles:
- Listening address, TLS files and CORS
- Upstream proxy settings for the /proxy endpoint
- Hub delivery mode
- Location of the public (static + document) directory
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)

# Default paths
DEFAULT_DATA_DIR = Path.home() / ".tacmap"
DEFAULT_PUBLIC_DIR = Path.cwd() / "public"

DEFAULT_PORT = 9090
LOCAL_HOST = "127.0.0.1"
PUBLIC_HOST = "0.0.0.0"


@dataclass
class ServerConfig:
    """Configuration for the HTTP/WebSocket listener."""
    host: str = LOCAL_HOST
    port: int = DEFAULT_PORT
    public: bool = False
    publicssl: bool = False
    certfile: str = "cert.pem"
    keyfile: str = "key.pem"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def bind_host(self) -> str:
        """Public modes listen on all interfaces."""
        if self.public or self.publicssl:
            return PUBLIC_HOST
        return self.host

    @property
    def scheme(self) -> str:
        return "https" if self.publicssl else "http"

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "public": self.public,
            "publicssl": self.publicssl,
            "certfile": self.certfile,
            "keyfile": self.keyfile,
            "cors_origins": self.cors_origins,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ServerConfig":
        # Filter to only known fields to handle config evolution
        known_fields = {"host", "port", "public", "publicssl", "certfile", "keyfile", "cors_origins"}
        return cls(**{k: v for k, v in data.items() if k in known_fields})


@dataclass
class ProxyConfig:
    """Configuration for the forwarding endpoint."""
    upstream_proxy: Optional[str] = None  # e.g. http://proxy:8000
    bypass_hosts: List[str] = field(default_factory=list)
    timeout: float = 60.0

    def __post_init__(self):
        self.bypass_hosts = [h.strip().lower() for h in self.bypass_hosts if h and h.strip()]

    @staticmethod
    def parse_bypass(value: Optional[str]) -> List[str]:
        """Split a comma separated host list ("lanhost1,lanhost2")."""
        if not value:
            return []
        return [h.strip().lower() for h in value.split(",") if h.strip()]

    def proxy_for(self, host: Optional[str], port: Optional[int] = None) -> Optional[str]:
        """
        Upstream proxy to use for a target, or None to go direct.

        Bypass entries match the bare host name or ``host:port``.
        """
        if not self.upstream_proxy:
            return None
        if host:
            host = host.lower()
            if host in self.bypass_hosts or f"{host}:{port}" in self.bypass_hosts:
                return None
        return self.upstream_proxy

    def to_dict(self) -> dict:
        return {
            "upstream_proxy": self.upstream_proxy,
            "bypass_hosts": self.bypass_hosts,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProxyConfig":
        known_fields = {"upstream_proxy", "bypass_hosts", "timeout"}
        return cls(**{k: v for k, v in data.items() if k in known_fields})


@dataclass
class HubConfig:
    """Configuration for the coordination hub."""
    scoped_delivery: bool = False  # True: net notices/messages only reach net members

    def to_dict(self) -> dict:
        return {"scoped_delivery": self.scoped_delivery}

    @classmethod
    def from_dict(cls, data: dict) -> "HubConfig":
        return cls(scoped_delivery=bool(data.get("scoped_delivery", False)))


@dataclass
class Config:
    """
    Main TacMap configuration.

    Stored at ~/.tacmap/config.json. Environment variables TACMAP_PORT and
    TACMAP_PUBLIC_DIR override the stored values on load.
    """
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    public_dir: Path = field(default_factory=lambda: DEFAULT_PUBLIC_DIR)

    server: ServerConfig = field(default_factory=ServerConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    hub: HubConfig = field(default_factory=HubConfig)

    @property
    def config_path(self) -> Path:
        return self.data_dir / "config.json"

    def ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        return {
            "public_dir": str(self.public_dir),
            "server": self.server.to_dict(),
            "proxy": self.proxy.to_dict(),
            "hub": self.hub.to_dict(),
        }

    def save(self) -> None:
        """Save configuration to disk."""
        self.ensure_data_dir()

        with open(self.config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.debug(f"Configuration saved to {self.config_path}")

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from disk, then apply environment overrides."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        config_path = data_dir / "config.json"

        config = cls(data_dir=data_dir)

        if config_path.exists():
            with open(config_path, 'r') as f:
                data = json.load(f)

            if data.get("public_dir"):
                config.public_dir = Path(data["public_dir"])
            if "server" in data:
                config.server = ServerConfig.from_dict(data["server"])
            if "proxy" in data:
                config.proxy = ProxyConfig.from_dict(data["proxy"])
            if "hub" in data:
                config.hub = HubConfig.from_dict(data["hub"])

        config.apply_env()
        return config

    def apply_env(self) -> None:
        port = os.getenv("TACMAP_PORT")
        if port:
            try:
                self.server.port = int(port)
            except ValueError:
                logger.warning(f"Ignoring invalid TACMAP_PORT: {port}")

        public_dir = os.getenv("TACMAP_PUBLIC_DIR")
        if public_dir:
            self.public_dir = Path(public_dir)

    @classmethod
    def exists(cls, data_dir: Optional[Path] = None) -> bool:
        """Check if configuration exists."""
        data_dir = data_dir or DEFAULT_DATA_DIR
        return (data_dir / "config.json").exists()


# Global config instance
_config: Optional[Config] = None


def get_config(data_dir: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load(data_dir)
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
