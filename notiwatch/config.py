"""Configuration management for notiwatch."""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "notiwatch" / "config.toml"


@dataclass
class DatabaseConfig:
    """Notification database location and read window."""

    path: Optional[Path] = None  # Auto-detected when unset
    scratch_dir: Optional[Path] = None  # System temp directory when unset
    lookback_seconds: int = 300


@dataclass
class StoreConfig:
    """Notification store configuration."""

    max_entries: int = 20


@dataclass
class UIConfig:
    """Presentation configuration."""

    auto_expand: bool = False
    dry_run: bool = False


@dataclass
class EnrichmentConfig:
    """Avatar and icon lookups."""

    enabled: bool = True
    max_workers: int = 4
    discord_token_env: str = "DISCORD_TOKEN"


@dataclass
class Config:
    """Main configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    log_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary."""
        db = dict(data.get("database", {}))
        for key in ("path", "scratch_dir"):
            if db.get(key):
                db[key] = Path(db[key]).expanduser()
        return cls(
            database=DatabaseConfig(**db),
            store=StoreConfig(**data.get("store", {})),
            ui=UIConfig(**data.get("ui", {})),
            enrichment=EnrichmentConfig(**data.get("enrichment", {})),
            log_file=Path(data["log_file"]) if data.get("log_file") else None,
        )


def load_config(path: Path) -> Config:
    """
    Load configuration from TOML file.

    Args:
        path: Path to config file.

    Returns:
        Config object (defaults if file doesn't exist).
    """
    if not path.exists():
        return Config()

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return Config.from_dict(data)


def get_default_config_toml() -> str:
    """Return default configuration as TOML string."""
    return '''# notiwatch configuration

[database]
# path = "~/Library/Group Containers/group.com.apple.usernoted/db2/db"
# scratch_dir = "/tmp"
lookback_seconds = 300    # How far back to read on startup

[store]
max_entries = 20

[ui]
auto_expand = false
dry_run = false

[enrichment]
enabled = true
max_workers = 4
discord_token_env = "DISCORD_TOKEN"   # Set in the environment or a .env file

# Uncomment to enable file logging
# log_file = "~/.local/share/notiwatch/notiwatch.log"
'''
