"""
Ledger configuration - centralized configuration management.

Provides:
1. Hierarchical configuration with defaults
2. Environment variable overrides (CARGOCOIN_* prefix)
3. Config file loading (JSON/TOML/YAML)
4. Validation on startup

Configuration Hierarchy (highest to lowest priority):
1. Environment variables
2. Config file
3. Default values

Example:
    config = LedgerConfig.load("ledger.yaml")
    print(config.token.max_supply)

    # Override with environment
    # CARGOCOIN_PAUSE_STRICT=true
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

import yaml

from ..logging import LoggingOptions
from .logic import DECIMALS, MAX_SUPPLY

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Configuration Sections
# =============================================================================

@dataclass
class TokenConfig:
    """Token metadata and supply cap, fixed at initialization."""
    name: str = "CargoCoin"
    symbol: str = "CC"
    decimals: int = DECIMALS
    max_supply: int = MAX_SUPPLY

    def __post_init__(self):
        if not self.name:
            raise ValueError("token name must be non-empty")
        if not self.symbol:
            raise ValueError("token symbol must be non-empty")
        if not (0 <= self.decimals <= 36):
            raise ValueError("decimals must be in [0, 36]")
        if self.max_supply <= 0:
            raise ValueError("max_supply must be positive")


@dataclass
class BurnConfig:
    """Auto-burn switch for a fresh ledger. The fee itself is fixed at 2%."""
    enabled_by_default: bool = True


@dataclass
class PauseConfig:
    """Pause policy. strict=True also gates mint, burn and burn_from."""
    strict: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "text"  # "json" or "text"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3
    redact: bool = True

    def to_options(self) -> LoggingOptions:
        return LoggingOptions(
            level=self.level,
            format=self.format,
            file=self.file,
            redact=self.redact,
            max_size_mb=self.max_size_mb,
            backup_count=self.backup_count,
        )


@dataclass
class MetricsConfig:
    """Metrics configuration."""
    enabled: bool = True
    namespace: str = "cargocoin"


@dataclass
class StorageConfig:
    """Snapshot storage."""
    snapshot_path: str = "./data/cargocoin/ledger.json"
    events_path: Optional[str] = None  # defaults to <snapshot>.events.jsonl
    logic_version: int = 1  # logic used for a fresh ledger

    def resolved_events_path(self, snapshot_path: Optional[str] = None) -> str:
        """Events file, next to ``snapshot_path`` (or the configured snapshot) unless set."""
        if self.events_path:
            return self.events_path
        return f"{snapshot_path or self.snapshot_path}.events.jsonl"


# =============================================================================
# Main Configuration
# =============================================================================

_SECTIONS: Dict[str, Type[Any]] = {
    "token": TokenConfig,
    "burn": BurnConfig,
    "pause": PauseConfig,
    "logging": LoggingConfig,
    "metrics": MetricsConfig,
    "storage": StorageConfig,
}


@dataclass
class LedgerConfig:
    """
    Main ledger configuration.

    Combines all configuration sections into a single object.
    """
    token: TokenConfig = field(default_factory=TokenConfig)
    burn: BurnConfig = field(default_factory=BurnConfig)
    pause: PauseConfig = field(default_factory=PauseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def load(
        cls,
        config_file: Optional[Union[str, Path]] = None,
        env_prefix: str = "CARGOCOIN",
    ) -> "LedgerConfig":
        """
        Load configuration with hierarchy: env vars > config file > defaults.

        Args:
            config_file: Path to config file (JSON, TOML or YAML)
            env_prefix: Prefix for environment variables

        Returns:
            Loaded and validated configuration
        """
        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = cls._load_file(Path(config_file))

        config_dict = cls._apply_env_overrides(config_dict, env_prefix)

        config = cls._from_dict(config_dict)
        config.validate()
        return config

    @classmethod
    def _load_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        content = path.read_text()

        if path.suffix == ".json":
            parsed = json.loads(content)
        elif path.suffix == ".toml":
            parsed = tomllib.loads(content)
        elif path.suffix in {".yaml", ".yml"}:
            parsed = yaml.safe_load(content)
        else:
            logger.warning(f"Unknown config file format: {path.suffix}")
            return {}

        if isinstance(parsed, dict):
            return parsed
        logger.warning("Config file must be a mapping at top level")
        return {}

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any], prefix: str) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        for key, value in os.environ.items():
            if not key.startswith(f"{prefix}_"):
                continue

            # CARGOCOIN_TOKEN_MAX_SUPPLY -> token.max_supply
            parts = key[len(prefix) + 1:].lower().split("_")

            if len(parts) < 2:
                continue

            section = parts[0]
            if section not in _SECTIONS:
                continue
            field_name = "_".join(parts[1:])

            if section not in config:
                config[section] = {}

            config[section][field_name] = cls._parse_env_value(value)

        return config

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        return value

    @staticmethod
    def _build_section(section_cls: Type[T], data: Dict[str, Any], section: str) -> T:
        known = {f.name for f in fields(section_cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown {section} config keys: {unknown}")
        return section_cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def _from_dict(cls, config_dict: Dict[str, Any]) -> "LedgerConfig":
        """Build config object from dictionary."""
        return cls(**{
            name: cls._build_section(section_cls, config_dict.get(name) or {}, name)
            for name, section_cls in _SECTIONS.items()
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to file (YAML for .yaml/.yml, JSON otherwise)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix in {".yaml", ".yml"}:
            path.write_text(yaml.safe_dump(self.to_dict(), sort_keys=False))
        else:
            path.write_text(self.to_json())

    def validate(self) -> None:
        """Validate configuration."""
        # Token validation happens in __post_init__

        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid logging level: {self.logging.level}")

        if self.logging.format not in ("json", "text"):
            raise ValueError(f"Invalid logging format: {self.logging.format}")

        if self.storage.logic_version not in (1, 2):
            raise ValueError(f"Unknown logic version: {self.storage.logic_version}")


# =============================================================================
# Global Config Instance
# =============================================================================

_global_config: Optional[LedgerConfig] = None


def get_config() -> LedgerConfig:
    """Get global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = LedgerConfig.load()
    return _global_config


def set_config(config: LedgerConfig) -> None:
    """Set global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset global configuration to None (forces reload)."""
    global _global_config
    _global_config = None
