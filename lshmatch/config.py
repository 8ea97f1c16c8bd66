"""
Configuration for the matching engine.

Two kinds of configuration live here:

- ``IndexConfig`` is the build/search contract. It is persisted with every
  index and read back at search time, never re-specified by the caller.
- ``MatcherSettings`` holds runtime knobs (where indexes live, how many
  partitions and workers to use, the permutation seed). It is loaded from
  YAML with environment variable overrides.
"""

import logging
import os
from dataclasses import dataclass, asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Bumped whenever the on-disk table layout changes.
INDEX_FORMAT_VERSION = 1

UINT64_MAX = 0xFFFFFFFFFFFFFFFF


@dataclass(frozen=True)
class IndexConfig:
    """
    Parameters shared by build and search.

    Attributes:
        ngram_length: Code points per n-gram
        signature_size: Number of MinHash slots (K)
        hash_band_size: Slots per LSH band (b)
        format_version: On-disk layout version
    """

    ngram_length: int = 2
    signature_size: int = 12
    hash_band_size: int = 2
    format_version: int = INDEX_FORMAT_VERSION

    @property
    def band_count(self) -> int:
        """Number of bands per signature (K / b)."""
        return self.signature_size // self.hash_band_size

    def problems(self) -> List[str]:
        """Return a description of every invalid parameter."""
        errors = []

        if not isinstance(self.ngram_length, int) or self.ngram_length < 1:
            errors.append(f"ngram_length must be a positive integer, got {self.ngram_length!r}")

        if not isinstance(self.signature_size, int) or self.signature_size < 2:
            errors.append(f"signature_size must be an integer >= 2, got {self.signature_size!r}")

        if not isinstance(self.hash_band_size, int) or self.hash_band_size < 1:
            errors.append(f"hash_band_size must be a positive integer, got {self.hash_band_size!r}")
        elif isinstance(self.signature_size, int):
            if self.hash_band_size >= self.signature_size:
                errors.append(
                    f"hash_band_size ({self.hash_band_size}) must be smaller than "
                    f"signature_size ({self.signature_size})"
                )
            elif self.signature_size % self.hash_band_size != 0:
                errors.append(
                    f"hash_band_size ({self.hash_band_size}) must evenly divide "
                    f"signature_size ({self.signature_size})"
                )

        return errors

    def validate(self) -> "IndexConfig":
        """
        Raise ConfigurationError unless every parameter is valid.

        Returns:
            self, so calls can be chained
        """
        errors = self.problems()
        if errors:
            raise ConfigurationError(
                "; ".join(errors),
                parameter="index_config",
                value=self.to_dict(),
                details={'errors': errors}
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IndexConfig':
        """Create from dictionary, ignoring unknown keys."""
        return cls(
            ngram_length=data["ngram_length"],
            signature_size=data["signature_size"],
            hash_band_size=data["hash_band_size"],
            format_version=data.get("format_version", INDEX_FORMAT_VERSION),
        )


@dataclass
class MatcherSettings:
    """Runtime settings for building and searching indexes."""

    # Directory holding one sub-directory per index
    index_root: str = ".lshmatch"

    # Hash partitions used for joins and per-partition signing
    partitions: int = 8

    # Worker threads; None means one per CPU
    max_workers: Optional[int] = None

    # Permutation seed; None draws fresh entropy per build
    seed: Optional[int] = None

    log_level: str = "WARNING"

    @property
    def root_path(self) -> Path:
        return Path(self.index_root).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatcherSettings':
        """Create from dictionary."""
        known = {k: v for k, v in (data or {}).items() if k in cls.__dataclass_fields__}
        unknown = set(data or {}) - set(known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")
        return cls(**known)

    def problems(self) -> List[str]:
        """Return a description of every invalid setting."""
        errors = []

        if not isinstance(self.index_root, str) or not self.index_root:
            errors.append(f"index_root must be a non-empty path, got {self.index_root!r}")

        if isinstance(self.partitions, bool) or not isinstance(self.partitions, int) or self.partitions < 1:
            errors.append(f"partitions must be an integer >= 1, got {self.partitions!r}")

        if self.max_workers is not None and (
                isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int)
                or self.max_workers < 1):
            errors.append(f"max_workers must be an integer >= 1, got {self.max_workers!r}")

        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)
                                      or self.seed < 0):
            errors.append(f"seed must be a non-negative integer, got {self.seed!r}")

        if (not isinstance(self.log_level, str)
                or self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")):
            errors.append(f"log_level must be a logging level name, got {self.log_level!r}")

        return errors

    def validate(self) -> bool:
        """Validate settings, logging each problem found."""
        errors = self.problems()
        for error in errors:
            logger.error(f"Settings validation error: {error}")

        return not errors

    def check(self, source: str = "settings") -> "MatcherSettings":
        """
        Raise ConfigurationError unless every setting is valid.

        Returns:
            self, so calls can be chained
        """
        errors = self.problems()
        if errors:
            raise ConfigurationError(
                f"Invalid {source}: {'; '.join(errors)}",
                parameter="settings",
                value=self.to_dict(),
                details={'errors': errors}
            )
        return self


class SettingsManager:
    """Loads, saves and updates MatcherSettings."""

    DEFAULT_CONFIG_FILE = ".lshmatch.yml"
    ENV_CONFIG_PATH = "LSHMATCH_CONFIG"
    ENV_PREFIX = "LSHMATCH_"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Initialize settings manager.

        Args:
            config_path: Path to a YAML settings file
        """
        self.config_path = Path(config_path) if config_path else None
        self._settings: Optional[MatcherSettings] = None

    def resolve_path(self) -> Path:
        """Pick the settings file: explicit path, env var, cwd, then home."""
        if self.config_path:
            return self.config_path
        env_path = os.getenv(self.ENV_CONFIG_PATH)
        if env_path:
            return Path(env_path)

        local = Path(self.DEFAULT_CONFIG_FILE)
        if local.exists():
            return local
        return Path.home() / self.DEFAULT_CONFIG_FILE

    def load(self) -> MatcherSettings:
        """
        Load settings from file, falling back to defaults.

        Returns:
            Loaded or default settings

        Raises:
            ConfigurationError: if the file cannot be parsed or the resulting
                settings (after environment overrides) are invalid
        """
        if self._settings is not None:
            return self._settings

        path = self.resolve_path()
        if path.exists():
            try:
                with open(path, 'r') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Cannot read settings file {path}: {e}", parameter="config_path", value=str(path)
                ) from e
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"Settings file {path} must hold a mapping, got {type(data).__name__}",
                    parameter="config_path",
                    value=str(path),
                )
            settings = MatcherSettings.from_dict(data)
            source = f"settings in {path}"
            logger.info(f"Loaded settings from {path}")
        else:
            settings = MatcherSettings()
            source = "settings"
            logger.debug("Using default settings")

        self._apply_env_overrides(settings)
        self._settings = settings.check(source)
        return self._settings

    def save(self, settings: Optional[MatcherSettings] = None, path: Optional[Path] = None) -> Path:
        """
        Save settings to a YAML file.

        Returns:
            The path written
        """
        settings = settings or self._settings or MatcherSettings()
        path = Path(path) if path else self.resolve_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(settings.to_dict(), f, default_flow_style=False, sort_keys=False)

        self._settings = settings
        logger.info(f"Saved settings to {path}")
        return path

    def update(self, **kwargs) -> MatcherSettings:
        """
        Update settings parameters.

        Raises:
            ConfigurationError: for unknown parameter names or invalid values
        """
        settings = self.load()
        unknown = [k for k in kwargs if k not in MatcherSettings.__dataclass_fields__]
        if unknown:
            raise ConfigurationError(f"Unknown setting '{unknown[0]}'", parameter=unknown[0])

        self._settings = replace(settings, **kwargs).check()
        return self._settings

    def display(self, settings: Optional[MatcherSettings] = None, console: Optional[Console] = None):
        """Print settings as highlighted YAML in a panel."""
        settings = settings or self.load()
        console = console or Console()

        yaml_str = yaml.dump(settings.to_dict(), default_flow_style=False, sort_keys=False)
        syntax = Syntax(yaml_str, "yaml", theme="monokai", line_numbers=True)
        console.print(Panel(
            syntax,
            title="[bold cyan]lshmatch settings[/bold cyan]",
            border_style="cyan"
        ))

    def _apply_env_overrides(self, settings: MatcherSettings):
        """Apply LSHMATCH_* environment variable overrides."""
        if env_root := os.getenv(f"{self.ENV_PREFIX}INDEX_ROOT"):
            settings.index_root = env_root
            logger.debug(f"Applied env override: index_root={env_root}")

        for name in ("partitions", "max_workers", "seed"):
            if env_value := os.getenv(f"{self.ENV_PREFIX}{name.upper()}"):
                try:
                    setattr(settings, name, int(env_value))
                    logger.debug(f"Applied env override: {name}={env_value}")
                except ValueError:
                    logger.warning(f"Invalid env value for {name}: {env_value}")

        if env_level := os.getenv(f"{self.ENV_PREFIX}LOG_LEVEL"):
            settings.log_level = env_level.upper()


def get_settings(config_path: Optional[Union[str, Path]] = None) -> MatcherSettings:
    """Load settings through a fresh SettingsManager."""
    return SettingsManager(config_path).load()


def create_default_settings_file(path: Optional[Path] = None) -> Path:
    """Write default settings to ``path`` (default ``.lshmatch.yml``)."""
    path = Path(path) if path else Path(SettingsManager.DEFAULT_CONFIG_FILE)
    return SettingsManager(path).save(MatcherSettings(), path)
