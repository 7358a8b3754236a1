"""
ConfigManager: tunable progression configuration for Pathway (2025).

Purpose
-------
- Provide hierarchical, dot-notation access to tunable values
  (leaderboard limits, fallback point tables, streak bonus defaults).
- Back configuration with YAML defaults from the `config/` directory.

Responsibilities
----------------
- Load and deep-merge every YAML file under the config directory.
- Serve reads from an in-memory tree with hit/miss counters.
- Allow explicit overrides (tests, admin tooling) without touching YAML.

Key Design Decisions
--------------------
- YAML is the single source for defaults; constructor `defaults` are merged
  on top so a test can run without any files on disk.
- Instances are injected into services; there is no module-level singleton.

Dependencies
------------
- PyYAML for parsing the `config/` directory.
- `src.core.logging.logger.get_logger` for structured logging.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

import yaml

from src.core.config.config import Config
from src.core.config.errors import ConfigInitializationError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Dot-notation configuration access over merged YAML defaults.

    Examples
    --------
    >>> manager = ConfigManager.from_directory()
    >>> manager.get("progression.leaderboard.default_limit", 10)
    10
    """

    def __init__(
        self,
        defaults: Optional[Mapping[str, Any]] = None,
        config_dir: Optional[Path] = None,
    ) -> None:
        self._config_dir = config_dir
        self._values: Dict[str, Any] = {}
        self._hits = 0
        self._misses = 0

        if config_dir is not None:
            self._load_yaml_configs(config_dir)

        if defaults:
            self._deep_merge_dict(self._values, copy.deepcopy(dict(defaults)))

    @classmethod
    def from_directory(cls, config_dir: Optional[Path] = None) -> "ConfigManager":
        return cls(config_dir=config_dir or Config.CONFIG_DIR)

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: Mapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[arg-type]
            else:
                target[key] = value

    def _load_yaml_configs(self, config_dir: Path) -> None:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.error(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                raise ConfigInitializationError(
                    f"Invalid config file {yaml_file}"
                ) from exc

            if isinstance(data, dict):
                self._deep_merge_dict(self._values, data)
                loaded_count += 1
                logger.debug(
                    "Loaded YAML config",
                    extra={"file": str(yaml_file.relative_to(config_dir))},
                )
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "yaml_file_count": loaded_count,
                "top_level_keys": len(self._values),
            },
        )

    # =========================================================================
    # READ API
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Resolve a dot-notation key such as ``"progression.leaderboard.max_limit"``.

        Returns a deep copy for container values so callers cannot mutate
        the shared tree.
        """
        node: Any = self._values
        for part in key.split("."):
            if not isinstance(node, Mapping):
                node = _MISSING
                break
            node = node.get(part, _MISSING)
            if node is _MISSING:
                break

        if node is _MISSING:
            self._misses += 1
            return default

        self._hits += 1
        if isinstance(node, (dict, list)):
            return copy.deepcopy(node)
        return node

    def set_override(self, key: str, value: Any) -> None:
        """Set a value in memory at a dot-notation path (no persistence)."""
        parts = key.split(".")
        node = self._values
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

        logger.info("Config override applied", extra={"config_key": key})

    def get_metrics(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 2) if total else 0.0,
            "top_level_keys": sorted(self._values.keys()),
        }
