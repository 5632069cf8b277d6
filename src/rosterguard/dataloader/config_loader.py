# src/rosterguard/dataloader/config_loader.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from rosterguard.errors import ConfigError
from rosterguard.schemas.models import Config

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    @brief
    Reads config.yaml into a validated `Config`.

    @details
    Two entry points: `load()` for a file on disk and `from_mapping()` for
    an already-parsed mapping (tests, embedding callers). Both report every
    failure as a `ConfigError`; unknown keys are rejected by the schema.
    """

    SUFFIXES = (".yaml", ".yml")

    def load(self, path: Path) -> Config:
        """
        @brief
        Load the runtime configuration from disk.

        @raises
            ConfigError
                Missing file, wrong suffix, invalid YAML, empty document,
                non-mapping root or schema mismatch.
        """
        raw = self._read(path)
        cfg = self.from_mapping(raw, origin=path.as_posix())
        logger.debug(
            "Config loaded from %s: dataset=%s output=%s level=%s",
            path,
            cfg.dataset_path,
            cfg.output_dir,
            cfg.log_level,
        )
        return cfg

    def from_mapping(self, data: Any, origin: str = "<mapping>") -> Config:
        if data is None:
            raise ConfigError(
                message=f"Configuration in {origin} is empty.",
                source="ConfigLoader.from_mapping",
                suggested_action="Set at least dataset_path, or keep the defaults explicitly.",
            )
        if not isinstance(data, Mapping):
            raise ConfigError(
                message=(
                    f"Configuration root in {origin} must be a mapping, "
                    f"got {type(data).__name__}."
                ),
                source="ConfigLoader.from_mapping",
                suggested_action="Use top-level 'key: value' pairs in config.yaml.",
            )

        try:
            return Config.model_validate(dict(data))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigError(
                message=f"Invalid configuration structure in {origin}: {problems}",
                source="ConfigLoader.from_mapping",
                suggested_action=(
                    "Check key names and values against config/config.yaml; "
                    "unknown keys are not allowed."
                ),
            ) from e

    def _read(self, path: Path) -> Any:
        if not isinstance(path, Path):
            raise ConfigError(
                message=f"Config path must be a pathlib.Path, got {type(path).__name__}",
                source="ConfigLoader._read",
                suggested_action="Wrap the location in pathlib.Path(...).",
            )
        if path.suffix.lower() not in self.SUFFIXES:
            raise ConfigError(
                message=f"Unsupported configuration file extension: {path.suffix or '<none>'}",
                source="ConfigLoader._read",
                suggested_action="Rename the file to .yaml or .yml.",
            )
        if not path.is_file():
            raise ConfigError(
                message=f"Configuration file not found: {path}",
                source="ConfigLoader._read",
                suggested_action="Pass --config or create config/config.yaml.",
            )

        try:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(
                message=f"YAML parsing failed for {path}: {e}",
                source="ConfigLoader._read",
                suggested_action="Fix the YAML syntax or indentation.",
            ) from e
        except OSError as e:
            raise ConfigError(
                message=f"Unable to read {path}: {e}",
                source="ConfigLoader._read",
                suggested_action="Check file permissions.",
            ) from e


__all__ = ["ConfigLoader"]
