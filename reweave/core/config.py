"""Runtime settings for Reweave.

Settings are layered: built-in defaults from :mod:`constants`, then
``config/reweave.yaml`` (path overridable with ``REWEAVE_CONFIG``), then
``REWEAVE_*`` environment variables (``.env`` is loaded first).
"""

import logging
import os
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from . import constants

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "reweave.yaml"


@dataclass
class ReweaveSettings:
    """Engine, fetcher and API settings."""

    lock_ttl_seconds: int = constants.LOCK_TTL_SECONDS
    job_retention_seconds: int = constants.JOB_RETENTION_SECONDS
    max_file_size_mb: float = float(constants.MAX_FILE_SIZE_MB)
    max_files: int = constants.MAX_FILES
    skip_directories: List[str] = field(default_factory=lambda: sorted(constants.SKIP_DIRECTORIES))
    creatable_categories: List[str] = field(default_factory=lambda: list(constants.CREATABLE_CATEGORIES))
    category_default_paths: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in constants.CATEGORY_DEFAULT_PATHS.items()}
    )
    dependency_manifests: List[str] = field(default_factory=lambda: list(constants.DEPENDENCY_MANIFESTS))
    markup_extension_map: Dict[str, str] = field(default_factory=lambda: dict(constants.MARKUP_EXTENSION_MAP))
    use_pipeline: bool = True
    preserve_formatting: bool = True
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 9010
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"])

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)


# Environment variable -> settings field
_ENV_OVERRIDES = {
    "REWEAVE_LOCK_TTL_SECONDS": "lock_ttl_seconds",
    "REWEAVE_JOB_RETENTION_SECONDS": "job_retention_seconds",
    "REWEAVE_MAX_FILE_SIZE_MB": "max_file_size_mb",
    "REWEAVE_MAX_FILES": "max_files",
    "REWEAVE_USE_PIPELINE": "use_pipeline",
    "REWEAVE_PRESERVE_FORMATTING": "preserve_formatting",
    "REWEAVE_LOG_LEVEL": "log_level",
    "REWEAVE_API_HOST": "api_host",
    "REWEAVE_API_PORT": "api_port",
}


def _coerce(value: str, current: Any) -> Any:
    """Convert an environment string to the type of the current value."""
    if isinstance(current, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.debug(f"No config file at {config_path}, using defaults")
        return {}

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {config_path}: top level must be a mapping")
        return {}
    return data.get("reweave", data)


def load_settings(config_path: Optional[str] = None) -> ReweaveSettings:
    """Build settings from YAML and environment.

    Args:
        config_path: Explicit YAML path. Defaults to ``REWEAVE_CONFIG`` or
            ``config/reweave.yaml`` at the project root.

    Returns:
        A fresh :class:`ReweaveSettings`.
    """
    load_dotenv()

    path = Path(config_path or os.getenv("REWEAVE_CONFIG") or _DEFAULT_CONFIG_PATH)
    raw = _load_yaml(path)

    settings = ReweaveSettings()
    known = {f.name for f in fields(ReweaveSettings)}
    for key, value in raw.items():
        if key not in known:
            logger.warning(f"Unknown setting '{key}' in {path}, ignoring")
            continue
        setattr(settings, key, value)

    for env_name, attr in _ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value is None:
            continue
        try:
            setattr(settings, attr, _coerce(env_value, getattr(settings, attr)))
        except ValueError:
            logger.warning(f"Invalid value for {env_name}: {env_value!r}, keeping default")

    return settings


@lru_cache(maxsize=1)
def get_settings() -> ReweaveSettings:
    """Process-wide settings, loaded once."""
    return load_settings()
