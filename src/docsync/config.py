"""
Settings loaded from <base_path>/config.yaml.

Base path priority: explicit argument (--data-dir) > DOCSYNC_BASE_PATH env var
> ~/.docsync. Setting DOCSYNC_ENV=test forces auto_process off so queues only
run operations on explicit process_queue() calls.

Example config.yaml:
    queue:
      max_queue_size: 100
      max_retries: 5
      auto_process: true
    conflicts:
      question:
        strategy: first-write-wins
    logging:
      level: INFO
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from .conflict.registry import load_conflict_configs
from .queue.models import OfflineQueueConfig

logger = logging.getLogger(__name__)


DEFAULT_BASE_PATH = Path.home() / ".docsync"
CONFIG_FILENAME = "config.yaml"
BASE_PATH_ENV = "DOCSYNC_BASE_PATH"
ENV_NAME_ENV = "DOCSYNC_ENV"

DEFAULT_CONFIG_TEMPLATE = """# DocSync Configuration File

queue:
  storage_key: docsync_offline_queue
  max_queue_size: 100
  max_retries: 5
  auto_process: true
  retry_delay: 0  # seconds, doubled after each failed attempt

# Per-document-type conflict policy overrides
conflicts: {}
#  question:
#    strategy: first-write-wins
#  quiz:
#    auto_merge_fields: [title, description, tags]

logging:
  level: WARNING
"""


def get_base_path(data_dir: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the data directory: data_dir > DOCSYNC_BASE_PATH > ~/.docsync."""
    if data_dir:
        return Path(data_dir)
    env_path = os.getenv(BASE_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_BASE_PATH


def is_test_environment() -> bool:
    return os.getenv(ENV_NAME_ENV, "").lower() == "test"


def read_config_file(base_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read config.yaml as a dict.

    Returns:
        Parsed mapping, or {} if the file does not exist or is empty

    Raises:
        ValueError: If the file is not valid YAML or not a mapping
    """
    config_path = Path(base_path) / CONFIG_FILENAME
    if not config_path.exists():
        return {}

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping at the top level")
    return data


@dataclass
class DocSyncSettings:
    """Effective settings for one data directory."""
    base_path: Path
    queue: OfflineQueueConfig = field(default_factory=OfflineQueueConfig)
    conflicts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    log_level: str = "WARNING"

    @property
    def config_path(self) -> Path:
        return self.base_path / CONFIG_FILENAME

    def apply_conflict_overrides(self) -> None:
        """Register the 'conflicts' section with the conflict policy registry."""
        if self.conflicts:
            load_conflict_configs(self.conflicts)
            logger.debug(f"Applied conflict overrides for: {', '.join(sorted(self.conflicts))}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_path": str(self.base_path),
            "queue": self.queue.to_dict(),
            "conflicts": self.conflicts,
            "logging": {"level": self.log_level},
        }


def load_settings(data_dir: Optional[Union[str, Path]] = None) -> DocSyncSettings:
    """
    Load settings for a data directory.

    Raises:
        ValueError: If config.yaml is malformed or holds invalid values
    """
    base_path = get_base_path(data_dir)
    raw = read_config_file(base_path)

    queue_section = dict(raw.get("queue") or {})
    if is_test_environment():
        queue_section["auto_process"] = False
    queue_config = OfflineQueueConfig.from_dict(queue_section)

    conflicts = raw.get("conflicts") or {}
    if not isinstance(conflicts, dict):
        raise ValueError("'conflicts' must be a mapping of document type to settings")

    log_level = str((raw.get("logging") or {}).get("level", "WARNING")).upper()

    return DocSyncSettings(
        base_path=base_path,
        queue=queue_config,
        conflicts=conflicts,
        log_level=log_level,
    )


def configure_logging(level: Union[str, int] = logging.WARNING) -> None:
    """Install a stderr handler on the docsync logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    package_logger = logging.getLogger("docsync")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)
