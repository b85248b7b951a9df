"""
TOPDAG CONFIG - Engine Configuration

Configuration is plain data: a DagConfig dataclass, built either in code or
from the [topdag] table of a TOML file.

Example topdag.toml:

    [topdag]
    log_mutations = true
    event_buffer_size = 5000
    enable_file_log = true
    log_path = "./workspace/logs"

Usage:
    from topdag.infrastructure.config import load_toml_config
    from topdag import Dag

    dag = Dag(config=load_toml_config("topdag.toml"))
"""
import tomllib
import warnings
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

CONFIG_SECTION = "topdag"


@dataclass
class DagConfig:
    """Configuration for a Dag instance and its mutation logger."""
    log_mutations: bool = False         # Record MutationEvents for every mutation
    event_buffer_size: int = 10000      # In-memory event buffer size
    enable_file_log: bool = False       # Also write events as JSONL
    log_path: Optional[Path] = None     # Directory for JSONL files

    def __post_init__(self):
        if self.event_buffer_size <= 0:
            raise ValueError(f"event_buffer_size must be positive, got {self.event_buffer_size}")
        if self.log_path is not None:
            self.log_path = Path(self.log_path)
        if self.enable_file_log and self.log_path is None:
            self.log_path = Path("./workspace/logs")


def config_from_dict(values: Dict[str, Any]) -> DagConfig:
    """
    Build a DagConfig from a mapping, ignoring unknown keys with a warning.

    Args:
        values: Mapping of DagConfig field names to values

    Returns:
        DagConfig
    """
    known = {f.name for f in fields(DagConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        warnings.warn(f"Ignoring unknown topdag config keys: {', '.join(unknown)}")
    return DagConfig(**{k: v for k, v in values.items() if k in known})


def load_toml_config(path: Union[str, Path]) -> DagConfig:
    """
    Load configuration from the [topdag] table of a TOML file.

    A missing file or missing table yields the defaults.

    Args:
        path: Path to the TOML file

    Returns:
        DagConfig
    """
    config_path = Path(path)
    if not config_path.exists():
        warnings.warn(f"Config file not found: {config_path}; using defaults")
        return DagConfig()

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    return config_from_dict(data.get(CONFIG_SECTION, {}))
