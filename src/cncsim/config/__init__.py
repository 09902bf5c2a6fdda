"""Configuration: config manager, persistence store, and JSON files."""

from cncsim.config.config_manager import load_config, save_section
from cncsim.config.persistence import PersistenceStore

__all__ = [
    "load_config",
    "save_section",
    "PersistenceStore",
]
