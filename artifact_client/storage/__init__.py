"""
Storage Layer.

This package handles local persistence of the client's configuration file.
"""

from .config_manager import ConfigManager, get_config_dir

__all__ = ["ConfigManager", "get_config_dir"]
