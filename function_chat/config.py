"""
Configuration entry point for function-chat.

Loads a ``.env`` file into the environment, then reads the YAML
configuration (see ``config_loader``) on first use.
"""

from typing import Optional

from dotenv import load_dotenv

from .config_loader import load_app_config
from .models import AppConfig

load_dotenv()


def get_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """Get the application configuration."""
    return load_app_config(path, reload=reload)
