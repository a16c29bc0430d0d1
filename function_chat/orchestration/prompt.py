"""
System prompt loading.

The prompt file may contain a ``{{timestamp}}`` placeholder, replaced with
the current UTC time when the session starts.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

TIMESTAMP_PLACEHOLDER = "{{timestamp}}"


def render_system_prompt(template: str, now: Optional[datetime] = None) -> str:
    """Substitute the timestamp placeholder in ``template``."""
    now = now or datetime.now(timezone.utc)
    return template.strip().replace(TIMESTAMP_PLACEHOLDER, now.isoformat(timespec="seconds"))


def load_system_prompt(path: Union[str, Path], now: Optional[datetime] = None) -> str:
    """
    Read the system prompt file and render it.

    Raises:
        ConfigurationError: If the file does not exist.
    """
    prompt_path = Path(path)
    if not prompt_path.is_file():
        raise ConfigurationError(f"System prompt file not found: {prompt_path}")

    logger.debug(f"Loading system prompt from {prompt_path}")
    return render_system_prompt(prompt_path.read_text(encoding="utf-8"), now)
