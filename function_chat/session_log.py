"""
Session-scoped logging.

Each conversation session owns one ``SessionLogger`` and hands it to the
functions it invokes, so every record is tagged with the session id
without any process-wide state.
"""

import logging
import uuid
from typing import Optional, Union


class SessionLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes messages with ``[session_id]``."""

    def __init__(self, logger: logging.Logger, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex[:8]
        super().__init__(logger, {"session_id": self.session_id})

    def process(self, msg, kwargs):
        return f"[{self.session_id}] {msg}", kwargs


LoggerLike = Union[logging.Logger, logging.LoggerAdapter]
