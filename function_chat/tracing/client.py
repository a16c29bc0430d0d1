"""
Langfuse connection handle for one CLI session.

The handle is built by the session runner and passed to the
``TracingContext`` that uses it. When Langfuse is not configured, or the
server rejects the credentials, the handle stays disabled and every
tracing call becomes a no-op.
"""

import logging
from typing import Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """Owns a ``Langfuse`` instance, or records why there is none."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client: Optional[Langfuse] = None
        self._error: Optional[str] = None

        if not (public_key and secret_key):
            self._disable("Langfuse credentials not configured", level=logging.DEBUG)
            return

        if host and not host.startswith(("http://", "https://")):
            logger.warning("Langfuse host %r has no http(s) scheme", host)

        try:
            client = Langfuse(
                public_key=public_key,
                secret_key=secret_key,
                debug=debug,
                **({"host": host} if host else {}),
            )
            authenticated = client.auth_check()
        except Exception as e:
            self._disable(f"Could not connect to Langfuse: {e}")
            return

        if not authenticated:
            self._disable("Langfuse auth_check failed; check host and keys")
            return

        self._client = client
        logger.info("Langfuse tracing enabled (host: %s)", host or "default")

    @classmethod
    def from_config(cls, config: LangfuseConfig) -> "TracingClient":
        """Disabled handle unless both keys are configured."""
        if not config.is_configured:
            return cls()
        return cls(
            public_key=config.public_key,
            secret_key=config.secret_key,
            host=config.host,
            debug=config.debug,
        )

    def _disable(self, reason: str, level: int = logging.WARNING) -> None:
        self._client = None
        self._error = reason
        logger.log(level, "Tracing disabled: %s", reason)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def error(self) -> Optional[str]:
        """Why tracing is disabled, if it is."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def flush(self) -> None:
        if self._client is None:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning("Failed to flush tracing events: %s", e)

    def shutdown(self) -> None:
        """Flush remaining events and release the Langfuse client."""
        if self._client is None:
            return
        try:
            self._client.shutdown()
        except Exception as e:
            logger.warning("Tracing shutdown failed: %s", e)
        finally:
            self._client = None
