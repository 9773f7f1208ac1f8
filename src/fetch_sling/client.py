"""
High-level FetchClient: owns a transport and hands out base builders.
"""
import logging
from typing import Any, Optional

from .config import ClientConfig, ResolvedConfig, resolve_config
from .core.request import RequestBuilder
from .transport import create_transport

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchClient]"


class FetchClient:
    """
    Config-driven entry point.

        async with FetchClient(ClientConfig(base_url="https://api.io/")) as client:
            result = await client.builder().get("users/1").receive(User)
    """

    def __init__(self, config: ClientConfig):
        self._config_raw = config
        self._config: ResolvedConfig = resolve_config(config)
        self._transport: Any = self._config.transport
        # Flag to track if we own the transport (created it)
        self._own_transport = self._transport is None
        self._base: Optional[RequestBuilder] = None

    @classmethod
    def create(cls, config: ClientConfig) -> "FetchClient":
        """Factory method to create a client."""
        return cls(config)

    @property
    def config(self) -> ResolvedConfig:
        return self._config

    async def connect(self) -> None:
        """Initialize the transport if needed."""
        if self._transport is not None:
            return
        self._transport = create_transport(self._config)
        logger.debug(f"{LOG_PREFIX} Connected to {self._config.base_url}")

    async def close(self) -> None:
        """Close the transport if we own it."""
        if self._own_transport and self._transport is not None:
            await self._transport.aclose()
            self._transport = None
            self._base = None

    async def __aenter__(self) -> "FetchClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def builder(self) -> RequestBuilder:
        """A fresh builder carrying the configured base URL, headers and transport."""
        if self._transport is None:
            raise RuntimeError("FetchClient is not connected; call connect() first")
        if self._base is None:
            self._base = (
                RequestBuilder()
                .client(self._transport)
                .base(self._config.base_url)
                .set_headers(self._config.headers)
            )
        return self._base.new()
