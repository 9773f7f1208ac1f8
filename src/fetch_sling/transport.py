"""
Transport factories based on httpx.
"""
import logging
from typing import Optional

import httpx

from .config import ResolvedConfig

logger = logging.getLogger(__name__)

_default_transport: Optional[httpx.AsyncClient] = None


def create_transport(config: ResolvedConfig) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient from resolved configuration."""
    timeout = httpx.Timeout(
        connect=config.timeout.connect,
        read=config.timeout.read,
        write=config.timeout.write,
        pool=config.timeout.pool,
    )
    logger.debug(
        f"Creating httpx.AsyncClient with timeout={timeout}, "
        f"follow_redirects={config.follow_redirects}"
    )
    return httpx.AsyncClient(timeout=timeout, follow_redirects=config.follow_redirects)


def get_default_transport() -> httpx.AsyncClient:
    """Shared client used by builders that were given no transport."""
    global _default_transport
    if _default_transport is None or _default_transport.is_closed:
        _default_transport = httpx.AsyncClient()
    return _default_transport


async def close_default_transport() -> None:
    global _default_transport
    if _default_transport is not None:
        await _default_transport.aclose()
        _default_transport = None
