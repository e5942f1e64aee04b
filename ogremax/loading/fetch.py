"""
Byte retrieval.

The loader only needs an object with ``async fetch(url) -> str | bytes``.
``FileFetcher`` reads from the local file system without blocking the
event loop; any other transport can be plugged in with the same method.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlsplit

from ..core.errors import AssetIOError

logger = logging.getLogger(__name__)


class FileFetcher:
    """
    Read documents from disk.

    Args:
        root: Directory relative urls are resolved against (default: cwd)
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root is not None else None

    def path_for(self, url: str) -> Path:
        parts = urlsplit(url)
        if parts.scheme not in ('', 'file'):
            raise AssetIOError(f"Unsupported url scheme {parts.scheme!r}", url=url)
        path = Path(unquote(parts.path))
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return path

    async def fetch(self, url: str) -> bytes:
        path = self.path_for(url)
        logger.debug(f"Reading {path}")
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise AssetIOError(f"Cannot load {url}: {exc}", url=url) from exc
