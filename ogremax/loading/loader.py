"""
Asynchronous asset loader.

``AssetLoader.load(url)`` fetches a root document, parses it, and follows
every reference discovered while parsing (scene -> meshes and material
script, mesh -> skeleton) until the whole tree has resolved. The result is
delivered once, after the last dependency completed, or the first error
is raised.

Registration convention
-----------------------
A dependency is registered with the tracker synchronously, from inside
the parse of the document that references it. The referencing document
reports its own completion only after its parse and its resolution
handlers have returned. The outstanding counter therefore never drops to
zero while a discovered dependency is still unregistered.

Each url is fetched and parsed once per top-level load; later requesters
receive the same payload object.
"""

import asyncio
from enum import Enum
import logging
import posixpath
from typing import Any, Callable, Dict, List, Optional, Set, Union
from urllib.parse import urljoin, urlsplit

from ..core.errors import (
    AssetIOError,
    ErrorCode,
    LoaderBusyError,
    LoaderStateError,
    OgreMaxError,
    StructuralError,
)
from ..core.types import PayloadHandler, ProgressCallback, TextureResolver
from ..formats.dependencies import DependencyKind, NullDependencies
from ..formats.dispatch import document_name, parse_document
from ..formats.material import default_texture_resolver, parse_material_script
from ..formats.records import DocumentKind, MaterialLibrary, ParsedDocument, SceneAsset
from ..formats.scene import bind_materials
from ..utils.config import LoaderConfig
from .fetch import FileFetcher
from .tracker import DependencyTracker

logger = logging.getLogger(__name__)

_EXPECTED_KIND = {
    DependencyKind.MESH: DocumentKind.MESH,
    DependencyKind.SKELETON: DocumentKind.SKELETON,
}


class LoaderState(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'


def resolve_reference(base_url: str, reference: str) -> str:
    """Resolve ``reference`` relative to the document at ``base_url``."""
    if urlsplit(base_url).scheme:
        return urljoin(base_url, reference)
    if posixpath.isabs(reference):
        return reference
    return posixpath.normpath(posixpath.join(posixpath.dirname(base_url), reference))


# =============================================================================
# Session
# =============================================================================

class _DocumentDependencies:
    """Dependency requester handed to the assemblers of one document."""

    def __init__(self, session: 'LoadSession', url: str):
        self.session = session
        self.url = url

    def request(self, kind: DependencyKind, name: Optional[str], handler: PayloadHandler) -> None:
        self.session.request(self.session.dependency_url(self.url, kind, name), kind, handler)


class LoadSession:
    """
    State of one top-level load: tracker, payloads, waiters and tasks.

    Must be created inside a running event loop.
    """

    def __init__(
        self,
        config: LoaderConfig,
        fetcher,
        texture_resolver: TextureResolver,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.texture_resolver = texture_resolver

        self.done: asyncio.Future = asyncio.get_running_loop().create_future()
        self.tracker = DependencyTracker(
            on_complete=self._on_complete,
            on_error=self._on_error,
            on_progress=on_progress,
        )
        self.payloads: Dict[str, Any] = {}
        self.waiters: Dict[str, List[PayloadHandler]] = {}
        self.tasks: Set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Tracker callbacks
    # -------------------------------------------------------------------------

    def _on_complete(self) -> None:
        if not self.done.done():
            self.done.set_result(None)

    def _on_error(self, error: OgreMaxError) -> None:
        if not self.done.done():
            self.done.set_exception(error)

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    def dependency_url(self, document_url: str, kind: DependencyKind, name: Optional[str]) -> str:
        """Url of a reference made by the document at ``document_url``."""
        if kind == DependencyKind.MATERIAL:
            stem = name or document_name(document_url, self.config.document_suffix)
            return resolve_reference(document_url, stem + self.config.material_suffix)
        return resolve_reference(document_url, name + self.config.document_suffix)

    def request(self, url: str, kind: Optional[DependencyKind], handler: PayloadHandler) -> None:
        """
        Ask for the payload of ``url``; ``handler`` receives it.

        An already resolved url calls ``handler`` immediately. Otherwise
        the url is registered (once) and a load task is started for it.
        """
        if url in self.payloads:
            handler(self.payloads[url])
            return

        self.waiters.setdefault(url, []).append(handler)
        if self.tracker.register(url):
            task = asyncio.get_running_loop().create_task(self._load(url, kind))
            self.tasks.add(task)
            task.add_done_callback(self.tasks.discard)

    async def _load(self, url: str, kind: Optional[DependencyKind]) -> None:
        try:
            try:
                data = await self.fetcher.fetch(url)
            except OSError as exc:
                raise AssetIOError(f"Cannot load {url}: {exc}", url=url) from exc

            if self.tracker.is_terminal:
                return

            payload = self._parse(url, kind, data)
            self.payloads[url] = payload
            for handler in self.waiters.pop(url, []):
                handler(payload)

            logger.debug(f"Loaded {url}")
            # Runs the caller's progress callback
            self.tracker.complete(url)
        except OgreMaxError as exc:
            exc.meta.setdefault('url', url)
            self._abort(url, exc)
        except Exception as exc:
            error = OgreMaxError(ErrorCode.RUNTIME, f"Unexpected error while loading {url}: {exc}", url=url)
            error.__cause__ = exc
            self._abort(url, error)

    def _abort(self, url: str, error: OgreMaxError) -> None:
        logger.debug(f"Failed {url}: {error}")
        if self.tracker.is_terminal:
            # Raised after the tracker settled, e.g. from a callback
            self._on_error(error)
        else:
            self.tracker.fail(url, error)

    def _parse(self, url: str, kind: Optional[DependencyKind], data: Union[str, bytes]):
        if kind == DependencyKind.MATERIAL:
            text = data.decode(self.config.encoding) if isinstance(data, bytes) else data
            return parse_material_script(text, self.texture_path_for(url), self.texture_resolver)

        document = parse_document(
            data,
            url,
            _DocumentDependencies(self, url),
            encoding=self.config.encoding,
            wide_index_threshold=self.config.wide_index_threshold,
            document_suffix=self.config.document_suffix,
        )
        expected = _EXPECTED_KIND.get(kind)
        if expected is not None and document.kind != expected:
            raise StructuralError(
                f"Expected a {expected.value} document, got <{document.kind.value}>",
                url=url,
            )
        return document.payload

    def texture_path_for(self, url: str) -> str:
        """Configured texture path, or the directory of the material script."""
        if self.config.texture_path:
            return self.config.texture_path
        directory = posixpath.dirname(urlsplit(url).path) if urlsplit(url).scheme else posixpath.dirname(url)
        return f'{directory}/' if directory else ''

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(self, url: str):
        """Load ``url`` and everything it references; returns the root payload."""
        kind = DependencyKind.MATERIAL if url.endswith(self.config.material_suffix) else None
        root: Dict[str, Any] = {}

        def _keep_root(payload):
            root['payload'] = payload

        self.request(url, kind, _keep_root)
        await self.done

        payload = root['payload']
        if isinstance(payload, SceneAsset):
            bind_materials(payload)
        return payload


# =============================================================================
# Loader
# =============================================================================

class AssetLoader:
    """
    Loads Ogre scenes, meshes, skeletons and material scripts.

    One instance runs one top-level load at a time; calling ``load`` while
    a load is in flight raises LoaderBusyError. Every load gets its own
    LoadSession, so nothing is cached between loads.

    Args:
        config: LoaderConfig (defaults used when omitted)
        fetcher: Object with ``async fetch(url)``; FileFetcher by default
        texture_resolver: ``(name, texture_path) -> handle``

    Example:
        >>> loader = AssetLoader(fetcher=FileFetcher('assets'))
        >>> scene = asyncio.run(loader.load('level.scene'))
    """

    def __init__(
        self,
        config: Optional[LoaderConfig] = None,
        fetcher=None,
        texture_resolver: Optional[TextureResolver] = None,
    ):
        self.config = config if config is not None else LoaderConfig()
        self.fetcher = fetcher if fetcher is not None else FileFetcher()
        self.texture_resolver = texture_resolver or default_texture_resolver
        self.state = LoaderState.IDLE

    @property
    def texture_path(self) -> str:
        return self.config.texture_path

    @texture_path.setter
    def texture_path(self, value: str) -> None:
        if not isinstance(value, str):
            raise LoaderStateError("texture_path must be a string", value=repr(value))
        self.config.texture_path = value

    async def load(
        self,
        url: str,
        on_load: Optional[Callable[[Any], None]] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_error: Optional[Callable[[OgreMaxError], None]] = None,
    ):
        """
        Load ``url`` and all of its dependencies.

        Args:
            url: Root document url
            on_load: Called with the result on success
            on_progress: Called with (loaded, total) after each completed document
            on_error: Called with the error on failure (the error is raised too)

        Returns:
            SceneAsset, MeshAsset, SkeletonAsset or MaterialLibrary

        Raises:
            LoaderBusyError: If this loader is already loading
            OgreMaxError: The first error raised anywhere in the dependency tree
        """
        if self.state == LoaderState.LOADING:
            raise LoaderBusyError("load() called while a load is in progress", url=url)

        self.state = LoaderState.LOADING
        logger.info(f"Loading {url}")
        try:
            session = LoadSession(self.config, self.fetcher, self.texture_resolver, on_progress)
            result = await session.run(url)
        except OgreMaxError as exc:
            logger.error(f"Loading {url} failed: {exc}")
            if on_error is not None:
                on_error(exc)
            raise
        finally:
            self.state = LoaderState.IDLE

        logger.info(f"Loaded {url} ({session.tracker.total} documents)")
        if on_load is not None:
            on_load(result)
        return result

    def parse(self, text: Union[str, bytes], url: str = '') -> Union[ParsedDocument, MaterialLibrary]:
        """
        Parse one document without following its references.

        Material scripts are recognized by the configured suffix.
        """
        if url.endswith(self.config.material_suffix):
            if isinstance(text, bytes):
                text = text.decode(self.config.encoding)
            return parse_material_script(text, self.config.texture_path, self.texture_resolver)
        return parse_document(
            text,
            url,
            NullDependencies(),
            encoding=self.config.encoding,
            wide_index_threshold=self.config.wide_index_threshold,
            document_suffix=self.config.document_suffix,
        )


def load_asset(
    url: str,
    config: Optional[LoaderConfig] = None,
    fetcher=None,
    texture_resolver: Optional[TextureResolver] = None,
):
    """
    Load an asset synchronously.

    Convenience wrapper running ``AssetLoader.load`` in a fresh event loop.

    Args:
        url: Root document url
        config: LoaderConfig
        fetcher: Fetcher (FileFetcher by default)
        texture_resolver: Texture resolver

    Returns:
        The loaded asset
    """
    loader = AssetLoader(config=config, fetcher=fetcher, texture_resolver=texture_resolver)
    return asyncio.run(loader.load(url))
