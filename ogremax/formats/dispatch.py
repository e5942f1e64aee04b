"""
Document dispatch.

Maps the root element of an Ogre XML document onto one of the three
document kinds and hands it to the matching assembler.
"""

import logging
import posixpath
from typing import Optional
from urllib.parse import urlsplit

from lxml import etree

from ..core.constants import DEFAULT_ENCODING, DOCUMENT_SUFFIX, WIDE_INDEX_THRESHOLD
from ..core.errors import StructuralError
from ..utils.elements import parse_xml
from .dependencies import NullDependencies
from .mesh import parse_mesh
from .records import DocumentKind, ParsedDocument
from .scene import parse_scene
from .skeleton import parse_skeleton

logger = logging.getLogger(__name__)


def document_name(url: str, suffix: str = DOCUMENT_SUFFIX) -> str:
    """
    Base name of a document: ``models/robot.mesh.xml`` -> ``robot``.

    The document suffix is removed first, then a kind extension
    (``.mesh``, ``.skeleton``, ``.scene``) if one remains.
    """
    name = posixpath.basename(urlsplit(url).path)
    if suffix and name.endswith(suffix):
        name = name[:-len(suffix)]
    for kind in DocumentKind:
        extension = f'.{kind.value}'
        if name.endswith(extension):
            return name[:-len(extension)]
    return name


def document_kind(root: etree._Element, url: str = '') -> DocumentKind:
    """
    Kind of a parsed document.

    Raises:
        StructuralError: If the root tag is not scene, mesh or skeleton
    """
    tag = root.tag if isinstance(root.tag, str) else ''
    try:
        return DocumentKind(tag)
    except ValueError:
        raise StructuralError(
            f"Unsupported root element <{tag}> in {url or '<memory>'}",
            tag=tag,
            url=url,
        ) from None


def dispatch(
    root: etree._Element,
    url: str = '',
    dependencies=None,
    wide_index_threshold: int = WIDE_INDEX_THRESHOLD,
    document_suffix: str = DOCUMENT_SUFFIX,
) -> ParsedDocument:
    """
    Route a document root to its assembler.

    Args:
        root: Root element
        url: Source url, used for naming and error metadata
        dependencies: Object with ``request(kind, name, handler)``;
            a NullDependencies when omitted
        wide_index_threshold: Forwarded to the mesh assembler
        document_suffix: Suffix stripped from the url when naming a mesh

    Returns:
        ParsedDocument with exactly one payload set
    """
    if dependencies is None:
        dependencies = NullDependencies()

    kind = document_kind(root, url)
    document = ParsedDocument(kind=kind, url=url)

    if kind == DocumentKind.SCENE:
        document.scene = parse_scene(root, dependencies)
    elif kind == DocumentKind.MESH:
        document.mesh = parse_mesh(
            root,
            dependencies,
            name=document_name(url, document_suffix),
            wide_index_threshold=wide_index_threshold,
        )
    elif kind == DocumentKind.SKELETON:
        document.skeleton = parse_skeleton(root)

    logger.debug(f"Dispatched {url or '<memory>'} as {kind.value}")
    return document


def parse_document(
    text,
    url: str = '',
    dependencies=None,
    encoding: str = DEFAULT_ENCODING,
    wide_index_threshold: int = WIDE_INDEX_THRESHOLD,
    document_suffix: str = DOCUMENT_SUFFIX,
) -> ParsedDocument:
    """
    Parse raw document text and dispatch it.

    Args:
        text: Document as str or bytes
        url: Source url
        dependencies: Dependency requester, see ``dispatch``
        encoding: Encoding of str input
        wide_index_threshold: Forwarded to the mesh assembler
        document_suffix: Forwarded to ``dispatch``

    Returns:
        ParsedDocument

    Raises:
        StructuralError: If the text is not well-formed XML or the root
            kind is unknown; assembler errors propagate unchanged
    """
    root = parse_xml(text, url=url, encoding=encoding)
    return dispatch(
        root,
        url,
        dependencies,
        wide_index_threshold=wide_index_threshold,
        document_suffix=document_suffix,
    )
