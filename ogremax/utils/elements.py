"""
Element and attribute helpers over lxml trees.

Ogre XML stores nearly everything in attributes, most of them optional
with a documented default. These helpers read typed attribute values with
a fallback and look up direct children without descending into nested
nodes.
"""

from typing import Iterator, Optional

import numpy as np
from lxml import etree

from ..core.constants import DEFAULT_ENCODING
from ..core.errors import StructuralError
from ..core.types import Color


def parse_xml(text, url: str = '', encoding: str = DEFAULT_ENCODING) -> etree._Element:
    """
    Parse raw document text into an lxml element tree.

    Args:
        text: Document as str or bytes
        url: Source url, used in error metadata
        encoding: Encoding used for str input (overrides the XML declaration)

    Returns:
        Root element

    Raises:
        StructuralError: If the text is not well-formed XML
    """
    if isinstance(text, str):
        text = text.encode(encoding)
        parser = etree.XMLParser(encoding=encoding, resolve_entities=False, remove_comments=True)
    else:
        parser = etree.XMLParser(resolve_entities=False, remove_comments=True)

    try:
        root = etree.fromstring(text, parser)
    except etree.XMLSyntaxError as exc:
        raise StructuralError(f"Malformed XML in {url or '<memory>'}: {exc}", url=url) from exc

    if root is None:
        raise StructuralError(f"Empty XML document {url or '<memory>'}", url=url)
    return root


def child(node: Optional[etree._Element], *tags: str) -> Optional[etree._Element]:
    """First direct child matching any of ``tags`` (in document order)."""
    if node is None:
        return None
    for element in node:
        if element.tag in tags:
            return element
    return None


def children(node: Optional[etree._Element], *tags: str) -> Iterator[etree._Element]:
    """Direct children matching any of ``tags``, in document order."""
    if node is None:
        return
    for element in node:
        if element.tag in tags:
            yield element


def has_attr(node: Optional[etree._Element], name: str) -> bool:
    return node is not None and node.get(name) is not None


def attr_str(node: Optional[etree._Element], name: str, default: Optional[str] = None) -> Optional[str]:
    if node is None:
        return default
    value = node.get(name)
    return default if value is None else value


def attr_float(node: Optional[etree._Element], name: str, default: float = 0.0) -> float:
    """
    Read a float attribute.

    Unparseable values come back as NaN so callers that care about
    finiteness can reject them.
    """
    value = attr_str(node, name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return float('nan')


def attr_int(node: Optional[etree._Element], name: str, default: int = 0) -> int:
    """Read an integer attribute, accepting float spellings such as ``"3.0"``."""
    value = attr_str(node, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        try:
            return int(float(value))
        except ValueError:
            return default


def attr_bool(node: Optional[etree._Element], name: str, default: bool = False) -> bool:
    value = attr_str(node, name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def attr_vector(node: Optional[etree._Element], default: float = 0.0) -> np.ndarray:
    """(3,) vector from ``x / y / z`` attributes; a missing node gives the default vector."""
    return np.array([
        attr_float(node, 'x', default),
        attr_float(node, 'y', default),
        attr_float(node, 'z', default),
    ], dtype=np.float64)


def attr_color(node: Optional[etree._Element], default: float = 0.0) -> Color:
    """RGB color from ``r / g / b`` attributes."""
    return (
        attr_float(node, 'r', default),
        attr_float(node, 'g', default),
        attr_float(node, 'b', default),
    )


def describe(node: Optional[etree._Element]) -> str:
    """Short serialized form of an element for error metadata."""
    if node is None:
        return ''
    text = etree.tostring(node, encoding='unicode', with_tail=False)
    return text if len(text) <= 200 else text[:197] + '...'
