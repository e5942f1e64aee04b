"""
Dependency requests raised while assembling a document.

Assemblers never fetch anything themselves. When a document references
another file (a scene entity's mesh, a mesh's skeleton, the scene's
material script) the assembler calls ``dependencies.request(kind, name,
handler)`` on the object it was given, synchronously, while it is still
parsing. The loader resolves the reference, loads it and calls ``handler``
with the resulting payload before reporting the dependency complete.

``NullDependencies`` only records the requests; it backs standalone parses
that do not follow references.
"""

from enum import Enum
import logging
from typing import List, Optional, Tuple

from ..core.types import PayloadHandler

logger = logging.getLogger(__name__)


class DependencyKind(str, Enum):
    """What a reference points to, and therefore how it is parsed."""
    MESH = 'mesh'
    SKELETON = 'skeleton'
    MATERIAL = 'material'


class NullDependencies:
    """Records dependency requests without loading them."""

    def __init__(self):
        self.requests: List[Tuple[DependencyKind, Optional[str]]] = []

    def request(self, kind: DependencyKind, name: Optional[str], handler: PayloadHandler) -> None:
        logger.debug(f"Not following {kind.value} reference {name!r}")
        self.requests.append((kind, name))
