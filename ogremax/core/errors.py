"""
Error taxonomy for ogremax.

Every fatal problem raised by the parsers or the loader is an
``OgreMaxError`` carrying a stable category code and contextual metadata
(offending url, node, index...). Callers can either catch the base class
or dispatch on ``error.code``.

Categories:
    E_IO       byte retrieval failed
    E_XML      a required element or attribute is absent, or the XML is malformed
    E_FORMAT   count mismatch, malformed rotation, too many skin influences,
               non-finite numbers
    E_RANGE    index or name out of bounds
    E_RUNTIME  loader misuse (re-entrant load, bad configuration)
"""

from enum import Enum
from typing import Any, Dict


class ErrorCode(str, Enum):
    """Stable category tags."""
    IO = 'E_IO'
    STRUCTURAL = 'E_XML'
    FORMAT = 'E_FORMAT'
    RANGE = 'E_RANGE'
    RUNTIME = 'E_RUNTIME'


class OgreMaxError(Exception):
    """Base exception for every loader and parser failure."""

    def __init__(self, code: ErrorCode, detail: str, **meta: Any):
        code = ErrorCode(code)
        super().__init__(f"[{code.value}] {detail}")
        self.code = code
        self.detail = detail
        self.meta: Dict[str, Any] = meta


class AssetIOError(OgreMaxError):
    """A document could not be retrieved."""

    def __init__(self, detail: str, **meta: Any):
        super().__init__(ErrorCode.IO, detail, **meta)


class StructuralError(OgreMaxError):
    """A required element or attribute is missing, or the XML is malformed."""

    def __init__(self, detail: str, **meta: Any):
        super().__init__(ErrorCode.STRUCTURAL, detail, **meta)


class FormatError(OgreMaxError):
    """Document content is present but inconsistent or not a valid number."""

    def __init__(self, detail: str, **meta: Any):
        super().__init__(ErrorCode.FORMAT, detail, **meta)


class IndexRangeError(OgreMaxError):
    """An index or a name reference points outside its table."""

    def __init__(self, detail: str, **meta: Any):
        super().__init__(ErrorCode.RANGE, detail, **meta)


class LoaderStateError(OgreMaxError):
    """The loader or the dependency tracker was used incorrectly."""

    def __init__(self, detail: str, **meta: Any):
        super().__init__(ErrorCode.RUNTIME, detail, **meta)


class LoaderBusyError(LoaderStateError):
    """``load`` was called while the same loader instance was still loading."""
    pass


class MaterialParseError(FormatError):
    """Malformed material script, e.g. an unmatched brace."""

    def __init__(self, detail: str, line: int = 0, **meta: Any):
        super().__init__(f"{detail} (line {line})", line=line, **meta)
        self.line = line
