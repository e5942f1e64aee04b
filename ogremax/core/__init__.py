"""
Core definitions for ogremax.

Includes the error taxonomy, centralized constants and type aliases.
"""

from .constants import (
    DEFAULT_EPS,
    DEFAULT_EPS_NORM,
    MAX_BONE_INFLUENCES,
    WIDE_INDEX_THRESHOLD,
    DEFAULT_TEXCOORD_DIMENSION,
    DEFAULT_SHININESS,
    DOCUMENT_SUFFIX,
    MATERIAL_SUFFIX,
    DEFAULT_ENCODING,
)
from .errors import (
    ErrorCode,
    OgreMaxError,
    AssetIOError,
    StructuralError,
    FormatError,
    IndexRangeError,
    LoaderStateError,
    LoaderBusyError,
    MaterialParseError,
)

__all__ = [
    # Constants
    "DEFAULT_EPS",
    "DEFAULT_EPS_NORM",
    "MAX_BONE_INFLUENCES",
    "WIDE_INDEX_THRESHOLD",
    "DEFAULT_TEXCOORD_DIMENSION",
    "DEFAULT_SHININESS",
    "DOCUMENT_SUFFIX",
    "MATERIAL_SUFFIX",
    "DEFAULT_ENCODING",
    # Errors
    "ErrorCode",
    "OgreMaxError",
    "AssetIOError",
    "StructuralError",
    "FormatError",
    "IndexRangeError",
    "LoaderStateError",
    "LoaderBusyError",
    "MaterialParseError",
]
