"""
Centralized constants for ogremax.

This module defines the default values and numeric limits used by the
assemblers and the loader. Using these constants keeps the document
parsers and the loader configuration in agreement.

Usage:
    from ogremax.core.constants import MAX_BONE_INFLUENCES

    slots = np.zeros((vertex_count, MAX_BONE_INFLUENCES))
"""

# =============================================================================
# Numeric Constants
# =============================================================================

# Small epsilon for division stability (general use)
DEFAULT_EPS: float = 1e-8

# Epsilon for normalization operations
DEFAULT_EPS_NORM: float = 1e-12


# =============================================================================
# Geometry Defaults
# =============================================================================

# Skin slots per vertex
MAX_BONE_INFLUENCES: int = 4

# Largest vertex index addressable with 16-bit indices
WIDE_INDEX_THRESHOLD: int = 65535

# Components per texture coordinate set when the vertex buffer is silent
DEFAULT_TEXCOORD_DIMENSION: int = 2

# Operation type of a submesh without an operationtype attribute
DEFAULT_OPERATION_TYPE: str = 'triangle_list'


# =============================================================================
# Material Defaults
# =============================================================================

# Phong exponent used when a specular command omits it
DEFAULT_SHININESS: float = 30.0

# Base / specular / emissive colors of a fresh material
DEFAULT_BASE_COLOR = (1.0, 1.0, 1.0)
DEFAULT_SPECULAR_COLOR = (0.067, 0.067, 0.067)
DEFAULT_EMISSIVE_COLOR = (0.0, 0.0, 0.0)

# Emissive color applied when an emissive map is present but no color was authored
EMISSIVE_MAP_COLOR = (1.0, 1.0, 1.0)


# =============================================================================
# File Naming
# =============================================================================

# Suffix appended to mesh and skeleton names referenced from other documents
DOCUMENT_SUFFIX: str = '.xml'

# Suffix of the material script belonging to a scene
MATERIAL_SUFFIX: str = '.material'

# Text encoding of fetched documents
DEFAULT_ENCODING: str = 'utf-8'


# =============================================================================
# Scene Defaults
# =============================================================================

DEFAULT_UP_AXIS: str = 'y'
DEFAULT_CLIP_NEAR: float = 0.0
DEFAULT_CLIP_FAR: float = 1.0
