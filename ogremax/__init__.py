"""
ogremax: Ogre XML scene, mesh, skeleton and material loader.

Converts the Ogre document family (dotScene, mesh XML, skeleton XML and
.material scripts) into plain numpy-backed records, resolving the
references between documents with an asynchronous dependency pipeline.

Key Features:
- Scene graph, entity, sub-entity material and environment parsing
- Mesh geometry with shared vertex pools, multiple UV sets and 4-slot skinning
- Skeletons ordered by bone id, animation tracks composed onto the rest pose
- Material scripts with ordinal diffuse / emissive texture assignment
- Export to trimesh scenes and torch tensors

API Design:
- Assemblers are synchronous and raise OgreMaxError subclasses
- AssetLoader.load is a coroutine; one load per loader instance at a time
- Quaternions are numpy arrays in [w, x, y, z] order

Example:
    >>> import asyncio
    >>> import ogremax
    >>> from ogremax.loading import AssetLoader, FileFetcher
    >>> loader = AssetLoader(fetcher=FileFetcher('assets'))
    >>> scene = asyncio.run(loader.load('level.scene'))
    >>> trimesh_scene = ogremax.export.to_trimesh_scene(scene)
"""

__version__ = "0.1.0"
__author__ = "ogremax Contributors"

from . import core
from . import utils
from . import formats
from . import loading
from . import export

__all__ = [
    "core",
    "utils",
    "formats",
    "loading",
    "export",
]
