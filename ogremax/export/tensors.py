"""
Torch tensor export for skinning consumers.
"""

from typing import Dict, Union

import numpy as np
import torch

from ..formats.records import MeshAsset


def to_tensors(
    mesh: MeshAsset,
    device: Union[str, torch.device] = 'cpu',
) -> Dict[str, torch.Tensor]:
    """
    Convert a loaded mesh into torch tensors.

    Args:
        mesh: Loaded MeshAsset
        device: Torch device for tensors

    Returns:
        Dict containing:
        - 'positions': (V, 3) float32
        - 'faces': (F, 3) long
        - 'normals': (V, 3) float32, when present
        - 'uvs': (V, D) float32, when present
        - 'bone_indices': (V, 4) long, when skinned
        - 'bone_weights': (V, 4) float32, when skinned
        - 'bone_parents': (J,) long, when a skeleton is bound
        - 'rest_translations': (J, 3) float32, when a skeleton is bound
        - 'rest_rotations': (J, 4) float32 [w, x, y, z], when a skeleton is bound
    """
    if isinstance(device, str):
        device = torch.device(device)

    buffers = mesh.merged()
    tensors = {
        'positions': torch.from_numpy(buffers.positions.astype(np.float32)).to(device),
        'faces': torch.from_numpy(buffers.indices.astype(np.int64).reshape(-1, 3)).to(device),
    }

    if buffers.normals is not None:
        tensors['normals'] = torch.from_numpy(buffers.normals.astype(np.float32)).to(device)
    if buffers.uvs is not None:
        tensors['uvs'] = torch.from_numpy(buffers.uvs.astype(np.float32)).to(device)
    if buffers.bone_indices is not None:
        tensors['bone_indices'] = torch.from_numpy(buffers.bone_indices.astype(np.int64)).to(device)
        tensors['bone_weights'] = torch.from_numpy(buffers.bone_weights.astype(np.float32)).to(device)

    skeleton = mesh.skeleton
    if skeleton is not None and skeleton.bones:
        tensors['bone_parents'] = torch.tensor(
            [bone.parent for bone in skeleton.bones], dtype=torch.long, device=device
        )
        tensors['rest_translations'] = torch.from_numpy(
            np.stack([bone.transform.translation for bone in skeleton.bones]).astype(np.float32)
        ).to(device)
        tensors['rest_rotations'] = torch.from_numpy(
            np.stack([bone.transform.rotation for bone in skeleton.bones]).astype(np.float32)
        ).to(device)

    return tensors
