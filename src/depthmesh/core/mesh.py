from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import trimesh


def _empty(cols: int, dtype) -> np.ndarray:
    return np.zeros((0, cols), dtype=dtype)


@dataclass
class TriangleMesh:
    """
    Camera-space triangulation result.

    - vertices: (N,3) float64
    - faces: (M,3) int64, every index < N
    - colors: (N,4) float64 RGBA in [0,1], or (0,4) when uncolored
    """

    vertices: np.ndarray = field(default_factory=lambda: _empty(3, np.float64))
    faces: np.ndarray = field(default_factory=lambda: _empty(3, np.int64))
    colors: np.ndarray = field(default_factory=lambda: _empty(4, np.float64))

    @property
    def num_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def num_faces(self) -> int:
        return int(self.faces.shape[0])

    @property
    def has_colors(self) -> bool:
        return self.num_vertices > 0 and self.colors.shape[0] == self.num_vertices

    def to_trimesh(self, with_colors: bool = True) -> trimesh.Trimesh:
        """Wrap as a trimesh mesh; `process=False` keeps vertex numbering and face order."""
        kwargs = {}
        if with_colors and self.has_colors:
            kwargs["vertex_colors"] = np.clip(np.round(self.colors * 255.0), 0, 255).astype(np.uint8)
        return trimesh.Trimesh(vertices=self.vertices, faces=self.faces, process=False, **kwargs)


def mesh_transform(mesh: trimesh.Trimesh, m: np.ndarray) -> trimesh.Trimesh:
    """Apply a 4x4 affine transform in place (e.g. camera-to-world)."""
    return mesh.apply_transform(np.asarray(m, dtype=np.float64).reshape(4, 4))


def ensure_normals(mesh: trimesh.Trimesh) -> np.ndarray:
    """Compute (and cache on the mesh) per-vertex normals, so they get exported."""
    return mesh.vertex_normals
