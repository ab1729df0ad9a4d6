from __future__ import annotations

from pathlib import Path

import trimesh

from depthmesh.core.mesh import TriangleMesh


def save_ply_mesh(
    mesh: TriangleMesh | trimesh.Trimesh,
    path: str | Path,
    *,
    write_vertex_normals: bool = True,
    write_vertex_colors: bool = True,
    binary: bool = True,
) -> Path:
    """
    Write a mesh as PLY (binary little endian by default, or ascii) via trimesh.

    Colors are only written when requested *and* present on the mesh.
    """
    p = Path(path)
    if p.suffix.lower() != ".ply":
        raise ValueError(f"output mesh must be a .ply file: {p}")
    p.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(mesh, TriangleMesh):
        tm = mesh.to_trimesh(with_colors=write_vertex_colors)
    elif not write_vertex_colors and mesh.visual.kind == "vertex":
        tm = trimesh.Trimesh(vertices=mesh.vertices, faces=mesh.faces, process=False)
    else:
        tm = mesh

    tm.export(
        str(p),
        file_type="ply",
        encoding="binary" if binary else "ascii",
        vertex_normal=bool(write_vertex_normals),
    )
    return p
