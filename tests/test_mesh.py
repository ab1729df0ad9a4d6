from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
import trimesh

from depthmesh.core.mesh import TriangleMesh, ensure_normals, mesh_transform
from depthmesh.core.mesh_io import save_ply_mesh


def _square_mesh(colored: bool = False) -> TriangleMesh:
    mesh = TriangleMesh(
        vertices=np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]]),
        faces=np.array([[0, 1, 2], [1, 3, 2]], dtype=np.int64),
    )
    if colored:
        mesh.colors = np.array([[1.0, 0.0, 0.0, 1.0], [0.0, 1.0, 0.0, 1.0], [0.0, 0.0, 1.0, 1.0], [0.2, 0.4, 0.6, 1.0]])
    return mesh


def _ply_header(path: Path) -> str:
    return path.read_bytes().split(b"end_header")[0].decode("ascii")


def test_to_trimesh_keeps_order_and_colors():
    tm = _square_mesh(colored=True).to_trimesh()
    assert np.array_equal(tm.faces, [[0, 1, 2], [1, 3, 2]])
    assert np.allclose(tm.vertices[3], [1.0, 1.0, 0.0])
    assert tm.visual.vertex_colors[3].tolist() == [51, 102, 153, 255]

    plain = _square_mesh().to_trimesh()
    assert plain.visual.kind is None


def test_ensure_normals_flat_square():
    tm = _square_mesh().to_trimesh()
    n = ensure_normals(tm)
    assert n.shape == (4, 3)
    assert np.allclose(n, [0.0, 0.0, 1.0])


def test_transform_moves_vertices_and_rotates_normals():
    tm = _square_mesh().to_trimesh()
    ensure_normals(tm)
    m = np.eye(4)
    m[:3, :3] = [[1.0, 0.0, 0.0], [0.0, 0.0, -1.0], [0.0, 1.0, 0.0]]  # +90 deg about x
    m[:3, 3] = [0.0, 0.0, 2.0]
    mesh_transform(tm, m)

    assert np.allclose(tm.vertices[3], [1.0, 0.0, 3.0])
    assert np.allclose(tm.vertex_normals[0], [0.0, -1.0, 0.0])


def test_save_ply_ascii_roundtrip(tmp_path: Path):
    out = save_ply_mesh(_square_mesh(colored=True), tmp_path / "m.ply", write_vertex_normals=False, binary=False)

    header = _ply_header(out)
    assert "format ascii 1.0" in header
    assert "element vertex 4" in header
    assert "element face 2" in header
    assert "red" in header

    back = trimesh.load(out, process=False)
    assert np.allclose(back.vertices, _square_mesh().vertices)
    assert np.array_equal(back.faces, [[0, 1, 2], [1, 3, 2]])
    assert back.visual.vertex_colors[0].tolist() == [255, 0, 0, 255]


def test_save_ply_binary_with_normals(tmp_path: Path):
    out = save_ply_mesh(_square_mesh(colored=True), tmp_path / "sub" / "m.ply", write_vertex_colors=False)

    header = _ply_header(out)
    assert "binary_little_endian" in header
    assert "nx" in header
    assert "red" not in header

    back = trimesh.load(out, process=False)
    assert np.array_equal(back.faces, [[0, 1, 2], [1, 3, 2]])


def test_save_ply_trimesh_without_colors(tmp_path: Path):
    tm = _square_mesh(colored=True).to_trimesh()
    out = save_ply_mesh(tm, tmp_path / "m.ply", write_vertex_normals=False, write_vertex_colors=False)
    assert "red" not in _ply_header(out)


def test_save_ply_rejects_other_suffix(tmp_path: Path):
    with pytest.raises(ValueError):
        save_ply_mesh(_square_mesh(), tmp_path / "m.obj")
