from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest
import trimesh
from PIL import Image

from depthmesh.cli.main import main
from depthmesh.pipeline import Scene2PsetSettings, run_scene2pset, scene_to_pointset
from depthmesh.scene import Scene


def _ply_header(path: Path) -> str:
    return path.read_bytes().split(b"end_header")[0].decode("ascii")


def _write_view(view_dir: Path, *, view_id: int, depth: np.ndarray, color: np.ndarray | None, scale: int = 0) -> None:
    view_dir.mkdir(parents=True, exist_ok=True)
    dm_name = f"depth-L{scale}"
    img_name = "undistorted" if scale == 0 else f"undist-L{scale}"
    images = {dm_name: f"{dm_name}.npy"}
    np.save(view_dir / f"{dm_name}.npy", depth.astype(np.float32))
    if color is not None:
        images[img_name] = f"{img_name}.png"
        Image.fromarray(color).save(view_dir / f"{img_name}.png")

    meta = {
        "schema_version": "depthmesh.view.v0",
        "view": {"id": view_id, "name": f"view_{view_id:04d}"},
        "camera": {
            "focal_length": 1.0,
            "pixel_aspect": 1.0,
            "principal_point": [0.5, 0.5],
            "rotation": [1, 0, 0, 0, 1, 0, 0, 0, 1],
            "translation": [0.0, 0.0, -5.0],
        },
        "images": images,
    }
    (view_dir / "meta.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")


def _write_scene(root: Path) -> Path:
    scene = root / "scene"
    color = np.zeros((4, 6, 3), dtype=np.uint8)
    color[..., 1] = 255
    _write_view(scene / "views" / "view_0000.mve", view_id=0, depth=np.full((4, 6), 2.0), color=color)
    _write_view(
        scene / "views" / "view_0001.mve",
        view_id=1,
        depth=np.full((2, 3), 2.0),
        color=np.zeros((3, 3, 3), dtype=np.uint8),
        scale=1,
    )
    return scene


def test_scene_load_sorts_views(tmp_path: Path) -> None:
    scene = Scene.load(_write_scene(tmp_path))
    assert [v.view_id for v in scene.views] == [0, 1]
    view = scene.get_view(1)
    assert view.get_float_image("depth-L1").shape == (2, 3)
    assert view.get_byte_image("undistorted") is None
    with pytest.raises(IndexError):
        scene.get_view(7)


def test_scene_to_pointset_world_space_with_colors(tmp_path: Path) -> None:
    scene = _write_scene(tmp_path)
    mesh = scene_to_pointset(Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "o.ply", view_id=0))

    assert len(mesh.vertices) == 24
    assert len(mesh.faces) == 5 * 3 * 2
    # Camera center is at z=5 in world space; every vertex is 2 away from it.
    center = np.array([0.0, 0.0, 5.0])
    assert np.allclose(np.linalg.norm(mesh.vertices - center, axis=-1), 2.0)
    assert np.all(mesh.vertices[:, 2] > 5.0)
    assert np.all(mesh.visual.vertex_colors == [0, 255, 0, 255])
    assert np.allclose(np.linalg.norm(mesh.vertex_normals, axis=-1), 1.0)


def test_scene_to_pointset_color_mismatch_and_options(tmp_path: Path) -> None:
    scene = _write_scene(tmp_path)
    mesh = scene_to_pointset(
        Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "o.ply", view_id=1, scale=1, with_normals=False)
    )
    assert len(mesh.faces) == 4
    assert mesh.visual.kind is None

    no_color = scene_to_pointset(Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "o.ply", view_id=0, with_colors=False))
    assert no_color.visual.kind is None

    with pytest.raises(KeyError):
        scene_to_pointset(Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "o.ply", view_id=0, scale=2))


def test_scene_to_pointset_without_color_image(tmp_path: Path) -> None:
    scene = tmp_path / "scene"
    _write_view(scene / "views" / "view_0000.mve", view_id=0, depth=np.full((3, 3), 2.0), color=None)
    mesh = scene_to_pointset(Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "o.ply", view_id=0))
    assert len(mesh.faces) == 8
    assert mesh.visual.kind is None


def test_settings_image_names() -> None:
    s0 = Scene2PsetSettings(scenedir=Path("."), outmesh=Path("o.ply"), view_id=0)
    s2 = Scene2PsetSettings(scenedir=Path("."), outmesh=Path("o.ply"), view_id=0, scale=2)
    assert (s0.depth_name, s0.image_name) == ("depth-L0", "undistorted")
    assert (s2.depth_name, s2.image_name) == ("depth-L2", "undist-L2")


def test_run_scene2pset_writes_ply(tmp_path: Path) -> None:
    scene = _write_scene(tmp_path)
    out = run_scene2pset(Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "out" / "pset.ply", view_id=0))
    header = _ply_header(out)
    assert "element vertex 24" in header
    assert "nx" in header
    assert "uchar green" in header

    back = trimesh.load(out, process=False)
    assert len(back.faces) == 30
    assert np.all(back.visual.vertex_colors == [0, 255, 0, 255])

    with pytest.raises(ValueError):
        run_scene2pset(Scene2PsetSettings(scenedir=scene, outmesh=tmp_path / "pset.obj", view_id=0))


@pytest.mark.integration
def test_cli_scene2pset_and_triangulate(tmp_path: Path, capsys) -> None:
    scene = _write_scene(tmp_path)
    out = tmp_path / "cli.ply"
    assert main(["scene2pset", str(scene), str(out), "0", "0", "--ascii", "--dd-factor", "3"]) == 0
    assert out.exists()
    assert "format ascii 1.0" in _ply_header(out)
    assert f"Wrote {out}" in capsys.readouterr().out

    depth = tmp_path / "d.npy"
    np.save(depth, np.full((5, 5), 1.5, dtype=np.float32))
    out2 = tmp_path / "tri.ply"
    assert main(["triangulate", str(depth), str(out2), "--flen", "1.0", "--no-normals"]) == 0
    header = _ply_header(out2)
    assert "element face 32" in header
    assert "nx" not in header
