from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import trimesh

from depthmesh.core.mesh import ensure_normals, mesh_transform
from depthmesh.core.mesh_io import save_ply_mesh
from depthmesh.core.triangulate import triangulate_depthmap
from depthmesh.scene import Scene

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scene2PsetSettings:
    scenedir: Path
    outmesh: Path
    view_id: int
    scale: int = 0
    dmname: str | None = None
    imagename: str | None = None
    dd_factor: float = 5.0
    with_normals: bool = True
    with_colors: bool = True
    binary_ply: bool = True

    @property
    def depth_name(self) -> str:
        if self.dmname:
            return self.dmname
        return f"depth-L{int(self.scale)}"

    @property
    def image_name(self) -> str:
        if self.imagename:
            return self.imagename
        return "undistorted" if int(self.scale) == 0 else f"undist-L{int(self.scale)}"


def scene_to_pointset(settings: Scene2PsetSettings) -> trimesh.Trimesh:
    """
    Triangulate one view's depth map into a world-space mesh.

    Loads the scene, the view's depth map (required) and color image
    (optional), triangulates in camera space, then moves the mesh to world
    coordinates.
    """
    logger.info('Using depthmap "%s" and color image "%s"', settings.depth_name, settings.image_name)

    scene = Scene.load(settings.scenedir)
    view = scene.get_view(settings.view_id)

    cam = view.get_camera()
    if not cam.is_valid:
        raise ValueError(f"View {view.view_id} has an invalid camera")

    if not view.has_image(settings.depth_name):
        raise KeyError(f'View "{view.name}" has no depth map "{settings.depth_name}"')
    dm = view.get_float_image(settings.depth_name)

    ci = None
    if settings.with_colors and view.has_image(settings.image_name):
        ci = view.get_byte_image(settings.image_name)

    logger.info('Processing view "%s"%s...', view.name, " (with colors)" if ci is not None else "")

    height, width = dm.shape[:2]
    invproj = cam.inverse_calibration(width, height)
    mesh = triangulate_depthmap(dm, ci, invproj, settings.dd_factor).to_trimesh()

    mesh_transform(mesh, cam.cam_to_world())
    if settings.with_normals:
        ensure_normals(mesh)

    view.cache_cleanup()
    return mesh


def run_scene2pset(settings: Scene2PsetSettings) -> Path:
    out = Path(settings.outmesh)
    if out.suffix.lower() != ".ply":
        raise ValueError(f"output mesh must be a .ply file: {out}")

    mesh = scene_to_pointset(settings)

    logger.info("Writing final point set (%d points)...", len(mesh.vertices))
    return save_ply_mesh(
        mesh,
        out,
        write_vertex_normals=settings.with_normals,
        write_vertex_colors=settings.with_colors,
        binary=settings.binary_ply,
    )
