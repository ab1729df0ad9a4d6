from depthmesh import meta
from depthmesh.core.camera import CameraInfo
from depthmesh.core.mesh import TriangleMesh, ensure_normals, mesh_transform
from depthmesh.core.mesh_io import save_ply_mesh
from depthmesh.core.triangulate import InvalidInputError, triangulate_depthmap
from depthmesh.pipeline import Scene2PsetSettings, run_scene2pset, scene_to_pointset

__all__ = [
    "meta",
    "CameraInfo",
    "TriangleMesh",
    "mesh_transform",
    "ensure_normals",
    "save_ply_mesh",
    "InvalidInputError",
    "triangulate_depthmap",
    "Scene2PsetSettings",
    "scene_to_pointset",
    "run_scene2pset",
]
