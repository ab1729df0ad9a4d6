from __future__ import annotations

import argparse
import logging
from pathlib import Path

from depthmesh.core.camera import CameraInfo
from depthmesh.core.image_io import load_color_u8, load_depth_f32
from depthmesh.core.mesh_io import save_ply_mesh
from depthmesh.core.triangulate import triangulate_depthmap
from depthmesh.pipeline import Scene2PsetSettings, run_scene2pset


def _run_triangulate(args: argparse.Namespace) -> Path:
    dm = load_depth_f32(args.depth)
    ci = load_color_u8(args.color) if args.color is not None else None
    height, width = dm.shape
    cam = CameraInfo(flen=args.flen, paspect=args.paspect, ppoint=(args.ppx, args.ppy))
    mesh = triangulate_depthmap(dm, ci, cam.inverse_calibration(width, height), args.dd_factor)
    return save_ply_mesh(
        mesh,
        args.outmesh,
        write_vertex_normals=not args.no_normals,
        write_vertex_colors=True,
        binary=not args.ascii,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="depthmesh")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress messages.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    s2p = sub.add_parser(
        "scene2pset",
        help="Triangulate the depth map of one scene view into a world-space PLY point set.",
    )
    s2p.add_argument("scenedir", type=Path)
    s2p.add_argument("outmesh", type=Path, help="Output mesh (.ply).")
    s2p.add_argument("scale", type=int, help="Depth map level (depth-L<scale>).")
    s2p.add_argument("view_id", type=int)
    s2p.add_argument(
        "--dd-factor",
        type=float,
        default=5.0,
        help="Depth discontinuity factor in pixel footprints (0 disables).",
    )
    s2p.add_argument("--depth-name", type=str, default=None, help="Override depth map name (default depth-L<scale>).")
    s2p.add_argument(
        "--image-name",
        type=str,
        default=None,
        help="Override color image name (default undistorted / undist-L<scale>).",
    )
    s2p.add_argument("--no-normals", action="store_true", help="Do not compute/write vertex normals.")
    s2p.add_argument("--no-colors", action="store_true", help="Do not load the color image.")
    s2p.add_argument("--ascii", action="store_true", help="Write ascii PLY instead of binary.")

    tri = sub.add_parser("triangulate", help="Triangulate a bare depth file with a pinhole camera at the origin.")
    tri.add_argument("depth", type=Path, help="Depth map (.npy, .pfm, float TIFF).")
    tri.add_argument("outmesh", type=Path, help="Output mesh (.ply).")
    tri.add_argument("--flen", type=float, required=True, help="Focal length normalized by the larger image side.")
    tri.add_argument("--paspect", type=float, default=1.0)
    tri.add_argument("--ppx", type=float, default=0.5)
    tri.add_argument("--ppy", type=float, default=0.5)
    tri.add_argument("--color", type=Path, default=None, help="Pixel-aligned color image.")
    tri.add_argument("--dd-factor", type=float, default=5.0)
    tri.add_argument("--no-normals", action="store_true")
    tri.add_argument("--ascii", action="store_true")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(message)s")

    if args.cmd == "scene2pset":
        settings = Scene2PsetSettings(
            scenedir=args.scenedir,
            outmesh=args.outmesh,
            view_id=args.view_id,
            scale=args.scale,
            dmname=args.depth_name,
            imagename=args.image_name,
            dd_factor=args.dd_factor,
            with_normals=not args.no_normals,
            with_colors=not args.no_colors,
            binary_ply=not args.ascii,
        )
        out = run_scene2pset(settings)
        print(f"Wrote {out}")
        return 0

    if args.cmd == "triangulate":
        out = _run_triangulate(args)
        print(f"Wrote {out}")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")
