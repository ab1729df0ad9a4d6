"""
Depth map triangulation demo.

It does:
1) render a synthetic depth map (a ball in front of a wall) with a pinhole camera,
2) triangulate it with and without depth discontinuity filtering,
3) write both meshes as PLY and print a short summary.

The ball silhouette is an occlusion boundary: with filtering enabled no
triangle connects the ball to the wall.
"""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np

from depthmesh import CameraInfo, save_ply_mesh, triangulate_depthmap


def render_ball_and_wall(width: int, height: int, cam: CameraInfo) -> tuple[np.ndarray, np.ndarray]:
    """Return (depth, color) for a unit ball at z=4 in front of a wall at z=8."""
    inv = cam.inverse_calibration(width, height)
    yy, xx = np.meshgrid(np.arange(height, dtype=np.float64), np.arange(width, dtype=np.float64), indexing="ij")
    rays = np.stack([xx + 0.5, yy + 0.5, np.ones_like(xx)], axis=-1) @ inv.T
    rays /= np.linalg.norm(rays, axis=-1, keepdims=True)

    # Wall: plane z=8, depth is the distance along the ray.
    depth = 8.0 / rays[..., 2]

    # Ball: |t*d - c|^2 = r^2.
    c = np.array([0.0, 0.0, 4.0])
    b = rays @ c
    disc = b * b - (c @ c - 1.0)
    hit = disc > 0.0
    depth = np.where(hit, b - np.sqrt(np.where(hit, disc, 0.0)), depth)

    color = np.zeros((height, width, 3), dtype=np.uint8)
    color[..., 2] = 160
    color[hit] = (220, 80, 40)
    return depth.astype(np.float32), color


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--out", type=Path, default=Path("demo_out"))
    parser.add_argument("--width", type=int, default=160)
    parser.add_argument("--height", type=int, default=120)
    parser.add_argument("--dd-factor", type=float, default=5.0)
    args = parser.parse_args()

    cam = CameraInfo(flen=1.0)
    depth, color = render_ball_and_wall(args.width, args.height, cam)
    inv = cam.inverse_calibration(args.width, args.height)

    for name, dd in (("filtered", args.dd_factor), ("unfiltered", 0.0)):
        mesh = triangulate_depthmap(depth, color, inv, dd)
        out = save_ply_mesh(mesh, args.out / f"ball_{name}.ply")
        print(f"{name}: {mesh.num_vertices} vertices, {mesh.num_faces} faces -> {out}")


if __name__ == "__main__":
    main()
