from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from depthmesh.core.mesh import TriangleMesh

logger = logging.getLogger(__name__)

# Candidate triangles, corner indices relative to a 2x2 block laid out as
#   0 1
#   2 3
# Triangle type t (1..4) is BLOCK_TRIANGLES[t - 1]; type 0 means "no triangle".
BLOCK_TRIANGLES: tuple[tuple[int, int, int], ...] = (
    (0, 2, 1),
    (0, 3, 1),
    (0, 2, 3),
    (1, 2, 3),
)

# Validity mask with exactly three valid corners -> type of the triangle avoiding the missing one.
_MASK_TO_TYPE = ((7, 1), (11, 2), (13, 3), (14, 4))


class InvalidInputError(ValueError):
    pass


@dataclass
class VertexIndexMap:
    """Per-pixel vertex index; `index[i]` is only meaningful where `assigned[i]` is set."""

    index: np.ndarray  # (H*W,) int64
    assigned: np.ndarray  # (H*W,) bool

    @classmethod
    def empty(cls, num_pixels: int) -> "VertexIndexMap":
        return cls(index=np.zeros((num_pixels,), dtype=np.int64), assigned=np.zeros((num_pixels,), dtype=bool))


def _pixel_rays(x, y, invproj) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    x, y = np.broadcast_arrays(x, y)
    pix = np.stack([x + 0.5, y + 0.5, np.ones_like(x)], axis=-1)
    return pix @ np.asarray(invproj, dtype=np.float64).reshape(3, 3).T


def pixel_3dpos(x, y, depth, invproj) -> np.ndarray:
    """
    Camera-space position of pixel (x, y) at the given depth.

    Depth is the distance from the camera center along the pixel ray, not the
    z coordinate, and must be > 0. Accepts scalars or same-shape arrays;
    returns shape (..., 3).
    """
    ray = _pixel_rays(x, y, invproj)
    depth = np.asarray(depth, dtype=np.float64)
    return ray / np.linalg.norm(ray, axis=-1, keepdims=True) * depth[..., None]


def pixel_footprint(x, y, depth, invproj) -> np.ndarray:
    """Approximate camera-space size of one pixel at the given depth (scalars or arrays)."""
    ray = _pixel_rays(x, y, invproj)
    inv00 = float(np.asarray(invproj, dtype=np.float64).reshape(3, 3)[0, 0])
    return inv00 * np.asarray(depth, dtype=np.float64) / np.linalg.norm(ray, axis=-1)


def is_depth_discontinuity(widths, depths, dd_factor: float, i1: int, i2: int):
    """
    True where corners i1, i2 of a 2x2 block lie on different surfaces.

    The depth jump is compared against the footprint of the nearer sample,
    scaled by `dd_factor` (and by sqrt(2) for the block diagonals 0-3 and 1-2).
    `widths`/`depths` are indexed by corner; entries may be scalars or arrays.
    """
    d1 = np.asarray(depths[i1])
    d2 = np.asarray(depths[i2])
    near_width = np.where(d2 < d1, widths[i2], widths[i1])

    if i1 + i2 == 3:
        dd_factor *= math.sqrt(2.0)

    return np.abs(d1 - d2) > near_width * dd_factor


def block_mask(depths) -> tuple[np.ndarray, np.ndarray]:
    """Return (mask, count) per block: bit j of mask is set iff depths[j] > 0."""
    valid = np.asarray(depths) > 0.0
    mask = sum(valid[j].astype(np.int64) << j for j in range(4))
    return mask, valid.sum(axis=0)


def select_block_triangles(depths, widths, dd_factor: float) -> np.ndarray:
    """
    Pick the triangle types to emit for each block.

    `depths` (and `widths`, the corner footprints) have shape (4, N), one
    column per block. Returns (N, 2) int8 triangle types in emission order,
    0 for an empty slot.
    """
    depths = np.asarray(depths)
    if depths.ndim == 1:
        depths = depths[:, None]
    mask, _count = block_mask(depths)

    tri = np.zeros((depths.shape[1], 2), dtype=np.int8)
    for m, t in _MASK_TO_TYPE:
        tri[mask == m, 0] = t

    # Full blocks: split along the diagonal with the smaller depth difference; ties go to 1-2.
    full = mask == 15
    ddiff1 = np.abs(depths[0] - depths[3])
    ddiff2 = np.abs(depths[1] - depths[2])
    split03 = full & (ddiff1 < ddiff2)
    tri[split03] = (3, 4)
    tri[full & ~split03] = (2, 4)

    if dd_factor == 0.0:
        return tri

    widths = np.asarray(widths, dtype=np.float64)
    if widths.ndim == 1:
        widths = widths[:, None]
    for t, (a, b, c) in enumerate(BLOCK_TRIANGLES, start=1):
        broken = (
            is_depth_discontinuity(widths, depths, dd_factor, a, b)
            | is_depth_discontinuity(widths, depths, dd_factor, b, c)
            | is_depth_discontinuity(widths, depths, dd_factor, c, a)
        )
        tri[(tri == t) & broken[:, None]] = 0
    return tri


def _block_corners(grid: np.ndarray) -> np.ndarray:
    return np.stack([grid[:-1, :-1], grid[:-1, 1:], grid[1:, :-1], grid[1:, 1:]]).reshape(4, -1)


def _emit_triangles(mesh: TriangleMesh, vmap: VertexIndexMap, tri_pix: np.ndarray, dm_flat: np.ndarray, width: int, invproj) -> None:
    """
    Number vertices in first-touch order over `tri_pix` (T,3 pixel indices) and append faces.

    Equivalent to walking the triangles in order and allocating a vertex the
    first time a pixel is referenced.
    """
    if tri_pix.shape[0] == 0:
        return
    pixels, first = np.unique(tri_pix.reshape(-1), return_index=True)
    new_pixels = pixels[np.argsort(first, kind="stable")]

    start = mesh.num_vertices
    vmap.index[new_pixels] = np.arange(start, start + new_pixels.size, dtype=np.int64)
    vmap.assigned[new_pixels] = True

    pos = pixel_3dpos(new_pixels % width, new_pixels // width, dm_flat[new_pixels], invproj)
    mesh.vertices = np.concatenate([mesh.vertices, pos], axis=0)
    mesh.faces = np.concatenate([mesh.faces, vmap.index[tri_pix]], axis=0)


def _check_inputs(depthmap, invproj, dd_factor: float) -> tuple[np.ndarray, np.ndarray]:
    if depthmap is None:
        raise InvalidInputError("Null depthmap given")
    dm = np.asarray(depthmap, dtype=np.float32)
    if dm.ndim == 3 and dm.shape[2] == 1:
        dm = dm[:, :, 0]
    if dm.ndim != 2:
        raise InvalidInputError(f"depthmap must be (H,W) or (H,W,1), got shape {dm.shape}")

    invproj = np.asarray(invproj, dtype=np.float64)
    if invproj.size != 9:
        raise InvalidInputError("invproj must be a 3x3 matrix")
    invproj = invproj.reshape(3, 3)
    if not np.all(np.isfinite(invproj)):
        raise InvalidInputError("invproj must be finite")

    if not dd_factor >= 0.0:
        raise InvalidInputError("dd_factor must be >= 0")
    return dm, invproj


def colorize_vertices(mesh: TriangleMesh, vmap: VertexIndexMap, colorimage, width: int, height: int) -> TriangleMesh:
    """
    Paint vertices from a pixel-aligned color image using the pixel -> vertex map.

    Grayscale images are replicated into RGB; alpha is always 1. On a size
    mismatch the mesh is left uncolored.
    """
    if colorimage is None:
        return mesh
    ci = np.asarray(colorimage)
    if ci.ndim == 2:
        ci = ci[:, :, None]
    if ci.ndim != 3 or ci.shape[0] != height or ci.shape[1] != width:
        logger.warning("Color image dimension mismatch: color %s vs depth %s", ci.shape[:2], (height, width))
        return mesh

    pix = np.flatnonzero(vmap.assigned)
    px = ci.reshape(height * width, ci.shape[2])[pix].astype(np.float64)
    rgb = px[:, :3] if ci.shape[2] >= 3 else np.repeat(px[:, :1], 3, axis=1)

    colors = np.full((mesh.num_vertices, 4), 255.0, dtype=np.float64)
    colors[vmap.index[pix], :3] = rgb
    mesh.colors = colors / 255.0
    return mesh


def triangulate_depthmap(depthmap, colorimage, invproj, dd_factor: float = 5.0) -> TriangleMesh:
    """
    Triangulate a depth map into a camera-space mesh.

    Every 2x2 block with at least three valid (> 0) depths contributes up to two
    triangles; triangles spanning a depth discontinuity are dropped unless
    `dd_factor` is 0. Vertices are created once per contributing pixel, in
    raster block order. If `colorimage` is given and matches the depth map
    size, vertices are colored from it.
    """
    dd_factor = float(dd_factor)
    dm, invproj = _check_inputs(depthmap, invproj, dd_factor)
    height, width = dm.shape

    mesh = TriangleMesh()
    vmap = VertexIndexMap.empty(width * height)

    if width >= 2 and height >= 2:
        yy, xx = np.meshgrid(np.arange(height, dtype=np.int64), np.arange(width, dtype=np.int64), indexing="ij")
        depths = _block_corners(dm)
        widths = _block_corners(pixel_footprint(xx, yy, dm, invproj)) if dd_factor > 0.0 else None
        tri_types = select_block_triangles(depths, widths, dd_factor)

        # np.nonzero walks (block, slot) in row-major order: raster blocks, then slot 0 before slot 1.
        block_ids, slots = np.nonzero(tri_types)
        types = tri_types[block_ids, slots].astype(np.int64)
        corner_offsets = np.array(
            [[(j % 2) + width * (j // 2) for j in tri] for tri in BLOCK_TRIANGLES],
            dtype=np.int64,
        )
        base = (yy[:-1, :-1] * width + xx[:-1, :-1]).reshape(-1)
        tri_pix = base[block_ids, None] + corner_offsets[types - 1]
        _emit_triangles(mesh, vmap, tri_pix, dm.reshape(-1), width, invproj)

    return colorize_vertices(mesh, vmap, colorimage, width, height)
