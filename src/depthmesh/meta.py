from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np

SCHEMA_VERSION = "depthmesh.view.v0"


class ViewMetaValidationError(ValueError):
    pass


@dataclass(frozen=True)
class CameraMeta:
    focal_length: float
    pixel_aspect: float
    principal_point: tuple[float, float]
    rotation: tuple[float, ...]  # 9 values, row-major world-to-camera
    translation: tuple[float, float, float]


@dataclass(frozen=True)
class ViewMeta:
    schema_version: str
    view_id: int
    name: str
    camera: CameraMeta
    images: dict[str, str] = field(default_factory=dict)


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ViewMetaValidationError(msg)


def load_view_meta(path: Path) -> ViewMeta:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_view_meta(data)


def parse_view_meta(data: dict[str, Any]) -> ViewMeta:
    schema_version = data.get("schema_version")
    _require(schema_version == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    view = data.get("view", {})
    camera = data.get("camera", {})
    images = data.get("images", {})

    id_raw = view.get("id")
    _require(id_raw is not None, "view.id is required")
    view_id = int(id_raw)
    _require(view_id >= 0, "view.id must be >= 0")
    name = str(view.get("name", f"view_{view_id:04d}"))

    flen_raw = camera.get("focal_length")
    _require(flen_raw is not None, "camera.focal_length is required")
    flen = float(flen_raw)
    _require(flen > 0.0, "camera.focal_length must be > 0")

    paspect = float(camera.get("pixel_aspect", 1.0))
    _require(paspect > 0.0, "camera.pixel_aspect must be > 0")

    ppoint = camera.get("principal_point", [0.5, 0.5])
    _require(isinstance(ppoint, (list, tuple)) and len(ppoint) == 2, "camera.principal_point must be [px,py]")
    ppx, ppy = float(ppoint[0]), float(ppoint[1])

    rot = np.asarray(camera.get("rotation", np.eye(3).tolist()), dtype=np.float64).reshape(-1)
    _require(rot.size == 9, "camera.rotation must hold 9 values (3x3 row-major)")
    _require(bool(np.all(np.isfinite(rot))), "camera.rotation must be finite")

    trans = np.asarray(camera.get("translation", [0.0, 0.0, 0.0]), dtype=np.float64).reshape(-1)
    _require(trans.size == 3, "camera.translation must be [tx,ty,tz]")
    _require(bool(np.all(np.isfinite(trans))), "camera.translation must be finite")

    _require(isinstance(images, dict), "images must be an object {name: filename}")
    for k, v in images.items():
        _require(isinstance(v, str) and v != "", f"images.{k} must be a non-empty filename")

    return ViewMeta(
        schema_version=schema_version,
        view_id=view_id,
        name=name,
        camera=CameraMeta(
            focal_length=flen,
            pixel_aspect=paspect,
            principal_point=(ppx, ppy),
            rotation=tuple(float(r) for r in rot),
            translation=(float(trans[0]), float(trans[1]), float(trans[2])),
        ),
        images={str(k): str(v) for k, v in images.items()},
    )


def view_meta_to_dict(meta: ViewMeta) -> dict[str, Any]:
    cam = meta.camera
    return {
        "schema_version": SCHEMA_VERSION,
        "view": {"id": int(meta.view_id), "name": meta.name},
        "camera": {
            "focal_length": cam.focal_length,
            "pixel_aspect": cam.pixel_aspect,
            "principal_point": list(cam.principal_point),
            "rotation": list(cam.rotation),
            "translation": list(cam.translation),
        },
        "images": dict(meta.images),
    }
