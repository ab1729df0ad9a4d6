from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from depthmesh.core.camera import CameraInfo, camera_from_meta
from depthmesh.core.image_io import load_color_u8, load_depth_f32
from depthmesh.meta import ViewMeta, ViewMetaValidationError, load_view_meta


@dataclass
class View:
    """A single view directory: meta.json plus the images it references."""

    path: Path
    meta: ViewMeta
    _cache: dict[str, np.ndarray] = field(default_factory=dict, repr=False)

    @property
    def view_id(self) -> int:
        return self.meta.view_id

    @property
    def name(self) -> str:
        return self.meta.name

    def get_camera(self) -> CameraInfo:
        return camera_from_meta(self.meta.camera)

    def has_image(self, name: str) -> bool:
        return name in self.meta.images

    def _image_path(self, name: str) -> Path | None:
        fname = self.meta.images.get(name)
        if fname is None:
            return None
        return self.path / fname

    def get_float_image(self, name: str) -> np.ndarray | None:
        """Depth-like float image, or None if the view has no image of that name."""
        key = f"float:{name}"
        if key not in self._cache:
            p = self._image_path(name)
            if p is None:
                return None
            self._cache[key] = load_depth_f32(p)
        return self._cache[key]

    def get_byte_image(self, name: str) -> np.ndarray | None:
        """uint8 image, or None if the view has no image of that name."""
        key = f"byte:{name}"
        if key not in self._cache:
            p = self._image_path(name)
            if p is None:
                return None
            self._cache[key] = load_color_u8(p)
        return self._cache[key]

    def cache_cleanup(self) -> None:
        self._cache.clear()


@dataclass
class Scene:
    path: Path
    views: list[View]

    @classmethod
    def load(cls, scene_dir: str | Path) -> "Scene":
        scene_dir = Path(scene_dir).resolve()
        views_dir = scene_dir / "views"
        if not views_dir.exists():
            raise FileNotFoundError(f"Missing {views_dir}")

        views: list[View] = []
        for view_dir in sorted(p for p in views_dir.iterdir() if p.is_dir()):
            meta_path = view_dir / "meta.json"
            if not meta_path.exists():
                raise FileNotFoundError(f"Missing {meta_path}")
            try:
                meta = load_view_meta(meta_path)
            except ViewMetaValidationError as e:
                raise ValueError(f"{meta_path} invalid view meta: {e}") from e
            views.append(View(path=view_dir, meta=meta))

        views.sort(key=lambda v: v.view_id)
        ids = [v.view_id for v in views]
        if len(set(ids)) != len(ids):
            raise ValueError(f"{scene_dir} has duplicate view ids: {ids}")
        return cls(path=scene_dir, views=views)

    def get_view(self, view_id: int) -> View:
        for v in self.views:
            if v.view_id == int(view_id):
                return v
        raise IndexError(f"No view with id {view_id} in {self.path}")
