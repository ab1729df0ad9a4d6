from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from depthmesh.meta import CameraMeta


def _identity3() -> np.ndarray:
    return np.eye(3, dtype=np.float64)


def _zeros3() -> np.ndarray:
    return np.zeros((3,), dtype=np.float64)


@dataclass(frozen=True)
class CameraInfo:
    """
    Pinhole camera with normalized intrinsics and a world-to-camera pose.

    Convention:
    - `flen` is the focal length divided by the larger image side
    - `ppoint` is the principal point in [0,1] image fractions
    - a world point X maps to camera space as X_cam = rotation @ X + translation
    """

    flen: float
    paspect: float = 1.0
    ppoint: tuple[float, float] = (0.5, 0.5)
    rotation: np.ndarray = field(default_factory=_identity3)  # (3,3)
    translation: np.ndarray = field(default_factory=_zeros3)  # (3,)

    @property
    def is_valid(self) -> bool:
        return float(self.flen) > 0.0

    def _focal_px(self, width: float, height: float) -> tuple[float, float]:
        dim_aspect = float(width) / float(height)
        image_aspect = dim_aspect * float(self.paspect)
        if image_aspect < 1.0:
            # Portrait: the focal length is relative to the image height.
            ax = self.flen * height / self.paspect
            ay = self.flen * height
        else:
            ax = self.flen * width
            ay = self.flen * width * self.paspect
        return float(ax), float(ay)

    def calibration(self, width: int, height: int) -> np.ndarray:
        """Intrinsic matrix K (3,3) for an image of the given size in pixels."""
        ax, ay = self._focal_px(width, height)
        return np.array(
            [
                [ax, 0.0, width * self.ppoint[0]],
                [0.0, ay, height * self.ppoint[1]],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )

    def inverse_calibration(self, width: int, height: int) -> np.ndarray:
        """
        Inverse of `calibration` in closed form.

        `inverse_calibration(w, h) @ (x + 0.5, y + 0.5, 1)` is the (un-normalized)
        camera-space ray through the center of pixel (x, y).
        """
        ax, ay = self._focal_px(width, height)
        return np.array(
            [
                [1.0 / ax, 0.0, -width * self.ppoint[0] / ax],
                [0.0, 1.0 / ay, -height * self.ppoint[1] / ay],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )

    def world_to_cam(self) -> np.ndarray:
        R = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)
        t = np.asarray(self.translation, dtype=np.float64).reshape(3)
        m = np.eye(4, dtype=np.float64)
        m[:3, :3] = R
        m[:3, 3] = t
        return m

    def cam_to_world(self) -> np.ndarray:
        R = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)
        t = np.asarray(self.translation, dtype=np.float64).reshape(3)
        m = np.eye(4, dtype=np.float64)
        m[:3, :3] = R.T
        m[:3, 3] = -R.T @ t
        return m

    def camera_center(self) -> np.ndarray:
        R = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)
        t = np.asarray(self.translation, dtype=np.float64).reshape(3)
        return (-R.T @ t).astype(np.float64)


def camera_from_meta(cam: CameraMeta) -> CameraInfo:
    return CameraInfo(
        flen=float(cam.focal_length),
        paspect=float(cam.pixel_aspect),
        ppoint=(float(cam.principal_point[0]), float(cam.principal_point[1])),
        rotation=np.asarray(cam.rotation, dtype=np.float64).reshape(3, 3),
        translation=np.asarray(cam.translation, dtype=np.float64).reshape(3),
    )


def camera_from_dict(d: dict) -> CameraInfo:
    pp = d.get("principal_point", (0.5, 0.5))
    return CameraInfo(
        flen=float(d["focal_length"]),
        paspect=float(d.get("pixel_aspect", 1.0)),
        ppoint=(float(pp[0]), float(pp[1])),
        rotation=np.asarray(d.get("rotation", np.eye(3)), dtype=np.float64).reshape(3, 3),
        translation=np.asarray(d.get("translation", np.zeros(3)), dtype=np.float64).reshape(3),
    )


def camera_to_dict(cam: CameraInfo) -> dict:
    return {
        "focal_length": float(cam.flen),
        "pixel_aspect": float(cam.paspect),
        "principal_point": [float(cam.ppoint[0]), float(cam.ppoint[1])],
        "rotation": np.asarray(cam.rotation, dtype=np.float64).reshape(-1).tolist(),
        "translation": np.asarray(cam.translation, dtype=np.float64).reshape(3).tolist(),
    }
