from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image


def load_color_u8(path: str | Path) -> np.ndarray:
    """
    Load a color image as uint8, (H,W,3) RGB or (H,W) for single-channel files.

    Primary backend is OpenCV (if installed). Pillow is used as a fallback,
    same as for formats the local OpenCV build cannot decode.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing {p}")
    try:
        import cv2  # type: ignore

        img = cv2.imread(str(p), cv2.IMREAD_UNCHANGED)
        if img is not None:
            if img.dtype != np.uint8:
                img = np.clip(img, 0, 255).astype(np.uint8)
            if img.ndim == 3 and img.shape[2] == 4:
                img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGB)
            elif img.ndim == 3 and img.shape[2] == 3:
                img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
            return img
    except Exception:
        # Fall back to Pillow below.
        pass

    with Image.open(p) as im:
        if im.mode not in ("L", "RGB"):
            im = im.convert("RGB")
        arr = np.asarray(im, dtype=np.uint8)
    return arr


def _read_pfm(p: Path) -> np.ndarray:
    with p.open("rb") as f:
        header = f.readline().strip()
        if header == b"Pf":
            channels = 1
        elif header == b"PF":
            channels = 3
        else:
            raise ValueError(f"{p} is not a PFM file (header {header!r})")
        dims = f.readline().split()
        if len(dims) != 2:
            raise ValueError(f"{p} has a malformed PFM size line")
        w, h = int(dims[0]), int(dims[1])
        scale = float(f.readline().strip())
        dtype = "<f4" if scale < 0 else ">f4"
        data = np.frombuffer(f.read(), dtype=dtype)
    if data.size != w * h * channels:
        raise ValueError(f"{p} holds {data.size} values, expected {w * h * channels}")
    # PFM stores rows bottom-to-top.
    arr = data.reshape(h, w, channels)[::-1]
    return arr[:, :, 0].astype(np.float32)


def load_depth_f32(path: str | Path) -> np.ndarray:
    """
    Load a depth map as float32 (H,W). Non-finite samples become 0 (invalid).

    Supported: .npy (numpy), .pfm, and anything Pillow opens in mode "F"
    (e.g. 32-bit float TIFF).
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Missing {p}")

    suffix = p.suffix.lower()
    if suffix == ".npy":
        arr = np.load(p)
    elif suffix == ".pfm":
        arr = _read_pfm(p)
    else:
        with Image.open(p) as im:
            arr = np.asarray(im.convert("F"), dtype=np.float32)

    arr = np.asarray(arr, dtype=np.float32)
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]
    if arr.ndim != 2:
        raise ValueError(f"{p} depth map must be single-channel, got shape {arr.shape}")
    return np.where(np.isfinite(arr), arr, 0.0).astype(np.float32)


def save_depth_pfm(path: str | Path, depth: np.ndarray) -> Path:
    """Write a single-channel little-endian PFM."""
    p = Path(path)
    depth = np.asarray(depth, dtype="<f4")
    if depth.ndim != 2:
        raise ValueError("depth must be (H,W)")
    h, w = depth.shape
    with p.open("wb") as f:
        f.write(b"Pf\n")
        f.write(f"{w} {h}\n".encode("ascii"))
        f.write(b"-1.0\n")
        f.write(np.ascontiguousarray(depth[::-1]).tobytes())
    return p
