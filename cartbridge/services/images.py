"""Letterboxed image resize for saved product/category images.

Only JPEG, GIF and PNG sources are scaled; the result keeps the source
format and is written over the original file in place.
"""
from __future__ import annotations

import os
import tempfile
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from cartbridge.utils.logging import get_logger

LOG = get_logger("images")

SUPPORTED_FORMATS = frozenset({"JPEG", "GIF", "PNG"})
WHITE = (255, 255, 255)

RESULT_OK = "OK"
RESULT_NOT_SUPPORTED = "IMAGE NOT SUPPORTED"
RESULT_SCALE_FAILED = "CAN'T SCALE IMAGE"


def fit_size(source: Tuple[int, int], target: Tuple[int, int]) -> Tuple[int, int]:
    """Largest size with the source aspect ratio that fits inside ``target``."""
    src_w, src_h = source
    dst_w, dst_h = target
    ratio = min(dst_w / src_w, dst_h / src_h)
    return max(1, int(src_w * ratio)), max(1, int(src_h * ratio))


def letterbox(image: Image.Image, width: int, height: int) -> Image.Image:
    """``image`` scaled to fit and centred on a white ``width`` x ``height`` canvas."""
    next_w, next_h = fit_size(image.size, (width, height))
    source = image.convert("RGBA") if image.mode in ("P", "LA", "RGBA", "PA") else image.convert("RGB")
    scaled = source.resize((next_w, next_h), Image.Resampling.LANCZOS)
    canvas = Image.new("RGB", (width, height), WHITE)
    offset = ((width - next_w) // 2, (height - next_h) // 2)
    if scaled.mode == "RGBA":
        canvas.paste(scaled, offset, scaled)
    else:
        canvas.paste(scaled, offset)
    return canvas


def _save_kwargs(fmt: str) -> dict:
    if fmt == "JPEG":
        return {"quality": 100}
    return {}


def scale_in_place(path: str, width: int, height: int) -> str:
    """Letterbox the image at ``path``; returns the wire status string."""
    try:
        with Image.open(path) as img:
            fmt = img.format
            if fmt not in SUPPORTED_FORMATS:
                return RESULT_NOT_SUPPORTED
            img.load()
            result = letterbox(img, width, height)
    except (UnidentifiedImageError, OSError) as exc:
        LOG.info("image not scalable path=%s err=%s", path, exc)
        return RESULT_NOT_SUPPORTED

    if fmt == "GIF":
        result = result.convert("P", palette=Image.Palette.ADAPTIVE)
    directory = os.path.dirname(path) or "."
    tmp_path = None
    try:
        tmp_fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".scale-", suffix=".tmp")
        with os.fdopen(tmp_fd, "wb") as fh:
            result.save(fh, format=fmt, **_save_kwargs(fmt))
        os.replace(tmp_path, path)
    except (OSError, ValueError) as exc:
        LOG.warning("image scale failed path=%s err=%s", path, exc)
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                pass
        return RESULT_SCALE_FAILED
    return RESULT_OK


__all__ = [
    "SUPPORTED_FORMATS",
    "RESULT_OK",
    "RESULT_NOT_SUPPORTED",
    "RESULT_SCALE_FAILED",
    "fit_size",
    "letterbox",
    "scale_in_place",
]
