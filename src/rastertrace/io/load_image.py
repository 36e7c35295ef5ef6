"""
Raster loading and channel-layout classification.

Scanning works on float RGB arrays in [0, 255] plus an opacity mask. Any
array that cannot be mapped onto that layout is rejected before the scan
starts.
"""

import os

import cv2
import numpy as np

from rastertrace.errors import UnsupportedRasterFormat
from rastertrace.tracer import get_tracer, trace

SUPPORTED_EXTENSIONS = [".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp"]


@trace(label="load_raster")
def load_raster(path):
    """
    Load an image from disk.

    Returns a tuple of (image, metadata) where image is an RGB or RGBA
    numpy array as stored (8 or 16 bit) and metadata holds width, height,
    channels and source_path.

    Raises FileNotFoundError if path does not exist.
    Raises ValueError if the image cannot be decoded.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)

    if img is None:
        raise ValueError(f"Failed to load image: {path}")

    # OpenCV stores colour channels as BGR(A)
    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    elif img.ndim == 3 and img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)

    height, width = img.shape[:2]
    channels = 1 if img.ndim == 2 else img.shape[2]

    tracer.event(f"Loaded raster: {width}x{height}, channels={channels}, dtype={img.dtype}")

    metadata = {
        "width": width,
        "height": height,
        "channels": channels,
        "source_path": os.path.abspath(path),
    }

    return img, metadata


def validate_raster_path(path):
    """
    Check that a path exists and has a supported image extension.

    Returns a list of error messages (empty if valid).
    """
    errors = []
    if not os.path.exists(path):
        errors.append(f"File not found: {path}")
        return errors

    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        errors.append(f"Unsupported image format: {path}")

    return errors


def _channel_scale(dtype):
    """Multiplier that maps a dtype's full range onto [0, 255]."""
    if dtype == np.uint8:
        return 1.0
    if dtype == np.uint16:
        return 255.0 / 65535.0
    if np.issubdtype(dtype, np.floating):
        return 255.0
    return None


def classify_raster(image):
    """
    Map a raster onto float RGB plus an opacity mask.

    Accepted layouts: (H, W) grey, (H, W, 1) grey, (H, W, 2) grey+alpha,
    (H, W, 3) RGB and (H, W, 4) RGBA, stored as uint8, uint16 or float in
    [0, 1]. Fully transparent pixels never match a colour.

    Returns (rgb, opaque) with rgb of shape (H, W, 3) in [0, 255].
    Raises UnsupportedRasterFormat for anything else.
    """
    image = np.asarray(image)
    scale = _channel_scale(image.dtype)

    if scale is None or image.ndim not in (2, 3) or image.size == 0:
        raise UnsupportedRasterFormat(image.shape, image.dtype)

    if image.ndim == 2:
        image = image[:, :, None]

    channels = image.shape[2]
    if channels not in (1, 2, 3, 4):
        raise UnsupportedRasterFormat(image.shape, image.dtype)

    data = image.astype(np.float64) * scale

    if channels in (1, 2):
        rgb = np.repeat(data[:, :, :1], 3, axis=2)
    else:
        rgb = data[:, :, :3]

    if channels in (2, 4):
        opaque = data[:, :, -1] > 0
    else:
        opaque = np.ones(data.shape[:2], dtype=bool)

    return rgb, opaque
