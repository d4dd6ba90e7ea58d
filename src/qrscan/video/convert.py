"""
Raw frame to RGB still image conversion.

Two converters are provided, selected by pixel format:

- YUYV (packed YUV 4:2:2) is converted in numpy with fixed-point BT.601
  coefficients.
- MJPG frames are handed to OpenCV's image codec.

A still image is an ``(height, width, 3)`` uint8 RGB array.
"""

from typing import Callable, Dict, Tuple

import cv2
import numpy as np

from qrscan.errors import DecodeFailure, UnsupportedFormat
from qrscan.video.formats import FourCC, FOURCC_MJPG, FOURCC_YUYV

Converter = Callable[[bytes, int, int], np.ndarray]


def yuv_to_rgb(y: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """
    Convert YUV 4:4:4 samples to RGB.

    Uses the integer BT.601 studio-swing transform. ``y``, ``u`` and ``v``
    must broadcast together; the result gains a trailing RGB axis.
    """
    c = y.astype(np.int32) - 16
    d = u.astype(np.int32) - 128
    e = v.astype(np.int32) - 128

    r = (298 * c + 409 * e + 128) >> 8
    g = (298 * c - 100 * d - 208 * e + 128) >> 8
    b = (298 * c + 516 * d + 128) >> 8

    rgb = np.stack(np.broadcast_arrays(r, g, b), axis=-1)
    return np.clip(rgb, 0, 255).astype(np.uint8)


def yuyv_to_rgb(raw: bytes, width: int, height: int) -> np.ndarray:
    """
    Convert a packed YUYV frame to RGB.

    Each 4-byte group ``[Y0, U, Y1, V]`` covers two horizontally adjacent
    pixels sharing one chroma pair.

    Raises:
        DecodeFailure: if the size is invalid or the buffer length does not
            match ``width * height * 2``.
    """
    if width <= 0 or height <= 0 or width % 2:
        raise DecodeFailure(f"Invalid YUYV frame size {width}x{height}")

    expected = width * height * 2
    if len(raw) != expected:
        raise DecodeFailure(
            f"YUYV buffer has {len(raw)} bytes, expected {expected} "
            f"for {width}x{height}"
        )

    packed = np.frombuffer(raw, dtype=np.uint8).reshape(height, width // 2, 4)
    luma = packed[:, :, 0::2]
    u = packed[:, :, 1:2]
    v = packed[:, :, 3:4]

    # (height, width // 2, 2, 3) -> (height, width, 3)
    return yuv_to_rgb(luma, u, v).reshape(height, width, 3)


def decode_still(raw: bytes, width: int = 0, height: int = 0) -> np.ndarray:
    """
    Decode an already-encoded image (JPEG, PNG, ...) to RGB.

    ``width`` and ``height`` are ignored; the codec reads the real
    dimensions from the stream.

    Raises:
        DecodeFailure: if the codec does not recognise the data.
    """
    if not raw:
        raise DecodeFailure("Failed to convert to image: empty buffer")

    try:
        frame = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise DecodeFailure(f"Failed to convert to image: {e}") from e

    if frame is None:
        raise DecodeFailure("Failed to convert to image")

    return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)


# Preference order: uncompressed first
CONVERTERS: Dict[FourCC, Converter] = {
    FOURCC_YUYV: yuyv_to_rgb,
    FOURCC_MJPG: decode_still,
}

SUPPORTED_FORMATS: Tuple[FourCC, ...] = tuple(CONVERTERS)


def get_converter(fourcc: FourCC) -> Converter:
    """
    Get the converter bound to a pixel format.

    Raises:
        UnsupportedFormat: if no converter handles ``fourcc``.
    """
    try:
        return CONVERTERS[fourcc]
    except KeyError:
        raise UnsupportedFormat(f"No converter for pixel format {fourcc}") from None
