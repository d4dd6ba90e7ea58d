"""
qrscan - QR code scanning from V4L2 cameras

Negotiates a capture mode with a camera, converts raw frames to RGB and
decodes the QR codes and barcodes they contain.

Supports:
- YUYV and MJPG capture formats
- OpenCV and ZBar symbol decoders
- Fixed frame and fixed result streams for testing without a camera
"""

__version__ = "0.1.0"

from qrscan.errors import (
    ScanError,
    UnsupportedFormat,
    FormatNotHonored,
    DecodeFailure,
    ExhaustedInput,
)
from qrscan.scanner import QRScanStream
from qrscan.video.formats import FourCC, RawFrame, Resolution, TargetFrameSize

__all__ = [
    "ScanError",
    "UnsupportedFormat",
    "FormatNotHonored",
    "DecodeFailure",
    "ExhaustedInput",
    "QRScanStream",
    "FourCC",
    "RawFrame",
    "Resolution",
    "TargetFrameSize",
    "__version__",
]
