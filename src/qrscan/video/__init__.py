"""
Video module for qrscan.

Provides camera capture and frame preparation:
- V4L2 capture backend
- Capture mode negotiation
- Raw frame to RGB conversion
"""

from qrscan.video.camera import CaptureBackend, V4L2Capture
from qrscan.video.convert import SUPPORTED_FORMATS, get_converter
from qrscan.video.formats import (
    FourCC,
    CandidateMode,
    NegotiatedFormat,
    RawFrame,
    Resolution,
    TargetFrameSize,
    FOURCC_MJPG,
    FOURCC_YUYV,
)
from qrscan.video.negotiate import choose_and_set_format, choose_framesize

__all__ = [
    "CaptureBackend",
    "V4L2Capture",
    "SUPPORTED_FORMATS",
    "get_converter",
    "FourCC",
    "CandidateMode",
    "NegotiatedFormat",
    "RawFrame",
    "Resolution",
    "TargetFrameSize",
    "FOURCC_MJPG",
    "FOURCC_YUYV",
    "choose_and_set_format",
    "choose_framesize",
]
