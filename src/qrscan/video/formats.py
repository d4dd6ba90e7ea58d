"""
Pixel format and frame size types shared by the capture pipeline.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from qrscan.video.v4l2_ioctl import fourcc_to_string, string_to_fourcc


@dataclass(frozen=True)
class FourCC:
    """Four character pixel format tag, e.g. ``FourCC("YUYV")``."""
    code: str

    def __post_init__(self):
        if len(self.code) != 4:
            raise ValueError(f"FourCC must be 4 characters, got {self.code!r}")

    @classmethod
    def from_int(cls, value: int) -> "FourCC":
        """Build from the little-endian integer code used by V4L2."""
        return cls(fourcc_to_string(value))

    def to_int(self) -> int:
        return string_to_fourcc(self.code)

    def __str__(self) -> str:
        return self.code


FOURCC_NONE = FourCC("0000")
FOURCC_YUYV = FourCC("YUYV")
FOURCC_MJPG = FourCC("MJPG")


@dataclass(frozen=True)
class Resolution:
    """Video resolution."""
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def from_string(cls, s: str) -> "Resolution":
        """Parse resolution from string like '640x480'."""
        w, h = s.lower().split("x")
        return cls(int(w), int(h))


# Desired capture size requested by the caller
TargetFrameSize = Resolution

DEFAULT_TARGET = Resolution(640, 480)


@dataclass(frozen=True)
class CandidateMode:
    """One (pixel format, frame size) pair advertised by a device."""
    fourcc: FourCC
    resolution: Resolution

    @property
    def width(self) -> int:
        return self.resolution.width

    @property
    def height(self) -> int:
        return self.resolution.height


@dataclass(frozen=True)
class NegotiatedFormat:
    """Capture mode in effect for a session."""
    fourcc: FourCC
    width: int
    height: int

    @property
    def resolution(self) -> Resolution:
        return Resolution(self.width, self.height)

    def __str__(self) -> str:
        return f"{self.fourcc} {self.width}x{self.height}"


@dataclass(frozen=True)
class RawFrame:
    """Captured (or fixture) pixel buffer tagged with its format."""
    fourcc: FourCC
    width: int
    height: int
    data: bytes

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        fourcc: Union[str, FourCC],
        width: int,
        height: int,
    ) -> "RawFrame":
        """Load a raw frame dump, e.g. one saved from ``v4l2-ctl --stream-to``."""
        if isinstance(fourcc, str):
            fourcc = FourCC(fourcc)
        return cls(fourcc, width, height, Path(path).read_bytes())
