"""
Camera capture backends.

Defines the interface the scanner needs from a capture device and a direct
V4L2 implementation using memory-mapped streaming I/O.
"""

import ctypes
import errno
import fcntl
import logging
import mmap
import os
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional

from qrscan.errors import UnsupportedFormat
from qrscan.video.formats import CandidateMode, FourCC, NegotiatedFormat, Resolution
from qrscan.video.v4l2_ioctl import (
    V4L2_BUF_TYPE_VIDEO_CAPTURE,
    V4L2_CAP_DEVICE_CAPS,
    V4L2_CAP_STREAMING,
    V4L2_CAP_VIDEO_CAPTURE,
    V4L2_FIELD_NONE,
    V4L2_FRMSIZE_TYPE_DISCRETE,
    V4L2_MEMORY_MMAP,
    VIDIOC_DQBUF,
    VIDIOC_ENUM_FRAMESIZES,
    VIDIOC_G_FMT,
    VIDIOC_QBUF,
    VIDIOC_QUERYBUF,
    VIDIOC_QUERYCAP,
    VIDIOC_REQBUFS,
    VIDIOC_S_FMT,
    VIDIOC_STREAMOFF,
    VIDIOC_STREAMON,
    v4l2_buffer,
    v4l2_capability,
    v4l2_format,
    v4l2_frmsizeenum,
    v4l2_requestbuffers,
)

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_COUNT = 30


class CaptureBackend(ABC):
    """Abstract capture device."""

    @abstractmethod
    def enum_framesizes(self, fourcc: FourCC) -> Iterator[CandidateMode]:
        """Yield frame sizes supported for ``fourcc`` (none if unsupported)."""
        pass

    @abstractmethod
    def set_format(self, fourcc: FourCC, width: int, height: int) -> NegotiatedFormat:
        """Request a capture mode and return the one actually applied."""
        pass

    @abstractmethod
    def start(self, buffer_count: int = DEFAULT_BUFFER_COUNT) -> None:
        """Allocate buffers and start streaming."""
        pass

    @abstractmethod
    def next_buffer(self) -> bytes:
        """Block until the next frame is captured and return a copy of it."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop streaming and release the device."""
        pass


def expand_stepwise(
    fourcc: FourCC,
    min_width: int,
    max_width: int,
    step_width: int,
    min_height: int,
    max_height: int,
    step_height: int,
) -> Iterator[CandidateMode]:
    """
    Expand a stepwise frame size range into discrete candidates.

    Bounds are inclusive; widths vary slowest. A zero step (continuous
    ranges) is treated as a step of one. Candidates are produced lazily,
    as a continuous range can hold millions of sizes.
    """
    step_width = max(step_width, 1)
    step_height = max(step_height, 1)
    for width in range(min_width, max_width + 1, step_width):
        for height in range(min_height, max_height + 1, step_height):
            yield CandidateMode(fourcc, Resolution(width, height))


class V4L2Capture(CaptureBackend):
    """
    Capture backend using the V4L2 API directly.

    The device is opened in blocking mode so ``next_buffer`` waits for the
    driver. Dequeued buffers are copied out before being handed back to the
    driver, as the mapped storage is reused for later frames.
    """

    def __init__(self, device_path: str):
        self.device_path = device_path
        self.card = ""
        self._fd: Optional[int] = None
        self._buffers: List[mmap.mmap] = []
        self._streaming = False
        self._format: Optional[NegotiatedFormat] = None

        self._fd = os.open(device_path, os.O_RDWR)
        try:
            self._query_capabilities()
        except BaseException:
            self.close()
            raise

    @property
    def format(self) -> Optional[NegotiatedFormat]:
        return self._format

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    def _query_capabilities(self) -> None:
        cap = v4l2_capability()
        fcntl.ioctl(self._fd, VIDIOC_QUERYCAP, cap)

        caps = cap.capabilities
        if caps & V4L2_CAP_DEVICE_CAPS:
            caps = cap.device_caps

        if not caps & V4L2_CAP_VIDEO_CAPTURE:
            raise UnsupportedFormat(f"{self.device_path} is not a video capture device")
        if not caps & V4L2_CAP_STREAMING:
            raise UnsupportedFormat(f"{self.device_path} does not support streaming I/O")

        self.card = cap.card.decode("utf-8", "replace")
        logger.info(f"Opened V4L2 device {self.device_path}: {self.card}")

    def enum_framesizes(self, fourcc: FourCC) -> Iterator[CandidateMode]:
        index = 0

        while True:
            frmsize = v4l2_frmsizeenum()
            frmsize.index = index
            frmsize.pixel_format = fourcc.to_int()

            try:
                fcntl.ioctl(self._fd, VIDIOC_ENUM_FRAMESIZES, frmsize)
            except OSError as e:
                # EINVAL marks the end of the list
                if e.errno == errno.EINVAL:
                    break
                raise

            if frmsize.type == V4L2_FRMSIZE_TYPE_DISCRETE:
                yield CandidateMode(
                    fourcc,
                    Resolution(frmsize.discrete.width, frmsize.discrete.height),
                )
                index += 1
                continue

            # Stepwise and continuous ranges are reported as a single entry
            step = frmsize.stepwise
            logger.debug(
                f"{self.device_path}: {fourcc} frame sizes "
                f"{step.min_width}-{step.max_width}/{step.step_width} x "
                f"{step.min_height}-{step.max_height}/{step.step_height}"
            )
            yield from expand_stepwise(
                fourcc,
                step.min_width, step.max_width, step.step_width,
                step.min_height, step.max_height, step.step_height,
            )
            return

    def set_format(self, fourcc: FourCC, width: int, height: int) -> NegotiatedFormat:
        fmt = v4l2_format()
        fmt.type = V4L2_BUF_TYPE_VIDEO_CAPTURE
        fcntl.ioctl(self._fd, VIDIOC_G_FMT, fmt)

        fmt.fmt.pix.width = width
        fmt.fmt.pix.height = height
        fmt.fmt.pix.pixelformat = fourcc.to_int()
        fmt.fmt.pix.field = V4L2_FIELD_NONE

        # The driver writes back the mode it actually applied
        fcntl.ioctl(self._fd, VIDIOC_S_FMT, fmt)

        self._format = NegotiatedFormat(
            FourCC.from_int(fmt.fmt.pix.pixelformat),
            fmt.fmt.pix.width,
            fmt.fmt.pix.height,
        )
        return self._format

    def start(self, buffer_count: int = DEFAULT_BUFFER_COUNT) -> None:
        if self._streaming:
            return

        req = v4l2_requestbuffers()
        req.count = buffer_count
        req.type = V4L2_BUF_TYPE_VIDEO_CAPTURE
        req.memory = V4L2_MEMORY_MMAP
        fcntl.ioctl(self._fd, VIDIOC_REQBUFS, req)

        if req.count < 1:
            raise OSError(errno.ENOMEM, "Insufficient buffer memory", self.device_path)

        for i in range(req.count):
            buf = v4l2_buffer()
            buf.type = V4L2_BUF_TYPE_VIDEO_CAPTURE
            buf.memory = V4L2_MEMORY_MMAP
            buf.index = i
            fcntl.ioctl(self._fd, VIDIOC_QUERYBUF, buf)

            self._buffers.append(mmap.mmap(
                self._fd,
                buf.length,
                mmap.MAP_SHARED,
                mmap.PROT_READ | mmap.PROT_WRITE,
                offset=buf.m.offset,
            ))

        for i in range(len(self._buffers)):
            buf = v4l2_buffer()
            buf.type = V4L2_BUF_TYPE_VIDEO_CAPTURE
            buf.memory = V4L2_MEMORY_MMAP
            buf.index = i
            fcntl.ioctl(self._fd, VIDIOC_QBUF, buf)

        buf_type = ctypes.c_int(V4L2_BUF_TYPE_VIDEO_CAPTURE)
        fcntl.ioctl(self._fd, VIDIOC_STREAMON, buf_type)
        self._streaming = True

        logger.info(
            f"V4L2 capture started on {self.device_path}: "
            f"{self._format or 'current format'}, {len(self._buffers)} buffers"
        )

    def next_buffer(self) -> bytes:
        if not self._streaming:
            raise OSError(errno.EINVAL, "Capture not started", self.device_path)

        buf = v4l2_buffer()
        buf.type = V4L2_BUF_TYPE_VIDEO_CAPTURE
        buf.memory = V4L2_MEMORY_MMAP
        fcntl.ioctl(self._fd, VIDIOC_DQBUF, buf)

        try:
            data = bytes(self._buffers[buf.index][:buf.bytesused])
        finally:
            fcntl.ioctl(self._fd, VIDIOC_QBUF, buf)

        return data

    def close(self) -> None:
        if self._streaming:
            self._streaming = False
            buf_type = ctypes.c_int(V4L2_BUF_TYPE_VIDEO_CAPTURE)
            try:
                fcntl.ioctl(self._fd, VIDIOC_STREAMOFF, buf_type)
            except OSError as e:
                logger.warning(f"Failed to stop stream on {self.device_path}: {e}")

        for buffer_mmap in self._buffers:
            buffer_mmap.close()
        self._buffers = []

        if self._fd is not None:
            os.close(self._fd)
            self._fd = None
            logger.info(f"V4L2 device closed: {self.device_path}")
