"""
V4L2 (Video4Linux2) ioctl definitions used by the capture backend.

Provides ctypes structures and constants for format negotiation,
frame size enumeration and memory-mapped streaming.
"""

import ctypes
from ctypes import c_uint8, c_uint32, c_int32, c_int64, c_char

# ioctl request encoding
_IOC_NRBITS = 8
_IOC_TYPEBITS = 8
_IOC_SIZEBITS = 14

_IOC_NRSHIFT = 0
_IOC_TYPESHIFT = _IOC_NRSHIFT + _IOC_NRBITS
_IOC_SIZESHIFT = _IOC_TYPESHIFT + _IOC_TYPEBITS
_IOC_DIRSHIFT = _IOC_SIZESHIFT + _IOC_SIZEBITS

_IOC_WRITE = 1
_IOC_READ = 2


def _IOC(dir_: int, type_: int, nr: int, size: int) -> int:
    return (
        (dir_ << _IOC_DIRSHIFT) |
        (type_ << _IOC_TYPESHIFT) |
        (nr << _IOC_NRSHIFT) |
        (size << _IOC_SIZESHIFT)
    )


def _IOR(type_: int, nr: int, size: int) -> int:
    return _IOC(_IOC_READ, type_, nr, size)


def _IOW(type_: int, nr: int, size: int) -> int:
    return _IOC(_IOC_WRITE, type_, nr, size)


def _IOWR(type_: int, nr: int, size: int) -> int:
    return _IOC(_IOC_READ | _IOC_WRITE, type_, nr, size)


# Buffer types
V4L2_BUF_TYPE_VIDEO_CAPTURE = 1

# Memory types
V4L2_MEMORY_MMAP = 1

# Field types
V4L2_FIELD_ANY = 0
V4L2_FIELD_NONE = 1

# Frame size types
V4L2_FRMSIZE_TYPE_DISCRETE = 1
V4L2_FRMSIZE_TYPE_CONTINUOUS = 2
V4L2_FRMSIZE_TYPE_STEPWISE = 3


def _v4l2_fourcc(a: str, b: str, c: str, d: str) -> int:
    return (
        ord(a) |
        (ord(b) << 8) |
        (ord(c) << 16) |
        (ord(d) << 24)
    )


V4L2_PIX_FMT_YUYV = _v4l2_fourcc('Y', 'U', 'Y', 'V')
V4L2_PIX_FMT_MJPEG = _v4l2_fourcc('M', 'J', 'P', 'G')

# Capability flags
V4L2_CAP_VIDEO_CAPTURE = 0x00000001
V4L2_CAP_STREAMING = 0x04000000
V4L2_CAP_DEVICE_CAPS = 0x80000000


class v4l2_capability(ctypes.Structure):
    """V4L2 device capability structure."""
    _fields_ = [
        ('driver', c_char * 16),
        ('card', c_char * 32),
        ('bus_info', c_char * 32),
        ('version', c_uint32),
        ('capabilities', c_uint32),
        ('device_caps', c_uint32),
        ('reserved', c_uint32 * 3),
    ]


class v4l2_pix_format(ctypes.Structure):
    """V4L2 single-planar pixel format structure."""
    _fields_ = [
        ('width', c_uint32),
        ('height', c_uint32),
        ('pixelformat', c_uint32),
        ('field', c_uint32),
        ('bytesperline', c_uint32),
        ('sizeimage', c_uint32),
        ('colorspace', c_uint32),
        ('priv', c_uint32),
        ('flags', c_uint32),
        ('ycbcr_enc', c_uint32),
        ('quantization', c_uint32),
        ('xfer_func', c_uint32),
    ]


class v4l2_format_union(ctypes.Union):
    """Union for format types.

    The kernel union contains pointers (``v4l2_window``), so it is pointer
    aligned; ``_align`` reproduces that so ``sizeof(v4l2_format)`` matches.
    """
    _fields_ = [
        ('pix', v4l2_pix_format),
        ('raw_data', c_char * 200),
        ('_align', ctypes.c_void_p),
    ]


class v4l2_format(ctypes.Structure):
    """V4L2 format structure."""
    _fields_ = [
        ('type', c_uint32),
        ('fmt', v4l2_format_union),
    ]


class v4l2_requestbuffers(ctypes.Structure):
    """V4L2 request buffers structure."""
    _fields_ = [
        ('count', c_uint32),
        ('type', c_uint32),
        ('memory', c_uint32),
        ('capabilities', c_uint32),
        ('flags', c_uint8),
        ('reserved', c_uint8 * 3),
    ]


class v4l2_timecode(ctypes.Structure):
    """V4L2 timecode structure."""
    _fields_ = [
        ('type', c_uint32),
        ('flags', c_uint32),
        ('frames', c_uint8),
        ('seconds', c_uint8),
        ('minutes', c_uint8),
        ('hours', c_uint8),
        ('userbits', c_uint8 * 4),
    ]


class timeval(ctypes.Structure):
    """Time value structure."""
    _fields_ = [
        ('tv_sec', c_int64),
        ('tv_usec', c_int64),
    ]


class v4l2_buffer_m(ctypes.Union):
    """Buffer memory union."""
    _fields_ = [
        ('offset', c_uint32),
        ('userptr', ctypes.c_ulong),
        ('planes', ctypes.c_void_p),
        ('fd', c_int32),
    ]


class v4l2_buffer(ctypes.Structure):
    """V4L2 buffer structure."""
    _fields_ = [
        ('index', c_uint32),
        ('type', c_uint32),
        ('bytesused', c_uint32),
        ('flags', c_uint32),
        ('field', c_uint32),
        ('timestamp', timeval),
        ('timecode', v4l2_timecode),
        ('sequence', c_uint32),
        ('memory', c_uint32),
        ('m', v4l2_buffer_m),
        ('length', c_uint32),
        ('reserved2', c_uint32),
        ('request_fd', c_int32),
    ]


class v4l2_frmsize_discrete(ctypes.Structure):
    """Single supported frame size."""
    _fields_ = [
        ('width', c_uint32),
        ('height', c_uint32),
    ]


class v4l2_frmsize_stepwise(ctypes.Structure):
    """Range of supported frame sizes."""
    _fields_ = [
        ('min_width', c_uint32),
        ('max_width', c_uint32),
        ('step_width', c_uint32),
        ('min_height', c_uint32),
        ('max_height', c_uint32),
        ('step_height', c_uint32),
    ]


class v4l2_frmsize_union(ctypes.Union):
    _fields_ = [
        ('discrete', v4l2_frmsize_discrete),
        ('stepwise', v4l2_frmsize_stepwise),
    ]


class v4l2_frmsizeenum(ctypes.Structure):
    """V4L2 frame size enumeration structure."""
    _anonymous_ = ('size',)
    _fields_ = [
        ('index', c_uint32),
        ('pixel_format', c_uint32),
        ('type', c_uint32),
        ('size', v4l2_frmsize_union),
        ('reserved', c_uint32 * 2),
    ]


# ioctl commands
VIDIOC_QUERYCAP = _IOR(ord('V'), 0, ctypes.sizeof(v4l2_capability))
VIDIOC_G_FMT = _IOWR(ord('V'), 4, ctypes.sizeof(v4l2_format))
VIDIOC_S_FMT = _IOWR(ord('V'), 5, ctypes.sizeof(v4l2_format))
VIDIOC_REQBUFS = _IOWR(ord('V'), 8, ctypes.sizeof(v4l2_requestbuffers))
VIDIOC_QUERYBUF = _IOWR(ord('V'), 9, ctypes.sizeof(v4l2_buffer))
VIDIOC_QBUF = _IOWR(ord('V'), 15, ctypes.sizeof(v4l2_buffer))
VIDIOC_DQBUF = _IOWR(ord('V'), 17, ctypes.sizeof(v4l2_buffer))
VIDIOC_STREAMON = _IOW(ord('V'), 18, ctypes.sizeof(ctypes.c_int))
VIDIOC_STREAMOFF = _IOW(ord('V'), 19, ctypes.sizeof(ctypes.c_int))
VIDIOC_ENUM_FRAMESIZES = _IOWR(ord('V'), 74, ctypes.sizeof(v4l2_frmsizeenum))


def fourcc_to_string(fourcc: int) -> str:
    """Convert FourCC code to string."""
    return (
        chr(fourcc & 0xFF) +
        chr((fourcc >> 8) & 0xFF) +
        chr((fourcc >> 16) & 0xFF) +
        chr((fourcc >> 24) & 0xFF)
    )


def string_to_fourcc(s: str) -> int:
    """Convert string to FourCC code."""
    return _v4l2_fourcc(s[0], s[1], s[2], s[3])
