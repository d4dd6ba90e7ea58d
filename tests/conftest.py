"""
Pytest configuration and shared fixtures for qrscan tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Generator, List, Optional
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from qrscan.video.camera import CaptureBackend
from qrscan.video.formats import CandidateMode, FourCC, NegotiatedFormat


# ============================================================================
# Temporary Directory Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text("""
camera:
  device: /dev/video2
  width: 1280
  height: 720
  buffer_count: 8
  formats: [MJPG, YUYV]
decoder:
  backend: zbar
logging:
  level: DEBUG
""")
    return config_path


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Return a sample configuration dictionary."""
    return {
        "camera": {
            "device": "/dev/video1",
            "width": 800,
            "height": 600,
            "buffer_count": 4,
            "formats": ["YUYV"],
        },
        "decoder": {
            "backend": "opencv",
        },
        "logging": {
            "level": "INFO",
        },
    }


# ============================================================================
# Frame Fixtures
# ============================================================================

def make_yuyv(width: int, height: int, y: int, u: int, v: int) -> bytes:
    """Flat YUYV frame where every pixel pair is (y, u, y, v)."""
    return bytes([y, u, y, v]) * (width * height // 2)


def luma_to_yuyv(luma: np.ndarray) -> bytes:
    """Pack a grayscale image as YUYV with neutral chroma."""
    height, width = luma.shape
    packed = np.full((height, width // 2, 4), 128, dtype=np.uint8)
    packed[:, :, 0] = luma[:, 0::2]
    packed[:, :, 2] = luma[:, 1::2]
    return packed.tobytes()


@pytest.fixture
def yuyv_frame():
    """Factory for flat YUYV frames."""
    return make_yuyv


@pytest.fixture
def yuyv_from_luma():
    """Factory packing grayscale images as YUYV."""
    return luma_to_yuyv


def make_qr_image(text: str, scale: int = 8, border: int = 32) -> np.ndarray:
    """Render ``text`` as a grayscale QR code with a white quiet zone."""
    import cv2

    encoder = cv2.QRCodeEncoder.create()
    modules = encoder.encode(text)
    image = cv2.resize(
        modules,
        (modules.shape[1] * scale, modules.shape[0] * scale),
        interpolation=cv2.INTER_NEAREST,
    )
    return cv2.copyMakeBorder(
        image, border, border, border, border, cv2.BORDER_CONSTANT, value=255,
    )


@pytest.fixture
def qr_image():
    """Factory for grayscale QR code images."""
    return make_qr_image


# ============================================================================
# Mock Hardware Fixtures
# ============================================================================

class FakeCaptureBackend(CaptureBackend):
    """In-memory capture backend."""

    def __init__(
        self,
        modes: Optional[List[CandidateMode]] = None,
        frames: Optional[List[bytes]] = None,
        substitute: Optional[FourCC] = None,
    ):
        self.modes = modes or []
        self.frames = list(frames or [])
        self.substitute = substitute
        self.enumerated: List[FourCC] = []
        self.requested: Optional[NegotiatedFormat] = None
        self.started_with: Optional[int] = None
        self.captured = 0
        self.closed = False

    def enum_framesizes(self, fourcc):
        self.enumerated.append(fourcc)
        return [mode for mode in self.modes if mode.fourcc == fourcc]

    def set_format(self, fourcc, width, height):
        self.requested = NegotiatedFormat(fourcc, width, height)
        return NegotiatedFormat(self.substitute or fourcc, width, height)

    def start(self, buffer_count=30):
        self.started_with = buffer_count

    def next_buffer(self):
        self.captured += 1
        if not self.frames:
            raise OSError(5, "Input/output error")
        return self.frames.pop(0)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_pyzbar():
    """Install a stand-in pyzbar module; yields its ``decode`` mock."""
    pyzbar_module = MagicMock()
    with patch.dict(sys.modules, {
        "pyzbar": pyzbar_module,
        "pyzbar.pyzbar": pyzbar_module.pyzbar,
    }):
        yield pyzbar_module.pyzbar.decode


@pytest.fixture
def missing_pyzbar():
    """Make ``import pyzbar`` fail as if it were not installed."""
    with patch.dict(sys.modules, {"pyzbar": None, "pyzbar.pyzbar": None}):
        yield


@pytest.fixture
def fake_backend_factory():
    """Factory returning a FakeCaptureBackend for any device path."""
    def _create(**kwargs):
        backend = FakeCaptureBackend(**kwargs)

        def _open(device_path):
            backend.device_path = device_path
            return backend
        return backend, _open
    return _create


# ============================================================================
# Clean Environment Fixture
# ============================================================================

@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Ensure clean environment for each test."""
    # Remove any qrscan-specific env vars that might interfere
    for key in list(os.environ.keys()):
        if key.startswith("QRSCAN_"):
            monkeypatch.delenv(key, raising=False)
