"""
Configuration management for qrscan.

Handles loading, validation, and access to configuration settings.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from qrscan.video.formats import FourCC, Resolution

logger = logging.getLogger(__name__)


# Default configuration paths
CONFIG_PATHS = [
    "/etc/qrscan/config.yaml",
    os.path.expanduser("~/.config/qrscan/config.yaml"),
    "config.yaml",
]

ENV_DEVICE = "QRSCAN_DEVICE"
ENV_RESOLUTION = "QRSCAN_RESOLUTION"


@dataclass
class CameraConfig:
    """Capture device configuration."""
    device: str = "/dev/video0"
    width: int = 640
    height: int = 480
    buffer_count: int = 30
    formats: List[str] = field(default_factory=lambda: ["YUYV", "MJPG"])  # preference order

    @property
    def target(self) -> Resolution:
        return Resolution(self.width, self.height)

    @property
    def fourccs(self) -> List[FourCC]:
        return [FourCC(code) for code in self.formats]


@dataclass
class DecoderConfig:
    """Symbol decoder configuration."""
    backend: str = "opencv"  # 'opencv', 'zbar'


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Main configuration class."""
    camera: CameraConfig = field(default_factory=CameraConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        if "camera" in data:
            config.camera = CameraConfig(**data["camera"])

        if "decoder" in data:
            config.decoder = DecoderConfig(**data["decoder"])

        if "logging" in data:
            config.logging = LoggingConfig(**data["logging"])

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert Config to dictionary."""
        return {
            "camera": {
                "device": self.camera.device,
                "width": self.camera.width,
                "height": self.camera.height,
                "buffer_count": self.camera.buffer_count,
                "formats": list(self.camera.formats),
            },
            "decoder": {
                "backend": self.decoder.backend,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }

    def save(self, path: Optional[str] = None):
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATHS[0]

        # Ensure directory exists
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)


def apply_env_overrides(config: Config) -> Config:
    """Apply QRSCAN_* environment variable overrides."""
    device = os.environ.get(ENV_DEVICE)
    if device:
        config.camera.device = device

    resolution = os.environ.get(ENV_RESOLUTION)
    if resolution:
        try:
            target = Resolution.from_string(resolution)
        except ValueError:
            logger.warning(f"Ignoring invalid {ENV_RESOLUTION}={resolution!r}")
        else:
            config.camera.width = target.width
            config.camera.height = target.height

    return config


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from file.

    Args:
        path: Path to config file. If None, searches default locations.

    Returns:
        Config object with loaded or default settings, with environment
        overrides applied.
    """
    if path is not None:
        paths_to_try = [path]
    else:
        paths_to_try = CONFIG_PATHS

    for config_path in paths_to_try:
        if os.path.exists(config_path):
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f)
                if data:
                    return apply_env_overrides(Config.from_dict(data))
            except (OSError, yaml.YAMLError, TypeError) as e:
                logger.warning(f"Failed to load config from {config_path}: {e}")

    # Return default config
    return apply_env_overrides(Config())


def get_config_path() -> Optional[str]:
    """Get the path to the active config file."""
    for path in CONFIG_PATHS:
        if os.path.exists(path):
            return path
    return None
