"""
QR scan stream.

A :class:`QRScanStream` pulls still images from a frame source, feeds them to
a symbol decoder and returns the decoded texts, one call per frame.

The frame source is one of three variants, fixed for the life of the stream:

- :class:`LiveSource` captures from a camera through a negotiated format.
- :class:`FixedFrames` replays pre-loaded raw frames through the real
  conversion and decoding path.
- :class:`FixedResults` replays pre-loaded decode outcomes without any
  imaging.

The fixed variants let code that consumes a stream be tested without a
camera, through the same ``decode_next()`` call used in production.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Iterable, List, Optional, Sequence, Union

import numpy as np

from qrscan.core.config import Config
from qrscan.decode.decoder import SymbolDecoder, OpenCVQRDecoder, collect_texts, create_decoder
from qrscan.errors import ExhaustedInput
from qrscan.video.camera import CaptureBackend, V4L2Capture, DEFAULT_BUFFER_COUNT
from qrscan.video.convert import Converter, SUPPORTED_FORMATS, get_converter
from qrscan.video.formats import DEFAULT_TARGET, FourCC, NegotiatedFormat, RawFrame, TargetFrameSize
from qrscan.video.negotiate import choose_and_set_format

logger = logging.getLogger(__name__)

# A decode outcome: decoded texts, or the error to raise in their place
Outcome = Union[List[str], BaseException]


@dataclass
class LiveSource:
    """Frames captured from a device."""
    backend: CaptureBackend
    format: NegotiatedFormat
    converter: Converter


@dataclass
class FixedFrames:
    """Pre-loaded raw frames, converted by their own tagged format."""
    frames: Deque[RawFrame] = field(default_factory=deque)


@dataclass
class FixedResults:
    """Pre-loaded decode outcomes."""
    results: Deque[Outcome] = field(default_factory=deque)


FrameSource = Union[LiveSource, FixedFrames, FixedResults]


def _next_live_image(source: LiveSource) -> np.ndarray:
    raw = source.backend.next_buffer()
    return source.converter(raw, source.format.width, source.format.height)


def _next_fixed_image(source: FixedFrames) -> np.ndarray:
    if not source.frames:
        raise ExhaustedInput("No more fixed frames")
    frame = source.frames.popleft()
    converter = get_converter(frame.fourcc)
    return converter(frame.data, frame.width, frame.height)


def _next_fixed_result(source: FixedResults) -> Outcome:
    if not source.results:
        raise ExhaustedInput("No more fixed results")
    return source.results.popleft()


class QRScanStream:
    """
    Stream of decoded QR/barcode texts.

    Build one with :meth:`open` (camera), :meth:`from_frames` or
    :meth:`from_results`, then call :meth:`decode_next` repeatedly.
    """

    def __init__(self, source: FrameSource, decoder: Optional[SymbolDecoder] = None):
        if not isinstance(source, (LiveSource, FixedFrames, FixedResults)):
            raise TypeError(f"Unknown frame source: {type(source).__name__}")

        if decoder is None and not isinstance(source, FixedResults):
            decoder = OpenCVQRDecoder()

        self._source = source
        self._decoder = decoder

    @classmethod
    def open(
        cls,
        device_path: str,
        target: TargetFrameSize = DEFAULT_TARGET,
        decoder: Optional[SymbolDecoder] = None,
        formats: Sequence[FourCC] = SUPPORTED_FORMATS,
        buffer_count: int = DEFAULT_BUFFER_COUNT,
        backend_factory: Callable[[str], CaptureBackend] = V4L2Capture,
    ) -> "QRScanStream":
        """
        Open a camera and start streaming.

        The capture mode closest to ``target`` among ``formats`` is
        negotiated, its converter is bound, and one warm-up frame is
        captured and discarded.

        Raises:
            UnsupportedFormat: if no usable capture mode exists.
            FormatNotHonored: if the device substituted another format.
            OSError: on device I/O failure.
        """
        backend = backend_factory(device_path)
        try:
            negotiated = choose_and_set_format(backend, target, formats)
            converter = get_converter(negotiated.fourcc)
            backend.start(buffer_count)
            backend.next_buffer()  # warmup
            logger.debug(f"Discarded warm-up frame from {device_path}")
        except BaseException:
            backend.close()
            raise

        logger.info(f"QR scan stream opened on {device_path}: {negotiated}")
        return cls(LiveSource(backend, negotiated, converter), decoder)

    @classmethod
    def from_frames(
        cls,
        frames: Iterable[RawFrame],
        decoder: Optional[SymbolDecoder] = None,
    ) -> "QRScanStream":
        """Stream that converts and decodes pre-loaded raw frames."""
        return cls(FixedFrames(deque(frames)), decoder)

    @classmethod
    def from_results(cls, results: Iterable[Outcome]) -> "QRScanStream":
        """Stream that replays pre-loaded outcomes; errors are raised in turn."""
        return cls(FixedResults(deque(results)))

    @classmethod
    def from_config(
        cls,
        config: Config,
        backend_factory: Callable[[str], CaptureBackend] = V4L2Capture,
    ) -> "QRScanStream":
        """Open the camera described by ``config``."""
        return cls.open(
            config.camera.device,
            target=config.camera.target,
            decoder=create_decoder(config.decoder.backend),
            formats=config.camera.fourccs,
            buffer_count=config.camera.buffer_count,
            backend_factory=backend_factory,
        )

    @property
    def source(self) -> FrameSource:
        return self._source

    @property
    def format(self) -> Optional[NegotiatedFormat]:
        """Negotiated capture format, for live streams."""
        if isinstance(self._source, LiveSource):
            return self._source.format
        return None

    def decode_next(self) -> List[str]:
        """
        Decode the next frame.

        Returns:
            Texts of the symbols decoded from the frame, in decoder order.
            An empty list means no symbol was found.

        Raises:
            ExhaustedInput: when a fixed queue is drained (on every call
                from then on).
            DecodeFailure: if the frame could not be converted.
            OSError: on capture failure.
        """
        source = self._source

        if isinstance(source, FixedResults):
            outcome = _next_fixed_result(source)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        if isinstance(source, LiveSource):
            image = _next_live_image(source)
        elif isinstance(source, FixedFrames):
            image = _next_fixed_image(source)
        else:
            raise TypeError(f"Unknown frame source: {type(source).__name__}")

        return collect_texts(self._decoder.decode(image))

    def close(self) -> None:
        """Release the capture device, if any."""
        if isinstance(self._source, LiveSource):
            self._source.backend.close()

    def __enter__(self) -> "QRScanStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
