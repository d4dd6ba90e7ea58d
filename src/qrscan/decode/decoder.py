"""
Barcode and QR code symbol decoders.

A decoder takes an RGB still image and reports every symbol it found.
Each symbol is reported independently: one unreadable code in a frame does
not affect the others.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Type

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymbolResult:
    """Outcome for a single detected symbol."""
    text: Optional[str] = None
    error: Optional[str] = None
    symbol_type: str = "QRCODE"

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, text: str, symbol_type: str = "QRCODE") -> "SymbolResult":
        return cls(text=text, symbol_type=symbol_type)

    @classmethod
    def failure(cls, error: str, symbol_type: str = "QRCODE") -> "SymbolResult":
        return cls(error=error, symbol_type=symbol_type)


class SymbolDecoder(ABC):
    """Abstract symbol decoder."""

    name: str = ""

    @abstractmethod
    def decode(self, image: np.ndarray) -> List[SymbolResult]:
        """Find and decode all symbols in an RGB image."""
        pass


def collect_texts(results: Iterable[SymbolResult]) -> List[str]:
    """
    Keep the payloads of successfully decoded symbols, in order.

    Failed symbols are logged and dropped.
    """
    texts = []
    for result in results:
        if result.ok:
            texts.append(result.text)
        else:
            logger.debug(f"Dropping {result.symbol_type} symbol: {result.error}")
    return texts


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)


class OpenCVQRDecoder(SymbolDecoder):
    """QR code decoder using OpenCV's QRCodeDetector."""

    name = "opencv"

    def __init__(self):
        self._detector = cv2.QRCodeDetector()

    def decode(self, image: np.ndarray) -> List[SymbolResult]:
        try:
            found, texts, _points, _ = self._detector.detectAndDecodeMulti(_to_gray(image))
        except cv2.error as e:
            return [SymbolResult.failure(f"QR detection failed: {e}")]

        if not found:
            return []

        results = []
        for text in texts:
            if text:
                results.append(SymbolResult.success(text))
            else:
                results.append(SymbolResult.failure("QR code located but not decoded"))
        return results


class ZBarDecoder(SymbolDecoder):
    """
    Barcode and QR decoder using ZBar (``pyzbar``).

    Requires the zbar shared library. ``pyzbar`` is imported when the decoder
    is created, so the rest of the package works without it.

    Raises:
        ImportError: if pyzbar or the zbar library is not installed.
    """

    name = "zbar"

    def __init__(self, encoding: str = "utf-8"):
        from pyzbar.pyzbar import decode as zbar_decode

        self.encoding = encoding
        self._zbar_decode = zbar_decode

    def decode(self, image: np.ndarray) -> List[SymbolResult]:
        results = []
        for symbol in self._zbar_decode(_to_gray(image)):
            symbol_type = str(symbol.type)
            try:
                results.append(SymbolResult.success(
                    symbol.data.decode(self.encoding), symbol_type,
                ))
            except UnicodeDecodeError as e:
                results.append(SymbolResult.failure(
                    f"Payload is not valid {self.encoding}: {e}", symbol_type,
                ))
        return results


DECODERS: Dict[str, Type[SymbolDecoder]] = {
    OpenCVQRDecoder.name: OpenCVQRDecoder,
    ZBarDecoder.name: ZBarDecoder,
}


def create_decoder(name: str = "opencv") -> SymbolDecoder:
    """
    Create a symbol decoder by name.

    Raises:
        ValueError: if ``name`` is not a known decoder.
        ImportError: if the decoder's library is not installed.
    """
    try:
        decoder_cls = DECODERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown decoder: {name} (choose from {', '.join(DECODERS)})"
        ) from None
    return decoder_cls()
