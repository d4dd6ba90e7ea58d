"""
Symbol decoding for qrscan.
"""

from qrscan.decode.decoder import (
    SymbolDecoder,
    SymbolResult,
    OpenCVQRDecoder,
    ZBarDecoder,
    collect_texts,
    create_decoder,
)

__all__ = [
    "SymbolDecoder",
    "SymbolResult",
    "OpenCVQRDecoder",
    "ZBarDecoder",
    "collect_texts",
    "create_decoder",
]
