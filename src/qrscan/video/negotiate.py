"""
Capture mode negotiation.

Smaller frames decode faster, but a very thin or wide frame is a worse match
than a slightly larger, squarer one. Candidates are therefore ranked by
``dh*dh + dw*dw + dh*dw`` where ``dw``/``dh`` are the absolute differences
from the target width/height.
"""

import itertools
import logging
from typing import TYPE_CHECKING, Iterable, Optional, Sequence, Tuple

from qrscan.errors import FormatNotHonored, UnsupportedFormat
from qrscan.video.convert import SUPPORTED_FORMATS
from qrscan.video.formats import (
    CandidateMode,
    FourCC,
    NegotiatedFormat,
    TargetFrameSize,
)

if TYPE_CHECKING:
    from qrscan.video.camera import CaptureBackend

logger = logging.getLogger(__name__)


def framesize_cost(target: TargetFrameSize, width: int, height: int) -> int:
    """Distance of a frame size from the target."""
    diff_w = abs(target.width - width)
    diff_h = abs(target.height - height)
    return diff_h * diff_h + diff_w * diff_w + diff_h * diff_w


def choose_framesize(
    candidates: Iterable[CandidateMode],
    target: TargetFrameSize,
) -> Tuple[FourCC, int, int]:
    """
    Pick the candidate closest to ``target``.

    Candidates are considered in order and only a strictly lower cost
    replaces the current best, so the first of several equal candidates
    wins. List preferred formats first.

    Raises:
        UnsupportedFormat: if no candidate is usable.
    """
    best: Optional[CandidateMode] = None
    best_cost = float("inf")

    for candidate in candidates:
        if candidate.width <= 0 or candidate.height <= 0:
            logger.debug("Skipping empty frame size: %s %s", candidate.fourcc, candidate.resolution)
            continue

        logger.debug("Available format: %s %s", candidate.fourcc, candidate.resolution)
        cost = framesize_cost(target, candidate.width, candidate.height)
        if cost < best_cost:
            best = candidate
            best_cost = cost

    if best is None:
        raise UnsupportedFormat("No camera format supported")

    return best.fourcc, best.width, best.height


def choose_and_set_format(
    backend: "CaptureBackend",
    target: TargetFrameSize,
    formats: Sequence[FourCC] = SUPPORTED_FORMATS,
) -> NegotiatedFormat:
    """
    Negotiate a capture mode with ``backend`` and apply it.

    Frame sizes are enumerated lazily for each of ``formats`` in order,
    the best one is chosen with :func:`choose_framesize` and requested from
    the device.

    Raises:
        UnsupportedFormat: if the device offers none of ``formats``.
        FormatNotHonored: if the device substituted another pixel format.
        OSError: on device I/O failure.
    """
    candidates = itertools.chain.from_iterable(
        backend.enum_framesizes(fourcc) for fourcc in formats
    )

    fourcc, width, height = choose_framesize(candidates, target)
    logger.debug(f"Chosen camera format: {fourcc} {width}x{height}")

    applied = backend.set_format(fourcc, width, height)
    logger.debug(f"Camera format set: {applied}")

    if applied.fourcc != fourcc:
        raise FormatNotHonored(fourcc, applied.fourcc)

    return applied
