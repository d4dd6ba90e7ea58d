"""
Tests for qrscan.video.negotiate module.
"""

import dataclasses
import itertools

import pytest

from qrscan.errors import FormatNotHonored, UnsupportedFormat
from qrscan.video.camera import expand_stepwise
from qrscan.video.formats import (
    CandidateMode,
    FourCC,
    NegotiatedFormat,
    Resolution,
    FOURCC_MJPG,
    FOURCC_YUYV,
)
from qrscan.video.negotiate import (
    choose_and_set_format,
    choose_framesize,
    framesize_cost,
)

FOUR_A = FourCC("AAAD")
FOUR_B = FourCC("BBBE")
FOUR_C = FourCC("CCCF")

TARGET = Resolution(640, 480)


def mode(fourcc: FourCC, width: int, height: int) -> CandidateMode:
    return CandidateMode(fourcc, Resolution(width, height))


def candidate_list(count: int):
    """Growing prefix of a mixed discrete and stepwise candidate list."""
    candidates = [
        [mode(FOUR_A, 640, 80)],
        [mode(FOUR_B, 640, 80)],
        [mode(FOUR_B, 480, 200)],
        [mode(FOUR_A, 580, 400)],
        [mode(FOUR_B, 680, 500)],
        [mode(FOUR_A, 720, 490)],
        expand_stepwise(FOUR_C, 80, 1920, 40, 80, 1080, 40),
    ]
    return list(itertools.chain.from_iterable(candidates[:count]))


class TestResolution:
    """Tests for Resolution parsing."""

    def test_from_string(self):
        """Test WxH strings are parsed, case-insensitively."""
        assert Resolution.from_string("1280X720") == Resolution(1280, 720)
        assert str(Resolution(640, 480)) == "640x480"

    def test_invalid_string(self):
        """Test malformed strings are rejected."""
        with pytest.raises(ValueError):
            Resolution.from_string("720p")

    def test_fields(self):
        """Test a resolution is just its width and height."""
        assert [f.name for f in dataclasses.fields(Resolution)] == ["width", "height"]
        assert not hasattr(Resolution(640, 480), "pixels")


class TestFramesizeCost:
    """Tests for the frame size cost function."""

    def test_exact_match_is_zero(self):
        """Test exact match costs nothing."""
        assert framesize_cost(TARGET, 640, 480) == 0

    def test_cross_term(self):
        """Test cost includes the width/height cross term."""
        # dw=60, dh=80: 80*80 + 60*60 + 80*60
        assert framesize_cost(TARGET, 580, 400) == 14800

    def test_symmetric_in_sign(self):
        """Test larger and smaller frames at the same distance cost the same."""
        assert framesize_cost(TARGET, 700, 500) == framesize_cost(TARGET, 580, 460)

    def test_monotonic(self):
        """Test cost never decreases as either difference grows."""
        for dw, dh in itertools.product(range(0, 200, 20), repeat=2):
            base = framesize_cost(TARGET, 640 + dw, 480 + dh)
            assert framesize_cost(TARGET, 640 + dw + 20, 480 + dh) >= base
            assert framesize_cost(TARGET, 640 + dw, 480 + dh + 20) >= base


class TestChooseFramesize:
    """Tests for choose_framesize."""

    def test_empty_candidates(self):
        """Test empty candidate list is rejected."""
        with pytest.raises(UnsupportedFormat):
            choose_framesize([], TARGET)

    def test_only_empty_sizes(self):
        """Test zero-sized candidates are never selected."""
        with pytest.raises(UnsupportedFormat):
            choose_framesize([mode(FOUR_A, 0, 0)], TARGET)

    def test_example_selection(self):
        """Test the lowest cost candidate is chosen."""
        candidates = [
            mode(FourCC("AAAA"), 640, 80),
            mode(FourCC("BBBB"), 480, 200),
            mode(FourCC("AAAA"), 580, 400),
        ]

        assert choose_framesize(candidates, TARGET) == (FourCC("AAAA"), 580, 400)

    def test_tie_keeps_first(self):
        """Test the first of two equal-cost candidates wins."""
        assert choose_framesize(candidate_list(2), TARGET) == (FOUR_A, 640, 80)

        reversed_pair = [mode(FOUR_B, 640, 80), mode(FOUR_A, 640, 80)]
        assert choose_framesize(reversed_pair, TARGET) == (FOUR_B, 640, 80)

    @pytest.mark.parametrize("count,expected", [
        (3, (FOUR_B, 480, 200)),
        (4, (FOUR_A, 580, 400)),
        (5, (FOUR_B, 680, 500)),
        (6, (FOUR_B, 680, 500)),
        (7, (FOUR_C, 640, 480)),
    ])
    def test_growing_candidate_lists(self, count, expected):
        """Test selection as more candidates become available."""
        assert choose_framesize(candidate_list(count), TARGET) == expected

    def test_stepwise_tie_prefers_earlier_format(self):
        """Test an earlier discrete size beats an equally close stepwise one."""
        target = Resolution(720, 485)

        assert choose_framesize(candidate_list(7), target) == (FOUR_A, 720, 490)

    def test_result_is_a_candidate(self):
        """Test the chosen mode is always one of the inputs."""
        candidates = candidate_list(6)
        members = {(c.fourcc, c.width, c.height) for c in candidates}

        for target in [Resolution(1, 1), Resolution(4000, 3000), Resolution(600, 450)]:
            assert choose_framesize(candidates, target) in members

    def test_huge_cost_still_selected(self):
        """Test a single candidate is chosen however far from the target."""
        assert choose_framesize([mode(FOUR_A, 100000, 1)], TARGET) == (FOUR_A, 100000, 1)

    def test_accepts_iterator(self):
        """Test candidates may be a one-shot iterator."""
        result = choose_framesize(iter(candidate_list(4)), TARGET)
        assert result == (FOUR_A, 580, 400)


class TestExpandStepwise:
    """Tests for stepwise frame size expansion."""

    def test_bounds_inclusive(self):
        """Test both ends of the range are included."""
        modes = list(expand_stepwise(FOUR_C, 80, 160, 40, 60, 120, 60))
        sizes = [(m.width, m.height) for m in modes]

        assert sizes == [(80, 60), (80, 120), (120, 60), (120, 120), (160, 60), (160, 120)]
        assert all(m.fourcc == FOUR_C for m in modes)

    def test_zero_step(self):
        """Test continuous ranges (zero step) expand with unit steps."""
        modes = list(expand_stepwise(FOUR_C, 10, 12, 0, 20, 20, 0))
        assert [(m.width, m.height) for m in modes] == [(10, 20), (11, 20), (12, 20)]

    def test_large_range_is_lazy(self):
        """Test a continuous 4096x2160 range is produced on demand."""
        modes = expand_stepwise(FOUR_C, 1, 4096, 0, 1, 2160, 0)

        assert next(modes) == mode(FOUR_C, 1, 1)
        assert next(modes) == mode(FOUR_C, 1, 2)
        assert list(itertools.islice(modes, 2157, 2159)) == [
            mode(FOUR_C, 1, 2160),
            mode(FOUR_C, 2, 1),
        ]


class FakeBackend:
    """Minimal backend recording negotiation calls."""

    def __init__(self, modes, applied=None):
        self.modes = modes
        self.applied = applied
        self.enumerated = []
        self.requested = None

    def enum_framesizes(self, fourcc):
        self.enumerated.append(fourcc)
        return [m for m in self.modes if m.fourcc == fourcc]

    def set_format(self, fourcc, width, height):
        self.requested = (fourcc, width, height)
        return self.applied or NegotiatedFormat(fourcc, width, height)


class TestChooseAndSetFormat:
    """Tests for choose_and_set_format."""

    def test_sets_chosen_format(self):
        """Test the best mode is requested and returned."""
        backend = FakeBackend([
            mode(FOURCC_YUYV, 320, 240),
            mode(FOURCC_YUYV, 1280, 720),
            mode(FOURCC_MJPG, 640, 480),
        ])

        result = choose_and_set_format(backend, TARGET)

        assert backend.enumerated == [FOURCC_YUYV, FOURCC_MJPG]
        assert backend.requested == (FOURCC_MJPG, 640, 480)
        assert result == NegotiatedFormat(FOURCC_MJPG, 640, 480)

    def test_format_preference_breaks_ties(self):
        """Test earlier formats win equal-cost sizes."""
        backend = FakeBackend([
            mode(FOURCC_MJPG, 640, 480),
            mode(FOURCC_YUYV, 640, 480),
        ])

        result = choose_and_set_format(backend, TARGET)
        assert result.fourcc == FOURCC_YUYV

        result = choose_and_set_format(backend, TARGET, formats=[FOURCC_MJPG, FOURCC_YUYV])
        assert result.fourcc == FOURCC_MJPG

    def test_driver_adjusted_size_accepted(self):
        """Test the driver may adjust the size as long as the format holds."""
        backend = FakeBackend(
            [mode(FOURCC_YUYV, 640, 480)],
            applied=NegotiatedFormat(FOURCC_YUYV, 640, 360),
        )

        result = choose_and_set_format(backend, TARGET)
        assert result == NegotiatedFormat(FOURCC_YUYV, 640, 360)

    def test_lazy_enumeration(self):
        """Test backends may yield sizes lazily, e.g. from a stepwise range."""

        class StepwiseBackend(FakeBackend):
            def enum_framesizes(self, fourcc):
                self.enumerated.append(fourcc)
                if fourcc == FOURCC_MJPG:
                    yield from expand_stepwise(fourcc, 320, 1280, 160, 240, 960, 120)

        backend = StepwiseBackend([])

        result = choose_and_set_format(backend, TARGET)

        assert backend.enumerated == [FOURCC_YUYV, FOURCC_MJPG]
        assert result == NegotiatedFormat(FOURCC_MJPG, 640, 480)

    def test_format_not_honored(self):
        """Test a substituted pixel format is rejected."""
        backend = FakeBackend(
            [mode(FOURCC_YUYV, 640, 480)],
            applied=NegotiatedFormat(FourCC("RGB3"), 640, 480),
        )

        with pytest.raises(FormatNotHonored) as exc_info:
            choose_and_set_format(backend, TARGET)

        assert exc_info.value.requested == FOURCC_YUYV
        assert exc_info.value.applied == FourCC("RGB3")

    def test_no_supported_formats(self):
        """Test a device without YUYV or MJPG modes is rejected."""
        backend = FakeBackend([mode(FourCC("H264"), 640, 480)])

        with pytest.raises(UnsupportedFormat):
            choose_and_set_format(backend, TARGET)
        assert backend.requested is None

    def test_backend_error_propagates(self):
        """Test device errors pass through unchanged."""
        error = OSError(19, "No such device")

        class UnpluggedBackend(FakeBackend):
            def enum_framesizes(self, fourcc):
                raise error

        backend = UnpluggedBackend([])

        with pytest.raises(OSError) as exc_info:
            choose_and_set_format(backend, TARGET)
        assert exc_info.value is error
