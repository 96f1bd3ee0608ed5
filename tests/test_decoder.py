"""Tests for the H.264 decoder adapter.

Fake decoders cover dimension reconciliation; the PyAV-backed tests are
skipped when PyAV is not installed.
"""

from __future__ import annotations

from fractions import Fraction

import numpy as np
import pytest

from conftest import textured
from twenty_twenty.decoder import (
    FrameDecoder,
    PyAVDecoder,
    decode_h264_frame,
    reconcile,
)
from twenty_twenty.errors import DecodeError
from twenty_twenty.raster import RasterImage
from twenty_twenty.utils import metrics


class FixedDecoder:
    """Returns a canned image regardless of input."""

    def __init__(self, image: RasterImage):
        self.image = image
        self.calls = []

    def decode(self, data: bytes, width: int, height: int) -> RasterImage:
        self.calls.append((bytes(data), width, height))
        return self.image


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_exact_size_passthrough(self) -> None:
        img = RasterImage(textured(size=(32, 24)))
        assert reconcile(img, 32, 24) is img

    def test_macroblock_padding_cropped(self) -> None:
        img = RasterImage(textured(size=(48, 32)))
        out = reconcile(img, 40, 30)
        assert out.size == (40, 30)
        assert np.array_equal(out.pixels, img.pixels[:30, :40])

    @pytest.mark.parametrize("declared", [(64, 32), (48, 40), (16, 32), (48, 16)])
    def test_irreconcilable(self, declared) -> None:
        img = RasterImage(textured(size=(48, 32)))
        with pytest.raises(DecodeError, match="does not match the declared"):
            reconcile(img, *declared)


class TestDecodeH264Frame:
    def test_fake_decoder_satisfies_protocol(self) -> None:
        assert isinstance(FixedDecoder(RasterImage(textured())), FrameDecoder)
        assert isinstance(PyAVDecoder(), FrameDecoder)

    def test_uses_given_decoder(self) -> None:
        dec = FixedDecoder(RasterImage(textured(size=(64, 48))))
        out = decode_h264_frame(b"\x00\x00\x01", 64, 48, dec)
        assert out.size == (64, 48)
        assert dec.calls == [(b"\x00\x00\x01", 64, 48)]

    def test_coded_padding_cropped(self) -> None:
        """The adapter, not the decoder, fits coded size to declared size."""
        src = textured(size=(48, 32))
        dec = FixedDecoder(RasterImage(src))
        out = decode_h264_frame(b"\x00\x00\x01", 40, 30, dec)
        assert out.size == (40, 30)
        assert np.array_equal(out.pixels, src[:30, :40])

    def test_reconciled_once(self, monkeypatch) -> None:
        calls = []
        real = reconcile

        def counting(image, width, height):
            calls.append((width, height))
            return real(image, width, height)

        monkeypatch.setattr("twenty_twenty.decoder.reconcile", counting)
        decode_h264_frame(b"\x00", 64, 48, FixedDecoder(RasterImage(textured(size=(64, 48)))))
        assert calls == [(64, 48)]

    def test_wrong_size_from_decoder(self) -> None:
        dec = FixedDecoder(RasterImage(textured(size=(64, 48))))
        with pytest.raises(DecodeError):
            decode_h264_frame(b"\x00", 320, 240, dec)

    @pytest.mark.parametrize("width, height", [(0, 10), (10, 0), (-1, 10)])
    def test_non_positive_dimensions(self, width: int, height: int) -> None:
        dec = FixedDecoder(RasterImage(textured()))
        with pytest.raises(DecodeError, match="must be positive"):
            decode_h264_frame(b"\x00", width, height, dec)
        assert dec.calls == []

    def test_empty_buffer(self) -> None:
        with pytest.raises(DecodeError, match="empty buffer"):
            PyAVDecoder().decode(b"", 64, 48)


# ---------------------------------------------------------------------------
# PyAV
# ---------------------------------------------------------------------------


def _encode_h264(frame: np.ndarray) -> bytes:
    """Encode one RGB frame as an Annex B H.264 stream, or skip."""
    av = pytest.importorskip("av")
    h, w = frame.shape[:2]
    try:
        ctx = av.CodecContext.create("libx264", "w")
    except Exception:
        pytest.skip("libx264 encoder not available in this FFmpeg build")
    ctx.width = w
    ctx.height = h
    ctx.pix_fmt = "yuv420p"
    ctx.time_base = Fraction(1, 25)
    ctx.options = {"preset": "ultrafast", "qp": "0"}
    video_frame = av.VideoFrame.from_ndarray(frame, format="rgb24").reformat(format="yuv420p")
    video_frame.pts = 0
    packets = list(ctx.encode(video_frame)) + list(ctx.encode(None))
    return b"".join(bytes(p) for p in packets)


@pytest.mark.h264
class TestPyAVDecoder:
    def test_corrupted_buffer(self) -> None:
        pytest.importorskip("av")
        garbage = bytes(np.random.default_rng(0).integers(0, 256, 512, dtype=np.uint8))
        with pytest.raises(DecodeError, match="could not convert H.264 frame"):
            PyAVDecoder().decode(garbage, 64, 48)

    def test_truncated_in_headers(self) -> None:
        data = _encode_h264(textured(size=(64, 48)))
        with pytest.raises(DecodeError):
            PyAVDecoder().decode(data[:24], 64, 48)

    @pytest.mark.parametrize("fraction", [0.3, 0.5, 0.8, 0.95])
    def test_truncated_in_slice_data(self, fraction: float) -> None:
        """A cut inside the picture must fail, not be concealed."""
        data = _encode_h264(textured(size=(64, 48)))
        with pytest.raises(DecodeError):
            decode_h264_frame(data[: int(len(data) * fraction)], 64, 48, PyAVDecoder())

    def test_decodes_frame(self) -> None:
        src = textured(size=(64, 48))
        data = _encode_h264(src)
        out = decode_h264_frame(data, 64, 48, PyAVDecoder())
        assert out.size == (64, 48)
        assert out.mode == "RGB"
        # Lossless luma, 4:2:0 chroma: structure must survive
        assert metrics.ssim(src, out.pixels) > 0.9

    def test_decoder_returns_coded_size(self) -> None:
        data = _encode_h264(textured(size=(48, 32)))
        assert PyAVDecoder().decode(data, 40, 30).size == (48, 32)
        assert decode_h264_frame(data, 40, 30, PyAVDecoder()).size == (40, 30)
