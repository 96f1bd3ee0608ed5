"""H.264 frame decoding behind a narrow capability interface.

``FrameDecoder`` is the only thing the assertion facade knows about video:
encoded bytes plus declared dimensions in, RGB ``RasterImage`` out. The
default ``PyAVDecoder`` uses PyAV (FFmpeg bindings, install the ``h264``
extra); tests substitute their own implementation.

Dimension reconciliation:
    The declared width/height are caller metadata. A decoded picture that
    matches exactly is returned as-is. One that is larger by less than a
    16-pixel macroblock on each axis (coded-size padding) is cropped to the
    declared size. Anything else raises ``DecodeError``.
"""

from __future__ import annotations

import io
import logging
from typing import Protocol, runtime_checkable

from twenty_twenty.errors import DecodeError
from twenty_twenty.raster import RasterImage

logger = logging.getLogger(__name__)

MACROBLOCK = 16


@runtime_checkable
class FrameDecoder(Protocol):
    """Turns one encoded frame into a raster image.

    Implementations may return the coded picture size; ``decode_h264_frame``
    validates the declared dimensions and reconciles the result.
    """

    def decode(self, data: bytes, width: int, height: int) -> RasterImage:
        ...


def reconcile(image: RasterImage, width: int, height: int) -> RasterImage:
    """Fit a decoded picture to the declared dimensions, or raise DecodeError."""
    if image.size == (width, height):
        return image
    dw = image.width - width
    dh = image.height - height
    if 0 <= dw < MACROBLOCK and 0 <= dh < MACROBLOCK:
        logger.debug(
            "Cropping decoded %dx%d frame to declared %dx%d",
            image.width, image.height, width, height,
        )
        return image.crop(width, height)
    raise DecodeError(
        f"decoded frame is {image.width}x{image.height}, "
        f"which does not match the declared {width}x{height}"
    )


def _check_dimensions(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise DecodeError(f"declared dimensions must be positive, got {width}x{height}")


class PyAVDecoder:
    """Decode the first picture of an Annex B H.264 byte stream with FFmpeg.

    Error concealment is disabled: a damaged or truncated slice raises
    ``DecodeError`` instead of yielding a patched-up picture.
    """

    def decode(self, data: bytes, width: int, height: int) -> RasterImage:
        if not data:
            raise DecodeError("could not convert H.264 frame to image: empty buffer")

        try:
            import av
        except ImportError as e:
            raise DecodeError(
                "H.264 decoding requires PyAV; install twenty-twenty[h264]"
            ) from e

        try:
            # The container owns the demuxer and codec contexts; leaving the
            # with-block frees them on success and on error alike.
            with av.open(io.BytesIO(bytes(data)), mode="r", format="h264") as container:
                if not container.streams.video:
                    raise DecodeError("could not convert H.264 frame to image: no video stream found")
                # Must be set before the codec is opened by the first decode
                container.streams.video[0].codec_context.options = {"err_detect": "explode"}
                frame = next(container.decode(video=0), None)
                if frame is None:
                    raise DecodeError("could not convert H.264 frame to image: no decodable frame")
                pixels = frame.to_ndarray(format="rgb24")
        except av.error.FFmpegError as e:
            raise DecodeError(f"could not convert H.264 frame to image: {e}") from e

        return RasterImage(pixels)


def decode_h264_frame(
    data: bytes,
    width: int,
    height: int,
    decoder: FrameDecoder | None = None,
) -> RasterImage:
    """Decode one frame with ``decoder`` (default: PyAV) and reconcile its size."""
    _check_dimensions(width, height)
    decoder = decoder or PyAVDecoder()
    image = decoder.decode(data, width, height)
    return reconcile(image, width, height)
