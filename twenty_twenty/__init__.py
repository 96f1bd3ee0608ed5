"""Visual regression assertions for images and H.264 frames.

Each assertion compares an actual image with a reference PNG using SSIM and
fails the calling test when the score drops below ``min_score`` (a value in
[0, 1]; identical images score 1.0)::

    from twenty_twenty import assert_image, assert_h264_frame

    assert_image("tests/snapshots/dog.png", actual, 0.9)
    assert_h264_frame("tests/snapshots/grid.png", 1280, 720, frame_bytes, 0.9)

Golden-file workflow, driven by ``TWENTY_TWENTY``:
    TWENTY_TWENTY=overwrite pytest            accept new output as reference
    TWENTY_TWENTY=store-artifact              keep every actual in artifacts/
    TWENTY_TWENTY=store-artifact-on-mismatch  keep failing actuals only

H.264 decoding needs FFmpeg via PyAV: ``pip install twenty-twenty[h264]``.
"""

from twenty_twenty.assertions import assert_h264_frame, assert_image
from twenty_twenty.config import AssertConfig, load_config
from twenty_twenty.decoder import FrameDecoder, PyAVDecoder
from twenty_twenty.errors import (
    ConfigError,
    DecodeError,
    IoError,
    MissingReference,
    SimilarityBelowThreshold,
    TwentyTwentyError,
)
from twenty_twenty.mode import Mode, resolve_mode
from twenty_twenty.raster import RasterImage
from twenty_twenty.reference_store import Outcome, ReferenceStore, Status
from twenty_twenty.utils.metrics import hybrid_similarity, ssim

__version__ = "0.1.0"

__all__ = [
    'assert_image',
    'assert_h264_frame',
    'AssertConfig',
    'load_config',
    'FrameDecoder',
    'PyAVDecoder',
    'Mode',
    'resolve_mode',
    'Outcome',
    'Status',
    'RasterImage',
    'ReferenceStore',
    'ssim',
    'hybrid_similarity',
    'TwentyTwentyError',
    'DecodeError',
    'IoError',
    'ConfigError',
    'MissingReference',
    'SimilarityBelowThreshold',
]
