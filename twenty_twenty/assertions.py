"""Public assertion entry points.

Both functions return the :class:`Outcome` when the check passes (or the
reference was overwritten) and raise when it does not:

    SimilarityBelowThreshold  score < min_score (an AssertionError)
    MissingReference          no reference yet (an AssertionError)
    DecodeError               H.264 input undecodable; comparison never ran
    IoError                   reference/artifact read or write failed

The configuration is resolved here, at call time: an explicit ``config``
wins, otherwise ``AssertConfig.from_env()`` reads the environment fresh on
every call.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np
from PIL import Image

from twenty_twenty.config import AssertConfig
from twenty_twenty.decoder import FrameDecoder, decode_h264_frame
from twenty_twenty.errors import SimilarityBelowThreshold
from twenty_twenty.raster import RasterImage
from twenty_twenty.reference_store import Outcome, PathLike, ReferenceStore, Status

ImageLike = Union[RasterImage, Image.Image, np.ndarray]


def _enforce(outcome: Outcome) -> Outcome:
    if outcome.status is Status.FAILED:
        raise SimilarityBelowThreshold(outcome.reference_path, outcome.score, outcome.threshold)
    return outcome


def assert_image(
    reference_path: PathLike,
    actual: ImageLike,
    min_score: float,
    *,
    config: Optional[AssertConfig] = None,
) -> Outcome:
    """Compare ``actual`` against the PNG at ``reference_path``.

    ``min_score`` is the lowest acceptable similarity in [0, 1]; a score
    equal to it passes. Identical images score 1.0.

    Example::

        assert_image("tests/snapshots/dog.png", render(), 0.9)

    Run once with ``TWENTY_TWENTY=overwrite`` to create or accept the
    reference.
    """
    config = config if config is not None else AssertConfig.from_env()
    image = RasterImage.coerce(actual)
    return _enforce(ReferenceStore(config).check(reference_path, image, min_score))


def assert_h264_frame(
    reference_path: PathLike,
    width: int,
    height: int,
    data: bytes,
    min_score: float,
    *,
    config: Optional[AssertConfig] = None,
    decoder: Optional[FrameDecoder] = None,
) -> Outcome:
    """Decode one H.264 frame and compare it against ``reference_path``.

    The reference is a PNG so diffs render in code review tools. Decoding
    happens before anything touches the reference; a ``DecodeError`` leaves
    the filesystem untouched.
    """
    config = config if config is not None else AssertConfig.from_env()
    image = decode_h264_frame(data, width, height, decoder)
    return _enforce(ReferenceStore(config).check(reference_path, image, min_score))
