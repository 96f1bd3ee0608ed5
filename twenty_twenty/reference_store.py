"""Reference image lifecycle: overwrite, load, compare, store artifacts.

Per call::

    OVERWRITE ─────────────► write actual → reference         OVERWRITTEN
    otherwise ─► load reference
                 ├─ missing ─► (store modes: artifact) ──────► MissingReference
                 ├─ unreadable ──────────────────────────────► IoError
                 └─ loaded ─► score = metric(reference, actual)
                              ├─ score >= min_score ─────────► PASSED
                              └─ score <  min_score ─────────► FAILED
                              STORE_ARTIFACT: artifacts on both branches
                              STORE_ARTIFACT_ON_MISMATCH: on FAILED only

Artifacts mirror the reference path under ``config.artifacts_dir``::

    artifacts/tests/snapshots/grid.png          actual image
    artifacts/tests/snapshots/grid.diff.png     |reference - actual|
    artifacts/tests/snapshots/grid.report.yaml  score, threshold, hashes

The store never raises on FAILED; it returns the outcome and the facade
decides how loudly to fail.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Union

from PIL import UnidentifiedImageError

from twenty_twenty.config import ARTIFACTS_DIR_VAR, AssertConfig
from twenty_twenty.errors import IoError, MissingReference
from twenty_twenty.mode import Mode
from twenty_twenty.raster import RasterImage
from twenty_twenty.utils import fs, hashing, metrics
from twenty_twenty.utils.logging_config import log_context

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Status(str, enum.Enum):
    PASSED = "passed"
    FAILED = "failed"
    OVERWRITTEN = "overwritten"


@dataclass(frozen=True)
class Outcome:
    """Result of checking one actual image against one reference path."""

    status: Status
    reference_path: Path
    mode: Mode
    threshold: float
    score: Optional[float] = None
    artifacts: tuple[Path, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status is not Status.FAILED


def artifact_path(reference_path: PathLike, artifacts_dir: PathLike) -> Path:
    """Where the actual image for ``reference_path`` is stored.

    Absolute references lose their anchor and ``..`` parts become ``__`` so
    every artifact stays inside ``artifacts_dir``.
    """
    ref = PurePath(reference_path)
    parts = [p for p in ref.parts if p != ref.anchor]
    parts = ["__" if p == ".." else p for p in parts if p != "."]
    return Path(artifacts_dir).joinpath(*parts)


def check_threshold(min_score: float) -> float:
    min_score = float(min_score)
    if not 0.0 <= min_score <= 1.0:
        raise ValueError(f"min_score must be between 0 and 1, got {min_score}")
    return min_score


class ReferenceStore:
    """Applies the configured mode to one reference path per call."""

    def __init__(self, config: Optional[AssertConfig] = None):
        self.config = config or AssertConfig()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check(self, reference_path: PathLike, actual: RasterImage, min_score: float) -> Outcome:
        path = Path(reference_path)
        threshold = check_threshold(min_score)
        mode = self.config.mode

        with log_context(reference=str(path), mode=mode.value):
            if mode is Mode.OVERWRITE:
                self._write(actual, path, "write reference image to")
                logger.info("Overwrote reference %s (%dx%d %s)", path, actual.width, actual.height, actual.mode)
                return Outcome(Status.OVERWRITTEN, path, mode, threshold)

            try:
                reference = self.load(path)
            except MissingReference:
                if mode.stores_artifacts:
                    self.store_artifacts(path, actual, None, None, threshold, Status.FAILED)
                raise

            score = self.score(reference, actual)
            status = Status.PASSED if score >= threshold else Status.FAILED
            logger.debug("Score %.6f vs threshold %.6f: %s", score, threshold, status.value)

            artifacts: tuple[Path, ...] = ()
            mismatch = status is Status.FAILED
            if mode is Mode.STORE_ARTIFACT or (mode is Mode.STORE_ARTIFACT_ON_MISMATCH and mismatch):
                artifacts = self.store_artifacts(path, actual, reference, score, threshold, status)

            if status is Status.FAILED:
                logger.warning("Reference %s: score %.6f below threshold %.6f", path, score, threshold)

            return Outcome(status, path, mode, threshold, score, artifacts)

    def load(self, path: PathLike) -> RasterImage:
        """Load the reference image, mapping failures to domain errors."""
        path = Path(path)
        try:
            return RasterImage.from_file(path)
        except FileNotFoundError as e:
            raise MissingReference(path) from e
        except UnidentifiedImageError as e:
            raise IoError(path, "decode reference image", e) from e
        except OSError as e:
            raise IoError(path, "read reference image", e) from e

    def score(self, reference: RasterImage, actual: RasterImage) -> float:
        cfg = self.config
        fn = metrics.hybrid_similarity if cfg.metric == "hybrid" else metrics.ssim
        return fn(
            reference.pixels,
            actual.pixels,
            window_size=cfg.window_size,
            sigma=cfg.sigma,
            k1=cfg.k1,
            k2=cfg.k2,
        )

    def store_artifacts(
        self,
        reference_path: Path,
        actual: RasterImage,
        reference: Optional[RasterImage],
        score: Optional[float],
        threshold: float,
        status: Status,
    ) -> tuple[Path, ...]:
        """Persist the actual image (plus diff and report) for review."""
        cfg = self.config
        target = artifact_path(reference_path, cfg.artifacts_dir)
        diff_path = target.with_name(f"{target.stem}.diff.png")
        report_path = target.with_name(f"{target.stem}.report.yaml")
        for candidate in (target, diff_path, report_path):
            if candidate.resolve() == Path(reference_path).resolve():
                raise IoError(
                    candidate,
                    "write artifact to",
                    f"it resolves to the reference image; choose a different artifacts_dir ({ARTIFACTS_DIR_VAR})",
                )

        written = [target]
        self._write(actual, target, "write artifact to")

        if reference is not None and cfg.store_diff:
            diff = RasterImage(metrics.diff_image(reference.pixels, actual.pixels))
            self._write(diff, diff_path, "write diff artifact to")
            written.append(diff_path)

        if cfg.write_report:
            report = {
                "reference": str(reference_path),
                "mode": cfg.mode.value,
                "metric": cfg.metric,
                "status": status.value if reference is not None else "missing-reference",
                "score": score,
                "threshold": threshold,
                "actual": {
                    "size": [actual.width, actual.height],
                    "mode": actual.mode,
                    "sha256": hashing.sha256_array(actual.pixels),
                },
                "expected": None if reference is None else {
                    "size": [reference.width, reference.height],
                    "mode": reference.mode,
                    "sha256": hashing.sha256_file(reference_path),
                },
            }
            try:
                fs.atomic_yaml_dump(report, report_path)
            except OSError as e:
                raise IoError(report_path, "write artifact report to", e) from e
            written.append(report_path)

        logger.info("Stored artifacts for %s under %s", reference_path, target.parent)
        return tuple(written)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _write(image: RasterImage, path: Path, action: str) -> None:
        try:
            image.save_png(path)
        except OSError as e:
            raise IoError(path, action, e) from e
