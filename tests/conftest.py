"""Shared fixtures: environment isolation and synthetic images."""

from __future__ import annotations

import numpy as np
import pytest

from twenty_twenty.config import ARTIFACTS_DIR_VAR, CONFIG_FILE_VAR
from twenty_twenty.errors import ENV_VAR


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """No inherited TWENTY_TWENTY* variables; artifacts/ lands in tmp_path."""
    for var in (ENV_VAR, ARTIFACTS_DIR_VAR, CONFIG_FILE_VAR):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def solid(rgb, size=(100, 100)) -> np.ndarray:
    """(H, W, 3) uint8 filled with one colour; size is (width, height)."""
    w, h = size
    img = np.empty((h, w, 3), dtype=np.uint8)
    img[:, :] = rgb
    return img


def textured(size=(64, 48), seed=0, channels=3) -> np.ndarray:
    """Smooth gradient plus deterministic noise, (H, W, C) uint8."""
    w, h = size
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:h, 0:w]
    base = (xx * 255.0 / max(w - 1, 1) + yy * 127.0 / max(h - 1, 1)) / 1.5
    planes = [np.clip(base + rng.normal(0, 20, (h, w)) + 30 * c, 0, 255) for c in range(channels)]
    return np.stack(planes, axis=2).astype(np.uint8)


@pytest.fixture
def red() -> np.ndarray:
    return solid((255, 0, 0))


@pytest.fixture
def blue() -> np.ndarray:
    return solid((0, 0, 255))


@pytest.fixture
def texture() -> np.ndarray:
    return textured()
