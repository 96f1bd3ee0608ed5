"""Atomic filesystem operations for reference images and artifacts.

Provides:
    - Atomic writes: tmp file → fsync → rename (no partial references)
    - PNG encode/decode between numpy arrays and disk
    - YAML load/save for config files and artifact reports
    - Directory creation with exist_ok semantics

A reference PNG is either the previous complete file or the new complete
file; a failed write leaves the old reference untouched and removes the
tmp file.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from twenty_twenty.utils import fs
    fs.atomic_save_png(pixels, "tests/snapshots/grid.png")
    fs.atomic_yaml_dump(report, "artifacts/tests/snapshots/grid.report.yaml")
"""

import io
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)

    Notes
    -----
    Thread-safe (mkdir with exist_ok=True).
    Creates parent directories as needed.
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(path: Union[str, Path], data: bytes) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write

    Raises
    ------
    OSError
        If the directory cannot be created or the write/rename fails.
        The tmp file is removed before the error propagates.

    Notes
    -----
    The tmp file lives in the target directory so the rename never crosses
    filesystems.
    """
    path = Path(path)
    ensure_dir(path.parent)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        # Atomic rename (overwrites existing file on POSIX)
        tmp_path.replace(path)
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def encode_png(img: np.ndarray) -> bytes:
    """Encode an 8-bit image array as PNG bytes.

    Parameters
    ----------
    img : np.ndarray
        (H, W) or (H, W, C) with C in {1, 3, 4}; non-uint8 data is clipped
        to [0, 255]

    Returns
    -------
    bytes
        PNG file contents
    """
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    # Squeeze single-channel to (H, W)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img[:, :, 0]

    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(img)).save(buf, format="PNG")
    return buf.getvalue()


def atomic_save_png(img: np.ndarray, path: Union[str, Path]) -> None:
    """Save image as PNG atomically, regardless of the path's extension.

    Parameters
    ----------
    img : np.ndarray
        Image data, see encode_png()
    path : Union[str, Path]
        Target file path
    """
    atomic_write_bytes(path, encode_png(img))


def load_image(path: Union[str, Path]) -> Image.Image:
    """Load an image file fully into memory.

    Parameters
    ----------
    path : Union[str, Path]
        Image file path

    Returns
    -------
    PIL.Image.Image
        Decoded image; the file handle is closed before returning

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    PIL.UnidentifiedImageError
        If the file is not a decodable image
    OSError
        On read failure (permissions, truncated data)
    """
    with Image.open(Path(path)) as img:
        img.load()
        return img.copy()


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically.

    Parameters
    ----------
    obj : Any
        Python object (dict, list, primitives)
    path : Union[str, Path]
        Target YAML file path

    Notes
    -----
    Uses PyYAML safe_dump. Preserves key ordering.
    """
    yaml_str = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True
    )
    atomic_write_bytes(path, yaml_str.encode('utf-8'))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
