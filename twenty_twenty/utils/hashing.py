"""SHA-256 hashing for artifact provenance.

Provides:
    - sha256_file(): Hash file contents (reference PNGs)
    - sha256_array(): Hash pixel values (actual images)

Used by artifact reports so a reviewer can tell whether two runs compared
the same reference against the same pixels without opening the images.

Deterministic hashing:
    - Arrays hashed together with their shape and dtype
    - Files read in chunks (1 MB default) for memory efficiency
    - Results are hex strings (64 chars)

Usage:
    from twenty_twenty.utils import hashing
    ref_hash = hashing.sha256_file("tests/snapshots/grid.png")
"""

import hashlib
from pathlib import Path
from typing import Union

import numpy as np


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()

    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)

    return sha256.hexdigest()


def sha256_array(arr: np.ndarray) -> str:
    """Compute SHA-256 hash of array values.

    Parameters
    ----------
    arr : np.ndarray
        Array to hash (any shape, dtype)

    Returns
    -------
    str
        SHA-256 hex digest (64 characters)

    Notes
    -----
    Shape and dtype are part of the digest, so a 10x20 and a 20x10 image
    with the same bytes hash differently.
    """
    sha256 = hashlib.sha256()
    sha256.update(f"{arr.dtype.str}:{arr.shape}".encode('utf-8'))
    sha256.update(np.ascontiguousarray(arr).tobytes())
    return sha256.hexdigest()
