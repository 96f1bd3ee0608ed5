"""Image similarity metrics for reference comparisons.

Provides:
    - ssim: Structural Similarity Index on luma (Wang et al. 2004)
    - hybrid_similarity: luma SSIM weighted by chroma/alpha agreement
    - diff_image: absolute per-pixel difference for review artifacts

Used by:
    - ReferenceStore: pass/fail scoring against the threshold
    - Artifact writer: diff PNG next to the stored actual image

Inputs are 8-bit numpy arrays shaped (H, W) or (H, W, C) with C in
{1, 3, 4}. All statistics are computed in float64 on the CPU with torch
convolutions, so identical inputs give bit-identical scores across runs.

Size mismatch policy:
    Only the top-left overlap (min(w), min(h)) is compared, and the mean
    window score is scaled by overlap_area / largest_area. Two images of
    different sizes therefore never score 1.0.
"""

from typing import Tuple

import numpy as np
import torch
import torch.nn.functional as F

# 8-bit dynamic range
DATA_RANGE = 255.0

# BT.601 luma and YCbCr colour-difference weights
_LUMA = (0.299, 0.587, 0.114)
_CB = (-0.168736, -0.331264, 0.5)
_CR = (0.5, -0.418688, -0.081312)


def _as_hwc(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return img[:, :, None]
    if img.ndim == 3:
        return img
    raise ValueError(f"Expected shape (H, W) or (H, W, C), got {img.shape}")


def match_channels(a: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Bring two images to a common channel layout.

    Parameters
    ----------
    a, b : np.ndarray
        Images shaped (H, W) or (H, W, C), C in {1, 2, 3, 4}

    Returns
    -------
    tuple of np.ndarray
        Both images as (H, W, C) with the same C

    Notes
    -----
    Alpha on either side → both RGBA (missing alpha is opaque).
    Colour on either side → both RGB. Otherwise both stay single-channel.
    """
    a, b = _as_hwc(a), _as_hwc(b)
    has_alpha = a.shape[2] in (2, 4) or b.shape[2] in (2, 4)
    has_color = a.shape[2] >= 3 or b.shape[2] >= 3

    def convert(img: np.ndarray) -> np.ndarray:
        c = img.shape[2]
        if c in (2, 4):
            color, alpha = img[:, :, :-1], img[:, :, -1:]
        else:
            color, alpha = img, np.full(img.shape[:2] + (1,), 255, dtype=img.dtype)
        if has_color and color.shape[2] == 1:
            color = np.repeat(color, 3, axis=2)
        return np.concatenate([color, alpha], axis=2) if has_alpha else color

    return convert(a), convert(b)


def _planes(img: np.ndarray) -> torch.Tensor:
    """(H, W, C) uint8 → (C, H, W) float64 tensor."""
    return torch.tensor(np.ascontiguousarray(img), dtype=torch.float64).permute(2, 0, 1)


def _weighted(planes: torch.Tensor, weights: Tuple[float, float, float]) -> torch.Tensor:
    return weights[0] * planes[0] + weights[1] * planes[1] + weights[2] * planes[2]


def luma(img: np.ndarray) -> torch.Tensor:
    """Luminance plane of an image.

    Parameters
    ----------
    img : np.ndarray
        (H, W) or (H, W, C) 8-bit image

    Returns
    -------
    torch.Tensor
        (H, W) float64 luma in [0, 255]

    Notes
    -----
    Uses BT.601 coefficients: Y = 0.299*R + 0.587*G + 0.114*B.
    Alpha does not contribute to luma.
    """
    planes = _planes(_as_hwc(img))
    if planes.shape[0] >= 3:
        return _weighted(planes, _LUMA)
    return planes[0]


def _chroma_alpha(img: np.ndarray) -> torch.Tensor:
    """Cb, Cr and alpha planes, (K, H, W) with K in {0, 1, 2, 3}."""
    planes = _planes(img)
    c = planes.shape[0]
    extra = []
    if c >= 3:
        extra.append(_weighted(planes, _CB))
        extra.append(_weighted(planes, _CR))
    if c in (2, 4):
        extra.append(planes[-1])
    if not extra:
        return planes.new_zeros((0,) + tuple(planes.shape[1:]))
    return torch.stack(extra)


def gaussian_window(window_size: int = 11, sigma: float = 1.5) -> torch.Tensor:
    """Normalized 2-D Gaussian kernel, shape (1, 1, window_size, window_size), float64."""
    coords = torch.arange(window_size, dtype=torch.float64) - (window_size - 1) / 2.0
    gauss = torch.exp(-coords ** 2 / (2 * sigma ** 2))
    gauss = gauss / gauss.sum()
    kernel_2d = gauss.unsqueeze(0) * gauss.unsqueeze(1)
    return kernel_2d.view(1, 1, window_size, window_size)


def _window_mean(planes: torch.Tensor, window: torch.Tensor) -> torch.Tensor:
    """Weighted local means of each plane over every valid window position.

    Parameters
    ----------
    planes : torch.Tensor
        (N, H, W)
    window : torch.Tensor
        (1, 1, k, k) kernel summing to 1

    Returns
    -------
    torch.Tensor
        (N, H-k+1, W-k+1); (N, 1, 1) global means when the image is smaller
        than the window on either axis
    """
    k = window.shape[-1]
    n, h, w = planes.shape
    if h < k or w < k:
        return planes.mean(dim=(1, 2), keepdim=True)
    return F.conv2d(planes.unsqueeze(1), window).squeeze(1)


def _overlap(a: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
    """Crop both images to their top-left overlap; return the area ratio."""
    h = min(a.shape[0], b.shape[0])
    w = min(a.shape[1], b.shape[1])
    largest = max(a.shape[0] * a.shape[1], b.shape[0] * b.shape[1])
    ratio = (h * w) / largest if largest else 0.0
    return a[:h, :w], b[:h, :w], ratio


def _ssim_map(
    y1: torch.Tensor,
    y2: torch.Tensor,
    window: torch.Tensor,
    k1: float,
    k2: float
) -> torch.Tensor:
    C1 = (k1 * DATA_RANGE) ** 2
    C2 = (k2 * DATA_RANGE) ** 2

    # One convolution pass for all five local statistics
    stats = _window_mean(torch.stack([y1, y2, y1 * y1, y2 * y2, y1 * y2]), window)
    mu1, mu2, e11, e22, e12 = stats

    mu1_mu2 = mu1 * mu2
    mu1_sq = mu1 * mu1
    mu2_sq = mu2 * mu2
    sigma1_sq = e11 - mu1_sq
    sigma2_sq = e22 - mu2_sq
    sigma12 = e12 - mu1_mu2

    return ((2 * mu1_mu2 + C1) * (2 * sigma12 + C2)) / \
           ((mu1_sq + mu2_sq + C1) * (sigma1_sq + sigma2_sq + C2))


def _finish(score_map: torch.Tensor, ratio: float) -> float:
    score = float(score_map.mean().item()) * ratio
    return min(1.0, max(0.0, score))


def ssim(
    img1: np.ndarray,
    img2: np.ndarray,
    window_size: int = 11,
    sigma: float = 1.5,
    k1: float = 0.01,
    k2: float = 0.03
) -> float:
    """Compute Structural Similarity Index (SSIM) on luma.

    Parameters
    ----------
    img1 : np.ndarray
        First image, (H, W) or (H, W, C), uint8
    img2 : np.ndarray
        Second image, sizes may differ from img1
    window_size : int
        Gaussian window size, default 11
    sigma : float
        Gaussian standard deviation, default 1.5
    k1, k2 : float
        Stability constants, defaults 0.01, 0.03

    Returns
    -------
    float
        SSIM in [0, 1]; 1.0 = identical luma

    Notes
    -----
    Windows slide with stride 1 over valid positions only (no padding).
    Images smaller than one window are treated as a single window.
    Negative SSIM (anti-correlated structure) is clamped to 0.

    References
    ----------
    Wang et al., "Image Quality Assessment: From Error Visibility to
    Structural Similarity", IEEE TIP 2004.
    """
    a, b, ratio = _overlap(_as_hwc(img1), _as_hwc(img2))
    if ratio == 0.0:
        return 0.0
    window = gaussian_window(window_size, sigma)
    return _finish(_ssim_map(luma(a), luma(b), window, k1, k2), ratio)


def hybrid_similarity(
    img1: np.ndarray,
    img2: np.ndarray,
    window_size: int = 11,
    sigma: float = 1.5,
    k1: float = 0.01,
    k2: float = 0.03
) -> float:
    """Luma SSIM weighted by local colour and alpha agreement.

    Parameters
    ----------
    img1, img2 : np.ndarray
        Images as for ssim(); channel layouts are matched first
    window_size, sigma, k1, k2
        As for ssim()

    Returns
    -------
    float
        Similarity in [0, 1]

    Notes
    -----
    Each window's luma SSIM is multiplied by

        max(0, 1 - sqrt(E_w[dCb^2 + dCr^2 + dA^2]) / 255)

    where E_w is the same Gaussian-weighted window mean. Colours with
    similar luma (solid red vs solid blue) score near 0 instead of the
    ~0.67 pure luma SSIM gives them. Greyscale pairs score exactly as ssim().
    """
    a, b = match_channels(img1, img2)
    a, b, ratio = _overlap(a, b)
    if ratio == 0.0:
        return 0.0
    window = gaussian_window(window_size, sigma)
    score_map = _ssim_map(luma(a), luma(b), window, k1, k2)

    d = _chroma_alpha(a) - _chroma_alpha(b)
    if d.shape[0]:
        dist_sq = _window_mean((d * d).sum(dim=0, keepdim=True), window)[0]
        agreement = (1.0 - torch.sqrt(dist_sq.clamp(min=0.0)) / DATA_RANGE).clamp(min=0.0)
        score_map = score_map * agreement

    return _finish(score_map, ratio)


def diff_image(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Absolute RGB difference over the top-left overlap.

    Parameters
    ----------
    img1, img2 : np.ndarray
        Images as for ssim()

    Returns
    -------
    np.ndarray
        (h, w, 3) uint8, black where the images agree
    """
    a, b = match_channels(img1, img2)
    a, b, _ = _overlap(a, b)
    a = a.astype(np.int16)
    b = b.astype(np.int16)
    c = a.shape[2]
    if c in (2, 4):
        # Alpha differences show up on every channel
        alpha = np.abs(a[:, :, -1:] - b[:, :, -1:])
        diff = np.maximum(np.abs(a[:, :, :-1] - b[:, :, :-1]), alpha)
    else:
        diff = np.abs(a - b)
    if diff.shape[2] == 1:
        diff = np.repeat(diff, 3, axis=2)
    return diff.astype(np.uint8)
