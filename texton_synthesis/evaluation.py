"""
Quality metrics comparing a synthesized texture with its exemplar.

None of them needs the two images to share a size: structure is compared on
randomly drawn patches, color and edges through global statistics.
"""

from typing import Optional

import numpy as np
import cv2
from skimage.metrics import structural_similarity


MIN_PATCH_SIZE = 8


def _random_patch(image: np.ndarray, size: int, rng: np.random.Generator) -> np.ndarray:
    h, w = image.shape[:2]
    y = rng.integers(0, h - size + 1)
    x = rng.integers(0, w - size + 1)
    return image[y:y + size, x:x + size]


def compute_ssim_patches(original, synthesized, patch_size=64, num_patches=20,
                         rng: Optional[np.random.Generator] = None):
    """
    Mean structural similarity of randomly paired patches.

    Each sample pairs a patch of the exemplar with a patch of the result,
    both drawn at random positions, and scores them over the three color
    channels at once.

    Parameters:
    -----------
    original, synthesized : ndarray
        (H, W, 3) uint8 images, sizes may differ
    patch_size : int
        Patch side, shrunk to fit the smaller image
    num_patches : int
        Number of patch pairs
    rng : Generator, optional
        Random source for the patch positions

    Returns:
    --------
    float
        Mean SSIM, or 0.0 when the images are too small to compare
    """
    rng = rng if rng is not None else np.random.default_rng()
    size = min(patch_size, *original.shape[:2], *synthesized.shape[:2])
    if size < MIN_PATCH_SIZE:
        return 0.0

    # Largest odd window that fits the patch, capped at the default 7
    win_size = min(7, size - 1 if size % 2 == 0 else size)
    scores = [structural_similarity(_random_patch(original, size, rng),
                                    _random_patch(synthesized, size, rng),
                                    data_range=255, win_size=win_size, channel_axis=2)
              for _ in range(num_patches)]
    return float(np.mean(scores))


def compute_histogram_distance(original, synthesized, bins=64):
    """
    Chi-square distance between the normalized per-channel color histograms.

    Returns:
    --------
    float
        Mean over the three channels, 0 for identical histograms
    """
    def histogram(image, channel):
        hist = cv2.calcHist([image], [channel], None, [bins], [0, 256]).ravel()
        return hist / max(hist.sum(), 1.0)

    distances = []
    for channel in range(3):
        p, q = histogram(original, channel), histogram(synthesized, channel)
        distances.append(0.5 * np.sum((p - q) ** 2 / (p + q + 1e-10)))
    return float(np.mean(distances))


def compute_edge_consistency(original, synthesized, low=50, high=150):
    """1 minus the difference of Canny edge densities, 1 meaning equal densities."""
    orig_edges = cv2.Canny(cv2.cvtColor(original, cv2.COLOR_RGB2GRAY), low, high)
    synth_edges = cv2.Canny(cv2.cvtColor(synthesized, cv2.COLOR_RGB2GRAY), low, high)

    orig_edge_density = np.count_nonzero(orig_edges) / orig_edges.size
    synth_edge_density = np.count_nonzero(synth_edges) / synth_edges.size
    return float(1.0 - abs(orig_edge_density - synth_edge_density))


def evaluate_texture_quality(original, synthesized, verbose=True,
                             rng: Optional[np.random.Generator] = None):
    """
    Evaluate synthesized texture quality.

    Parameters:
    -----------
    original : ndarray
        Exemplar texture
    synthesized : ndarray
        Synthesized texture
    verbose : bool
        Whether to print results

    Returns:
    --------
    dict
        Dictionary of evaluation metrics
    """
    ssim_score = compute_ssim_patches(original, synthesized, rng=rng)
    hist_distance = compute_histogram_distance(original, synthesized)
    edge_consistency = compute_edge_consistency(original, synthesized)

    results = {
        'ssim': ssim_score,
        'histogram_distance': hist_distance,
        'edge_consistency': edge_consistency,
        'overall_score': (ssim_score + edge_consistency) / 2 - hist_distance / 10
    }

    if verbose:
        print("\n" + "=" * 50)
        print("TEXTURE QUALITY EVALUATION")
        print("=" * 50)
        print(f"SSIM Score:           {ssim_score:.4f} (higher is better)")
        print(f"Histogram Distance:   {hist_distance:.4f} (lower is better)")
        print(f"Edge Consistency:     {edge_consistency:.4f} (higher is better)")
        print(f"Overall Score:        {results['overall_score']:.4f}")
        print("=" * 50)

    return results
