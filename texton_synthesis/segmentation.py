"""
Collaborators of the extraction stage: texture-class clustering,
class boundary detection and smoothing.

These are thin adapters over scikit-learn's k-means and OpenCV's Canny and
box filters, exposing the narrow interfaces the extractor consumes.
"""

from typing import Optional

import numpy as np
import cv2
from scipy.ndimage import gaussian_filter
from sklearn.cluster import KMeans


def compute_luminance(image: np.ndarray) -> np.ndarray:
    """
    Compute the luminance channel of an image.

    Parameters:
    -----------
    image : ndarray
        Input image (H, W, 3) RGB or (H, W)

    Returns:
    --------
    ndarray
        Luminance (H, W), float32
    """
    if image.ndim == 3 and image.shape[2] == 3:
        luminance = 0.299 * image[:, :, 0] + 0.587 * image[:, :, 1] + 0.114 * image[:, :, 2]
    elif image.ndim == 2:
        luminance = image.astype(np.float64)
    else:
        raise ValueError(f"Unsupported image shape: {image.shape}. Expected (H, W, 3) or (H, W).")
    return luminance.astype(np.float32)


def compute_pixel_features(image: np.ndarray, blur_sigma: float = 3.0) -> np.ndarray:
    """
    Build one feature vector per pixel for texture-class clustering.

    Features are the YCrCb color of the pixel and the Gaussian-blurred
    luminance around it, so that pixels inside a textured area are pulled
    towards the same class.

    Parameters:
    -----------
    image : ndarray
        RGB image (H, W, 3), uint8
    blur_sigma : float
        Gaussian sigma of the neighborhood luminance channel

    Returns:
    --------
    ndarray
        Features (H * W, 4), float32, normalized by their largest magnitude
    """
    ycrcb = cv2.cvtColor(image, cv2.COLOR_RGB2YCrCb).astype(np.float32)
    blurred = gaussian_filter(compute_luminance(image), sigma=blur_sigma)

    features = np.concatenate([ycrcb, blurred[:, :, None]], axis=2).reshape(-1, 4)

    # Max-norm normalization keeps every channel on a comparable scale
    norm = np.abs(features).max()
    if norm > 1e-8:
        features = features / norm
    return features


class BlurFilter:
    """Box blur that keeps the image dimensions."""

    def __init__(self, ksize: int = 3):
        if ksize <= 0:
            raise ValueError("Kernel size must be positive.")
        self.ksize = ksize

    def smooth(self, image: np.ndarray) -> np.ndarray:
        return cv2.blur(image, (self.ksize, self.ksize))


class Segmenter:
    """Assigns every pixel one of `n_clusters` texture-class labels."""

    def __init__(self, n_clusters: int, blur_sigma: float = 3.0,
                 random_state: Optional[int] = None, blur: Optional[BlurFilter] = None):
        if n_clusters <= 0:
            raise ValueError("Number of clusters must be positive.")
        self.n_clusters = n_clusters
        self.blur_sigma = blur_sigma
        self.random_state = random_state
        self.blur = blur or BlurFilter()

    def classify(self, image: np.ndarray) -> np.ndarray:
        """Returns an (H, W) int32 array of labels in [0, n_clusters)."""
        h, w = image.shape[:2]
        # Smooth out the texture while keeping the edge information
        smoothed = self.blur.smooth(image)
        features = compute_pixel_features(smoothed, blur_sigma=self.blur_sigma)

        kmeans = KMeans(n_clusters=self.n_clusters, max_iter=100, tol=0.001,
                        n_init=10, random_state=self.random_state)
        labels = kmeans.fit_predict(features)
        return labels.reshape(h, w).astype(np.int32)


class EdgeDetector:
    """Canny boundary detection on a class-isolated rendering."""

    def __init__(self, low: float = 70, high: float = 90):
        self.low = low
        self.high = high

    def detect(self, gray: np.ndarray) -> np.ndarray:
        """Returns a boolean (H, W) mask, True on boundary pixels."""
        if gray.dtype != np.uint8:
            gray = np.clip(gray, 0, 255).astype(np.uint8)
        edges = cv2.Canny(gray, self.low, self.high)
        return edges > 0


def isolate_class(image: np.ndarray, class_labels: np.ndarray, cluster_id: int) -> np.ndarray:
    """Grayscale rendering of `image` with every pixel outside `cluster_id` blacked out."""
    isolated = image.copy()
    isolated[class_labels != cluster_id] = 0
    return cv2.cvtColor(isolated, cv2.COLOR_RGB2GRAY)
