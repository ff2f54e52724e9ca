"""Shared test fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from texton_synthesis.cooccurrence import CoOccurrenceAnalyzer
from texton_synthesis.extraction import TextonExtractor
from texton_synthesis.textons import BoundingBox, Position, Texton


BACKGROUND_COLOR = (128, 128, 128)
BLOB_COLOR = (200, 30, 30)
SPECK_COLORS = ((40, 90, 200), (230, 200, 60), (20, 160, 80))


def make_blob_grid(size: int = 80, blob: int = 8, spacing: int = 16, offset: int = 4):
    """Gray image with a regular grid of red square blobs.

    Class 0 is the gray background, class 1 the blobs.
    """
    image = np.empty((size, size, 3), dtype=np.uint8)
    image[:] = BACKGROUND_COLOR
    labels = np.zeros((size, size), dtype=np.int32)
    for y0 in range(offset, size - blob, spacing):
        for x0 in range(offset, size - blob, spacing):
            image[y0:y0 + blob, x0:x0 + blob] = BLOB_COLOR
            labels[y0:y0 + blob, x0:x0 + blob] = 1
    return image, labels


def make_speck_scene():
    """50x50 scene with a 20x20 class-0 block and a 3-pixel class-0 speck.

    The speck touches the block only diagonally, so the flood fill keeps it
    apart while the 8-neighbor repair can reach it.
    """
    labels = np.ones((50, 50), dtype=np.int32)
    labels[40:, :] = 2
    labels[10:30, 10:30] = 0
    for x, y in ((30, 30), (31, 30), (30, 31)):
        labels[y, x] = 0

    image = np.empty((50, 50, 3), dtype=np.uint8)
    for cls, color in enumerate(SPECK_COLORS):
        image[labels == cls] = color
    return image, labels


def make_texton(mask: np.ndarray, x: int = 10, y: int = 10, cluster_id: int = 1,
                color=(200, 30, 30), dilation_area=None, order: int = 0,
                position: Position = Position.INTERIOR) -> Texton:
    """Texton with the given silhouette placed at (x, y) in source coordinates."""
    mask = np.asarray(mask, dtype=bool)
    patch = np.zeros(mask.shape + (3,), dtype=np.uint8)
    patch[mask] = color
    h, w = mask.shape
    return Texton(patch=patch, bbox=BoundingBox(x, y, x + w - 1, y + h - 1),
                  cluster_id=cluster_id, position=position, label_id=3 + order,
                  dilation_area=dilation_area, order=order)


@pytest.fixture
def blob_grid():
    return make_blob_grid()


@pytest.fixture
def speck_scene():
    return make_speck_scene()


@pytest.fixture
def blob_extraction(blob_grid):
    """Extracted and co-occurrence annotated blob grid."""
    image, labels = blob_grid
    extraction = TextonExtractor(min_texton_size=5).extract(image, labels, n_clusters=2)
    CoOccurrenceAnalyzer().analyze(extraction)
    return extraction


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
