"""Texton extraction.

Splits every texture class of the exemplar into textons: connected regions
grown between class boundaries, cleaned of segmentation noise and cut out
of the image as background-masked patches.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy import ndimage
from tqdm import tqdm

from .segmentation import EdgeDetector, isolate_class
from .textons import (
    BOUNDARY,
    FIRST_TEXTON_ID,
    OUT_OF_CLASS,
    RESULT_BG_COLOR,
    TEXTON_BG_COLOR,
    UNASSIGNED,
    BoundingBox,
    Cluster,
    Texton,
)

logger = logging.getLogger(__name__)

# Neighbor offsets (dx, dy)
NEIGHBORS_4 = ((1, 0), (-1, 0), (0, 1), (0, -1))
NEIGHBORS_8 = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))

# Off-image neighbor slots
UNDEFINED = -1

# Source pixels matching a reserved color are stored with a neighboring
# color instead, so they stay visible once pasted
SENTINEL_SUBSTITUTES = (
    (TEXTON_BG_COLOR, (0, 0, 1)),
    (RESULT_BG_COLOR, (5, 5, 6)),
)


@dataclass
class ExtractionResult:
    """Textons of every class plus the label maps they were cut from.

    `cluster_map` and `texton_map` form the unified label map: for each
    pixel the cluster id and label id of the texton covering it, or
    UNDEFINED / OUT_OF_CLASS where no texton does. A pixel claimed by
    several clusters shows the last one there; `label_maps` keeps every
    claim.
    """
    clusters: List[Cluster]
    label_maps: List[np.ndarray]
    cluster_map: np.ndarray
    texton_map: np.ndarray
    _lookup: Dict[Tuple[int, int], Texton] = field(default_factory=dict, repr=False)

    @property
    def image_shape(self) -> Tuple[int, int]:
        return self.cluster_map.shape

    def texton(self, cluster_id: int, label_id: int) -> Optional[Texton]:
        """The texton carrying `label_id` in the label map of `cluster_id`."""
        if not self._lookup:
            for cluster in self.clusters:
                for t in cluster.textons:
                    if t.label_id is not None:
                        self._lookup[(cluster.cluster_id, t.label_id)] = t
        return self._lookup.get((cluster_id, label_id))


def _neighbor_stack(label_map: np.ndarray) -> np.ndarray:
    """(8, H, W) array of the 8 neighbors of every pixel, UNDEFINED off-image."""
    h, w = label_map.shape
    padded = np.pad(label_map, 1, mode='constant', constant_values=UNDEFINED)
    return np.stack([padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w] for dx, dy in NEIGHBORS_8])


class TextonExtractor:
    """Extracts the textons of every texture class of an exemplar image."""

    def __init__(self, min_texton_size: int = 30,
                 background_pixel: Optional[Tuple[int, int]] = None,
                 filling_margin: int = 10,
                 edge_detector: Optional[EdgeDetector] = None):
        """Initializes the extractor.

        Args:
            min_texton_size: Regions of this many pixels or fewer are
                             discarded as segmentation noise.
            background_pixel: Optional (x, y) known to lie in the background
                              texture. Its cluster gets an extra texton
                              covering the whole cluster.
            filling_margin: Textons whose bounding box is within this many
                            pixels of the image size are image-filling.
            edge_detector: Used to find class boundaries when `extract` is
                           not given precomputed edge masks.
        """
        if min_texton_size < 0:
            raise ValueError("Minimal texton size must be non-negative.")
        self.min_texton_size = min_texton_size
        self.background_pixel = background_pixel
        self.filling_margin = filling_margin
        self.edge_detector = edge_detector

    def extract(self, image: np.ndarray, class_labels: np.ndarray,
                edge_masks: Optional[Sequence[np.ndarray]] = None,
                n_clusters: Optional[int] = None) -> ExtractionResult:
        """Runs extraction for every texture class.

        Args:
            image: Exemplar (H, W, 3), uint8.
            class_labels: (H, W) texture-class label of every pixel.
            edge_masks: Optional boolean (H, W) boundary mask per class.
            n_clusters: Number of classes, defaults to max label + 1.

        Returns:
            ExtractionResult with one Cluster per class, in class order.
        """
        h, w = class_labels.shape
        if image.shape[:2] != (h, w):
            raise ValueError(f"Image shape {image.shape[:2]} does not match label shape {(h, w)}.")
        if n_clusters is None:
            n_clusters = int(class_labels.max()) + 1

        logger.info("Extracting textons from %d clusters (min size %d)",
                    n_clusters, self.min_texton_size)

        clusters = []
        label_maps = []
        cluster_map = np.full((h, w), UNDEFINED, dtype=np.int32)
        texton_map = np.full((h, w), OUT_OF_CLASS, dtype=np.int32)

        for cluster_id in tqdm(range(n_clusters), desc="Extracting textons"):
            boundaries = self._boundaries_for(image, class_labels, cluster_id, edge_masks)

            label_map, is_background = self.seed_labels(class_labels, cluster_id, boundaries)
            n_grown = self.grow_regions(label_map)
            n_passes = self.assign_remaining(label_map)
            label_map = self.assign_stray_pixels(label_map)

            cluster = self.slice_textons(image, label_map, cluster_id, is_background)
            logger.debug("Cluster %d: %d regions grown, %d repair passes, %d textons%s",
                         cluster_id, n_grown, n_passes, cluster.count,
                         " (background)" if cluster.image_background else "")
            if cluster.count == 0:
                logger.warning("Cluster %d yielded no texton", cluster_id)

            resolved = label_map >= FIRST_TEXTON_ID
            cluster_map[resolved] = cluster_id
            texton_map[resolved] = label_map[resolved]

            clusters.append(cluster)
            label_maps.append(label_map)

        total = sum(c.count for c in clusters)
        logger.info("Texton extraction completed: %d textons", total)
        return ExtractionResult(clusters, label_maps, cluster_map, texton_map)

    def _boundaries_for(self, image, class_labels, cluster_id, edge_masks) -> np.ndarray:
        if edge_masks is not None:
            return np.asarray(edge_masks[cluster_id], dtype=bool)
        if self.edge_detector is not None:
            return self.edge_detector.detect(isolate_class(image, class_labels, cluster_id))
        return np.zeros(class_labels.shape, dtype=bool)

    def seed_labels(self, class_labels: np.ndarray, cluster_id: int,
                    boundaries: np.ndarray) -> Tuple[np.ndarray, bool]:
        """Builds the initial label map of a cluster.

        Returns:
            The label map and whether the configured background pixel
            falls inside this cluster.
        """
        in_class = class_labels == cluster_id
        label_map = np.full(class_labels.shape, OUT_OF_CLASS, dtype=np.int32)
        label_map[in_class & boundaries] = BOUNDARY
        label_map[in_class & ~boundaries] = UNASSIGNED

        is_background = False
        if self.background_pixel is not None:
            bx, by = self.background_pixel
            h, w = label_map.shape
            if 0 <= bx < w and 0 <= by < h:
                is_background = label_map[by, bx] in (UNASSIGNED, BOUNDARY)
        return label_map, is_background

    def grow_regions(self, label_map: np.ndarray) -> int:
        """Flood fills every unassigned pixel into a texton id, in raster order.

        Regions not larger than `min_texton_size` are returned to the
        unassigned pool. Returns the number of committed regions.
        """
        h, w = label_map.shape
        texton_id = FIRST_TEXTON_ID

        for y in range(h):
            for x in range(w):
                if label_map[y, x] != UNASSIGNED:
                    continue
                filled = self._flood_fill(label_map, x, y, texton_id)
                if len(filled) > self.min_texton_size:
                    texton_id += 1
                else:
                    xs, ys = zip(*filled)
                    label_map[list(ys), list(xs)] = UNASSIGNED

        return texton_id - FIRST_TEXTON_ID

    @staticmethod
    def _flood_fill(label_map: np.ndarray, x: int, y: int, texton_id: int) -> List[Tuple[int, int]]:
        """4-connected fill from (x, y), returns the (x, y) of every pixel colored.

        Boundary pixels are colored but the fill does not spread through them.
        """
        h, w = label_map.shape
        filled = []
        stack = [(x, y)]
        while stack:
            cx, cy = stack.pop()
            value = label_map[cy, cx]
            if value != UNASSIGNED and value != BOUNDARY:
                continue
            label_map[cy, cx] = texton_id
            filled.append((cx, cy))
            if value == BOUNDARY:
                continue
            for dx, dy in NEIGHBORS_4:
                nx, ny = cx + dx, cy + dy
                if 0 <= nx < w and 0 <= ny < h:
                    neighbor = label_map[ny, nx]
                    if neighbor == UNASSIGNED or neighbor == BOUNDARY:
                        stack.append((nx, ny))
        return filled

    @staticmethod
    def assign_remaining(label_map: np.ndarray) -> int:
        """Gives unassigned pixels the texton id their neighbors agree on.

        A pixel is resolved only when exactly one distinct texton id appears
        among its 8 neighbors; ambiguous pixels wait for a later pass.
        Pixels are visited column by column and updated in place, so a
        decision is seen by every pixel visited after it. Passes repeat
        until one changes nothing. Returns the number of passes.
        """
        passes = 0
        while True:
            passes += 1
            changes = 0
            xs, ys = np.nonzero(label_map.T == UNASSIGNED)
            for x, y in zip(xs.tolist(), ys.tolist()):
                window = label_map[max(y - 1, 0):y + 2, max(x - 1, 0):x + 2]
                candidates = np.unique(window[window >= FIRST_TEXTON_ID])
                if len(candidates) == 1:
                    label_map[y, x] = candidates[0]
                    changes += 1
            if changes == 0:
                return passes

    @staticmethod
    def assign_stray_pixels(label_map: np.ndarray) -> np.ndarray:
        """Absorbs isolated out-of-class pixels into the texton surrounding them.

        An out-of-class pixel with at least 7 of its 8 neighbor slots holding
        the same texton id takes that id. Neighbors are read from the map as
        it was before the pass. Returns the corrected map.
        """
        neighbors = _neighbor_stack(label_map)

        # With 7 of 8 slots agreeing, one of the first two slots holds the majority
        first, second = neighbors[0], neighbors[1]
        first_votes = (neighbors == first).sum(axis=0)
        second_votes = (neighbors == second).sum(axis=0)
        majority = np.where(first_votes >= second_votes, first, second)
        votes = np.maximum(first_votes, second_votes)

        stray = (label_map == OUT_OF_CLASS) & (votes >= 7) & (majority >= FIRST_TEXTON_ID)

        corrected = label_map.copy()
        corrected[stray] = majority[stray]
        return corrected

    def slice_textons(self, image: np.ndarray, label_map: np.ndarray,
                      cluster_id: int, is_background: bool = False) -> Cluster:
        """Cuts every resolved texton of a label map out of the image."""
        h, w = label_map.shape
        cluster = Cluster(cluster_id)
        resolved = label_map >= FIRST_TEXTON_ID

        if is_background and resolved.any():
            # One texton made of every resolved pixel of the cluster
            ys, xs = np.nonzero(resolved)
            whole = (slice(ys.min(), ys.max() + 1), slice(xs.min(), xs.max() + 1))
            texton = self._make_texton(image, resolved[whole], whole, cluster_id, None, cluster.count)
            texton.image_filling = True
            cluster.add(texton)

        # find_objects wants labels starting at 1
        shifted = np.where(resolved, label_map - FIRST_TEXTON_ID + 1, 0)
        for index, region in enumerate(ndimage.find_objects(shifted)):
            if region is None:
                continue
            mask = shifted[region] == index + 1
            texton = self._make_texton(image, mask, region, cluster_id,
                                       index + FIRST_TEXTON_ID, cluster.count)
            if (texton.bbox.width >= w - self.filling_margin and
                    texton.bbox.height >= h - self.filling_margin):
                texton.image_filling = True
            cluster.add(texton)

        return cluster

    @staticmethod
    def _make_texton(image: np.ndarray, mask: np.ndarray, region: Tuple[slice, slice],
                     cluster_id: int, label_id: Optional[int], order: int) -> Texton:
        rows, cols = region
        bbox = BoundingBox(cols.start, rows.start, cols.stop - 1, rows.stop - 1)

        pixels = image[region][mask]
        for reserved, substitute in SENTINEL_SUBSTITUTES:
            pixels[np.all(pixels == reserved, axis=1)] = substitute

        patch = np.empty((bbox.height, bbox.width, 3), dtype=np.uint8)
        patch[:] = TEXTON_BG_COLOR
        patch[mask] = pixels

        h, w = image.shape[:2]
        return Texton(patch=patch, bbox=bbox, cluster_id=cluster_id,
                      position=bbox.position(w, h), label_id=label_id, order=order)
