"""Co-occurrence learning.

For every interior texton, finds the textons lying close to it in the
exemplar by growing its silhouette one dilation step at a time, and records
the offsets to them. These offsets drive the placement of textons during
synthesis.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import cv2
from tqdm import tqdm

from .extraction import ExtractionResult
from .textons import FIRST_TEXTON_ID, NO_NEIGHBOR_DILATION, CoOccurrence, Texton

logger = logging.getLogger(__name__)

# Sign of (dx, dy) in each quadrant
QUADRANTS = ((1, 1), (-1, -1), (-1, 1), (1, -1))

_KERNEL = np.ones((3, 3), dtype=np.uint8)


@dataclass(frozen=True)
class Occurrence:
    """A neighbor texton and the dilation step at which it was first reached."""
    cluster_id: int
    label_id: int
    distance: int


def _in_quadrant(edge: CoOccurrence, sx: int, sy: int) -> bool:
    # Zero offsets belong to both sides of an axis
    return edge.dx * sx >= 0 and edge.dy * sy >= 0


def complete_quadrants(edges: List[CoOccurrence]) -> List[CoOccurrence]:
    """Mirrors edges into the quadrants no edge points to.

    An empty quadrant gets a copy of an edge from an adjacent quadrant with
    the differing coordinate negated, or failing that a copy of an edge from
    the opposite quadrant with both coordinates negated. Given at least one
    edge, every quadrant holds an edge afterwards.
    """
    completed = list(edges)
    if not completed:
        return completed

    for sx, sy in QUADRANTS:
        if any(_in_quadrant(e, sx, sy) for e in completed):
            continue
        sources = ([e for e in completed if _in_quadrant(e, sx, -sy) or _in_quadrant(e, -sx, sy)] or
                   [e for e in completed if _in_quadrant(e, -sx, -sy)])
        source = sources[0]
        completed.append(CoOccurrence(abs(source.dx) * sx, abs(source.dy) * sy, source.cluster_id))

    return completed


class CoOccurrenceAnalyzer:
    """Annotates textons with their dilation area and co-occurrence offsets."""

    def __init__(self, max_dilations: int = 20, extra_dilations: int = 2):
        """Initializes the analyzer.

        Args:
            max_dilations: Upper bound on dilation steps per texton.
            extra_dilations: Steps still taken after the first neighbor was
                             reached, to catch neighbors at nearly the same
                             distance.
        """
        if max_dilations <= 0:
            raise ValueError("Maximal number of dilations must be positive.")
        if extra_dilations < 0:
            raise ValueError("Number of extra dilations must be non-negative.")
        self.max_dilations = max_dilations
        self.extra_dilations = extra_dilations

    def analyze(self, extraction: ExtractionResult) -> int:
        """Computes co-occurrences of every interior, non image-filling texton.

        Textons are updated in place. Returns the number of textons analyzed.
        """
        candidates = [t for cluster in extraction.clusters for t in cluster.textons
                      if t.is_interior and not t.image_filling and t.label_id is not None]

        logger.info("Computing co-occurrences of %d textons", len(candidates))
        for texton in tqdm(candidates, desc="Computing co-occurrences"):
            occurrences = self.find_neighbors(texton, extraction)
            self.build_cooccurrences(texton, occurrences, extraction)

        return len(candidates)

    def find_neighbors(self, texton: Texton, extraction: ExtractionResult) -> List[Occurrence]:
        """Dilates the texton silhouette until neighbors are reached.

        Returns the neighbors in discovery order, each with the 0-based step
        that first reached it.
        """
        window, silhouette = self._silhouette_window(texton, extraction.image_shape)
        # Every cluster's own map, a pixel may belong to textons of several clusters
        label_maps = [label_map[window] for label_map in extraction.label_maps]

        found: Dict[Tuple[int, int], Occurrence] = {}
        max_steps = self.max_dilations
        step = 0
        while step < max_steps:
            silhouette = cv2.dilate(silhouette, _KERNEL)
            covered = silhouette > 0

            hits = []
            for cluster_id, label_map in enumerate(label_maps):
                labels = np.unique(label_map[covered])
                hits.extend((cluster_id, label_id)
                            for label_id in labels[labels >= FIRST_TEXTON_ID].tolist())

            for cluster_id, label_id in hits:
                if (cluster_id, label_id) in found:
                    continue
                if not self._is_neighbor(texton, cluster_id, label_id, extraction):
                    continue
                if not found:
                    # First neighbor reached, only a few more steps from here
                    max_steps = min(max_steps, step + 1 + self.extra_dilations)
                found[(cluster_id, label_id)] = Occurrence(cluster_id, label_id, step)
            step += 1

        return list(found.values())

    def _silhouette_window(self, texton: Texton, image_shape):
        """Binary silhouette of the texton, cropped to the area dilation can reach."""
        h, w = image_shape
        box = texton.bbox
        reach = self.max_dilations
        y0, y1 = max(box.min_y - reach, 0), min(box.max_y + reach + 1, h)
        x0, x1 = max(box.min_x - reach, 0), min(box.max_x + reach + 1, w)

        silhouette = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        silhouette[box.min_y - y0:box.max_y - y0 + 1,
                   box.min_x - x0:box.max_x - x0 + 1] = texton.mask
        return (slice(y0, y1), slice(x0, x1)), silhouette

    @staticmethod
    def _is_neighbor(texton: Texton, cluster_id: int, label_id: int,
                     extraction: ExtractionResult) -> bool:
        if cluster_id == texton.cluster_id and label_id == texton.label_id:
            return False
        if extraction.clusters[cluster_id].image_background:
            return False
        neighbor = extraction.texton(cluster_id, label_id)
        return neighbor is not None and not neighbor.image_filling

    @staticmethod
    def build_cooccurrences(texton: Texton, occurrences: List[Occurrence],
                            extraction: ExtractionResult):
        """Sets the dilation area and co-occurrence edges of a texton."""
        min_distance = None
        edges = []
        for occurrence in occurrences:
            neighbor = extraction.texton(occurrence.cluster_id, occurrence.label_id)
            if neighbor is None or neighbor.image_filling:
                continue

            if min_distance is None or occurrence.distance < min_distance:
                min_distance = occurrence.distance

            # Textons cut by the image edge give unreliable offsets
            if not neighbor.is_interior:
                continue

            edges.append(CoOccurrence(neighbor.bbox.min_x - texton.bbox.min_x,
                                      neighbor.bbox.min_y - texton.bbox.min_y,
                                      occurrence.cluster_id))

        texton.dilation_area = NO_NEIGHBOR_DILATION if min_distance is None else min_distance + 1
        texton.cooccurrences = complete_quadrants(edges)
