import logging
from collections import deque
from typing import List, Optional

import numpy as np
from tqdm import tqdm

from .errors import EmptyTextonCollection, SynthesisUnseedable
from .segmentation import BlurFilter
from .textons import RESULT_BG_COLOR, Cluster, Texton

logger = logging.getLogger(__name__)


def crop_border(image: np.ndarray, border: int) -> np.ndarray:
    """Removes `border` pixels from each side of an image."""
    h, w = image.shape[:2]
    if 2 * border > min(h, w):
        raise ValueError(f"Cannot crop a border of {border} from an image of size {w}x{h}.")
    return image[border:h - border, border:w - border].copy()


def _painted(region: np.ndarray) -> np.ndarray:
    """True where the canvas already holds a texton pixel."""
    return np.any(region != np.array(RESULT_BG_COLOR, dtype=region.dtype), axis=2)


class SynthesisEngine:
    """Grows a new image from textons by following their co-occurrences."""

    def __init__(self, border: int = 50, max_overlap: int = 10,
                 dilation_error_threshold: float = 2.0, too_close_threshold: int = 2,
                 first_seed_cluster: int = 1, spacing_tolerance: int = 0,
                 blur: Optional[BlurFilter] = None,
                 rng: Optional[np.random.Generator] = None):
        """Initializes the synthesis engine.

        Args:
            border: Margin added around the requested size while growing,
                    half of it on each side, cropped at the end.
            max_overlap: Overlapping pixels tolerated when placing a texton
                         whose dilation area is below 2.
            dilation_error_threshold: Clusters with a larger mean dilation
                                      area lose their "too close" textons.
            too_close_threshold: Dilation area under which a texton counts
                                 as too close to its neighbors.
            first_seed_cluster: First cluster scanned for a seed texton.
            spacing_tolerance: Pixels taken off the dilation area when
                               clearing the surroundings of a texton.
                               1 accepts placements at exactly the
                               exemplar spacing.
            blur: Smoothing applied to the background plate.
            rng: Random source for the background plate and seed choice.
        """
        if border < 0 or border % 2:
            raise ValueError("Border must be a non-negative even number.")
        if spacing_tolerance < 0:
            raise ValueError("Spacing tolerance must be non-negative.")
        self.border = border
        self.max_overlap = max_overlap
        self.dilation_error_threshold = dilation_error_threshold
        self.too_close_threshold = too_close_threshold
        self.first_seed_cluster = first_seed_cluster
        self.spacing_tolerance = spacing_tolerance
        self.blur = blur or BlurFilter()
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_config(cls, config, rng: Optional[np.random.Generator] = None,
                    blur: Optional[BlurFilter] = None) -> 'SynthesisEngine':
        return cls(border=config.border, max_overlap=config.max_overlap,
                   dilation_error_threshold=config.dilation_error_threshold,
                   too_close_threshold=config.too_close_threshold,
                   first_seed_cluster=config.first_seed_cluster,
                   spacing_tolerance=config.spacing_tolerance,
                   blur=blur, rng=rng)

    def synthesize(self, clusters: List[Cluster], width: int, height: int) -> np.ndarray:
        """Synthesizes a (height, width, 3) image from annotated clusters.

        The clusters are filtered in place before placement starts.

        Raises:
            SynthesisUnseedable: No texton is left to start growing from.
        """
        if width <= 0 or height <= 0:
            raise ValueError("Output width and height must be positive.")
        logger.info("Texton-based synthesis of a %dx%d image", width, height)

        canvas = np.empty((height + self.border, width + self.border, 3), dtype=np.uint8)
        canvas[:] = RESULT_BG_COLOR

        background = self.build_background(clusters, canvas.shape[:2])

        removed = self.remove_nonconforming_textons(clusters)
        removed_border = self.remove_border_textons(clusters)
        logger.info("Removed %d too-close and %d border/filling textons", removed, removed_border)

        seed = self.choose_seed_texton(clusters)
        placed = self.grow(clusters, seed, canvas)
        logger.info("Synthesis completed: %d textons placed", placed + 1)

        return self.composite(canvas, background)

    @staticmethod
    def _background_texton(clusters: List[Cluster]) -> Optional[Texton]:
        # The last cluster holding an image-filling texton provides it
        for cluster in reversed(clusters):
            if cluster.image_background:
                for texton in cluster.textons:
                    if texton.image_filling:
                        return texton
        for cluster in clusters:
            if cluster.textons:
                return cluster.textons[0]
        return None

    def build_background(self, clusters: List[Cluster], shape) -> np.ndarray:
        """Fills a plate of `shape` (h, w) with pixels sampled from a background texton.

        Raises:
            EmptyTextonCollection: No cluster holds any texton.
        """
        texton = self._background_texton(clusters)
        if texton is None:
            raise EmptyTextonCollection("No texton available to build the background from.")

        pixels = texton.patch[texton.mask]
        if len(pixels) == 0:
            raise EmptyTextonCollection("Background texton holds no pixel.")

        h, w = shape
        # Uniform draws among the non-background pixels of the patch
        choices = self.rng.integers(0, len(pixels), size=h * w)
        plate = pixels[choices].reshape(h, w, 3)
        return self.blur.smooth(plate)

    def remove_nonconforming_textons(self, clusters: List[Cluster]) -> int:
        """Drops "too close" textons from clusters whose textons are mostly far apart.

        Such textons are most likely segmentation faults. Returns the number
        of textons removed.
        """
        removed = 0
        for cluster in clusters:
            if cluster.count == 0:
                continue
            average = np.mean([t.dilation_area or 0 for t in cluster.textons])
            if average > self.dilation_error_threshold:
                removed += cluster.remove_if(
                    lambda t: (t.dilation_area or 0) < self.too_close_threshold)
        return removed

    @staticmethod
    def remove_border_textons(clusters: List[Cluster]) -> int:
        """Drops textons touching the image edge and image-filling ones."""
        return sum(cluster.remove_if(lambda t: not t.is_interior or t.image_filling)
                   for cluster in clusters)

    def choose_seed_texton(self, clusters: List[Cluster]) -> Texton:
        """Picks a random texton of the first non-empty cluster.

        Raises:
            SynthesisUnseedable: Every scanned cluster is empty.
        """
        for cluster in clusters[self.first_seed_cluster:]:
            if cluster.count > 0:
                return cluster.textons[self.rng.integers(cluster.count)]
        raise SynthesisUnseedable("Unable to synthesize image: no texton left to seed with.")

    def check_surrounding(self, x: int, y: int, texton: Texton, canvas: np.ndarray) -> bool:
        """Tells whether `texton` can be placed at (x, y) without collisions.

        Close-packed textons (dilation area below 2) may overlap painted
        pixels by at most `max_overlap` pixels, and must still cover at
        least one unpainted pixel. Others need their bounding box, grown by
        their dilation area (less `spacing_tolerance`) on every side, to be
        entirely unpainted.
        """
        area = texton.dilation_area or 0
        ch, cw = canvas.shape[:2]

        if area < 2:
            if x < 0 or y < 0 or x + texton.width > cw or y + texton.height > ch:
                return False
            mask = texton.mask
            painted = _painted(canvas[y:y + texton.height, x:x + texton.width]) & mask
            overlap = np.count_nonzero(painted)
            return overlap <= self.max_overlap and overlap < np.count_nonzero(mask)

        reach = max(area - self.spacing_tolerance, 0)
        x0, y0 = max(x - reach, 0), max(y - reach, 0)
        x1 = min(x + texton.width + reach, cw)
        y1 = min(y + texton.height + reach, ch)
        return not _painted(canvas[y0:y1, x0:x1]).any()

    @staticmethod
    def insert_texton(x: int, y: int, texton: Texton, canvas: np.ndarray) -> bool:
        """Copies the texton pixels onto the canvas with their top-left at (x, y).

        Nothing is written if any pixel would fall outside the canvas.
        """
        ch, cw = canvas.shape[:2]
        if x < 0 or y < 0 or x + texton.width > cw or y + texton.height > ch:
            return False

        mask = texton.mask
        canvas[y:y + texton.height, x:x + texton.width][mask] = texton.patch[mask]
        return True

    def _first_fit(self, x: int, y: int, cluster: Cluster, canvas: np.ndarray) -> Optional[Texton]:
        for texton in cluster.textons:
            if self.check_surrounding(x, y, texton, canvas) and self.insert_texton(x, y, texton, canvas):
                return texton
        return None

    def grow(self, clusters: List[Cluster], seed: Texton, canvas: np.ndarray) -> int:
        """Places `seed` at the canvas center and grows breadth-first from it.

        The seed is shifted up and left when it would cross the bottom or
        right canvas edge. Returns the number of textons placed after the seed.

        Raises:
            SynthesisUnseedable: The seed is larger than the canvas.
        """
        ch, cw = canvas.shape[:2]
        x = min(cw // 2, cw - seed.width)
        y = min(ch // 2, ch - seed.height)
        if x < 0 or y < 0:
            raise SynthesisUnseedable(
                f"Seed texton of size {seed.width}x{seed.height} does not fit "
                f"on a {cw}x{ch} canvas.")
        self.insert_texton(x, y, seed, canvas)

        queue = deque([(x, y, seed.cooccurrences)])
        placed = 0
        with tqdm(desc="Placing textons", unit=" textons") as progress:
            while queue:
                cur_x, cur_y, edges = queue.popleft()
                for edge in edges:
                    new_x, new_y = cur_x + edge.dx, cur_y + edge.dy
                    if new_x < 0 or new_y < 0 or new_x >= cw or new_y >= ch:
                        continue

                    cluster = clusters[edge.cluster_id]
                    texton = self._first_fit(new_x, new_y, cluster, canvas)
                    if texton is None:
                        continue

                    queue.append((new_x, new_y, texton.cooccurrences))
                    # Keep a fair share for every texton of the cluster
                    texton.add_appearance()
                    cluster.reorder()

                    placed += 1
                    progress.update(1)
        return placed

    def composite(self, canvas: np.ndarray, background: np.ndarray) -> np.ndarray:
        """Lays the painted canvas pixels over the background and crops the border."""
        result = background.copy()
        painted = _painted(canvas)
        result[painted] = canvas[painted]
        return crop_border(result, self.border // 2)
