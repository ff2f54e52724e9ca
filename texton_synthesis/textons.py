"""Texton and cluster data model shared by every pipeline stage.

A texton is a background-masked rectangular patch cut out of the exemplar,
a cluster groups the textons of one texture class.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

# Label map values. Anything >= FIRST_TEXTON_ID is a texton id.
OUT_OF_CLASS = 0
BOUNDARY = 1
UNASSIGNED = 2
FIRST_TEXTON_ID = 3

# Marks "no pixel here" inside a texton patch
TEXTON_BG_COLOR = (0, 0, 0)
# Marks "nothing painted yet" on the synthesis canvas
RESULT_BG_COLOR = (5, 5, 5)

# Dilation area given to textons for which no neighbor was ever found
NO_NEIGHBOR_DILATION = 0


class Position(Enum):
    INTERIOR = 'interior'
    BORDER = 'border'


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel bounds in source image coordinates."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @classmethod
    def from_mask(cls, mask: np.ndarray) -> 'BoundingBox':
        """Tight bounding box of the True pixels of a 2D mask."""
        ys, xs = np.nonzero(mask)
        if len(xs) == 0:
            raise ValueError("Cannot compute a bounding box of an empty mask.")
        return cls(int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max()))

    def position(self, image_width: int, image_height: int) -> Position:
        """BORDER if the box touches any edge of the source image."""
        if (self.min_x <= 0 or self.min_y <= 0 or
                self.max_x >= image_width - 1 or self.max_y >= image_height - 1):
            return Position.BORDER
        return Position.INTERIOR


@dataclass(frozen=True)
class CoOccurrence:
    """Offset from a texton's bounding-box origin to a neighbor of cluster `cluster_id`."""
    dx: int
    dy: int
    cluster_id: int


@dataclass(eq=False)
class Texton:
    """One extracted texture primitive.

    `patch` holds the source pixels inside `bbox`; every pixel that does not
    belong to the texton is set to TEXTON_BG_COLOR. `label_id` is the value
    this texton carries in its cluster's label map, or None for the
    synthesized whole-cluster background texton.
    """
    patch: np.ndarray
    bbox: BoundingBox
    cluster_id: int
    position: Position
    label_id: Optional[int] = None
    image_filling: bool = False
    dilation_area: Optional[int] = None
    cooccurrences: List[CoOccurrence] = field(default_factory=list)
    appearances: int = 0
    order: int = 0

    @property
    def width(self) -> int:
        return self.patch.shape[1]

    @property
    def height(self) -> int:
        return self.patch.shape[0]

    @property
    def mask(self) -> np.ndarray:
        """Boolean (h, w) mask of the non-background pixels of the patch."""
        return np.any(self.patch != np.array(TEXTON_BG_COLOR, dtype=self.patch.dtype), axis=2)

    @property
    def is_interior(self) -> bool:
        return self.position is Position.INTERIOR

    def add_appearance(self):
        self.appearances += 1

    def sort_key(self):
        # Least used first, creation order breaks ties
        return (self.appearances, self.order)


@dataclass
class Cluster:
    """All textons of one texture class, in their current scan order."""
    cluster_id: int
    textons: List[Texton] = field(default_factory=list)
    image_background: bool = False

    @property
    def count(self) -> int:
        return len(self.textons)

    def add(self, texton: Texton):
        self.textons.append(texton)
        if texton.image_filling:
            self.image_background = True

    def remove_if(self, predicate) -> int:
        """Drops every texton matching `predicate`, returns how many were dropped."""
        kept = [t for t in self.textons if not predicate(t)]
        removed = len(self.textons) - len(kept)
        self.textons = kept
        return removed

    def reorder(self):
        """Re-sorts textons so the least used ones are scanned first."""
        self.textons.sort(key=Texton.sort_key)
