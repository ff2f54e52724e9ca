"""Pipeline configuration - tunable thresholds of every stage."""

from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass
class ExtractionConfig:
    """Controls segmentation and texton extraction."""

    n_clusters: int = 3
    # Regions with this many pixels or fewer are treated as noise
    min_texton_size: int = 30
    # (x, y) of a pixel known to lie in the background texture
    background_pixel: Optional[Tuple[int, int]] = None

    # Canny thresholds for class boundaries
    canny_low: float = 70
    canny_high: float = 90

    # A texton within this many pixels of the image size fills the image
    filling_margin: int = 10

    def __post_init__(self):
        if self.n_clusters <= 0:
            raise ValueError("Number of clusters must be positive.")
        if self.min_texton_size < 0:
            raise ValueError("Minimal texton size must be non-negative.")
        if self.canny_low > self.canny_high:
            raise ValueError("canny_low must not exceed canny_high.")
        if self.filling_margin < 0:
            raise ValueError("Filling margin must be non-negative.")


@dataclass
class CoOccurrenceConfig:
    """Controls the dilation-based neighbor search."""

    max_dilations: int = 20
    # Steps still run once the first neighbor was found
    extra_dilations: int = 2

    def __post_init__(self):
        if self.max_dilations <= 0:
            raise ValueError("Maximal number of dilations must be positive.")
        if self.extra_dilations < 0:
            raise ValueError("Number of extra dilations must be non-negative.")


@dataclass
class SynthesisConfig:
    """Controls texton placement on the output canvas."""

    # Total margin added around the requested size, half on each side
    border: int = 50
    # Overlapping pixels tolerated for close-packed textons
    max_overlap: int = 10

    # Clusters whose mean dilation area exceeds this are filtered for
    # textons with a dilation area below too_close_threshold
    dilation_error_threshold: float = 2.0
    too_close_threshold: int = 2

    # Slot 0 is reserved for the background-designated cluster
    first_seed_cluster: int = 1

    # Subtracted from the dilation area around placed textons
    spacing_tolerance: int = 0

    def __post_init__(self):
        if self.border < 0 or self.border % 2:
            raise ValueError("Border must be a non-negative even number.")
        if self.spacing_tolerance < 0:
            raise ValueError("Spacing tolerance must be non-negative.")
        if self.max_overlap < 0:
            raise ValueError("Maximal overlap must be non-negative.")
        if self.first_seed_cluster < 0:
            raise ValueError("First seed cluster must be non-negative.")


@dataclass
class PipelineConfig:
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    cooccurrence: CoOccurrenceConfig = field(default_factory=CoOccurrenceConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)
    seed: Optional[int] = None
