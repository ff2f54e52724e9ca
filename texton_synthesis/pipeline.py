"""End-to-end texton synthesis: segmentation, extraction, co-occurrence, synthesis."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import PipelineConfig
from .cooccurrence import CoOccurrenceAnalyzer
from .extraction import ExtractionResult, TextonExtractor
from .segmentation import BlurFilter, EdgeDetector, Segmenter
from .synthesis import SynthesisEngine

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    image: np.ndarray
    class_labels: np.ndarray
    extraction: ExtractionResult


class TextonPipeline:
    """Runs every stage on one exemplar image."""

    def __init__(self, config: Optional[PipelineConfig] = None,
                 segmenter: Optional[Segmenter] = None,
                 rng: Optional[np.random.Generator] = None):
        self.config = config or PipelineConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

        extraction = self.config.extraction
        self.blur = BlurFilter()
        self.segmenter = segmenter or Segmenter(extraction.n_clusters,
                                                random_state=self.config.seed,
                                                blur=self.blur)
        self.extractor = TextonExtractor(
            min_texton_size=extraction.min_texton_size,
            background_pixel=extraction.background_pixel,
            filling_margin=extraction.filling_margin,
            edge_detector=EdgeDetector(extraction.canny_low, extraction.canny_high))
        self.analyzer = CoOccurrenceAnalyzer(self.config.cooccurrence.max_dilations,
                                             self.config.cooccurrence.extra_dilations)
        self.engine = SynthesisEngine.from_config(self.config.synthesis, rng=self.rng, blur=self.blur)

    def learn(self, image: np.ndarray, class_labels: Optional[np.ndarray] = None) -> ExtractionResult:
        """Extracts textons from `image` and computes their co-occurrences."""
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}.")
        if class_labels is None:
            class_labels = self.segmenter.classify(image)
        extraction = self.extractor.extract(image, class_labels,
                                            n_clusters=self.config.extraction.n_clusters)
        self.analyzer.analyze(extraction)
        return extraction

    def run(self, image: np.ndarray, width: int, height: int,
            class_labels: Optional[np.ndarray] = None) -> PipelineResult:
        """Synthesizes a (height, width) image in the style of `image`."""
        start_time = time.time()
        if class_labels is None:
            class_labels = self.segmenter.classify(image)

        extraction = self.learn(image, class_labels)
        synthesized = self.engine.synthesize(extraction.clusters, width, height)

        logger.info("Pipeline completed in %.2f seconds", time.time() - start_time)
        return PipelineResult(synthesized, class_labels, extraction)
