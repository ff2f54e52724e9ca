"""Texton-based texture synthesis.

This package splits an exemplar texture into textons, learns which textons
appear next to each other, and grows new images of any size by placing
textons according to those co-occurrences.

Core classes and functions are exposed for use.
"""

__version__ = '0.1.0'

from .config import CoOccurrenceConfig, ExtractionConfig, PipelineConfig, SynthesisConfig
from .cooccurrence import CoOccurrenceAnalyzer
from .errors import EmptyTextonCollection, SynthesisError, SynthesisUnseedable
from .extraction import ExtractionResult, TextonExtractor
from .pipeline import PipelineResult, TextonPipeline
from .segmentation import BlurFilter, EdgeDetector, Segmenter
from .synthesis import SynthesisEngine, crop_border
from .textons import BoundingBox, Cluster, CoOccurrence, Position, Texton

# Utility functions
from .utils import (
    load_texture,
    save_image,
    visualize_results
)

__all__ = [
    'TextonPipeline',
    'PipelineResult',
    'PipelineConfig',
    'ExtractionConfig',
    'CoOccurrenceConfig',
    'SynthesisConfig',
    'Segmenter',
    'EdgeDetector',
    'BlurFilter',
    'TextonExtractor',
    'ExtractionResult',
    'CoOccurrenceAnalyzer',
    'SynthesisEngine',
    'crop_border',
    'Texton',
    'Cluster',
    'CoOccurrence',
    'BoundingBox',
    'Position',
    'SynthesisError',
    'SynthesisUnseedable',
    'EmptyTextonCollection',
    'load_texture',
    'save_image',
    'visualize_results'
]
