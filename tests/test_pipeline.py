"""End-to-end tests of the texton pipeline."""

from __future__ import annotations

import numpy as np
import pytest

from texton_synthesis import (
    ExtractionConfig,
    PipelineConfig,
    SynthesisUnseedable,
    TextonPipeline,
)

from conftest import BLOB_COLOR


@pytest.fixture
def config():
    return PipelineConfig(extraction=ExtractionConfig(n_clusters=2, min_texton_size=5), seed=3)


class TestTextonPipeline:
    def test_run_with_known_classes(self, config, blob_grid):
        image, labels = blob_grid
        result = TextonPipeline(config).run(image, 64, 48, class_labels=labels)

        assert result.image.shape == (48, 64, 3)
        assert result.image.dtype == np.uint8
        assert result.class_labels is labels
        assert np.all(result.image == BLOB_COLOR, axis=2).any()
        assert len(result.extraction.clusters) == 2

    def test_same_seed_same_result(self, config, blob_grid):
        image, labels = blob_grid
        first = TextonPipeline(config).run(image, 40, 40, class_labels=labels).image
        second = TextonPipeline(config).run(image, 40, 40, class_labels=labels).image
        np.testing.assert_array_equal(first, second)

    def test_learn_segments_when_no_classes_given(self, config, blob_grid):
        image, _ = blob_grid
        extraction = TextonPipeline(config).learn(image)
        assert len(extraction.clusters) == 2
        assert extraction.cluster_map.shape == image.shape[:2]
        assert sum(c.count for c in extraction.clusters) >= 26

    def test_learn_annotates_interior_textons(self, config, blob_grid):
        image, labels = blob_grid
        extraction = TextonPipeline(config).learn(image, labels)
        blobs = extraction.clusters[1]
        assert blobs.count == 25
        assert all(t.dilation_area and t.dilation_area > 0 for t in blobs.textons)
        assert all(len(t.cooccurrences) >= 4 for t in blobs.textons)

    def test_rejects_grayscale(self, config):
        with pytest.raises(ValueError):
            TextonPipeline(config).learn(np.zeros((10, 10), dtype=np.uint8),
                                         np.zeros((10, 10), dtype=np.int32))

    def test_uniform_image_cannot_be_seeded(self):
        image = np.full((40, 40, 3), 90, dtype=np.uint8)
        labels = np.zeros((40, 40), dtype=np.int32)
        config = PipelineConfig(extraction=ExtractionConfig(n_clusters=2, min_texton_size=5), seed=0)
        with pytest.raises(SynthesisUnseedable):
            TextonPipeline(config).run(image, 32, 32, class_labels=labels)
