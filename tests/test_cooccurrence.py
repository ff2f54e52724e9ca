"""Tests for co-occurrence learning."""

from __future__ import annotations

import numpy as np
import pytest

from texton_synthesis.cooccurrence import CoOccurrenceAnalyzer, complete_quadrants
from texton_synthesis.extraction import UNDEFINED, ExtractionResult, TextonExtractor
from texton_synthesis.textons import (
    FIRST_TEXTON_ID,
    NO_NEIGHBOR_DILATION,
    OUT_OF_CLASS,
    Cluster,
    CoOccurrence,
)

from conftest import make_blob_grid, make_texton


def _offsets(texton):
    return {(e.dx, e.dy) for e in texton.cooccurrences}


def _edge_scene():
    """30x30 scene with three 4x4 blobs, the middle-left one touching the image edge.

    A spans (10..13, 10..13), B spans x 0..3 / y 16..19, C spans (20..23, 10..13).
    """
    image = np.full((30, 30, 3), 128, dtype=np.uint8)
    labels = np.zeros((30, 30), dtype=np.int32)
    for x0, y0 in ((10, 10), (0, 16), (20, 10)):
        image[y0:y0 + 4, x0:x0 + 4] = (200, 30, 30)
        labels[y0:y0 + 4, x0:x0 + 4] = 1
    return TextonExtractor(min_texton_size=5).extract(image, labels, n_clusters=2)


class TestCompleteQuadrants:
    def test_empty_stays_empty(self):
        assert complete_quadrants([]) == []

    def test_single_edge_fills_every_quadrant(self):
        completed = complete_quadrants([CoOccurrence(5, 3, 1)])
        assert {(e.dx, e.dy) for e in completed} == {(5, 3), (-5, -3), (-5, 3), (5, -3)}
        assert all(e.cluster_id == 1 for e in completed)

    def test_prefers_adjacent_quadrant(self):
        edges = [CoOccurrence(4, 2, 1), CoOccurrence(-6, -8, 2)]
        completed = complete_quadrants(edges)
        assert completed[:2] == edges
        # (-1, 1) mirrors the first edge found in an adjacent quadrant
        assert CoOccurrence(-4, 2, 1) in completed
        assert len(completed) == 4

    def test_complete_input_is_unchanged(self):
        edges = [CoOccurrence(1, 1, 1), CoOccurrence(-1, -1, 1),
                 CoOccurrence(-1, 1, 1), CoOccurrence(1, -1, 1)]
        assert complete_quadrants(edges) == edges

    def test_axis_edge_counts_for_both_sides(self):
        completed = complete_quadrants([CoOccurrence(10, 0, 1)])
        assert {(e.dx, e.dy) for e in completed} == {(10, 0), (-10, 0)}


class TestCoOccurrenceAnalyzer:
    def test_blob_grid_dilation_area(self, blob_extraction):
        blobs = blob_extraction.clusters[1]
        # 8 pixel gaps are crossed at dilation step 8
        assert all(t.dilation_area == 9 for t in blobs.textons)

    def test_center_blob_sees_its_eight_neighbors(self, blob_extraction):
        center = blob_extraction.clusters[1].textons[12]
        assert (center.bbox.min_x, center.bbox.min_y) == (36, 36)
        expected = {(dx, dy) for dx in (-16, 0, 16) for dy in (-16, 0, 16)} - {(0, 0)}
        assert _offsets(center) == expected
        assert all(e.cluster_id == 1 for e in center.cooccurrences)

    def test_corner_blob_is_completed(self, blob_extraction):
        corner = blob_extraction.clusters[1].textons[0]
        offsets = _offsets(corner)
        assert {(16, 0), (0, 16), (16, 16)} <= offsets
        for sx, sy in ((1, 1), (-1, -1), (-1, 1), (1, -1)):
            assert any(dx * sx >= 0 and dy * sy >= 0 for dx, dy in offsets)

    def test_background_cluster_is_not_analyzed(self, blob_extraction):
        background = blob_extraction.clusters[0].textons[0]
        assert background.dilation_area is None
        assert background.cooccurrences == []

    @pytest.mark.parametrize("max_dilations,expected", [(8, NO_NEIGHBOR_DILATION), (9, 9), (12, 9)])
    def test_dilation_budget(self, max_dilations, expected):
        image, labels = make_blob_grid()
        extraction = TextonExtractor(min_texton_size=5).extract(image, labels, n_clusters=2)
        CoOccurrenceAnalyzer(max_dilations=max_dilations, extra_dilations=10).analyze(extraction)
        center = extraction.clusters[1].textons[12]
        assert center.dilation_area == expected
        if expected == NO_NEIGHBOR_DILATION:
            assert center.cooccurrences == []

    def test_more_dilations_never_lose_neighbors(self):
        found = []
        for max_dilations in (9, 12, 20):
            image, labels = make_blob_grid()
            extraction = TextonExtractor(min_texton_size=5).extract(image, labels, n_clusters=2)
            analyzer = CoOccurrenceAnalyzer(max_dilations=max_dilations, extra_dilations=30)
            texton = extraction.clusters[1].textons[12]
            found.append({(o.cluster_id, o.label_id)
                          for o in analyzer.find_neighbors(texton, extraction)})
        assert found[0] <= found[1] <= found[2]

    def test_returns_analyzed_count(self, blob_grid):
        image, labels = blob_grid
        extraction = TextonExtractor(min_texton_size=5).extract(image, labels, n_clusters=2)
        assert CoOccurrenceAnalyzer().analyze(extraction) == 25

    def test_border_neighbor_counts_for_distance_only(self):
        extraction = _edge_scene()
        CoOccurrenceAnalyzer().analyze(extraction)
        a, c, b = extraction.clusters[1].textons
        assert (a.bbox.min_x, a.bbox.min_y) == (10, 10)
        assert not b.is_interior

        assert a.dilation_area == 7
        assert a.cooccurrences == [CoOccurrence(10, 0, 1), CoOccurrence(-10, 0, 1)]
        assert (-10, 6) not in _offsets(a)

        assert b.dilation_area is None
        assert b.cooccurrences == []

    def test_first_discovery_step_is_kept(self):
        extraction = _edge_scene()
        analyzer = CoOccurrenceAnalyzer()
        a = extraction.clusters[1].textons[0]
        occurrences = analyzer.find_neighbors(a, extraction)
        assert sorted(o.distance for o in occurrences) == [6, 6]
        assert len({(o.cluster_id, o.label_id) for o in occurrences}) == len(occurrences)

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            CoOccurrenceAnalyzer(max_dilations=0)
        with pytest.raises(ValueError):
            CoOccurrenceAnalyzer(extra_dilations=-1)


class TestOverlappingClaims:
    @staticmethod
    def _contested_extraction():
        """Texton `n1` of cluster 1 lies entirely under texton `n2` of cluster 2."""
        target = make_texton(np.ones((2, 2)), x=2, y=5, cluster_id=1, order=0)
        n1 = make_texton(np.ones((2, 1)), x=13, y=5, cluster_id=1, order=1)
        n2 = make_texton(np.ones((2, 2)), x=13, y=5, cluster_id=2, order=0)

        label_maps = [np.full((20, 20), OUT_OF_CLASS, dtype=np.int32) for _ in range(3)]
        label_maps[1][5:7, 2:4] = target.label_id
        label_maps[1][5:7, 13] = n1.label_id
        label_maps[2][5:7, 13:15] = n2.label_id

        cluster_map = np.full((20, 20), UNDEFINED, dtype=np.int32)
        texton_map = np.full((20, 20), OUT_OF_CLASS, dtype=np.int32)
        for cluster_id in (1, 2):
            resolved = label_maps[cluster_id] >= FIRST_TEXTON_ID
            cluster_map[resolved] = cluster_id
            texton_map[resolved] = label_maps[cluster_id][resolved]

        clusters = [Cluster(0), Cluster(1, [target, n1]), Cluster(2, [n2])]
        return ExtractionResult(clusters, label_maps, cluster_map, texton_map), target

    def test_every_cluster_claim_is_reached(self):
        extraction, target = self._contested_extraction()
        occurrences = CoOccurrenceAnalyzer().find_neighbors(target, extraction)
        assert {(o.cluster_id, o.label_id) for o in occurrences} == {(1, 4), (2, 3)}
        assert {o.distance for o in occurrences} == {9}

    def test_hidden_texton_gets_an_edge(self):
        extraction, target = self._contested_extraction()
        CoOccurrenceAnalyzer().analyze(extraction)
        assert target.dilation_area == 10
        assert CoOccurrence(11, 0, 1) in target.cooccurrences
        assert CoOccurrence(11, 0, 2) in target.cooccurrences
