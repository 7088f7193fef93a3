"""Tests for segment, polygon and rectangle primitives."""

import numpy as np
import pytest

from visioner.geometry import (
    blocked_mask,
    clipped_length,
    inset_corners,
    perimeter_samples,
    polygon_covers,
    rect_corners,
    segment_blocked,
    segment_enters_rect,
    segments_array,
)


class TestBlockedMask:
    def test_crossing(self):
        walls = segments_array([(0, 10, 10, 0)])
        assert segment_blocked((0, 0, 10, 10), walls)

    def test_parallel(self):
        walls = segments_array([(0, 5, 10, 5)])
        assert not segment_blocked((0, 0, 10, 0), walls)

    def test_touching_endpoint(self):
        """A ray ending exactly on a wall counts as blocked."""
        walls = segments_array([(5, 5, 10, 0)])
        assert segment_blocked((0, 0, 5, 5), walls)

    def test_empty_walls(self):
        rays = segments_array([(0, 0, 10, 0), (0, 0, 0, 10)])
        mask = blocked_mask(rays, segments_array([]))
        assert mask.shape == (2,)
        assert not mask.any()

    def test_empty_rays(self):
        walls = segments_array([(5, -5, 5, 5)])
        assert blocked_mask(segments_array([]), walls).shape == (0,)

    def test_per_ray_result(self):
        """Only the ray crossing the wall is marked."""
        walls = segments_array([(5, -5, 5, 5)])
        rays = segments_array([(0, 0, 10, 0), (0, 20, 10, 20)])
        mask = blocked_mask(rays, walls)
        assert mask.tolist() == [True, False]

    def test_any_of_several_walls(self):
        walls = segments_array([(5, -5, 5, 5), (0, 8, 10, 12)])
        rays = segments_array([(0, 0, 10, 0), (0, 10, 10, 10), (0, 20, 10, 30)])
        assert blocked_mask(rays, walls).tolist() == [True, True, False]

    def test_segment_blocked(self):
        walls = segments_array([(5, -5, 5, 5)])
        assert segment_blocked((0, 0, 10, 0), walls)
        assert not segment_blocked((0, 0, 4, 0), walls)

    def test_segments_array_shape(self):
        arr = segments_array([(1, 2, 3, 4)])
        assert arr.shape == (1, 4)
        assert arr.dtype == np.float64


class TestPolygons:
    SQUARE = [(0, 0), (10, 0), (10, 10), (0, 10)]

    def test_point_outside(self):
        assert polygon_covers(self.SQUARE, 15, 5) is False

    def test_covers_is_boundary_inclusive(self):
        assert polygon_covers(self.SQUARE, 10, 5)
        assert polygon_covers(self.SQUARE, 5, 5)
        assert not polygon_covers(self.SQUARE, 10.5, 5)

    def test_covers_degenerate_raises(self):
        with pytest.raises(ValueError):
            polygon_covers([(0, 0), (10, 0)], 5, 0)


class TestRects:
    def test_corners(self):
        assert rect_corners((0, 0, 10, 20)) == [
            (0, 0),
            (10, 0),
            (10, 20),
            (0, 20),
        ]

    def test_inset_corners(self):
        corners = inset_corners((0, 0, 100, 100), 35)
        assert corners[0] == (15, 15)
        assert corners[2] == (85, 85)

    def test_perimeter_samples(self):
        points = perimeter_samples((0, 0, 100, 100), 5)
        assert len(points) == 20
        assert len(set(points)) == 20
        assert (0, 0) in points
        assert (100, 100) in points

    def test_clipped_length_through(self):
        assert clipped_length((-10, 50, 110, 50), (0, 0, 100, 100)) == (
            pytest.approx(100.0)
        )

    def test_clipped_length_miss(self):
        assert clipped_length((-10, 150, 110, 150), (0, 0, 100, 100)) == 0.0

    def test_clipped_length_partial(self):
        assert clipped_length((50, 50, 200, 50), (0, 0, 100, 100)) == (
            pytest.approx(50.0)
        )

    def test_enters_rect_ignores_grazing(self):
        rect = (0, 0, 100, 100)
        # Clips the corner for about 2.8px, under 5% of the width.
        assert not segment_enters_rect((-1, 3, 3, -1), rect, 0.05)
        assert segment_enters_rect((-10, 50, 110, 50), rect, 0.05)
