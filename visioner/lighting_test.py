"""Tests for illumination at a point."""

import pytest

from visioner.lighting import LightingCalculator, apply_region_darkness
from visioner.types import (
    IlluminationLevel,
    LightEmission,
    LightSource,
    Region,
    Scene,
    Token,
)

# grid 100px / 5 units -> 20px per unit


def _make_scene(darkness=0.0, global_light=True, **kw):
    return Scene(id="s", darkness=darkness, global_light=global_light, **kw)


def _make_light(lid="l1", x=0.0, y=0.0, bright=20.0, dim=40.0, **kw):
    return LightSource(id=lid, x=x, y=y, bright=bright, dim=dim, **kw)


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


class TestAmbient:
    def test_bright_daylight(self):
        calc = LightingCalculator(_make_scene(darkness=0.0))
        assert calc.illumination_at(500, 500).level == IlluminationLevel.BRIGHT

    def test_full_darkness(self):
        calc = LightingCalculator(_make_scene(darkness=1.0))
        assert calc.illumination_at(500, 500).level == (
            IlluminationLevel.DARKNESS
        )

    def test_threshold_is_exclusive(self):
        """A base of exactly 0.25 is not enough for bright."""
        calc = LightingCalculator(_make_scene(darkness=0.75))
        result = calc.illumination_at(0, 0)
        assert result.base_illumination == pytest.approx(0.25)
        assert result.level == IlluminationLevel.DARKNESS

    def test_no_global_light(self):
        scene = _make_scene(darkness=0.0, global_light=False)
        calc = LightingCalculator(scene)
        assert calc.illumination_at(0, 0).level == IlluminationLevel.DARKNESS

    def test_no_scene_is_bright(self):
        assert LightingCalculator().illumination_at(0, 0).level == (
            IlluminationLevel.BRIGHT
        )


class TestRegionDarkness:
    SQUARE = [(0, 0), (1000, 0), (1000, 1000), (0, 1000)]

    def test_modes(self):
        assert apply_region_darkness("set", 0.9, 0.1) == pytest.approx(0.9)
        assert apply_region_darkness("multiply", 0.5, 0.8) == pytest.approx(
            0.4
        )
        assert apply_region_darkness("add", 0.3, 0.5) == pytest.approx(0.8)

    def test_unknown_mode_adds(self):
        assert apply_region_darkness("mystery", 0.2, 0.5) == pytest.approx(
            0.7
        )

    def test_clamped(self):
        assert apply_region_darkness("add", 0.8, 0.5) == 1.0
        assert apply_region_darkness("add", -2.0, 0.5) == 0.0

    def test_region_darkens_point(self):
        scene = _make_scene(
            darkness=0.0,
            regions=[
                Region(
                    "r",
                    self.SQUARE,
                    darkness_mode="set",
                    darkness_modifier=1.0,
                )
            ],
        )
        calc = LightingCalculator(scene)
        assert calc.effective_darkness(500, 500) == 1.0
        assert calc.effective_darkness(1500, 500) == 0.0
        assert calc.illumination_at(500, 500).level == (
            IlluminationLevel.DARKNESS
        )

    def test_region_edge_counts_as_inside(self):
        scene = _make_scene(
            regions=[
                Region(
                    "r",
                    self.SQUARE,
                    darkness_mode="set",
                    darkness_modifier=1.0,
                )
            ],
        )
        calc = LightingCalculator(scene)
        assert calc.effective_darkness(1000, 500) == 1.0
        assert calc.effective_darkness(0, 0) == 1.0
        assert calc.effective_darkness(1001, 500) == 0.0

    def test_collinear_region_skipped(self):
        line = [(0, 0), (500, 500), (1000, 1000)]
        scene = _make_scene(
            darkness=0.3,
            regions=[
                Region(
                    "flat", line, darkness_mode="set", darkness_modifier=1.0
                )
            ],
        )
        calc = LightingCalculator(scene)
        assert calc.effective_darkness(500, 500) == pytest.approx(0.3)

    def test_hidden_region_ignored(self):
        scene = _make_scene(
            regions=[
                Region(
                    "r",
                    self.SQUARE,
                    hidden=True,
                    darkness_mode="set",
                    darkness_modifier=1.0,
                )
            ],
        )
        assert LightingCalculator(scene).effective_darkness(500, 500) == 0.0

    def test_first_matching_region_wins(self):
        scene = _make_scene(
            darkness=0.2,
            regions=[
                Region("plain", self.SQUARE),
                Region(
                    "a",
                    self.SQUARE,
                    darkness_mode="set",
                    darkness_modifier=0.6,
                ),
                Region(
                    "b",
                    self.SQUARE,
                    darkness_mode="set",
                    darkness_modifier=0.9,
                ),
            ],
        )
        calc = LightingCalculator(scene)
        assert calc.effective_darkness(10, 10) == pytest.approx(0.6)


class TestPlacedLights:
    def test_bright_and_dim_radius(self):
        calc = LightingCalculator(
            _make_scene(darkness=1.0, lights=[_make_light()])
        )
        assert calc.illumination_at(300, 0).level == IlluminationLevel.BRIGHT
        assert calc.illumination_at(600, 0).level == IlluminationLevel.DIM
        assert calc.illumination_at(900, 0).level == (
            IlluminationLevel.DARKNESS
        )

    def test_light_illumination_value(self):
        calc = LightingCalculator(
            _make_scene(darkness=1.0, lights=[_make_light()])
        )
        assert calc.illumination_at(300, 0).light_illumination == 1.0
        assert calc.illumination_at(600, 0).light_illumination == 0.5
        assert calc.illumination_at(600, 0).numeric == 0.5

    def test_hidden_light_ignored(self):
        calc = LightingCalculator(
            _make_scene(darkness=1.0, lights=[_make_light(hidden=True)])
        )
        assert calc.illumination_at(100, 0).level == (
            IlluminationLevel.DARKNESS
        )

    def test_non_emitting_light_ignored(self):
        calc = LightingCalculator(
            _make_scene(darkness=1.0, lights=[_make_light(emits_light=False)])
        )
        assert calc.illumination_at(100, 0).level == (
            IlluminationLevel.DARKNESS
        )

    def test_darkness_source_beats_everything(self):
        scene = _make_scene(
            darkness=0.0,
            lights=[
                _make_light("torch"),
                _make_light("void", negative=True, bright=5, dim=10),
            ],
        )
        calc = LightingCalculator(scene)
        assert calc.illumination_at(100, 0).level == (
            IlluminationLevel.DARKNESS
        )
        # Outside the darkness radius the daylight is back.
        assert calc.illumination_at(700, 0).level == IlluminationLevel.BRIGHT

    def test_hidden_darkness_source_still_applies(self):
        scene = _make_scene(
            darkness=0.0,
            lights=[_make_light(negative=True, hidden=True)],
        )
        calc = LightingCalculator(scene)
        assert calc.illumination_at(100, 0).level == (
            IlluminationLevel.DARKNESS
        )

    def test_shape_limits_reach(self):
        shape = [(-200, -200), (200, -200), (200, 200), (-200, 200)]
        calc = LightingCalculator(
            _make_scene(darkness=1.0, lights=[_make_light(shape=shape)])
        )
        assert calc.illumination_at(100, 100).level == (
            IlluminationLevel.BRIGHT
        )
        # Within the bright radius but behind the clipped edge.
        assert calc.illumination_at(300, 0).level == (
            IlluminationLevel.DARKNESS
        )

    def test_shape_edge_counts_as_inside(self):
        shape = [(-200, -200), (200, -200), (200, 200), (-200, 200)]
        calc = LightingCalculator(
            _make_scene(darkness=1.0, lights=[_make_light(shape=shape)])
        )
        assert calc.illumination_at(200, 0).level == IlluminationLevel.BRIGHT

    def test_broken_shape_falls_back_to_radius(self):
        calc = LightingCalculator(
            _make_scene(
                darkness=1.0,
                lights=[_make_light(shape=[(0, 0), (10, 0)])],
            )
        )
        assert calc.illumination_at(300, 0).level == IlluminationLevel.BRIGHT


class TestTokenLights:
    def _make_torchbearer(self, x=0.0):
        return Token(id="t", x=x, y=0, light=LightEmission(bright=10, dim=20))

    def test_token_light(self):
        scene = _make_scene(darkness=1.0, tokens=[self._make_torchbearer()])
        calc = LightingCalculator(scene)
        # Token center is (50, 50); bright reaches 200px.
        assert calc.illumination_at(200, 50).level == (
            IlluminationLevel.BRIGHT
        )
        assert calc.illumination_at(400, 50).level == IlluminationLevel.DIM

    def test_token_darkness_in_daylight(self):
        token = Token(
            id="t",
            x=0,
            y=0,
            light=LightEmission(bright=10, dim=10, negative=True),
        )
        calc = LightingCalculator(_make_scene(darkness=0.0, tokens=[token]))
        assert calc.illumination_at(100, 50).level == (
            IlluminationLevel.DARKNESS
        )

    def test_token_lights_cached_until_invalidated(self):
        clock = FakeClock()
        token = self._make_torchbearer()
        calc = LightingCalculator(
            _make_scene(darkness=1.0, tokens=[token]), 10.0, clock
        )
        assert calc.illumination_at(100, 50).level == (
            IlluminationLevel.BRIGHT
        )
        token.x = 5000
        assert calc.illumination_at(100, 50).level == (
            IlluminationLevel.BRIGHT
        )
        calc.invalidate_light_cache()
        assert calc.illumination_at(100, 50).level == (
            IlluminationLevel.DARKNESS
        )

    def test_token_lights_expire(self):
        clock = FakeClock()
        token = self._make_torchbearer()
        calc = LightingCalculator(
            _make_scene(darkness=1.0, tokens=[token]), 0.25, clock
        )
        calc.illumination_at(100, 50)
        token.x = 5000
        clock.t = 0.5
        assert calc.illumination_at(100, 50).level == (
            IlluminationLevel.DARKNESS
        )
