"""Illumination at a point: darkness, dim, or bright.

The level at a point is built up in four stages:

  1. **Effective darkness** — the first visible region covering the point
     that carries a darkness override replaces the scene darkness
     (``set``), adds to it (``add``, also the fallback for unknown modes),
     or scales it (``multiply``). The result is clamped to [0, 1].
  2. **Ambient base** — with global illumination on, the base is
     ``1 - effective_darkness``; otherwise 0. A base above
     ``AMBIENT_BRIGHT_THRESHOLD`` starts the running level at bright,
     anything else at darkness.
  3. **Placed light sources** — each source reaches the point with its
     bright radius, its dim radius, or not at all. When the source has a
     precise (wall-clipped) shape, the point must also lie inside it; a
     broken shape falls back to the plain radius test.
  4. **Token-emitted light** — same rule, using a list of emitting tokens
     that is rebuilt at most once per ``light_cache_ttl`` seconds.

A darkness-polarity source (placed or token-borne) that reaches the point
returns darkness immediately, whatever else is lit there. Otherwise the
final level is the highest reached.

Radii are scene units and are converted to canvas pixels with the scene's
``pixels_per_unit``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from shapely.errors import GEOSException

from .cache import Clock, TimedCache
from .geometry import distance_squared, polygon_covers
from .types import IlluminationLevel, LightSource, Scene

logger = logging.getLogger(__name__)

AMBIENT_BRIGHT_THRESHOLD = 0.25

_TOKEN_LIGHTS_KEY = "token-lights"


@dataclass
class Illumination:
    level: IlluminationLevel
    scene_darkness: float = 0.0
    effective_darkness: float = 0.0
    base_illumination: float = 0.0
    # 0.0 none, 0.5 dim, 1.0 bright, from lights alone.
    light_illumination: float = 0.0

    @property
    def numeric(self) -> float:
        """Strongest contribution, ambient or light, in [0, 1]."""
        return max(self.base_illumination, self.light_illumination)


@dataclass
class _PointLight:
    source_id: str
    x: float
    y: float
    bright: float
    dim: float
    negative: bool
    shape: list[tuple[float, float]] | None = None


def apply_region_darkness(
    mode: str | None, modifier: float, darkness: float
) -> float:
    if mode == "set":
        value = modifier
    elif mode == "multiply":
        value = darkness * modifier
    else:
        value = darkness + modifier
    return min(1.0, max(0.0, value))


class LightingCalculator:
    def __init__(
        self,
        scene: Scene | None = None,
        light_cache_ttl: float = 0.25,
        clock: Clock = time.monotonic,
    ):
        self.scene = scene
        self._token_lights: TimedCache[list[_PointLight]] = TimedCache(
            light_cache_ttl, clock
        )

    def invalidate_light_cache(self) -> None:
        self._token_lights.invalidate()

    def effective_darkness(self, x: float, y: float) -> float:
        scene = self.scene
        if scene is None:
            return 0.0
        for region in scene.regions:
            if region.hidden or region.darkness_mode is None:
                continue
            if len(region.vertices) < 3:
                continue
            try:
                inside = polygon_covers(region.vertices, x, y)
            except (ValueError, GEOSException) as e:
                logger.debug("skipping region %s: %s", region.id, e)
                continue
            if inside:
                return apply_region_darkness(
                    region.darkness_mode,
                    region.darkness_modifier,
                    scene.darkness,
                )
        return min(1.0, max(0.0, scene.darkness))

    def illumination_at(self, x: float, y: float) -> Illumination:
        scene = self.scene
        if scene is None:
            return Illumination(IlluminationLevel.BRIGHT, base_illumination=1.0)

        darkness = self.effective_darkness(x, y)
        base = 1.0 - darkness if scene.global_light else 0.0
        result = Illumination(
            level=(
                IlluminationLevel.BRIGHT
                if base > AMBIENT_BRIGHT_THRESHOLD
                else IlluminationLevel.DARKNESS
            ),
            scene_darkness=scene.darkness,
            effective_darkness=darkness,
            base_illumination=base,
        )

        ppu = scene.pixels_per_unit
        lights = [
            _PointLight(
                li.id, li.x, li.y, li.bright, li.dim, li.negative, li.shape
            )
            for li in scene.lights
            if self._counts(li)
        ]
        lights.extend(self._cached_token_lights())

        for light in lights:
            reach = self._reach(light, x, y, ppu)
            if reach is None:
                continue
            if light.negative:
                logger.debug(
                    "darkness source %s at (%s, %s)", light.source_id, x, y
                )
                result.level = IlluminationLevel.DARKNESS
                result.light_illumination = 0.0
                return result
            if reach > result.level:
                result.level = reach
            result.light_illumination = max(
                result.light_illumination,
                1.0 if reach == IlluminationLevel.BRIGHT else 0.5,
            )
        return result

    @staticmethod
    def _counts(light: LightSource) -> bool:
        if light.negative:
            return True
        return not light.hidden and light.emits_light

    def _cached_token_lights(self) -> list[_PointLight]:
        return self._token_lights.get_or_compute(
            _TOKEN_LIGHTS_KEY, self._collect_token_lights
        )

    def _collect_token_lights(self) -> list[_PointLight]:
        scene = self.scene
        result: list[_PointLight] = []
        if scene is None:
            return result
        for token in scene.tokens:
            if token.light is None or not token.light.emits:
                continue
            cx, cy = scene.center(token)
            result.append(
                _PointLight(
                    token.id,
                    cx,
                    cy,
                    token.light.bright,
                    token.light.dim,
                    token.light.negative,
                )
            )
        logger.debug("rebuilt token light cache (%d emitters)", len(result))
        return result

    @staticmethod
    def _reach(
        light: _PointLight, x: float, y: float, ppu: float
    ) -> IlluminationLevel | None:
        """Level ``light`` contributes at (x, y), or None if out of reach."""
        bright_px = light.bright * ppu
        dim_px = max(light.dim, light.bright) * ppu
        d2 = distance_squared(light.x, light.y, x, y)

        if light.shape:
            try:
                inside = polygon_covers(light.shape, x, y)
            except (ValueError, GEOSException) as e:
                logger.debug(
                    "shape test failed for light %s, using radius: %s",
                    light.source_id,
                    e,
                )
            else:
                if not inside:
                    return None
                if d2 <= bright_px * bright_px:
                    return IlluminationLevel.BRIGHT
                return IlluminationLevel.DIM

        if d2 <= bright_px * bright_px:
            return IlluminationLevel.BRIGHT
        if d2 <= dim_px * dim_px:
            return IlluminationLevel.DIM
        return None
