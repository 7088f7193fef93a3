"""Vision capabilities, line of sight, and the lighting-to-visibility table."""

from __future__ import annotations

import logging
import time
from typing import Callable

import numpy as np

from .cache import Clock, TimedCache
from .geometry import segment_blocked, segments_array
from .types import (
    IlluminationLevel,
    Scene,
    Token,
    VisibilityState,
    VisionCapability,
)

logger = logging.getLogger(__name__)

DARKVISION_SENSES = ("darkvision", "greater-darkvision")
LOW_LIGHT_SENSE = "low-light-vision"

HostLineOfSight = Callable[[Token, Token], bool]


def capabilities_from_token(token: Token) -> VisionCapability:
    actor = token.actor
    if actor is None:
        return VisionCapability(has_vision=False)
    blinded = actor.has_condition("blinded")
    darkvision_range = max(actor.sense_range(s) for s in DARKVISION_SENSES)
    return VisionCapability(
        has_vision=actor.vision and not blinded,
        has_darkvision=darkvision_range > 0,
        darkvision_range=darkvision_range,
        has_low_light_vision=actor.has_sense(LOW_LIGHT_SENSE),
        low_light_range=actor.sense_range(LOW_LIGHT_SENSE),
        is_blinded=blinded,
        is_dazzled=actor.has_condition("dazzled"),
    )


def visibility_from_lighting(
    level: IlluminationLevel, capability: VisionCapability
) -> VisibilityState:
    if not capability.has_vision or capability.is_blinded:
        return VisibilityState.HIDDEN
    if capability.is_dazzled:
        return VisibilityState.CONCEALED
    if level == IlluminationLevel.BRIGHT:
        return VisibilityState.OBSERVED
    if level == IlluminationLevel.DIM:
        if capability.has_low_light_vision or capability.has_darkvision:
            return VisibilityState.OBSERVED
        return VisibilityState.CONCEALED
    if capability.has_darkvision:
        return VisibilityState.OBSERVED
    return VisibilityState.HIDDEN


def sight_blocking_walls(scene: Scene) -> np.ndarray:
    return segments_array(
        [w.segment for w in scene.walls if w.blocks_sight and not w.is_open_door]
    )


class VisionAnalyzer:
    """Per-token vision profiles (cached) and line-of-sight tests.

    ``host_los`` is an optional richer visibility test supplied by the host
    (for example one that accounts for detection modes). It is bypassed for
    concealing tokens, whose perception must come from raw wall geometry.
    """

    def __init__(
        self,
        scene: Scene | None = None,
        cache_ttl: float = 5.0,
        clock: Clock = time.monotonic,
        host_los: HostLineOfSight | None = None,
    ):
        self.scene = scene
        self.host_los = host_los
        self._capabilities: TimedCache[VisionCapability] = TimedCache(
            cache_ttl, clock
        )

    def capabilities_of(self, token: Token) -> VisionCapability:
        return self._capabilities.get_or_compute(
            token.id, lambda: capabilities_from_token(token)
        )

    def invalidate_vision_cache(self, token_id: str | None = None) -> None:
        self._capabilities.invalidate(token_id)

    def visibility_from_lighting(
        self, level: IlluminationLevel, capability: VisionCapability
    ) -> VisibilityState:
        return visibility_from_lighting(level, capability)

    def has_line_of_sight(
        self, observer: Token, target: Token, raw: bool = False
    ) -> bool:
        try:
            if raw or observer.concealing or target.concealing:
                return self.wall_line_of_sight(observer, target)
            if self.host_los is not None:
                try:
                    return bool(self.host_los(observer, target))
                except Exception as e:
                    logger.debug(
                        "host LOS failed for %s -> %s, using walls: %s",
                        observer.id,
                        target.id,
                        e,
                    )
            return self.wall_line_of_sight(observer, target)
        except Exception:
            logger.warning(
                "line of sight failed for %s -> %s",
                observer.id,
                target.id,
                exc_info=True,
            )
            return False

    def wall_line_of_sight(self, observer: Token, target: Token) -> bool:
        """Center-to-center segment against sight-blocking walls; may raise."""
        scene = self.scene
        if scene is None:
            return True
        ox, oy = scene.center(observer)
        tx, ty = scene.center(target)
        return not segment_blocked((ox, oy, tx, ty), sight_blocking_walls(scene))
