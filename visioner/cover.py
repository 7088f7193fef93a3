"""Cover between an attacker and a target.

``CoverDetector.detect_between_tokens`` runs these steps in order:

  (a) Same or missing tokens -> none.
  (b) Collect eligible blocking tokens. Always excluded: the attacker and
      target themselves, tokens without an actor, loot and hazard actors,
      and hidden tokens. Optionally excluded (``CoverOptions``): tokens
      flagged ignore-cover, tokens the attacker cannot detect at all, dead
      tokens, prone tokens, and the attacker's allies. Survivors must also
      overlap the vertical band between attacker and target mid-heights.
  (c) Wall cover, under the configured intersection mode:

        * ``any``      — center-to-center line crosses a wall -> standard.
        * ``tactical`` — pick the attacker corner with the clearest view
          and count how many target corners it cannot reach:
          0 none, 1 lesser, 2-3 standard, 4 greater.
        * ``coverage`` — percent of target perimeter samples whose ray from
          the attacker center is wall-blocked; greater at or above the
          greater threshold (standard if greater cover is disallowed),
          standard at or above the standard threshold.

  (d) Token cover from the eligible blockers, same mode:

        * ``any``      — any blocker the center line passes meaningfully
          through gives lesser; standard when that blocker is at least two
          size ranks larger than both attacker and target.
        * ``tactical`` — corner counting as above, with lines blocked by
          walls or blocker footprints.
        * ``coverage`` — clipped line length over the blocker's larger side
          as a percent; same thresholds, lesser for any smaller overlap.

  (e) A wall result other than none is final; token cover only decides
      when walls give none.
  (f) A manual per-pair cover override replaces the result.

Any exception degrades to none.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from .config import CoverOptions
from .geometry import (
    Corners,
    blocked_mask,
    clipped_length,
    inset_corners,
    perimeter_samples,
    rect_corners,
    segment_blocked,
    segment_enters_rect,
    segments_array,
)
from .types import CoverState, Rect, Scene, Token, VisibilityState

logger = logging.getLogger(__name__)

NON_BLOCKING_ACTOR_TYPES = frozenset({"loot", "hazard"})

# A center line must pass through this fraction of a blocker's width.
MIN_PASS_THROUGH = 0.05

TINY_HALF_EXTENT = 0.35  # grid squares from center

SAMPLES_PER_EDGE = 5

VisibilityLookup = Callable[[str, str], VisibilityState]
CoverOverrideLookup = Callable[[str, str], CoverState | None]


def corner_count_to_cover(blocked: int) -> CoverState:
    if blocked <= 0:
        return CoverState.NONE
    if blocked == 1:
        return CoverState.LESSER
    if blocked <= 3:
        return CoverState.STANDARD
    return CoverState.GREATER


def percent_to_cover(
    pct: float, options: CoverOptions, any_hit: bool
) -> CoverState:
    if pct >= options.greater_threshold:
        if options.allow_greater:
            return CoverState.GREATER
        return CoverState.STANDARD
    if pct >= options.standard_threshold:
        return CoverState.STANDARD
    return CoverState.LESSER if any_hit else CoverState.NONE


def cover_providing_walls(scene: Scene) -> np.ndarray:
    segs = []
    for w in scene.walls:
        if w.is_open_door:
            continue
        if not w.blocks_sight or w.provides_cover is False:
            continue
        segs.append(w.segment)
    return segments_array(segs)


class CoverDetector:
    def __init__(
        self,
        scene: Scene | None = None,
        options: CoverOptions | None = None,
        visibility_lookup: VisibilityLookup | None = None,
        cover_override_lookup: CoverOverrideLookup | None = None,
    ):
        self.scene = scene
        self.options = options or CoverOptions()
        self.visibility_lookup = visibility_lookup
        self.cover_override_lookup = cover_override_lookup

    def detect_between_tokens(
        self,
        attacker: Token | None,
        target: Token | None,
        options: CoverOptions | None = None,
    ) -> CoverState:
        try:
            return self.evaluate(attacker, target, options)
        except Exception:
            logger.warning(
                "cover detection failed for %s -> %s",
                attacker.id,
                target.id,
                exc_info=True,
            )
            return CoverState.NONE

    def evaluate(
        self,
        attacker: Token | None,
        target: Token | None,
        options: CoverOptions | None = None,
    ) -> CoverState:
        """Same as ``detect_between_tokens`` but lets exceptions through."""
        if attacker is None or target is None or attacker.id == target.id:
            return CoverState.NONE
        if self.scene is None:
            return CoverState.NONE
        opts = options or self.options
        result = self.wall_cover(attacker, target, opts)
        if result == CoverState.NONE:
            blockers = self.eligible_blockers(attacker, target, opts)
            result = self.token_cover(attacker, target, blockers, opts)
        if self.cover_override_lookup is not None:
            manual = self.cover_override_lookup(attacker.id, target.id)
            if manual is not None:
                result = manual
        return result

    def detect_from_point(
        self,
        x: float,
        y: float,
        target: Token | None,
        options: CoverOptions | None = None,
    ) -> CoverState:
        """Cover against an area origin (burst or emanation center)."""
        origin = Token(id="__origin__", x=x, y=y, width=0.0, height=0.0)
        if target is not None:
            origin.elevation = target.elevation
        return self.detect_between_tokens(origin, target, options)

    # Blocker eligibility

    def eligible_blockers(
        self, attacker: Token, target: Token, options: CoverOptions
    ) -> list[Token]:
        scene = self.scene
        result = []
        for blocker in scene.tokens:
            if blocker.id in (attacker.id, target.id):
                continue
            actor = blocker.actor
            if actor is None or actor.actor_type in NON_BLOCKING_ACTOR_TYPES:
                continue
            if blocker.hidden:
                continue
            if options.respect_ignore_flag and blocker.ignore_cover:
                continue
            if options.ignore_undetected and self._undetected(attacker, blocker):
                continue
            if options.ignore_dead and actor.is_dead:
                continue
            if not options.allow_prone_blockers and actor.has_condition("prone"):
                continue
            if (
                options.ignore_allies
                and attacker.actor is not None
                and actor.alliance is not None
                and actor.alliance == attacker.actor.alliance
            ):
                continue
            result.append(blocker)
        if options.use_elevation:
            result = [
                b for b in result if self._in_vertical_band(attacker, target, b)
            ]
        return result

    def _undetected(self, perspective: Token, blocker: Token) -> bool:
        if self.visibility_lookup is None:
            return False
        state = self.visibility_lookup(perspective.id, blocker.id)
        return state == VisibilityState.UNDETECTED

    @staticmethod
    def _in_vertical_band(
        attacker: Token, target: Token, blocker: Token
    ) -> bool:
        a_lo, a_hi = attacker.vertical_span
        t_lo, t_hi = target.vertical_span
        za = (a_lo + a_hi) / 2.0
        zt = (t_lo + t_hi) / 2.0
        low, high = min(za, zt), max(za, zt)
        b_lo, b_hi = blocker.vertical_span
        if high > low:
            return b_lo < high and b_hi > low
        return b_lo < low < b_hi

    # Geometry helpers

    def _corners(self, token: Token) -> Corners:
        rect = self.scene.rect(token)
        if token.actor is not None and token.size_rank == 0:
            return inset_corners(rect, TINY_HALF_EXTENT * self.scene.grid_size)
        return rect_corners(rect)

    def _center_line(self, attacker: Token, target: Token):
        ax, ay = self.scene.center(attacker)
        tx, ty = self.scene.center(target)
        return (ax, ay, tx, ty)

    def _blocked_corner_counts(
        self,
        attacker: Token,
        target: Token,
        walls: np.ndarray,
        blocker_rects: list[Rect],
    ) -> list[int]:
        """Blocked target-corner lines, per attacker corner."""
        counts = []
        target_corners = self._corners(target)
        for ax, ay in self._corners(attacker):
            rays = np.array(
                [(tx, ty, ax, ay) for tx, ty in target_corners],
                dtype=np.float64,
            )
            blocked = blocked_mask(rays, walls)
            for i, ray in enumerate(rays):
                if blocked[i]:
                    continue
                seg = tuple(ray)
                if any(clipped_length(seg, r) > 0 for r in blocker_rects):
                    blocked[i] = True
            counts.append(int(np.count_nonzero(blocked)))
        return counts

    # Wall cover

    def wall_cover(
        self, attacker: Token, target: Token, options: CoverOptions
    ) -> CoverState:
        walls = cover_providing_walls(self.scene)
        if walls.shape[0] == 0:
            return CoverState.NONE
        mode = options.intersection_mode
        if mode == "tactical":
            counts = self._blocked_corner_counts(attacker, target, walls, [])
            return corner_count_to_cover(min(counts))
        if mode == "coverage":
            pct = self.wall_coverage_percent(attacker, target, walls)
            return percent_to_cover(pct, options, any_hit=False)
        if segment_blocked(self._center_line(attacker, target), walls):
            return CoverState.STANDARD
        return CoverState.NONE

    def wall_coverage_percent(
        self, attacker: Token, target: Token, walls: np.ndarray
    ) -> float:
        ax, ay = self.scene.center(attacker)
        points = perimeter_samples(self.scene.rect(target), SAMPLES_PER_EDGE)
        rays = np.array([(ax, ay, px, py) for px, py in points], dtype=np.float64)
        blocked = blocked_mask(rays, walls)
        return 100.0 * float(np.count_nonzero(blocked)) / max(1, len(points))

    # Token cover

    def token_cover(
        self,
        attacker: Token,
        target: Token,
        blockers: list[Token],
        options: CoverOptions,
    ) -> CoverState:
        if not blockers:
            return CoverState.NONE
        mode = options.intersection_mode
        if mode == "tactical":
            rects = [self.scene.rect(b) for b in blockers]
            no_walls = segments_array([])
            counts = self._blocked_corner_counts(
                attacker, target, no_walls, rects
            )
            return corner_count_to_cover(min(counts))
        if mode == "coverage":
            return self._coverage_token_cover(attacker, target, blockers, options)
        return self._size_token_cover(attacker, target, blockers)

    def _size_token_cover(
        self, attacker: Token, target: Token, blockers: list[Token]
    ) -> CoverState:
        line = self._center_line(attacker, target)
        result = CoverState.NONE
        for b in blockers:
            rect = self.scene.rect(b)
            if not segment_enters_rect(line, rect, MIN_PASS_THROUGH):
                continue
            result = CoverState.LESSER if result == CoverState.NONE else result
            rank = b.size_rank
            if rank - attacker.size_rank >= 2 and rank - target.size_rank >= 2:
                return CoverState.STANDARD
        return result

    def _coverage_token_cover(
        self,
        attacker: Token,
        target: Token,
        blockers: list[Token],
        options: CoverOptions,
    ) -> CoverState:
        line = self._center_line(attacker, target)
        best = CoverState.NONE
        for b in blockers:
            rect = self.scene.rect(b)
            length = clipped_length(line, rect)
            if length <= 0:
                continue
            side = max(rect[2], rect[3], 1.0)
            cover = percent_to_cover(100.0 * length / side, options, any_hit=True)
            best = CoverState.best([best, cover])
            if best == CoverState.GREATER:
                break
        return best
