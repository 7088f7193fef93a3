"""Keeps per-pair visibility (and optionally cover) in sync with the scene.

The orchestrator owns one instance of each service (lighting, vision, cover,
overrides, error handling) and wires them to world-change events. Its life
cycle is ``disabled -> enabled``: ``enable`` subscribes to the event bus,
``disable`` unsubscribes and cancels every pending timer.

Event handling, roughly:

  * Token moved (at least ``movement_threshold`` grid squares), its light or
    actor changed, or its concealing flag flipped: invalidate what depends
    on it, then a per-token throttled recompute. A new event for the same
    token cancels and reschedules the pending one.
  * Lights, walls, regions, vision-relevant scene changes (darkness changes
    under ``darkness_epsilon`` are ignored), actor senses and conditions:
    invalidate caches and request a whole-scene recompute.
  * Whole-scene recomputes are debounced into one call and guarded by a
    circuit breaker: more than ``circuit_breaker_limit`` non-forced
    requests inside ``circuit_breaker_window`` are dropped until the window
    elapses.
  * While a configuration dialog is open nothing is recomputed; closing it
    flushes one forced recompute.

A recompute touches at most ``max_tokens`` tokens, computes both directions
for every pair, writes only states that differ from the store and are not
pinned by an override, then sends one coalesced perception refresh.

Nothing here raises into the event loop: every public entry point degrades
to a documented default, and systemic failures go through ``ErrorHandler``.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from .config import CoverOptions, EngineSettings
from .cover import CoverDetector, cover_providing_walls
from .events import EventBus, EventType, WorldEvent
from .geometry import segment_blocked
from .invisibility import (
    is_invisible_to,
    record_invisibility_change,
    resolve_invisibility_state,
)
from .lighting import LightingCalculator
from .overrides import (
    CONSEQUENCES,
    MANUAL_EDIT,
    SNEAK,
    OverrideManager,
)
from .resilience import (
    ErrorHandler,
    FallbackChain,
    FallbackTier,
    Strategy,
    SystemType,
)
from .scheduler import Scheduler, TaskHandle
from .store import FlagStore, RelationshipStore
from .types import (
    CoverState,
    IlluminationLevel,
    Scene,
    Token,
    VisibilityState,
)
from .vision import HostLineOfSight, VisionAnalyzer, visibility_from_lighting

logger = logging.getLogger(__name__)

SCENE_VISION_KEYS = (
    "darkness",
    "global_light",
    "token_vision",
    "fog",
    "environment",
)

TOKEN_VISION_KEYS = ("light", "actor", "concealing", "hidden", "elevation")

PerceptionRefresh = Callable[[], None]


class RelationshipOrchestrator:
    def __init__(
        self,
        scene: Scene | None,
        relationships: RelationshipStore,
        flags: FlagStore,
        scheduler: Scheduler,
        bus: EventBus | None = None,
        settings: EngineSettings | None = None,
        refresh_perception: PerceptionRefresh | None = None,
        host_los: HostLineOfSight | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.settings.validate()
        self.relationships = relationships
        self.scheduler = scheduler
        self.bus = bus or EventBus()
        self.refresh_perception = refresh_perception
        clock = scheduler.now
        self.lighting = LightingCalculator(
            scene, self.settings.light_cache_ttl, clock
        )
        self.vision = VisionAnalyzer(
            scene, self.settings.vision_cache_ttl, clock, host_los
        )
        self.overrides = OverrideManager(flags)
        self.cover = CoverDetector(
            scene,
            self.settings.cover,
            visibility_lookup=relationships.get_visibility,
            cover_override_lookup=self.overrides.get_cover_override,
        )
        self.errors = ErrorHandler(
            scheduler,
            self.settings.max_retry_attempts,
            self.settings.retry_base_delay,
        )
        self.scene = scene

        self.enabled = False
        self.config_open = False
        self._subscribed = False
        self._processing: set[str] = set()
        self._throttles: dict[str, TaskHandle] = {}
        self._debounce: TaskHandle | None = None
        self._debounce_force = False
        self._refresh: TaskHandle | None = None
        self._timers: set[TaskHandle] = set()
        self._breaker_count = 0
        self._breaker_reset_at: float | None = None
        self._breaker_tripped = False
        self._breaker_timer: TaskHandle | None = None
        self.refresh_count = 0

        self._handlers: dict[EventType, Callable[[WorldEvent], None]] = {
            EventType.TOKEN_CREATED: self._on_token_created,
            EventType.TOKEN_UPDATED: self._on_token_updated,
            EventType.TOKEN_DELETED: self._on_token_deleted,
            EventType.LIGHT_CHANGED: self._on_light_changed,
            EventType.WALL_CHANGED: self._on_geometry_changed,
            EventType.REGION_CHANGED: self._on_light_changed,
            EventType.SCENE_UPDATED: self._on_scene_updated,
            EventType.ACTOR_UPDATED: self._on_actor_updated,
            EventType.CONDITION_CHANGED: self._on_condition_changed,
            EventType.CONFIG_OPENED: self._on_config_opened,
            EventType.CONFIG_CLOSED: self._on_config_closed,
            EventType.CANVAS_READY: self._on_canvas_ready,
            EventType.ACTION_RESOLVED: self._on_action_resolved,
        }

        if self.settings.enabled:
            self.enable()

    @property
    def scene(self) -> Scene | None:
        return self._scene

    @scene.setter
    def scene(self, scene: Scene | None) -> None:
        self._scene = scene
        self.lighting.scene = scene
        self.vision.scene = scene
        self.cover.scene = scene
        self.lighting.invalidate_light_cache()
        self.vision.invalidate_vision_cache()

    # Life cycle

    def enable(self) -> None:
        if not self._subscribed:
            for event_type, handler in self._handlers.items():
                self.bus.on(event_type, handler)
            self._subscribed = True
        if not self.enabled:
            self.enabled = True
            logger.info("relationship engine enabled")

    def disable(self) -> None:
        if self._subscribed:
            for event_type, handler in self._handlers.items():
                self.bus.off(event_type, handler)
            self._subscribed = False
        self.enabled = False
        for handle in self._throttles.values():
            handle.cancel()
        self._throttles.clear()
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        for handle in (self._debounce, self._refresh, self._breaker_timer):
            if handle is not None:
                handle.cancel()
        self._debounce = None
        self._debounce_force = False
        self._refresh = None
        self._reset_breaker()
        self.errors.cancel_all()
        logger.info("relationship engine disabled")

    def _should_skip(self) -> bool:
        return not self.enabled or self.config_open or self.scene is None

    def _later(self, delay: float, fn: Callable[[], None]) -> TaskHandle:
        handle: TaskHandle | None = None

        def run() -> None:
            self._timers.discard(handle)
            fn()

        handle = self.scheduler.call_later(delay, run)
        self._timers.add(handle)
        return handle

    # Visibility

    def calculate_visibility(
        self, observer: Token | None, target: Token | None
    ) -> VisibilityState:
        if observer is None or target is None or self.scene is None:
            return VisibilityState.OBSERVED
        system = SystemType.VISIBILITY
        if not self.errors.is_available(system):
            return self.errors.fallback(
                system, self._visibility_chain(observer, target)
            ).state
        try:
            return self._compute_visibility(observer, target)
        except Exception as e:
            return self.errors.handle_failure(
                system,
                e,
                self._visibility_chain(observer, target),
                probe=self._probe_visibility,
            ).state

    def _compute_visibility(
        self, observer: Token, target: Token
    ) -> VisibilityState:
        if observer.actor is None or target.actor is None:
            return VisibilityState.OBSERVED

        sneak_check = None
        if self.settings.respect_manual_actions:
            check = self.overrides.check_all_overrides(observer, target)
            invisible = is_invisible_to(observer, target)
            if check.point_out is not None and invisible:
                return VisibilityState.HIDDEN
            if check.seek is not None:
                return check.seek.state
            sneak_check = self.overrides.sneak_override

        scene = self.scene
        capability = self.vision.capabilities_of(observer).at_distance(
            scene.distance_units(observer, target)
        )
        if capability.is_blinded or not capability.has_vision:
            return VisibilityState.HIDDEN
        tx, ty = scene.center(target)

        if is_invisible_to(observer, target):
            level = self.lighting.illumination_at(tx, ty).level
            can_see = (
                visibility_from_lighting(level, capability)
                == VisibilityState.OBSERVED
            )
            return resolve_invisibility_state(
                observer, target, sneak_check, can_see
            )

        if not self.vision.has_line_of_sight(observer, target):
            return VisibilityState.HIDDEN

        level = self.lighting.illumination_at(tx, ty).level
        return visibility_from_lighting(level, capability)

    def _visibility_chain(
        self, observer: Token, target: Token
    ) -> FallbackChain[VisibilityState]:
        def by_walls() -> VisibilityState:
            if self.vision.wall_line_of_sight(observer, target):
                return VisibilityState.OBSERVED
            return VisibilityState.CONCEALED

        def by_lighting() -> VisibilityState:
            tx, ty = self.scene.center(target)
            level = self.lighting.illumination_at(tx, ty).level
            if level == IlluminationLevel.DARKNESS:
                return VisibilityState.CONCEALED
            return VisibilityState.OBSERVED

        def by_override() -> VisibilityState | None:
            override = self.overrides.get_override(observer.id, target.id)
            return override.state if override else None

        return FallbackChain(
            [
                FallbackTier(
                    Strategy.BASIC_CALCULATION,
                    "line-of-sight-fallback",
                    "basic line of sight while visibility is unavailable",
                    by_walls,
                ),
                FallbackTier(
                    Strategy.BASIC_CALCULATION,
                    "lighting-fallback",
                    "lighting-only estimate while visibility is unavailable",
                    by_lighting,
                ),
                FallbackTier(
                    Strategy.MANUAL_OVERRIDE,
                    "stored-override",
                    "stored manual state while visibility is unavailable",
                    by_override,
                ),
            ],
            VisibilityState.OBSERVED,
            "conservative observed while visibility is unavailable",
        )

    def _probe_visibility(self) -> bool:
        tokens = self._eligible_tokens()
        if len(tokens) >= 2:
            self._compute_visibility(tokens[0], tokens[1])
        return True

    # Cover

    def detect_cover_between_tokens(
        self,
        observer: Token | None,
        target: Token | None,
        options: CoverOptions | None = None,
    ) -> CoverState:
        if observer is None or target is None or self.scene is None:
            return CoverState.NONE
        system = SystemType.COVER
        if not self.errors.is_available(system):
            return self.errors.fallback(
                system, self._cover_chain(observer, target)
            ).state
        try:
            return self.cover.evaluate(observer, target, options)
        except Exception as e:
            return self.errors.handle_failure(
                system,
                e,
                self._cover_chain(observer, target),
                probe=self._probe_cover,
            ).state

    def _cover_chain(
        self, attacker: Token, target: Token
    ) -> FallbackChain[CoverState]:
        def by_walls() -> CoverState:
            ax, ay = self.scene.center(attacker)
            tx, ty = self.scene.center(target)
            walls = cover_providing_walls(self.scene)
            if segment_blocked((ax, ay, tx, ty), walls):
                return CoverState.STANDARD
            return CoverState.NONE

        return FallbackChain(
            [
                FallbackTier(
                    Strategy.BASIC_CALCULATION,
                    "wall-collision-fallback",
                    "basic wall collision while cover is unavailable",
                    by_walls,
                ),
                FallbackTier(
                    Strategy.MANUAL_OVERRIDE,
                    "manual-cover-override",
                    "manual cover override while cover is unavailable",
                    lambda: self.overrides.get_cover_override(
                        attacker.id, target.id
                    ),
                ),
            ],
            CoverState.NONE,
            "no cover assumed while cover is unavailable",
        )

    def _probe_cover(self) -> bool:
        tokens = self._eligible_tokens()
        if len(tokens) >= 2:
            self.cover.evaluate(tokens[0], tokens[1])
        return True

    # Recompute

    def _eligible_tokens(self) -> list[Token]:
        if self.scene is None:
            return []
        return [t for t in self.scene.tokens if t.actor is not None]

    def recalculate_all_visibility(self, force: bool = False) -> bool:
        """Request a whole-scene recompute (debounced).

        An explicit call also makes failed subsystems eligible again.
        Returns False when the request was dropped.
        """
        self.errors.reset()
        return self._request_recalculate_all(force)

    def _request_recalculate_all(self, force: bool = False) -> bool:
        if not force and self._should_skip():
            return False
        if not self.enabled:
            return False

        now = self.scheduler.now()
        if self._breaker_reset_at is None or now > self._breaker_reset_at:
            self._reset_breaker()
            self._breaker_reset_at = now + self.settings.circuit_breaker_window

        if not force:
            self._breaker_count += 1
            if self._breaker_count > self.settings.circuit_breaker_limit:
                if not self._breaker_tripped:
                    self._breaker_tripped = True
                    logger.warning(
                        "circuit breaker tripped: %d recomputes in %.1fs",
                        self._breaker_count,
                        self.settings.circuit_breaker_window,
                    )
                    self._breaker_timer = self.scheduler.call_later(
                        self._breaker_reset_at - now, self._reset_breaker
                    )
                return False

        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce_force = self._debounce_force or force
        self._debounce = self.scheduler.call_later(
            self.settings.debounce_delay, self._run_debounced
        )
        return True

    def _reset_breaker(self) -> None:
        if self._breaker_timer is not None:
            self._breaker_timer.cancel()
            self._breaker_timer = None
        self._breaker_count = 0
        self._breaker_reset_at = None
        self._breaker_tripped = False

    def _run_debounced(self) -> None:
        force = self._debounce_force
        self._debounce = None
        self._debounce_force = False
        self.recalculate_now(force)

    def recalculate_now(self, force: bool = False) -> int:
        """Recompute every pair immediately; returns the number of writes."""
        try:
            return self._recalculate(force)
        except Exception:
            logger.exception("scene recompute failed")
            return 0

    def _recalculate(self, force: bool) -> int:
        if not force and self._should_skip():
            return 0
        if self.scene is None:
            return 0
        tokens = self._eligible_tokens()[: self.settings.max_tokens]
        writes = 0
        for i, a in enumerate(tokens):
            for b in tokens[i + 1 :]:
                writes += self._update_pair(a, b)
        logger.info(
            "recomputed %d token(s), %d write(s)", len(tokens), writes
        )
        self._refresh_perception()
        return writes

    def _throttled_token_update(self, token_id: str) -> None:
        existing = self._throttles.pop(token_id, None)
        if existing is not None:
            existing.cancel()

        def run() -> None:
            self._throttles.pop(token_id, None)
            self.update_token(token_id)

        self._throttles[token_id] = self.scheduler.call_later(
            self.settings.throttle_delay, run
        )

    def update_token(self, token_id: str) -> int:
        """Recompute one token against up to ``max_tokens`` others."""
        if token_id in self._processing or self._should_skip():
            return 0
        token = self.scene.get_token(token_id)
        if token is None or token.actor is None:
            return 0
        self._processing.add(token_id)
        try:
            others = [t for t in self._eligible_tokens() if t.id != token_id]
            writes = 0
            for other in others[: self.settings.max_tokens]:
                writes += self._update_pair(token, other)
            if writes:
                self._refresh_perception()
            return writes
        except Exception:
            logger.exception("token recompute failed for %s", token_id)
            return 0
        finally:
            self._processing.discard(token_id)

    def _update_pair(self, a: Token, b: Token) -> int:
        writes = 0
        for observer, target in ((a, b), (b, a)):
            writes += self._write_visibility(observer, target)
            if self.settings.auto_cover:
                writes += self._write_cover(observer, target)
        return writes

    def _suppressed(self, observer_id: str, target_id: str) -> bool:
        if not self.settings.respect_manual_actions:
            return False
        return self.overrides.is_suppressed(observer_id, target_id)

    def _write_visibility(self, observer: Token, target: Token) -> int:
        state = self.calculate_visibility(observer, target)
        current = self.relationships.get_visibility(observer.id, target.id)
        if state == current or self._suppressed(observer.id, target.id):
            return 0
        logger.debug(
            "visibility %s -> %s: %s -> %s",
            observer.id,
            target.id,
            current.value,
            state.value,
        )
        self.relationships.set_visibility(observer.id, target.id, state)
        return 1

    def _write_cover(self, observer: Token, target: Token) -> int:
        state = self.detect_cover_between_tokens(observer, target)
        current = self.relationships.get_cover(observer.id, target.id)
        if state == current:
            return 0
        self.relationships.set_cover(observer.id, target.id, state)
        return 1

    def _refresh_perception(self) -> None:
        if self._refresh is not None:
            self._refresh.cancel()
        self._refresh = self.scheduler.call_later(
            self.settings.refresh_delay, self._send_refresh
        )

    def _send_refresh(self) -> None:
        self._refresh = None
        self.refresh_count += 1
        if self.refresh_perception is None:
            return
        try:
            self.refresh_perception()
        except Exception:
            logger.warning("perception refresh failed", exc_info=True)

    # Overrides

    def apply_override(
        self,
        observer_id: str,
        target_id: str,
        state: VisibilityState,
        source: str = MANUAL_EDIT,
        **hints,
    ) -> int:
        """Pin a state and write it through; returns directions written."""
        try:
            written = self.overrides.apply_override(
                observer_id, target_id, state, source, **hints
            )
            for override in written:
                self.relationships.set_visibility(
                    override.observer_id, override.target_id, override.state
                )
            if written:
                self._refresh_perception()
            return len(written)
        except Exception:
            logger.exception(
                "failed to apply override %s -> %s", observer_id, target_id
            )
            return 0

    def remove_override(self, observer_id: str, target_id: str) -> bool:
        try:
            removed = self.overrides.remove_override(observer_id, target_id)
        except Exception:
            logger.exception(
                "failed to remove override %s -> %s", observer_id, target_id
            )
            return False
        if removed and not self._should_skip():
            self._throttled_token_update(observer_id)
            self._throttled_token_update(target_id)
        return removed

    def clear_all_overrides(self, token_id: str | None = None) -> int:
        try:
            removed = self.overrides.clear_all_overrides(token_id)
        except Exception:
            logger.exception("failed to clear overrides")
            return 0
        # While paused, the config-closed flush picks this up.
        if removed and not self._should_skip():
            self._request_recalculate_all(force=True)
        return removed

    def set_concealing(self, token_id: str, active: bool) -> None:
        token = self.scene.get_token(token_id) if self.scene else None
        if token is None or token.concealing == active:
            return
        token.concealing = active
        if not self._should_skip():
            self._throttled_token_update(token_id)

    # Cache hooks

    def invalidate_light_cache(self) -> None:
        self.lighting.invalidate_light_cache()

    def invalidate_vision_cache(self, token_id: str | None = None) -> None:
        self.vision.invalidate_vision_cache(token_id)

    # Event handlers

    def _on_token_created(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        token_id = event.data.get("token_id")
        self.invalidate_light_cache()
        self.invalidate_vision_cache()
        if token_id:
            self._later(
                self.settings.token_create_delay,
                lambda: self.update_token(token_id),
            )

    def _on_token_updated(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        token_id = event.data.get("token_id")
        token = self.scene.get_token(token_id) if token_id else None
        if token is None:
            return
        changes = event.data.get("changes", {})
        moved = False
        if "x" in changes or "y" in changes:
            moved = self._significant_move(token, event.data.get("previous"))
        if "light" in changes:
            self.invalidate_light_cache()
        if "actor" in changes:
            self.invalidate_vision_cache(token_id)
        if moved and token.light is not None:
            self.invalidate_light_cache()
        if moved or any(k in changes for k in TOKEN_VISION_KEYS):
            self._throttled_token_update(token_id)

    def _significant_move(self, token: Token, previous: dict | None) -> bool:
        if not previous:
            return True
        dx = token.x - previous.get("x", token.x)
        dy = token.y - previous.get("y", token.y)
        threshold = self.scene.grid_size * self.settings.movement_threshold
        distance = math.hypot(dx, dy)
        logger.debug(
            "token %s moved %.1fpx (threshold %.1fpx)",
            token.id,
            distance,
            threshold,
        )
        return distance >= threshold

    def _on_token_deleted(self, event: WorldEvent) -> None:
        token_id = event.data.get("token_id")
        if not token_id:
            return
        handle = self._throttles.pop(token_id, None)
        if handle is not None:
            handle.cancel()
        self.relationships.forget_token(token_id)
        self.overrides.clear_all_overrides(token_id)
        self.invalidate_light_cache()
        self.invalidate_vision_cache(token_id)

    def _on_light_changed(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        self.invalidate_light_cache()
        self._request_recalculate_all()

    def _on_geometry_changed(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        self._request_recalculate_all()

    def _on_scene_updated(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        changes = event.data.get("changes", {})
        if not any(k in changes for k in SCENE_VISION_KEYS):
            return
        if "darkness" in changes:
            previous = (event.data.get("previous") or {}).get("darkness")
            if (
                previous is not None
                and abs(changes["darkness"] - previous)
                <= self.settings.darkness_epsilon
            ):
                logger.debug("ignoring darkness change below epsilon")
                changes = {k: v for k, v in changes.items() if k != "darkness"}
                if not changes:
                    return
        self.invalidate_light_cache()
        self._request_recalculate_all()

    def _on_actor_updated(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        token_id = event.data.get("token_id")
        self.invalidate_vision_cache(token_id)
        self._request_recalculate_all()

    def _on_condition_changed(self, event: WorldEvent) -> None:
        if self._should_skip():
            return
        token_id = event.data.get("token_id")
        token = self.scene.get_token(token_id) if token_id else None
        if token is None:
            return
        if event.data.get("condition") == "invisible":
            states = {
                other.id: self.relationships.get_visibility(other.id, token.id)
                for other in self.scene.tokens
                if other.id != token.id
            }
            record_invisibility_change(token, states)
        self.invalidate_vision_cache(token_id)
        self._request_recalculate_all()

    def _on_config_opened(self, event: WorldEvent) -> None:
        self.config_open = True

    def _on_config_closed(self, event: WorldEvent) -> None:
        if not self.config_open:
            return
        self.config_open = False
        self.invalidate_light_cache()
        self._later(
            self.settings.config_close_delay,
            lambda: self._request_recalculate_all(force=True),
        )

    def _on_canvas_ready(self, event: WorldEvent) -> None:
        scene = event.data.get("scene")
        if scene is not None:
            self.scene = scene
        else:
            self.invalidate_light_cache()
            self.invalidate_vision_cache()
        if not self._should_skip():
            self._request_recalculate_all()

    def _on_action_resolved(self, event: WorldEvent) -> None:
        data = event.data
        action = data.get("action")
        observer_id = data.get("observer_id")
        target_id = data.get("target_id")
        if not action or not observer_id or not target_id:
            logger.warning("ignoring incomplete action result: %s", data)
            return
        if action == CONSEQUENCES:
            if self.overrides.clear_pair(observer_id, target_id):
                if not self._should_skip():
                    self._throttled_token_update(observer_id)
                    self._throttled_token_update(target_id)
            return
        try:
            state = VisibilityState(data.get("state"))
            expected = data.get("expected_cover")
            expected_cover = CoverState(expected) if expected else None
        except ValueError:
            logger.warning("ignoring action result with bad state: %s", data)
            return
        if action == SNEAK:
            self.set_concealing(target_id, True)
        self.apply_override(
            observer_id,
            target_id,
            state,
            action,
            has_cover=data.get("has_cover", False),
            has_concealment=data.get("has_concealment", False),
            expected_cover=expected_cover,
        )

    # Introspection

    def status(self) -> dict:
        return {
            "enabled": self.enabled,
            "config_open": self.config_open,
            "has_scene": self.scene is not None,
            "processing_tokens": len(self._processing),
            "throttled_updates": len(self._throttles),
            "recompute_pending": self._debounce is not None,
            "breaker_count": self._breaker_count,
            "breaker_tripped": self._breaker_tripped,
            "refresh_count": self.refresh_count,
            "systems": self.errors.status_dict(),
        }

    def debug_info(self, observer: Token, target: Token) -> dict:
        if self.scene is None:
            return {"error": "no scene"}
        tx, ty = self.scene.center(target)
        illumination = self.lighting.illumination_at(tx, ty)
        capability = self.vision.capabilities_of(observer)
        check = self.overrides.check_all_overrides(observer, target)
        return {
            "observer": observer.id,
            "target": target.id,
            "illumination": illumination.level.name.lower(),
            "effective_darkness": illumination.effective_darkness,
            "capability": capability,
            "line_of_sight": self.vision.has_line_of_sight(observer, target),
            "invisible": is_invisible_to(observer, target),
            "overrides": check,
            "calculated": self.calculate_visibility(observer, target).value,
            "stored": self.relationships.get_visibility(
                observer.id, target.id
            ).value,
            "cover": self.detect_cover_between_tokens(observer, target).value,
        }
