"""Pinned per-pair overrides created by narrative actions.

An override pins the visibility one observer has toward one target. It is
stored as a flag on the *target* token under
``"override-from-" + observer_id`` so it survives reloads alongside the
token, and it suppresses automatic recomputation for that exact direction.

Sources and how they are applied:

  * ``sneak`` — one-way: only observer -> target is pinned. The sneaker's
    own view of the observers stays automatic.
  * everything else (``seek``, ``hide``, ``point-out``, ``diversion``,
    ``manual-edit``, ...) — symmetric: both directions get the same state.
  * ``consequences`` — clears the pair in both directions instead of
    pinning anything.

How a stored override affects ``calculate_visibility`` is decided by the
caller from ``check_all_overrides``: point-out only matters for invisible
targets, seek wins outright, and the rest only block writes.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from .cache import Clock
from .store import FlagStore
from .types import CoverState, Override, Token, VisibilityState

logger = logging.getLogger(__name__)

FLAG_PREFIX = "override-from-"

SEEK = "seek"
HIDE = "hide"
SNEAK = "sneak"
POINT_OUT = "point-out"
DIVERSION = "diversion"
CONSEQUENCES = "consequences"
MANUAL_EDIT = "manual-edit"

ONE_WAY_SOURCES = frozenset({SNEAK})

COVER_FLAG_PREFIX = "cover-override-from-"


def flag_key(observer_id: str) -> str:
    return FLAG_PREFIX + observer_id


@dataclass
class OverrideCheck:
    point_out: Override | None = None
    seek: Override | None = None
    sneak: Override | None = None
    general: Override | None = None

    @property
    def has_any(self) -> bool:
        return any(
            o is not None
            for o in (self.point_out, self.seek, self.sneak, self.general)
        )


class OverrideManager:
    def __init__(self, flags: FlagStore, clock: Clock = time.time):
        self.flags = flags
        self._clock = clock

    def get_override(self, observer_id: str, target_id: str) -> Override | None:
        try:
            data = self.flags.get_flag(target_id, flag_key(observer_id))
            return Override.from_dict(data) if data else None
        except (KeyError, ValueError, TypeError):
            logger.warning(
                "corrupt override flag %s -> %s, ignoring",
                observer_id,
                target_id,
                exc_info=True,
            )
            return None

    def is_suppressed(self, observer_id: str, target_id: str) -> bool:
        return self.get_override(observer_id, target_id) is not None

    def check_all_overrides(
        self, observer: Token, target: Token
    ) -> OverrideCheck:
        check = OverrideCheck()
        override = self.get_override(observer.id, target.id)
        if override is None:
            return check
        if override.source == POINT_OUT:
            check.point_out = override
        elif override.source == SEEK:
            check.seek = override
        elif override.source == SNEAK:
            check.sneak = override
        else:
            check.general = override
        return check

    def sneak_override(self, observer: Token, target: Token) -> Override | None:
        return self.check_all_overrides(observer, target).sneak

    def apply_override(
        self,
        observer_id: str,
        target_id: str,
        state: VisibilityState,
        source: str = MANUAL_EDIT,
        has_cover: bool = False,
        has_concealment: bool = False,
        expected_cover: CoverState | None = None,
    ) -> list[Override]:
        """Store the override(s) for a pair; returns what was written."""
        now = self._clock()
        directions = [(observer_id, target_id)]
        if source not in ONE_WAY_SOURCES:
            directions.append((target_id, observer_id))
        written = []
        for obs, tgt in directions:
            override = Override(
                observer_id=obs,
                target_id=tgt,
                state=state,
                source=source,
                timestamp=now,
                has_cover=has_cover,
                has_concealment=has_concealment,
                expected_cover=expected_cover,
            )
            self.flags.set_flag(tgt, flag_key(obs), override.to_dict())
            written.append(override)
        logger.debug(
            "override %s %s -> %s = %s",
            source,
            observer_id,
            target_id,
            state.value,
        )
        return written

    def remove_override(self, observer_id: str, target_id: str) -> bool:
        return self.flags.unset_flag(target_id, flag_key(observer_id))

    def clear_pair(self, a_id: str, b_id: str) -> int:
        """Remove both directions, as a consequences action does."""
        return int(self.remove_override(a_id, b_id)) + int(
            self.remove_override(b_id, a_id)
        )

    def clear_all_overrides(self, token_id: str | None = None) -> int:
        """Sweep overrides on one token (both roles) or on every token."""
        removed = 0
        for holder in list(self.flags.token_ids()):
            for key in self.flags.flags_of(holder):
                if not key.startswith(FLAG_PREFIX):
                    continue
                observer_id = key[len(FLAG_PREFIX):]
                if token_id not in (None, holder, observer_id):
                    continue
                if self.flags.unset_flag(holder, key):
                    removed += 1
        if removed:
            logger.info("cleared %d override(s)", removed)
        return removed

    def overrides_for(self, token_id: str) -> list[Override]:
        """Overrides where ``token_id`` is the target."""
        result = []
        for key, value in self.flags.flags_of(token_id).items():
            if key.startswith(FLAG_PREFIX):
                result.append(Override.from_dict(value))
        return result

    # Per-pair manual cover, stored next to the visibility overrides.

    def get_cover_override(
        self, attacker_id: str, target_id: str
    ) -> CoverState | None:
        data = self.flags.get_flag(target_id, COVER_FLAG_PREFIX + attacker_id)
        if not data:
            return None
        try:
            return CoverState(data["state"])
        except (KeyError, ValueError):
            logger.warning(
                "corrupt cover override %s -> %s", attacker_id, target_id
            )
            return None

    def set_cover_override(
        self, attacker_id: str, target_id: str, state: CoverState | None
    ) -> None:
        key = COVER_FLAG_PREFIX + attacker_id
        if state is None:
            self.flags.unset_flag(target_id, key)
            return
        self.flags.set_flag(
            target_id, key, {"state": state.value, "timestamp": self._clock()}
        )
