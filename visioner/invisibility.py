"""Invisibility rules.

An invisible target is never observed. What it collapses to depends on
context, checked in this order:

  1. A pinned sneak override for this exact (observer, target) direction
     is honored, clamped to at most hidden.
  2. If the observer could otherwise see the target normally (it would be
     observed under plain lighting), the target is hidden: the observer
     knows roughly where it is.
  3. If the observer was perceiving the target when it turned invisible,
     the target stays hidden for that observer.
  4. Otherwise it is undetected.

Step 3 relies on ``record_invisibility_change``, which the orchestrator
calls whenever a token gains or loses the invisible condition.
"""

from __future__ import annotations

from typing import Callable, Mapping

from .types import Override, Token, VisibilityState

INVISIBLE = "invisible"
SEE_INVISIBILITY = "see-invisibility"

SneakOverrideCheck = Callable[[Token, Token], Override | None]


def is_invisible(token: Token) -> bool:
    return token.actor is not None and token.actor.has_condition(INVISIBLE)


def is_invisible_to(observer: Token, target: Token) -> bool:
    if not is_invisible(target):
        return False
    if observer.actor is not None and observer.actor.has_sense(SEE_INVISIBILITY):
        return False
    return True


def resolve_invisibility_state(
    observer: Token,
    target: Token,
    sneak_override_check: SneakOverrideCheck | None,
    can_see_normally: bool,
) -> VisibilityState:
    if sneak_override_check is not None:
        override = sneak_override_check(observer, target)
        if override is not None:
            return override.state.at_most(VisibilityState.HIDDEN)
    if can_see_normally:
        return VisibilityState.HIDDEN
    if observer.id in target.invisible_seen_by:
        return VisibilityState.HIDDEN
    return VisibilityState.UNDETECTED


def record_invisibility_change(
    target: Token, states_toward_target: Mapping[str, VisibilityState]
) -> None:
    """Refresh the "was perceived" record after an invisibility change.

    ``states_toward_target`` maps observer id to the state that observer
    had toward ``target`` just before the change. Observers that had it
    observed or concealed keep a hidden fallback; removing invisibility
    clears the record.
    """
    if not is_invisible(target):
        target.invisible_seen_by.clear()
        return
    target.invisible_seen_by = {
        observer_id
        for observer_id, state in states_toward_target.items()
        if state in (VisibilityState.OBSERVED, VisibilityState.CONCEALED)
    }
