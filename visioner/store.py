"""Persistence collaborators the engine reads from and writes to.

Two stores back the engine:

  * ``RelationshipStore`` — authoritative visibility and cover state per
    ordered (observer, target) pair. Unset pairs read as observed / none.
  * ``FlagStore`` — per-token key/value flags. Overrides live here, on the
    *target* token, under ``"override-from-" + observer_id``.

The engine only depends on the abstract interfaces; the in-memory versions
are what a headless host or the tests use. Writes are idempotent, and
``write_count`` makes it easy to assert that a recompute changed nothing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .types import CoverState, VisibilityState

Pair = tuple[str, str]


class RelationshipStore(ABC):
    @abstractmethod
    def get_visibility(
        self, observer_id: str, target_id: str
    ) -> VisibilityState:
        ...

    @abstractmethod
    def set_visibility(
        self, observer_id: str, target_id: str, state: VisibilityState
    ) -> None:
        ...

    @abstractmethod
    def get_cover(self, observer_id: str, target_id: str) -> CoverState:
        ...

    @abstractmethod
    def set_cover(
        self, observer_id: str, target_id: str, state: CoverState
    ) -> None:
        ...

    @abstractmethod
    def forget_token(self, token_id: str) -> None:
        """Drop every pair that involves ``token_id``."""


class InMemoryRelationshipStore(RelationshipStore):
    def __init__(self):
        self._visibility: dict[Pair, VisibilityState] = {}
        self._cover: dict[Pair, CoverState] = {}
        self.write_count = 0

    def get_visibility(
        self, observer_id: str, target_id: str
    ) -> VisibilityState:
        return self._visibility.get(
            (observer_id, target_id), VisibilityState.OBSERVED
        )

    def set_visibility(
        self, observer_id: str, target_id: str, state: VisibilityState
    ) -> None:
        self._visibility[(observer_id, target_id)] = state
        self.write_count += 1

    def get_cover(self, observer_id: str, target_id: str) -> CoverState:
        return self._cover.get((observer_id, target_id), CoverState.NONE)

    def set_cover(
        self, observer_id: str, target_id: str, state: CoverState
    ) -> None:
        self._cover[(observer_id, target_id)] = state
        self.write_count += 1

    def forget_token(self, token_id: str) -> None:
        for table in (self._visibility, self._cover):
            for pair in [p for p in table if token_id in p]:
                del table[pair]

    def visibility_map(self, observer_id: str) -> dict[str, VisibilityState]:
        """Everything ``observer_id`` has a stored visibility toward."""
        return {
            t: s for (o, t), s in self._visibility.items() if o == observer_id
        }


class FlagStore(ABC):
    @abstractmethod
    def get_flag(self, token_id: str, key: str) -> dict | None:
        ...

    @abstractmethod
    def set_flag(self, token_id: str, key: str, value: dict) -> None:
        ...

    @abstractmethod
    def unset_flag(self, token_id: str, key: str) -> bool:
        """Remove a flag; True if it existed."""

    @abstractmethod
    def flags_of(self, token_id: str) -> dict[str, dict]:
        ...

    @abstractmethod
    def token_ids(self) -> list[str]:
        ...


class InMemoryFlagStore(FlagStore):
    def __init__(self):
        self._flags: dict[str, dict[str, dict]] = {}

    def get_flag(self, token_id: str, key: str) -> dict | None:
        return self._flags.get(token_id, {}).get(key)

    def set_flag(self, token_id: str, key: str, value: dict) -> None:
        self._flags.setdefault(token_id, {})[key] = dict(value)

    def unset_flag(self, token_id: str, key: str) -> bool:
        flags = self._flags.get(token_id)
        if not flags or key not in flags:
            return False
        del flags[key]
        return True

    def flags_of(self, token_id: str) -> dict[str, dict]:
        return dict(self._flags.get(token_id, {}))

    def token_ids(self) -> list[str]:
        return [t for t, flags in self._flags.items() if flags]
