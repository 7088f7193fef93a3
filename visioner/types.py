"""Data types matching the visioner scene snapshot JSON schema.

Positions are canvas pixels (tokens: top-left corner), footprints are grid
squares, and radii / elevations are scene units (feet-like). The scene's
``grid_size`` (pixels per square) and ``grid_distance`` (units per square)
convert between them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum

Rect = tuple[float, float, float, float]  # (x, y, width, height) in px


class VisibilityState(Enum):
    """How detectable a target is to an observer."""

    OBSERVED = "observed"
    CONCEALED = "concealed"
    HIDDEN = "hidden"
    UNDETECTED = "undetected"

    @property
    def detectability(self) -> int:
        """Higher is easier to perceive: observed 3 ... undetected 0."""
        return _DETECTABILITY[self]

    def at_most(self, other: VisibilityState) -> VisibilityState:
        """Clamp so the result is no more detectable than ``other``."""
        if self.detectability > other.detectability:
            return other
        return self


_DETECTABILITY = {
    VisibilityState.OBSERVED: 3,
    VisibilityState.CONCEALED: 2,
    VisibilityState.HIDDEN: 1,
    VisibilityState.UNDETECTED: 0,
}


class CoverState(Enum):
    """How obstructed a target is from an attacker."""

    NONE = "none"
    LESSER = "lesser"
    STANDARD = "standard"
    GREATER = "greater"

    @property
    def rank(self) -> int:
        return _COVER_RANK[self]

    @staticmethod
    def best(states) -> CoverState:
        """Most obstructive of ``states`` (``NONE`` when empty)."""
        result = CoverState.NONE
        for s in states:
            if s.rank > result.rank:
                result = s
        return result


_COVER_RANK = {
    CoverState.NONE: 0,
    CoverState.LESSER: 1,
    CoverState.STANDARD: 2,
    CoverState.GREATER: 3,
}


class IlluminationLevel(IntEnum):
    DARKNESS = 0
    DIM = 1
    BRIGHT = 2


# Creature size slugs, smallest first. "sm"/"small" are both accepted.
SIZE_RANKS = {
    "tiny": 0,
    "sm": 1,
    "small": 1,
    "med": 2,
    "medium": 2,
    "lg": 3,
    "large": 3,
    "huge": 4,
    "grg": 5,
    "gargantuan": 5,
}

# Vertical extent in scene units, used for the elevation band filter.
SIZE_HEIGHTS = {0: 2.5, 1: 5.0, 2: 5.0, 3: 10.0, 4: 15.0, 5: 20.0}


@dataclass
class Actor:
    id: str
    name: str = ""
    actor_type: str = "npc"
    size: str = "med"
    conditions: set[str] = field(default_factory=set)
    # Sense name -> range in scene units; None means unlimited.
    senses: dict[str, float | None] = field(default_factory=dict)
    vision: bool = True
    alliance: str | None = None
    hit_points: int | None = None

    @property
    def size_rank(self) -> int:
        return SIZE_RANKS.get(self.size, 2)

    @property
    def height(self) -> float:
        return SIZE_HEIGHTS[self.size_rank]

    def has_condition(self, slug: str) -> bool:
        return slug in self.conditions

    def has_sense(self, name: str) -> bool:
        return name in self.senses

    def sense_range(self, name: str) -> float:
        """Range of a sense in scene units (0 if absent, inf if unlimited)."""
        if name not in self.senses:
            return 0.0
        r = self.senses[name]
        return math.inf if r is None else float(r)

    @property
    def is_dead(self) -> bool:
        return self.hit_points is not None and self.hit_points <= 0

    @staticmethod
    def from_dict(d: dict) -> Actor:
        return Actor(
            id=d["id"],
            name=d.get("name", ""),
            actor_type=d.get("type", "npc"),
            size=d.get("size", "med"),
            conditions=set(d.get("conditions", [])),
            senses=dict(d.get("senses", {})),
            vision=d.get("vision", True),
            alliance=d.get("alliance"),
            hit_points=d.get("hit_points"),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "name": self.name,
            "type": self.actor_type,
            "size": self.size,
            "conditions": sorted(self.conditions),
            "senses": dict(self.senses),
            "vision": self.vision,
        }
        if self.alliance is not None:
            d["alliance"] = self.alliance
        if self.hit_points is not None:
            d["hit_points"] = self.hit_points
        return d


@dataclass
class LightEmission:
    bright: float = 0.0
    dim: float = 0.0
    negative: bool = False

    @property
    def emits(self) -> bool:
        return self.bright > 0 or self.dim > 0

    @staticmethod
    def from_dict(d: dict | None) -> LightEmission | None:
        if not d:
            return None
        return LightEmission(
            bright=d.get("bright", 0.0),
            dim=d.get("dim", 0.0),
            negative=d.get("negative", False),
        )

    def to_dict(self) -> dict:
        return {
            "bright": self.bright,
            "dim": self.dim,
            "negative": self.negative,
        }


@dataclass
class Token:
    id: str
    x: float
    y: float
    width: float = 1.0
    height: float = 1.0
    elevation: float = 0.0
    name: str = ""
    actor: Actor | None = None
    light: LightEmission | None = None
    hidden: bool = False
    # Set by a sneak-style action; forces raw wall geometry for LOS.
    concealing: bool = False
    ignore_cover: bool = False
    # Observers that perceived this token when it turned invisible.
    invisible_seen_by: set[str] = field(default_factory=set)

    def center(self, grid_size: float) -> tuple[float, float]:
        return (
            self.x + self.width * grid_size / 2.0,
            self.y + self.height * grid_size / 2.0,
        )

    def rect(self, grid_size: float) -> Rect:
        return (
            self.x,
            self.y,
            self.width * grid_size,
            self.height * grid_size,
        )

    @property
    def size_rank(self) -> int:
        return self.actor.size_rank if self.actor else 2

    @property
    def vertical_span(self) -> tuple[float, float]:
        """(bottom, top) in scene units."""
        h = self.actor.height if self.actor else SIZE_HEIGHTS[2]
        return (self.elevation, self.elevation + h)

    @staticmethod
    def from_dict(d: dict) -> Token:
        actor_d = d.get("actor")
        return Token(
            id=d["id"],
            x=d["x"],
            y=d["y"],
            width=d.get("width", 1.0),
            height=d.get("height", 1.0),
            elevation=d.get("elevation", 0.0),
            name=d.get("name", ""),
            actor=(Actor.from_dict(actor_d) if actor_d else None),
            light=LightEmission.from_dict(d.get("light")),
            hidden=d.get("hidden", False),
            concealing=d.get("concealing", False),
            ignore_cover=d.get("ignore_cover", False),
            invisible_seen_by=set(d.get("invisible_seen_by", [])),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "elevation": self.elevation,
            "hidden": self.hidden,
            "concealing": self.concealing,
            "ignore_cover": self.ignore_cover,
        }
        if self.actor:
            d["actor"] = self.actor.to_dict()
        if self.light:
            d["light"] = self.light.to_dict()
        if self.invisible_seen_by:
            d["invisible_seen_by"] = sorted(self.invisible_seen_by)
        return d


@dataclass
class LightSource:
    id: str
    x: float
    y: float
    bright: float = 0.0
    dim: float = 0.0
    negative: bool = False
    hidden: bool = False
    emits_light: bool = True
    # Precise lit area (wall-clipped), canvas px. None -> radius test.
    shape: list[tuple[float, float]] | None = None

    @staticmethod
    def from_dict(d: dict) -> LightSource:
        shape = d.get("shape")
        return LightSource(
            id=d["id"],
            x=d["x"],
            y=d["y"],
            bright=d.get("bright", 0.0),
            dim=d.get("dim", 0.0),
            negative=d.get("negative", False),
            hidden=d.get("hidden", False),
            emits_light=d.get("emits_light", True),
            shape=([(p[0], p[1]) for p in shape] if shape else None),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "bright": self.bright,
            "dim": self.dim,
            "negative": self.negative,
            "hidden": self.hidden,
            "emits_light": self.emits_light,
        }
        if self.shape:
            d["shape"] = [[x, y] for x, y in self.shape]
        return d


DARKNESS_MODES = ("set", "add", "multiply")


@dataclass
class Region:
    id: str
    vertices: list[tuple[float, float]]
    hidden: bool = False
    darkness_mode: str | None = None
    darkness_modifier: float = 0.0

    @staticmethod
    def from_dict(d: dict) -> Region:
        darkness = d.get("darkness") or {}
        return Region(
            id=d["id"],
            vertices=[(p[0], p[1]) for p in d["vertices"]],
            hidden=d.get("hidden", False),
            darkness_mode=darkness.get("mode"),
            darkness_modifier=darkness.get("modifier", 0.0),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "vertices": [[x, y] for x, y in self.vertices],
            "hidden": self.hidden,
        }
        if self.darkness_mode is not None:
            d["darkness"] = {
                "mode": self.darkness_mode,
                "modifier": self.darkness_modifier,
            }
        return d


@dataclass
class Wall:
    id: str
    x1: float
    y1: float
    x2: float
    y2: float
    blocks_sight: bool = True
    door: str = "none"  # none | door | secret
    door_state: str = "closed"  # closed | open | locked
    # None defers to blocks_sight.
    provides_cover: bool | None = None

    @property
    def is_open_door(self) -> bool:
        return self.door != "none" and self.door_state == "open"

    @property
    def segment(self) -> tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    @staticmethod
    def from_dict(d: dict) -> Wall:
        c = d["c"]
        return Wall(
            id=d["id"],
            x1=c[0],
            y1=c[1],
            x2=c[2],
            y2=c[3],
            blocks_sight=d.get("sight", True),
            door=d.get("door", "none"),
            door_state=d.get("door_state", "closed"),
            provides_cover=d.get("provides_cover"),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "c": [self.x1, self.y1, self.x2, self.y2],
            "sight": self.blocks_sight,
            "door": self.door,
            "door_state": self.door_state,
        }
        if self.provides_cover is not None:
            d["provides_cover"] = self.provides_cover
        return d


@dataclass
class Scene:
    id: str
    darkness: float = 0.0
    global_light: bool = True
    grid_size: float = 100.0
    grid_distance: float = 5.0
    tokens: list[Token] = field(default_factory=list)
    lights: list[LightSource] = field(default_factory=list)
    regions: list[Region] = field(default_factory=list)
    walls: list[Wall] = field(default_factory=list)

    @property
    def pixels_per_unit(self) -> float:
        if self.grid_distance <= 0:
            return 100.0 / 5.0
        return self.grid_size / self.grid_distance

    def get_token(self, token_id: str) -> Token | None:
        for t in self.tokens:
            if t.id == token_id:
                return t
        return None

    def center(self, token: Token) -> tuple[float, float]:
        return token.center(self.grid_size)

    def rect(self, token: Token) -> Rect:
        return token.rect(self.grid_size)

    def distance_units(self, a: Token, b: Token) -> float:
        """Center-to-center distance in scene units."""
        ax, ay = self.center(a)
        bx, by = self.center(b)
        return math.hypot(bx - ax, by - ay) / self.pixels_per_unit

    @staticmethod
    def from_dict(d: dict) -> Scene:
        grid = d.get("grid") or {}
        return Scene(
            id=d["id"],
            darkness=d.get("darkness", 0.0),
            global_light=d.get("global_light", True),
            grid_size=grid.get("size", 100.0),
            grid_distance=grid.get("distance", 5.0),
            tokens=[Token.from_dict(t) for t in d.get("tokens", [])],
            lights=[LightSource.from_dict(li) for li in d.get("lights", [])],
            regions=[Region.from_dict(r) for r in d.get("regions", [])],
            walls=[Wall.from_dict(w) for w in d.get("walls", [])],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "darkness": self.darkness,
            "global_light": self.global_light,
            "grid": {"size": self.grid_size, "distance": self.grid_distance},
            "tokens": [t.to_dict() for t in self.tokens],
            "lights": [li.to_dict() for li in self.lights],
            "regions": [r.to_dict() for r in self.regions],
            "walls": [w.to_dict() for w in self.walls],
        }


@dataclass
class VisionCapability:
    has_vision: bool = True
    has_darkvision: bool = False
    darkvision_range: float = 0.0
    has_low_light_vision: bool = False
    low_light_range: float = 0.0
    is_blinded: bool = False
    is_dazzled: bool = False

    def at_distance(self, distance: float) -> VisionCapability:
        """Copy with senses dropped when ``distance`` exceeds their range."""
        return VisionCapability(
            has_vision=self.has_vision,
            has_darkvision=(
                self.has_darkvision and distance <= self.darkvision_range
            ),
            darkvision_range=self.darkvision_range,
            has_low_light_vision=(
                self.has_low_light_vision and distance <= self.low_light_range
            ),
            low_light_range=self.low_light_range,
            is_blinded=self.is_blinded,
            is_dazzled=self.is_dazzled,
        )


@dataclass
class Override:
    observer_id: str
    target_id: str
    state: VisibilityState
    source: str
    timestamp: float = 0.0
    has_cover: bool = False
    has_concealment: bool = False
    expected_cover: CoverState | None = None

    @staticmethod
    def from_dict(d: dict) -> Override:
        ec = d.get("expected_cover")
        return Override(
            observer_id=d["observer_id"],
            target_id=d["target_id"],
            state=VisibilityState(d["state"]),
            source=d.get("source", "unknown"),
            timestamp=d.get("timestamp", 0.0),
            has_cover=d.get("has_cover", False),
            has_concealment=d.get("has_concealment", False),
            expected_cover=(CoverState(ec) if ec else None),
        )

    def to_dict(self) -> dict:
        d: dict = {
            "observer_id": self.observer_id,
            "target_id": self.target_id,
            "state": self.state.value,
            "source": self.source,
            "timestamp": self.timestamp,
            "has_cover": self.has_cover,
            "has_concealment": self.has_concealment,
        }
        if self.expected_cover is not None:
            d["expected_cover"] = self.expected_cover.value
        return d
