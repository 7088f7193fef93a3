"""Tests for the scene data model and its JSON round trip."""

import math

import pytest

from visioner.types import (
    Actor,
    CoverState,
    Override,
    Region,
    Scene,
    Token,
    VisibilityState,
    VisionCapability,
    Wall,
)


def _make_token(tid="t1", x=0.0, y=0.0, **actor_kw):
    return Token(id=tid, x=x, y=y, actor=Actor(id="a-" + tid, **actor_kw))


class TestStates:
    def test_detectability_order(self):
        order = [
            VisibilityState.UNDETECTED,
            VisibilityState.HIDDEN,
            VisibilityState.CONCEALED,
            VisibilityState.OBSERVED,
        ]
        ranks = [s.detectability for s in order]
        assert ranks == sorted(ranks)

    def test_at_most_clamps_down(self):
        assert (
            VisibilityState.OBSERVED.at_most(VisibilityState.HIDDEN)
            == VisibilityState.HIDDEN
        )

    def test_at_most_keeps_less_detectable(self):
        assert (
            VisibilityState.UNDETECTED.at_most(VisibilityState.HIDDEN)
            == VisibilityState.UNDETECTED
        )

    def test_best_cover(self):
        assert (
            CoverState.best([CoverState.LESSER, CoverState.GREATER])
            == CoverState.GREATER
        )
        assert CoverState.best([]) == CoverState.NONE


class TestActor:
    def test_sense_range(self):
        actor = Actor(id="a", senses={"darkvision": 60, "tremorsense": None})
        assert actor.sense_range("darkvision") == 60
        assert actor.sense_range("tremorsense") == math.inf
        assert actor.sense_range("scent") == 0

    def test_unknown_size_is_medium(self):
        assert Actor(id="a", size="weird").size_rank == 2

    def test_dead(self):
        assert Actor(id="a", hit_points=0).is_dead
        assert not Actor(id="a", hit_points=3).is_dead
        assert not Actor(id="a").is_dead


class TestToken:
    def test_center_and_rect(self):
        t = Token(id="t", x=100, y=200, width=2, height=1)
        assert t.center(100) == (200, 250)
        assert t.rect(100) == (100, 200, 200, 100)

    def test_vertical_span_uses_size(self):
        t = _make_token(size="lg")
        t.elevation = 5
        assert t.vertical_span == (5, 15)

    def test_round_trip(self):
        t = _make_token(conditions={"prone"}, senses={"darkvision": 60})
        t.invisible_seen_by = {"o1"}
        restored = Token.from_dict(t.to_dict())
        assert restored == t


class TestScene:
    def test_distance_units(self):
        scene = Scene(id="s", grid_size=100, grid_distance=5)
        a = Token(id="a", x=0, y=0)
        b = Token(id="b", x=600, y=0)
        assert scene.distance_units(a, b) == pytest.approx(30.0)

    def test_from_dict_reads_nested_keys(self):
        scene = Scene.from_dict(
            {
                "id": "s",
                "grid": {"size": 50, "distance": 10},
                "walls": [{"id": "w", "c": [0, 0, 10, 0], "sight": False}],
                "regions": [
                    {
                        "id": "r",
                        "vertices": [[0, 0], [1, 0], [1, 1]],
                        "darkness": {"mode": "set", "modifier": 1.0},
                    }
                ],
            }
        )
        assert scene.grid_size == 50
        assert scene.pixels_per_unit == 5
        assert scene.walls[0].blocks_sight is False
        assert scene.regions[0].darkness_mode == "set"

    def test_round_trip(self):
        scene = Scene(
            id="s",
            darkness=0.4,
            tokens=[_make_token()],
            walls=[Wall(id="w", x1=0, y1=0, x2=1, y2=1, door="door")],
            regions=[Region(id="r", vertices=[(0, 0), (1, 0), (1, 1)])],
        )
        assert Scene.from_dict(scene.to_dict()) == scene

    def test_open_door(self):
        door = Wall("w", 0, 0, 1, 1, door="door", door_state="open")
        assert door.is_open_door
        assert not Wall("w", 0, 0, 1, 1, door_state="open").is_open_door


class TestVisionCapability:
    def test_at_distance_drops_out_of_range_senses(self):
        cap = VisionCapability(
            has_darkvision=True,
            darkvision_range=30,
            has_low_light_vision=True,
            low_light_range=math.inf,
        )
        far = cap.at_distance(40)
        assert not far.has_darkvision
        assert far.has_low_light_vision
        assert cap.at_distance(30).has_darkvision


class TestOverride:
    def test_round_trip(self):
        o = Override(
            observer_id="a",
            target_id="b",
            state=VisibilityState.HIDDEN,
            source="hide",
            timestamp=12.5,
            expected_cover=CoverState.STANDARD,
        )
        assert Override.from_dict(o.to_dict()) == o

    def test_bad_state_raises(self):
        with pytest.raises(ValueError):
            Override.from_dict(
                {"observer_id": "a", "target_id": "b", "state": "purple"}
            )
