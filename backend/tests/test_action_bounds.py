import pytest

from models.project_models import ProjectSettings, SpotlightSettings, ZoomSettings
from models.timeline_models import Rect, SpotlightAction, ViewportMotion
from operators.action_bounds import (
    SPOTLIGHT_RESOLVER,
    ZOOM_RESOLVER,
    ActionBounds,
    ActionEdge,
    ActionInterval,
    TrackAnchor,
    TrackPolicy,
    spotlight_policy,
    zoom_policy,
)

TRACK_END = 20000
RECT = Rect(x=0, y=0, width=100, height=100)


def _motion(motion_id: str, start: float, end: float) -> ViewportMotion:
    return ViewportMotion(
        id=motion_id, output_end_time_ms=end, duration_ms=end - start, rect=RECT
    )


def _spotlight(spotlight_id: str, start: float, end: float) -> SpotlightAction:
    return SpotlightAction(
        id=spotlight_id,
        output_start_time_ms=start,
        output_end_time_ms=end,
        source_rect=RECT,
    )


@pytest.fixture
def motions():
    return [
        _motion("A", 1000, 2000),
        _motion("B", 4000, 5000),
        _motion("C", 8000, 9500),
    ]


@pytest.fixture
def spotlights():
    return [
        _spotlight("A", 1000, 2000),
        _spotlight("B", 4000, 5000),
        _spotlight("C", 8000, 9500),
    ]


class TestPolicies:
    def test_zoom_policy(self):
        settings = ProjectSettings(zoom=ZoomSettings(min_zoom_duration_ms=400, max_zoom_duration_ms=1200))
        policy = zoom_policy(settings)

        assert policy.min_duration_ms == 400
        assert policy.default_duration_ms == 1200
        assert policy.anchor == TrackAnchor.END

    def test_spotlight_policy(self):
        settings = ProjectSettings(spotlight=SpotlightSettings(transition_duration_ms=300))
        policy = spotlight_policy(settings)

        assert policy.min_duration_ms == 700
        assert policy.default_duration_ms == 1400
        assert policy.anchor == TrackAnchor.INTERVAL


class TestGetBounds:
    def test_middle_action(self, motions):
        assert ZOOM_RESOLVER.get_bounds("B", motions, TRACK_END) == ActionBounds(2000, 8000)

    def test_first_and_last_action(self, motions):
        assert ZOOM_RESOLVER.get_bounds("A", motions, TRACK_END) == ActionBounds(0, 4000)
        assert ZOOM_RESOLVER.get_bounds("C", motions, TRACK_END) == ActionBounds(5000, TRACK_END)

    def test_unknown_id_behaves_like_zero_point(self, motions):
        assert ZOOM_RESOLVER.get_bounds("missing", motions, TRACK_END) == ActionBounds(0, 1000)
        assert ZOOM_RESOLVER.get_bounds(None, motions, TRACK_END) == ActionBounds(0, 1000)

    def test_same_results_for_both_tracks(self, motions, spotlights):
        for action_id in ("A", "B", "C"):
            assert ZOOM_RESOLVER.get_bounds(action_id, motions, TRACK_END) == (
                SPOTLIGHT_RESOLVER.get_bounds(action_id, spotlights, TRACK_END)
            )


class TestDragMove:
    def test_move_within_gap(self, spotlights):
        interval = SPOTLIGHT_RESOLVER.drag_move("B", spotlights, 1000, TRACK_END)

        assert interval == ActionInterval(5000, 6000, "B")

    def test_move_clamped_to_next(self, spotlights):
        interval = SPOTLIGHT_RESOLVER.drag_move("B", spotlights, 10000, TRACK_END)

        assert (interval.start_ms, interval.end_ms) == (7000, 8000)

    def test_move_clamped_to_previous(self, motions):
        interval = ZOOM_RESOLVER.drag_move("B", motions, -10000, TRACK_END)

        assert (interval.start_ms, interval.end_ms) == (2000, 3000)

    def test_move_keeps_track_start(self, motions):
        interval = ZOOM_RESOLVER.drag_move("A", motions, -5000, TRACK_END)

        assert (interval.start_ms, interval.end_ms) == (0, 1000)

    def test_unknown_action(self, motions):
        assert ZOOM_RESOLVER.drag_move("missing", motions, 100, TRACK_END) is None

    def test_apply_moves_motion_by_end_anchor(self, motions):
        interval = ZOOM_RESOLVER.drag_move("B", motions, 500, TRACK_END)
        moved = ZOOM_RESOLVER.apply(motions[1], interval)

        assert moved.output_end_time_ms == 5500
        assert moved.duration_ms == 1000
        assert motions[1].output_end_time_ms == 5000


class TestDragResize:
    def test_start_edge_clamped_by_previous(self, spotlights):
        interval = SPOTLIGHT_RESOLVER.drag_resize(
            "B", spotlights, ActionEdge.START, -5000, TRACK_END, 700
        )

        assert (interval.start_ms, interval.end_ms) == (2000, 5000)

    def test_end_edge_clamped_by_next(self, spotlights):
        interval = SPOTLIGHT_RESOLVER.drag_resize(
            "B", spotlights, ActionEdge.END, 5000, TRACK_END, 700
        )

        assert (interval.start_ms, interval.end_ms) == (4000, 8000)

    def test_minimum_duration(self, motions):
        interval = ZOOM_RESOLVER.drag_resize(
            "B", motions, ActionEdge.START, 5000, TRACK_END, 500
        )

        assert (interval.start_ms, interval.end_ms) == (4500, 5000)

    def test_apply_resizes_motion_duration(self, motions):
        interval = ZOOM_RESOLVER.drag_resize(
            "B", motions, ActionEdge.START, -500, TRACK_END, 500
        )
        resized = ZOOM_RESOLVER.apply(motions[1], interval)

        assert resized.output_end_time_ms == 5000
        assert resized.duration_ms == 1500

    def test_short_action_never_crosses_neighbours(self):
        packed = [
            _motion("A", 1000, 2000),
            _motion("S", 2000, 2100),
            _motion("B", 2100, 3000),
        ]

        for edge, delta in [
            (ActionEdge.START, 0),
            (ActionEdge.START, 50),
            (ActionEdge.START, -500),
            (ActionEdge.END, 0),
            (ActionEdge.END, -50),
            (ActionEdge.END, 500),
        ]:
            interval = ZOOM_RESOLVER.drag_resize("S", packed, edge, delta, TRACK_END, 500)
            assert (interval.start_ms, interval.end_ms) == (2000, 2100)

    def test_short_action_grows_into_free_space(self):
        actions = [_spotlight("A", 1000, 2000), _spotlight("S", 4000, 4100)]

        interval = SPOTLIGHT_RESOLVER.drag_resize(
            "S", actions, ActionEdge.START, -1000, TRACK_END, 700
        )

        assert (interval.start_ms, interval.end_ms) == (3000, 4100)


class TestHoverPlacement:
    def test_end_anchored_ghost_ends_at_pointer(self, motions):
        policy = TrackPolicy(min_duration_ms=500, default_duration_ms=1500, anchor=TrackAnchor.END)

        interval = ZOOM_RESOLVER.hover_placement(7000, motions, TRACK_END, policy)

        assert (interval.start_ms, interval.end_ms) == (5500, 7000)

    def test_end_anchored_ghost_shrinks_to_gap(self, motions):
        policy = TrackPolicy(min_duration_ms=500, default_duration_ms=1500, anchor=TrackAnchor.END)

        interval = ZOOM_RESOLVER.hover_placement(5800, motions, TRACK_END, policy)

        assert (interval.start_ms, interval.end_ms) == (5000, 5800)

    def test_end_anchored_ghost_near_previous_uses_minimum(self, motions):
        policy = TrackPolicy(min_duration_ms=500, default_duration_ms=1500, anchor=TrackAnchor.END)

        interval = ZOOM_RESOLVER.hover_placement(5100, motions, TRACK_END, policy)

        assert (interval.start_ms, interval.end_ms) == (5000, 5500)

    def test_interval_ghost_centred_on_pointer(self, spotlights):
        policy = TrackPolicy(min_duration_ms=700, default_duration_ms=1400, anchor=TrackAnchor.INTERVAL)

        interval = SPOTLIGHT_RESOLVER.hover_placement(12000, spotlights, TRACK_END, policy)

        assert (interval.start_ms, interval.end_ms) == (11300, 12700)

    def test_interval_ghost_stays_inside_gap(self, spotlights):
        policy = TrackPolicy(min_duration_ms=700, default_duration_ms=1400, anchor=TrackAnchor.INTERVAL)

        interval = SPOTLIGHT_RESOLVER.hover_placement(2100, spotlights, TRACK_END, policy)

        assert (interval.start_ms, interval.end_ms) == (2000, 3400)

    def test_no_ghost_over_action_or_narrow_gap(self, spotlights):
        policy = TrackPolicy(min_duration_ms=700, default_duration_ms=1400, anchor=TrackAnchor.INTERVAL)
        narrow = [_spotlight("A", 1000, 2000), _spotlight("B", 2500, 3000)]

        assert SPOTLIGHT_RESOLVER.hover_placement(1500, spotlights, TRACK_END, policy) is None
        assert SPOTLIGHT_RESOLVER.hover_placement(2200, narrow, TRACK_END, policy) is None
        assert SPOTLIGHT_RESOLVER.hover_placement(-1, spotlights, TRACK_END, policy) is None
        assert SPOTLIGHT_RESOLVER.hover_placement(TRACK_END + 1, spotlights, TRACK_END, policy) is None


class TestQueries:
    def test_active_at_is_end_exclusive(self, spotlights):
        assert [s.id for s in SPOTLIGHT_RESOLVER.active_at(1000, spotlights)] == ["A"]
        assert SPOTLIGHT_RESOLVER.active_at(2000, spotlights) == []

    def test_would_overlap(self, motions):
        assert ZOOM_RESOLVER.would_overlap(1500, 2500, motions)
        assert not ZOOM_RESOLVER.would_overlap(2000, 4000, motions)
        assert not ZOOM_RESOLVER.would_overlap(3500, 4500, motions, exclude_id="B")
