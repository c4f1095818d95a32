import pytest

from models.project_models import (
    Project,
    ProjectSettings,
    ScreenSettings,
    SourceMetadata,
    UiSelection,
)
from models.timeline_models import (
    EventType,
    Point,
    Rect,
    Size,
    Timeline,
    UserEvent,
    UserEvents,
)
from operators.action_bounds import ActionEdge, TrackKind
from operators.editor_session import EditorSession
from operators.window_editor import WindowEdge

HD = Size(width=1920, height=1080)
RECT = Rect(x=100, y=100, width=400, height=300)


@pytest.fixture
def source():
    return SourceMetadata(id="screen", duration_ms=10000, size=HD)


@pytest.fixture
def project(source):
    return Project(
        settings=ProjectSettings(screen=ScreenSettings(padding=0)),
        timeline=Timeline.for_recording(source.id, source.duration_ms),
    )


@pytest.fixture
def session(project, source):
    return EditorSession(project, sources={source.id: source})


@pytest.fixture
def window_id(session):
    return session.project.timeline.output_windows[0].id


def _window_end(session: EditorSession, window_id: str) -> float:
    return session.project.timeline.find_window(window_id).end_ms


class TestUndoRedo:
    def test_edit_creates_one_entry(self, session, window_id):
        assert session.split_window(window_id, 4000)

        assert len(session.history.past) == 1
        assert len(session.project.timeline.output_windows) == 2

    def test_undo_and_redo(self, session, window_id):
        session.split_window(window_id, 4000)

        assert session.undo()
        assert len(session.project.timeline.output_windows) == 1
        assert session.redo()
        assert len(session.project.timeline.output_windows) == 2
        assert not session.redo()

    def test_noop_edit_is_not_recorded(self, session, window_id):
        assert not session.split_window(window_id, 0)

        assert session.history.past == ()

    def test_undo_restores_selection_with_deleted_window(self, session, window_id):
        session.split_window(window_id, 4000)
        second_id = session.project.timeline.output_windows[1].id
        session.select(UiSelection(selected_window_id=second_id))

        session.remove_window(second_id)
        assert session.ui.selected_window_id is None

        session.undo()
        assert session.project.timeline.find_window(second_id) is not None
        assert session.ui.selected_window_id == second_id

    def test_delete_motion_clears_editing_id(self, session):
        session.add_from_hover(TrackKind.ZOOM, 3000, RECT)
        motion_id = session.project.timeline.viewport_motions[0].id
        session.select(UiSelection(editing_zoom_id=motion_id))

        session.delete_motion(motion_id)
        assert session.ui.editing_zoom_id is None

        session.undo()
        assert session.ui.editing_zoom_id == motion_id

    def test_history_limit(self, project, source):
        session = EditorSession(project, sources={source.id: source}, history_limit=2)
        window_id = project.timeline.output_windows[0].id

        for delta in (-100, -200, -300):
            session.resize_window(window_id, WindowEdge.RIGHT, delta)

        assert len(session.history.past) == 2


class TestGestures:
    def test_resize_gesture_is_one_undo_entry(self, session, window_id):
        with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
            drag.update(-10)
            drag.update(-25)
            drag.update(-40)

        assert _window_end(session, window_id) == pytest.approx(9600)
        assert len(session.history.past) == 1
        assert session.latch.depth == 0
        assert session.history.is_tracking

        session.undo()
        assert _window_end(session, window_id) == pytest.approx(10000)

    def test_updates_use_cumulative_delta(self, session, window_id):
        with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
            drag.update(-40)
            drag.update(-10)

        assert _window_end(session, window_id) == pytest.approx(9900)

    def test_delta_is_rescaled_by_window_speed(self, session, window_id):
        session.set_window_speed(window_id, 2.0)

        with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
            drag.update(-10)

        # 10px = 100ms of output = 200ms of a 2x window
        assert _window_end(session, window_id) == pytest.approx(9800)

    def test_zero_first_delta_keeps_history_entry(self, session, window_id):
        with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
            assert not drag.update(0)
            drag.update(-10)

        assert len(session.history.past) == 1

    def test_gesture_returning_to_origin(self, session, window_id):
        with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
            drag.update(-10)
            drag.update(0)

        assert _window_end(session, window_id) == pytest.approx(10000)

    def test_move_gesture(self, session, window_id):
        session.resize_window(window_id, WindowEdge.LEFT, 2000)

        with session.move_window_gesture(window_id, pixels_per_sec=100) as drag:
            drag.update(-50)
            drag.update(-100)

        window = session.project.timeline.find_window(window_id)
        assert (window.start_ms, window.end_ms) == (1000, 9000)
        assert len(session.history.past) == 2

    def test_action_drag_gesture(self, session):
        session.add_from_hover(TrackKind.SPOTLIGHT, 2000, RECT)
        spotlight_id = session.project.timeline.spotlight_actions[0].id

        with session.action_drag_gesture(TrackKind.SPOTLIGHT, spotlight_id, pixels_per_sec=100) as drag:
            drag.update(20)
            drag.update(50)

        spotlight = session.project.timeline.find_spotlight(spotlight_id)
        assert spotlight.output_start_time_ms == pytest.approx(1800)
        assert len(session.history.past) == 2

    def test_action_resize_gesture(self, session):
        session.add_from_hover(TrackKind.ZOOM, 3000, RECT)
        motion_id = session.project.timeline.viewport_motions[0].id

        with session.action_drag_gesture(
            TrackKind.ZOOM, motion_id, pixels_per_sec=100, edge=ActionEdge.END
        ) as drag:
            drag.update(100)

        motion = session.project.timeline.find_motion(motion_id)
        assert motion.output_end_time_ms == pytest.approx(4000)
        assert motion.duration_ms == pytest.approx(2500)

    def test_update_after_release_fails(self, session, window_id):
        drag = session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100)
        drag.begin()
        drag.release()
        drag.release()

        assert session.latch.depth == 0
        with pytest.raises(RuntimeError):
            drag.update(-10)

    def test_gesture_releases_on_error(self, session, window_id):
        with pytest.raises(ValueError):
            with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
                drag.update(-10)
                raise ValueError("pointer lost")

        assert session.latch.depth == 0
        assert session.history.is_tracking


class TestHoverToAdd:
    def test_zoom_ghost_ends_at_pointer(self, session):
        placement = session.hover_placement(TrackKind.ZOOM, 3000)

        assert (placement.start_ms, placement.end_ms) == (1500, 3000)

    def test_spotlight_ghost_is_centred(self, session):
        placement = session.hover_placement(TrackKind.SPOTLIGHT, 5000)

        assert (placement.start_ms, placement.end_ms) == (4300, 5700)

    def test_add_zoom_from_hover_switches_auto_off(self, session):
        assert session.add_from_hover(TrackKind.ZOOM, 3000, RECT)

        motion = session.project.timeline.viewport_motions[0]
        assert motion.output_end_time_ms == 3000
        assert session.project.settings.zoom.auto_zoom is False

    def test_no_ghost_over_existing_action(self, session):
        session.add_from_hover(TrackKind.SPOTLIGHT, 5000, RECT)

        assert session.hover_placement(TrackKind.SPOTLIGHT, 5000) is None
        assert not session.add_from_hover(TrackKind.SPOTLIGHT, 5000, RECT)


class TestDerivedState:
    def test_time_mapper_is_cached_until_windows_change(self, session, window_id):
        mapper = session.time_mapper
        assert session.time_mapper is mapper

        session.set_window_speed(window_id, 2.0)
        assert session.time_mapper is not mapper
        assert session.output_duration() == pytest.approx(5000)

    def test_frame_at(self, session):
        frame = session.frame_at(2500)

        assert frame.visible
        assert frame.source_ms == 2500
        assert frame.viewport is not None

    def test_set_recording_regenerates_on_next_edit(self, session, window_id):
        events = UserEvents(
            mouse_clicks=(
                UserEvent(type=EventType.CLICK, timestamp=2000, mouse_pos=Point(x=960, y=540)),
            ),
        )
        session.set_recording(events=events)

        session.split_window(window_id, 6000)

        assert [m.reason for m in session.project.timeline.viewport_motions] == [
            "click",
            "final_zoomout",
        ]
