import pytest

from models.project_models import ProjectSettings, ScreenSettings, SourceMetadata
from models.timeline_models import EventType, Point, Size, UserEvent, UserEvents
from operators import timeline_editor
from operators.project_operator import (
    ProjectNotFoundError,
    SourceNotFoundError,
    create_project_from_source,
    delete_project,
    list_projects,
    load_events,
    load_project,
    load_sources,
    save_events,
    save_project,
    save_source,
)

HD = Size(width=1920, height=1080)


@pytest.fixture
def source():
    return SourceMetadata(id="screen-1", name="demo.mp4", duration_ms=10000, size=HD)


@pytest.fixture
def events():
    return UserEvents(
        mouse_clicks=(
            UserEvent(type=EventType.CLICK, timestamp=2000, mouse_pos=Point(x=960, y=540)),
        ),
    )


class TestCreateProject:
    def test_create_without_events(self, db, source):
        project = create_project_from_source(db, source, name="Demo")

        assert project.name == "Demo"
        assert project.timeline.screen_source_id == source.id
        assert [(w.start_ms, w.end_ms) for w in project.timeline.output_windows] == [(0, 10000)]
        assert project.timeline.viewport_motions == []

    def test_create_with_events_schedules_zooms(self, db, source, events):
        settings = ProjectSettings(screen=ScreenSettings(padding=0))

        project = create_project_from_source(db, source, events=events, settings=settings)

        assert [m.reason for m in project.timeline.viewport_motions] == ["click", "final_zoomout"]
        assert load_events(db, source.id) == events

    def test_camera_source_is_referenced(self, db, source):
        camera = SourceMetadata(id="camera-1", duration_ms=10000, size=Size(width=640, height=480))

        project = create_project_from_source(db, source, camera_source=camera)

        assert project.referenced_source_ids() == [source.id, camera.id]
        assert set(load_sources(db, project.referenced_source_ids())) == {source.id, camera.id}


class TestProjectPersistence:
    def test_round_trip(self, db, source):
        project = create_project_from_source(db, source)

        loaded = load_project(db, project.id)

        assert loaded == project

    def test_save_replaces_snapshot(self, db, source):
        project = create_project_from_source(db, source)
        window_id = project.timeline.output_windows[0].id
        updated, _ = timeline_editor.split_window(project, window_id, 4000)

        save_project(db, updated)

        loaded = load_project(db, project.id)
        assert len(loaded.timeline.output_windows) == 2
        assert len(list_projects(db)) == 1

    def test_missing_project(self, db):
        with pytest.raises(ProjectNotFoundError) as exc_info:
            load_project(db, "nope")

        assert exc_info.value.project_id == "nope"

    def test_delete_project(self, db, source):
        project = create_project_from_source(db, source)

        assert delete_project(db, project.id)
        assert not delete_project(db, project.id)
        with pytest.raises(ProjectNotFoundError):
            load_project(db, project.id)

    def test_list_projects(self, db, source):
        create_project_from_source(db, source, name="First")
        create_project_from_source(db, source, name="Second")

        names = {r.project_name for r in list_projects(db)}
        assert names == {"First", "Second"}


class TestSourcesAndEvents:
    def test_load_sources_skips_unknown(self, db, source, caplog):
        save_source(db, source)

        sources = load_sources(db, [source.id, "missing"])

        assert list(sources) == [source.id]
        assert sources[source.id] == source
        assert "missing" in caplog.text

    def test_events_require_source(self, db, events):
        with pytest.raises(SourceNotFoundError):
            save_events(db, "missing", events)

    def test_events_are_replaced(self, db, source, events):
        save_source(db, source)
        save_events(db, source.id, events)
        save_events(db, source.id, UserEvents())

        assert load_events(db, source.id) == UserEvents()

    def test_no_events(self, db):
        assert load_events(db, "screen-1") is None
