import pytest

from models.timeline_models import OutputWindow
from operators.time_mapper import NOT_VISIBLE, TimeMapper, TimeMapperCache


@pytest.fixture
def two_speed_windows():
    return [
        OutputWindow(id="a", start_ms=0, end_ms=5000),
        OutputWindow(id="b", start_ms=5000, end_ms=10000, speed=2.0),
    ]


@pytest.fixture
def gapped_windows():
    return [
        OutputWindow(id="a", start_ms=0, end_ms=2000),
        OutputWindow(id="b", start_ms=4000, end_ms=6000),
    ]


class TestOutputDuration:
    def test_speed_shortens_output(self, two_speed_windows):
        mapper = TimeMapper(two_speed_windows)

        assert mapper.get_output_duration() == pytest.approx(7500)

    def test_empty_timeline(self):
        mapper = TimeMapper([])

        assert mapper.get_output_duration() == 0
        assert mapper.output_to_source(0) == NOT_VISIBLE
        assert mapper.source_to_output(0) == NOT_VISIBLE


class TestSourceToOutput:
    def test_maps_through_speed(self, two_speed_windows):
        mapper = TimeMapper(two_speed_windows)

        assert mapper.source_to_output(2500) == pytest.approx(2500)
        assert mapper.source_to_output(7000) == pytest.approx(6000)

    def test_window_end_is_visible(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.source_to_output(2000) == pytest.approx(2000)
        assert mapper.source_to_output(6000) == pytest.approx(4000)

    def test_gap_is_not_visible(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.source_to_output(3000) == NOT_VISIBLE
        assert mapper.source_to_output(7000) == NOT_VISIBLE
        assert mapper.source_to_output(-1) == NOT_VISIBLE


class TestOutputToSource:
    def test_maps_through_speed(self, two_speed_windows):
        mapper = TimeMapper(two_speed_windows)

        assert mapper.output_to_source(6000) == pytest.approx(7000)
        assert mapper.output_to_source(0) == pytest.approx(0)

    def test_gap_is_skipped(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.output_to_source(2000) == pytest.approx(4000)
        assert mapper.output_to_source(2500) == pytest.approx(4500)

    def test_out_of_range(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.output_to_source(-0.5) == NOT_VISIBLE
        assert mapper.output_to_source(4001) == NOT_VISIBLE

    def test_exact_output_end_maps_to_last_window_end(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.output_to_source(4000) == pytest.approx(6000)

    def test_round_trip_inside_windows(self, two_speed_windows):
        mapper = TimeMapper(two_speed_windows)

        for source_ms in (0, 1234, 4999, 5000, 8000):
            output_ms = mapper.source_to_output(source_ms)
            assert mapper.output_to_source(output_ms) == pytest.approx(source_ms)


class TestTimelineOffset:
    def test_offset_shifts_ruler(self, gapped_windows):
        mapper = TimeMapper(gapped_windows, timeline_offset_ms=500)

        assert mapper.output_to_timeline(1000) == pytest.approx(1500)
        assert mapper.timeline_to_output(1500) == pytest.approx(1000)

    def test_not_visible_passes_through(self, gapped_windows):
        mapper = TimeMapper(gapped_windows, timeline_offset_ms=500)

        assert mapper.output_to_timeline(NOT_VISIBLE) == NOT_VISIBLE
        assert mapper.timeline_to_output(100) == NOT_VISIBLE
        assert mapper.timeline_to_output(4501) == NOT_VISIBLE


class TestWindowLookups:
    def test_boundary_belongs_to_next_window(self, two_speed_windows):
        mapper = TimeMapper(two_speed_windows)

        window, output_start = mapper.get_window_at_output_time(5000)
        assert window.id == "b"
        assert output_start == pytest.approx(5000)

    def test_past_end_has_no_window(self, two_speed_windows):
        mapper = TimeMapper(two_speed_windows)

        assert mapper.get_window_at_output_time(7500) is None
        assert mapper.get_window_at_output_time(-1) is None

    def test_window_output_start(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.get_window_output_start("b") == pytest.approx(2000)
        assert mapper.get_window_output_start("missing") == NOT_VISIBLE


class TestSourceRangeToOutputRange:
    def test_point_event(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.source_range_to_output_range(1000) == (1000, 1000)
        assert mapper.source_range_to_output_range(3000) is None

    def test_range_spanning_gap(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        start, end = mapper.source_range_to_output_range(1500, 5000)
        assert start == pytest.approx(1500)
        assert end == pytest.approx(3000)

    def test_range_starting_in_gap(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        start, end = mapper.source_range_to_output_range(2500, 4500)
        assert start == pytest.approx(2000)
        assert end == pytest.approx(2500)

    def test_fully_hidden_range(self, gapped_windows):
        mapper = TimeMapper(gapped_windows)

        assert mapper.source_range_to_output_range(2100, 3900) is None


class TestTimeMapperCache:
    def test_same_list_reuses_mapper(self, gapped_windows):
        cache = TimeMapperCache()

        first = cache.get(gapped_windows)
        assert cache.get(gapped_windows) is first

    def test_new_list_rebuilds(self, gapped_windows):
        cache = TimeMapperCache()

        first = cache.get(gapped_windows)
        second = cache.get(list(gapped_windows))
        assert second is not first

    def test_offset_change_rebuilds(self, gapped_windows):
        cache = TimeMapperCache()

        first = cache.get(gapped_windows, 0)
        second = cache.get(gapped_windows, 250)
        assert second is not first
        assert second.timeline_offset_ms == 250

    def test_invalidate(self, gapped_windows):
        cache = TimeMapperCache()

        first = cache.get(gapped_windows)
        cache.invalidate()
        assert cache.get(gapped_windows) is not first
