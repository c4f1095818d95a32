"""Conversions between timeline pixel positions and time values."""
from __future__ import annotations

from operators.time_mapper import NOT_VISIBLE, TimeMapper


class TimePixelMapper:
    """
    Wraps a TimeMapper and the zoom level of the timeline ruler.

    The ruler is laid out in output time. This is the only place where a
    visually observed output delta is rescaled by a window's speed into a
    source-time delta.
    """

    def __init__(self, time_mapper: TimeMapper, pixels_per_sec: float):
        if pixels_per_sec <= 0:
            raise ValueError("pixels_per_sec must be positive")
        self.time_mapper = time_mapper
        self.pixels_per_sec = pixels_per_sec

    def x_to_ms(self, x: float) -> float:
        """Pixels to output milliseconds (pointer positions and drag deltas)."""
        return (x / self.pixels_per_sec) * 1000

    def ms_to_x(self, ms: float) -> float:
        """Output milliseconds to pixels (positions and widths)."""
        return (ms / 1000) * self.pixels_per_sec

    def source_time_to_x(self, source_ms: float) -> float:
        """Source time to pixels; NOT_VISIBLE if the instant was trimmed."""
        output_ms = self.time_mapper.source_to_output(source_ms)
        if output_ms == NOT_VISIBLE:
            return NOT_VISIBLE
        return self.ms_to_x(output_ms)

    def x_to_source_time(self, x: float) -> float:
        """Pixels to source time; NOT_VISIBLE outside the output."""
        return self.time_mapper.output_to_source(self.x_to_ms(x))

    def output_delta_to_source_delta(self, output_delta_ms: float, speed: float) -> float:
        """A window plays `speed` source ms per output ms."""
        return output_delta_ms * (speed or 1.0)

    def x_delta_to_source_delta(self, delta_x: float, speed: float) -> float:
        return self.output_delta_to_source_delta(self.x_to_ms(delta_x), speed)
