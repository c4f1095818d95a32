"""
Coordinate mapping between the source video frame and the output canvas.

The source (optionally cropped) is scaled to fit the output canvas minus
padding on every side and centred; the resulting placement is the content
rect. Recorded events and stored actions use source coordinates, viewport
calculations happen in output coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass

from models.timeline_models import Point, Rect, Size


@dataclass(frozen=True)
class MappedPoint:
    x: float
    y: float
    visible: bool = True


class ViewMapper:
    def __init__(
        self,
        input_size: Size,
        output_size: Size,
        padding: float = 0.0,
        crop: Rect | None = None,
    ):
        self.input_size = input_size
        self.output_size = output_size
        self.padding = padding
        self.crop = crop

        effective = self._effective_size()
        scale = max(
            effective.width / (output_size.width * (1 - 2 * padding)),
            effective.height / (output_size.height * (1 - 2 * padding)),
        )
        width = effective.width / scale
        height = effective.height / scale
        self.content_rect = Rect(
            x=(output_size.width - width) / 2,
            y=(output_size.height - height) / 2,
            width=width,
            height=height,
        )

    @property
    def has_crop(self) -> bool:
        return self.crop is not None and self.crop.width > 0 and self.crop.height > 0

    def _effective_size(self) -> Size:
        if self.has_crop:
            return Size(width=self.crop.width, height=self.crop.height)
        return self.input_size

    def _offset(self) -> tuple[float, float]:
        if self.has_crop:
            return self.crop.x, self.crop.y
        return 0.0, 0.0

    def input_to_output_point(self, point: Point, clamp: bool = True) -> MappedPoint:
        """
        Map a source point onto the canvas.

        Points outside the crop are flagged not visible and, unless clamp is
        False, pulled onto the crop border first.
        """
        x, y = point.x, point.y
        visible = True
        offset_x, offset_y = self._offset()
        effective = self._effective_size()

        if self.has_crop:
            right = offset_x + effective.width
            bottom = offset_y + effective.height
            if x < offset_x or x > right or y < offset_y or y > bottom:
                visible = False
            if clamp:
                x = max(offset_x, min(x, right))
                y = max(offset_y, min(y, bottom))

        nx = (x - offset_x) / effective.width
        ny = (y - offset_y) / effective.height
        return MappedPoint(
            x=self.content_rect.x + nx * self.content_rect.width,
            y=self.content_rect.y + ny * self.content_rect.height,
            visible=visible,
        )

    def input_to_output_rect(self, rect: Rect, clamp: bool = True) -> Rect:
        p1 = self.input_to_output_point(Point(x=rect.x, y=rect.y), clamp=clamp)
        p2 = self.input_to_output_point(Point(x=rect.right, y=rect.bottom), clamp=clamp)
        return Rect(x=p1.x, y=p1.y, width=abs(p2.x - p1.x), height=abs(p2.y - p1.y))

    def output_to_input_point(self, point: Point) -> Point:
        """Inverse of input_to_output_point without clamping."""
        offset_x, offset_y = self._offset()
        effective = self._effective_size()
        nx = (point.x - self.content_rect.x) / self.content_rect.width
        ny = (point.y - self.content_rect.y) / self.content_rect.height
        return Point(x=offset_x + nx * effective.width, y=offset_y + ny * effective.height)

    def output_to_input_rect(self, rect: Rect) -> Rect:
        p1 = self.output_to_input_point(Point(x=rect.x, y=rect.y))
        p2 = self.output_to_input_point(Point(x=rect.right, y=rect.bottom))
        return Rect(x=p1.x, y=p1.y, width=abs(p2.x - p1.x), height=abs(p2.y - p1.y))

    def full_output_rect(self) -> Rect:
        return Rect.full(self.output_size)
