import base64
import binascii
import io
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, UnidentifiedImageError

from modules.orders.errors import EmptySignature, UnsupportedImage

Point = Tuple[float, float]

PNG_CONTENT_TYPE = "image/png"


@dataclass(frozen=True)
class RasterImage:
    """PNG-encoded signature bitmap."""
    data: bytes
    width: int
    height: int
    content_type: str = PNG_CONTENT_TYPE

    def to_data_url(self) -> str:
        return f"data:{self.content_type};base64," + base64.b64encode(self.data).decode("ascii")

    @classmethod
    def from_data_url(cls, data_url: str) -> "RasterImage":
        """
        Decodes a `data:image/...;base64,` URL (or a bare base64 string).
        Anything that does not decode to a readable image raises UnsupportedImage.
        """
        payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise UnsupportedImage("Signature data is not valid base64")
        try:
            with Image.open(io.BytesIO(raw)) as img:
                img.load()
                width, height = img.size
                fmt = (img.format or "PNG").lower()
        except (UnidentifiedImageError, OSError):
            raise UnsupportedImage("Signature data is not a readable image")
        return cls(data=raw, width=width, height=height, content_type=f"image/{fmt}")


class SignatureCanvas:
    """
    Records freehand strokes and rasterizes them into a trimmed PNG.

    Coordinates use the canvas convention: origin top-left, y growing down.
    Points outside the canvas are clamped to its border.
    """

    def __init__(self, width: int = 400, height: int = 200, pen_width: int = 2, padding: int = 4):
        if width <= 0 or height <= 0:
            raise ValueError("Canvas dimensions must be positive")
        self.width = width
        self.height = height
        self.pen_width = pen_width
        self.padding = padding
        self._strokes: List[List[Point]] = []
        self._current: Optional[List[Point]] = None

    @classmethod
    def from_strokes(cls, strokes: Iterable[Sequence[Point]], **kwargs) -> "SignatureCanvas":
        canvas = cls(**kwargs)
        for stroke in strokes:
            canvas.add_stroke(stroke)
        return canvas

    def _clamp(self, x: float, y: float) -> Point:
        return (
            min(max(float(x), 0.0), float(self.width - 1)),
            min(max(float(y), 0.0), float(self.height - 1)),
        )

    def begin_stroke(self, x: float, y: float) -> None:
        self.end_stroke()
        self._current = [self._clamp(x, y)]
        self._strokes.append(self._current)

    def extend_stroke(self, x: float, y: float) -> None:
        if self._current is None:
            # Movimiento sin botón presionado
            return
        self._current.append(self._clamp(x, y))

    def end_stroke(self) -> None:
        self._current = None

    def add_stroke(self, points: Sequence[Point]) -> None:
        if not points:
            return
        first, *rest = points
        self.begin_stroke(*first)
        for point in rest:
            self.extend_stroke(*point)
        self.end_stroke()

    def clear(self) -> None:
        self._strokes = []
        self._current = None

    def is_empty(self) -> bool:
        return not self._strokes

    def _render(self) -> Image.Image:
        image = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(image)
        ink = (0, 0, 0, 255)
        radius = max(self.pen_width / 2, 0.5)
        for stroke in self._strokes:
            if len(stroke) == 1:
                x, y = stroke[0]
                draw.ellipse([x - radius, y - radius, x + radius, y + radius], fill=ink)
            else:
                draw.line(stroke, fill=ink, width=self.pen_width, joint="curve")
        return image

    def export_image(self) -> RasterImage:
        if self.is_empty():
            raise EmptySignature()

        image = self._render()
        bbox = image.getbbox()
        if bbox is None:
            raise EmptySignature()

        left, top, right, bottom = bbox
        crop = (
            max(left - self.padding, 0),
            max(top - self.padding, 0),
            min(right + self.padding, self.width),
            min(bottom + self.padding, self.height),
        )
        trimmed = image.crop(crop)

        buffer = io.BytesIO()
        trimmed.save(buffer, format="PNG")
        return RasterImage(data=buffer.getvalue(), width=trimmed.width, height=trimmed.height)


@dataclass(frozen=True)
class ImageCapture:
    """A signature rasterized on the client, e.g. from `canvas.toDataURL()`."""
    image: RasterImage

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImageCapture":
        return cls(RasterImage.from_data_url(data_url))

    def export_image(self) -> RasterImage:
        with Image.open(io.BytesIO(self.image.data)) as img:
            ink = img.convert("RGBA").getbbox()
        if ink is None:
            raise EmptySignature()
        return self.image
