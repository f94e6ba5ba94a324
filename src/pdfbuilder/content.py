"""
Content Stream Builder

Content operators are immutable records appended to a page in call order;
later operators paint over earlier ones. Encoding to PDF operator syntax is
done by the serializer.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .exceptions import UndefinedFontError
from .geometry import GeometryTracker, PageState

RGB = Tuple[int, int, int]
Rect = Tuple[float, float, float, float]

COLOR_ROLES = ('draw', 'fill', 'text')
PATH_STYLES = ('D', 'F', 'DF', 'FD')


@dataclass(frozen=True)
class MoveTo:
    x: float
    y: float


@dataclass(frozen=True)
class LineTo:
    x: float
    y: float


@dataclass(frozen=True)
class DrawPath:
    style: str = 'D'


@dataclass(frozen=True)
class Text:
    x: float
    y: float
    text: str
    font_id: int
    size: float
    width: float
    height: float
    underline: bool = False


@dataclass(frozen=True)
class SetColor:
    role: str
    rgb: RGB


@dataclass(frozen=True)
class SetLineWidth:
    width: float


@dataclass(frozen=True)
class UseImage:
    resource_id: int
    rect: Rect


ContentOperator = Union[MoveTo, LineTo, DrawPath, Text, SetColor, SetLineWidth, UseImage]


@dataclass
class Page:
    """A page of the document: its number, geometry state and content operators."""
    index: int
    state: PageState
    operators: List[ContentOperator] = field(default_factory=list)

    @property
    def width(self) -> float:
        return self.state.width

    @property
    def height(self) -> float:
        return self.state.height

    @property
    def margins(self):
        return self.state.margins


@dataclass
class FontState:
    font_id: Optional[int] = None
    size: float = 12.0
    underline: bool = False


def _check_rgb(rgb: RGB) -> RGB:
    r, g, b = (int(c) for c in rgb)
    for component in (r, g, b):
        if not 0 <= component <= 255:
            raise ValueError(f"Color components must be within 0..255, got {rgb}")
    return r, g, b


class ContentStreamBuilder:
    """
    Appends content operators to the active page.

    Text placement advances the cursor horizontally by the measured text
    width; vertical movement is left to explicit line breaks.
    """

    def __init__(self, geometry: GeometryTracker, pages: List[Page], measurer):
        self.geometry = geometry
        self.pages = pages
        self.measurer = measurer
        self.font = FontState()
        self.logger = logging.getLogger(__name__)

    @property
    def operators(self) -> List[ContentOperator]:
        return self.pages[self.geometry.active_index - 1].operators

    def append(self, operator: ContentOperator) -> None:
        self.operators.append(operator)

    def require_font(self) -> int:
        if self.font.font_id is None:
            raise UndefinedFontError("No font selected; call set_font() before placing text")
        return self.font.font_id

    def measure(self, text: str) -> float:
        return self.measurer.width(self.require_font(), text, self.font.size)

    # Graphics state

    def set_color(self, role: str, rgb: RGB) -> None:
        if role not in COLOR_ROLES:
            raise ValueError(f"Unknown color role: {role}")
        self.append(SetColor(role, _check_rgb(rgb)))

    def set_line_width(self, width: float) -> None:
        if width < 0:
            raise ValueError(f"Line width must be >= 0, got {width}")
        self.append(SetLineWidth(width))

    # Paths

    def move_to(self, x: float, y: float) -> None:
        self.append(MoveTo(x, y))

    def line_to(self, x: float, y: float) -> None:
        self.append(LineTo(x, y))

    def draw_path(self, style: str = 'D') -> None:
        style = style.upper()
        if style not in PATH_STYLES:
            raise ValueError(f"Unknown path style: {style}")
        self.append(DrawPath(style))

    def line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self.move_to(x1, y1)
        self.line_to(x2, y2)
        self.draw_path('D')

    def rect(self, x: float, y: float, w: float, h: float, style: str = 'D') -> None:
        self.move_to(x, y)
        self.line_to(x + w, y)
        self.line_to(x + w, y + h)
        self.line_to(x, y + h)
        self.line_to(x, y)
        self.draw_path(style)

    # Text

    def text(self, text: str, height: float) -> Rect:
        """
        Place `text` at the cursor and advance x by its width.

        Returns:
            The (x, y, width, height) box occupied by the text
        """
        font_id = self.require_font()
        width = self.measure(text)
        x, y = self.geometry.get_x(), self.geometry.get_y()
        if text:
            self.append(Text(x, y, text, font_id, self.font.size, width, height, self.font.underline))
        self.geometry.advance_x(width)
        self.geometry.record_height(height)
        return x, y, width, height

    def cell(self, width: float, height: float, text: str = '', border: Union[int, str] = 0,
             ln: int = 0, align: str = 'L', fill: bool = False) -> Optional[Rect]:
        """
        Draw a rectangular cell with optional border, background and aligned text.

        Args:
            width: Cell width; 0 extends the cell to the right margin
            height: Cell height
            text: Text to print inside the cell
            border: 0, 1 (full frame) or any combination of 'L', 'T', 'R', 'B'
            ln: Cursor position afterwards: 0 right, 1 start of next line, 2 below
            align: 'L', 'C' or 'R'
            fill: Paint the cell background with the fill color

        Returns:
            The box occupied by the text (for link placement), or None without text
        """
        state = self.geometry.state()
        x, y = state.x, state.y
        if width == 0:
            width = state.width - state.margins.right - x

        border_spec = str(border).upper()
        if fill or border_spec == '1':
            style = 'F' if fill and border_spec != '1' else ('DF' if fill else 'D')
            self.rect(x, y, width, height, style)
        if border_spec not in ('0', '1'):
            if 'L' in border_spec:
                self.line(x, y, x, y + height)
            if 'T' in border_spec:
                self.line(x, y, x + width, y)
            if 'R' in border_spec:
                self.line(x + width, y, x + width, y + height)
            if 'B' in border_spec:
                self.line(x, y + height, x + width, y + height)

        text_box = None
        if text:
            font_id = self.require_font()
            text_width = self.measure(text)
            align = (align or 'L').upper()
            if align == 'R':
                dx = width - text_width
            elif align == 'C':
                dx = (width - text_width) / 2
            else:
                dx = 0.0
            self.append(Text(x + dx, y, text, font_id, self.font.size, text_width, height, self.font.underline))
            size = self.font.size
            text_box = (x + dx, y + 0.5 * height - 0.5 * size, text_width, size)

        self.geometry.record_height(height)
        if ln > 0:
            state.y += height
            if ln == 1:
                state.x = state.margins.left
        else:
            state.x += width
        return text_box

    # Images

    def image(self, resource_id: int, rect: Rect) -> None:
        self.append(UseImage(resource_id, tuple(float(v) for v in rect)))
